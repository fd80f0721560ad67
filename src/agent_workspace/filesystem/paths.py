"""
Mapping between logical workspace paths and concrete host paths.

Logical paths always start with ``/`` and are relative to the workspace
root. Concrete paths are only used internally and never appear in results.
"""

import logging
import os
from pathlib import Path
from typing import Union

from agent_workspace.filesystem.exceptions import InvalidPathError, PathEscapeError

logger = logging.getLogger(__name__)

ROOT = "/"


def normalize_workspace_path(path: str) -> str:
    """
    Normalize a logical path to its canonical form.

    Collapses ``.``, ``..`` and repeated separators against the logical
    root. A ``..`` that would climb above the root is rejected instead of
    being clamped.

    Args:
        path: Logical path supplied by a caller

    Returns:
        Canonical logical path starting with ``/``

    Raises:
        InvalidPathError: If the path is not a usable string
        PathEscapeError: If the path climbs above the logical root
    """
    if not isinstance(path, str):
        raise InvalidPathError(repr(path), "Path must be a string")
    if "\x00" in path:
        raise InvalidPathError(path.replace("\x00", "\\0"), "Path contains NUL byte")

    candidate = path.replace("\\", "/").strip()
    if candidate.startswith("~"):
        raise InvalidPathError(path, "Home directory expansion not allowed")

    segments: list[str] = []
    for segment in candidate.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if not segments:
                logger.warning(f"Rejected path climbing above workspace root: {path}")
                raise PathEscapeError(path)
            segments.pop()
            continue
        segments.append(segment)

    return ROOT + "/".join(segments)


def resolve_host_path(
    root: Union[str, Path], path: str, follow_symlinks: bool = False
) -> Path:
    """
    Resolve a logical path to a concrete location under ``root``.

    Args:
        root: Workspace root directory (absolute)
        path: Logical path
        follow_symlinks: Allow symlinks whose target stays inside the root

    Returns:
        Concrete path inside the root

    Raises:
        PathEscapeError: If the resolved location is outside the root
    """
    normalized = normalize_workspace_path(path)
    root_str = os.path.abspath(str(root))
    rel = "" if normalized == ROOT else normalized[1:]
    full = os.path.abspath(os.path.join(root_str, rel))

    relative_to_root = os.path.relpath(full, root_str)
    if relative_to_root.startswith("..") or os.path.isabs(relative_to_root):
        logger.warning(f"Rejected path outside workspace root: {path}")
        raise PathEscapeError(normalized)

    _check_symlinks(root_str, full, normalized, follow_symlinks)
    return Path(full)


def to_logical_path(root: Union[str, Path], host_path: Union[str, Path]) -> str:
    """Map a concrete path under ``root`` back to its logical path."""
    rel = os.path.relpath(os.path.abspath(str(host_path)), os.path.abspath(str(root)))
    if rel.startswith("..") or os.path.isabs(rel):
        raise PathEscapeError("/".join(Path(rel).parts))
    if rel == ".":
        return ROOT
    return ROOT + "/".join(Path(rel).parts)


def _check_symlinks(root: str, full: str, logical: str, follow_symlinks: bool) -> None:
    """Reject symlinked components, or ones pointing outside the root."""
    real_root = os.path.realpath(root)
    current = root
    rel = os.path.relpath(full, root)
    if rel == ".":
        return

    for part in rel.split(os.sep):
        current = os.path.join(current, part)
        if not os.path.islink(current):
            continue
        if not follow_symlinks:
            logger.warning(f"Rejected symbolic link in workspace path: {logical}")
            raise PathEscapeError(logical, "Symbolic links are not allowed")
        target = os.path.realpath(current)
        if target != real_root and not target.startswith(real_root + os.sep):
            logger.warning(f"Rejected symbolic link leaving workspace root: {logical}")
            raise PathEscapeError(logical)


def is_within_root(
    root: Union[str, Path], host_path: Union[str, Path], follow_symlinks: bool = False
) -> bool:
    """
    Check an existing entry found while walking the root.

    Entries resolving outside the root are never visible. Without
    ``follow_symlinks``, entries reached through any symbolic link are hidden.
    """
    real_root = os.path.realpath(str(root))
    target = os.path.realpath(str(host_path))
    if target != real_root and not target.startswith(real_root + os.sep):
        return False
    if follow_symlinks:
        return True
    rel = os.path.relpath(os.path.abspath(str(host_path)), os.path.abspath(str(root)))
    return os.path.normpath(os.path.join(real_root, rel)) == target
