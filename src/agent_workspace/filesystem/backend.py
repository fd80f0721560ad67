"""
Storage backends for workspace filesystems.

Backends take and return logical paths only. The toolkit consumes them
through the ``StorageBackend`` protocol; ``LocalFilesystemBackend`` stores
files on local disk under the workspace root.
"""

import asyncio
import fnmatch
import logging
import os
import re
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Protocol, Union

from agent_workspace.filesystem.exceptions import (
    EditMatchError,
    FileDecodeError,
    FileSizeLimitExceededError,
    InvalidPathError,
    NotFoundError,
    SearchError,
)
from agent_workspace.filesystem.paths import (
    is_within_root,
    normalize_workspace_path,
    resolve_host_path,
    to_logical_path,
)

logger = logging.getLogger(__name__)


@dataclass
class FileInfo:
    """Directory entry or glob match."""

    path: str
    is_dir: bool
    size: int
    modified_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class GrepMatch:
    """A single matching line."""

    path: str
    line: int
    text: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class EditResult:
    """Outcome of a string replacement."""

    occurrences: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class StorageBackend(Protocol):
    """Protocol for the storage behind a workspace filesystem."""

    async def ls_info(self, path: str) -> list[FileInfo]:
        """List the immediate children of a directory."""
        ...

    async def read(
        self, path: str, offset: Optional[int] = None, limit: Optional[int] = None
    ) -> str:
        """Read text content, optionally a window of lines."""
        ...

    async def write(self, path: str, content: str) -> None:
        """Create or overwrite a file."""
        ...

    async def edit(
        self, path: str, old_string: str, new_string: str, replace_all: bool = False
    ) -> EditResult:
        """Replace an exact substring."""
        ...

    async def glob_info(self, pattern: str, path: Optional[str] = None) -> list[FileInfo]:
        """Find entries matching a glob pattern."""
        ...

    async def grep_raw(
        self, pattern: str, path: Optional[str] = None, glob: Optional[str] = None
    ) -> list[GrepMatch]:
        """Search file contents for a regular expression."""
        ...


def _isoformat(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


class LocalFilesystemBackend:
    """
    Local-disk storage confined to a root directory.

    Blocking I/O runs in worker threads so callers on the event loop are
    never blocked.

    Usage:
        backend = LocalFilesystemBackend(Path("/tmp/workspace"))
        await backend.write("/notes/a.txt", "hello")
        content = await backend.read("/notes/a.txt")
    """

    def __init__(
        self,
        root: Union[str, Path],
        max_file_size_bytes: int = 25 * 1024 * 1024,
        max_search_results: int = 1000,
        follow_symlinks: bool = False,
        encoding: str = "utf-8",
    ):
        """
        Initialize the backend.

        Args:
            root: Directory that logical ``/`` maps to
            max_file_size_bytes: Largest file that can be read or written
            max_search_results: Cap on glob/grep results
            follow_symlinks: Allow in-root symbolic links
            encoding: Text encoding for reads and writes
        """
        self.root = Path(root)
        self.max_file_size_bytes = max_file_size_bytes
        self.max_search_results = max_search_results
        self.follow_symlinks = follow_symlinks
        self.encoding = encoding

    def _resolve(self, path: str) -> Path:
        return resolve_host_path(self.root, path, follow_symlinks=self.follow_symlinks)

    def _info(self, host_path: Path) -> FileInfo:
        stat = host_path.stat()
        return FileInfo(
            path=to_logical_path(self.root, host_path),
            is_dir=host_path.is_dir(),
            size=stat.st_size,
            modified_at=_isoformat(stat.st_mtime),
        )

    async def ls_info(self, path: str) -> list[FileInfo]:
        return await asyncio.to_thread(self._ls_info, path)

    def _ls_info(self, path: str) -> list[FileInfo]:
        directory = self._resolve(path)
        if not directory.exists():
            raise NotFoundError(normalize_workspace_path(path), "Directory")
        if not directory.is_dir():
            raise InvalidPathError(normalize_workspace_path(path), "Path is not a directory")

        entries = []
        for item in sorted(directory.iterdir(), key=lambda p: p.name):
            if not self._is_visible(item):
                continue
            entries.append(self._info(item))

        logger.debug(f"Listed {len(entries)} entries in {path}")
        return entries

    async def read(
        self, path: str, offset: Optional[int] = None, limit: Optional[int] = None
    ) -> str:
        return await asyncio.to_thread(self._read, path, offset, limit)

    def _read(self, path: str, offset: Optional[int], limit: Optional[int]) -> str:
        logical = normalize_workspace_path(path)
        file_path = self._resolve(path)

        if not file_path.exists():
            raise NotFoundError(logical, "File")
        if not file_path.is_file():
            raise InvalidPathError(logical, "Path is not a regular file")

        file_size = file_path.stat().st_size
        if file_size > self.max_file_size_bytes:
            logger.warning(
                f"File too large: {logical} ({file_size} bytes > "
                f"{self.max_file_size_bytes} bytes)"
            )
            raise FileSizeLimitExceededError(logical, file_size, self.max_file_size_bytes)

        # newline="" keeps line endings exactly as stored
        try:
            with open(file_path, "r", encoding=self.encoding, newline="") as f:
                content = f.read()
        except UnicodeDecodeError as e:
            logger.debug(f"Cannot decode {logical}: {e}")
            raise FileDecodeError(logical, self.encoding)
        logger.debug(f"Read file: {logical} ({file_size} bytes)")

        if offset is None and limit is None:
            return content

        lines = content.splitlines(keepends=True)
        start = offset or 0
        end = start + limit if limit is not None else None
        return "".join(lines[start:end])

    async def write(self, path: str, content: str) -> None:
        await asyncio.to_thread(self._write, path, content)

    def _write(self, path: str, content: str) -> None:
        logical = normalize_workspace_path(path)
        file_path = self._resolve(path)

        content_bytes = content.encode(self.encoding)
        if len(content_bytes) > self.max_file_size_bytes:
            raise FileSizeLimitExceededError(
                logical, len(content_bytes), self.max_file_size_bytes
            )
        if file_path.is_dir():
            raise InvalidPathError(logical, "Path is a directory")
        if not file_path.parent.exists():
            raise NotFoundError(to_logical_path(self.root, file_path.parent), "Directory")

        with open(file_path, "w", encoding=self.encoding, newline="") as f:
            f.write(content)
        logger.info(f"Wrote file: {logical} ({len(content_bytes)} bytes)")

    async def edit(
        self, path: str, old_string: str, new_string: str, replace_all: bool = False
    ) -> EditResult:
        return await asyncio.to_thread(self._edit, path, old_string, new_string, replace_all)

    def _edit(
        self, path: str, old_string: str, new_string: str, replace_all: bool
    ) -> EditResult:
        logical = normalize_workspace_path(path)
        if not old_string:
            raise EditMatchError(logical, 0, "String to replace must not be empty")
        if old_string == new_string:
            raise EditMatchError(logical, 0, "Replacement is identical to the original")

        content = self._read(path, None, None)
        occurrences = content.count(old_string)
        if occurrences == 0 or (occurrences > 1 and not replace_all):
            raise EditMatchError(logical, occurrences)

        if replace_all:
            updated = content.replace(old_string, new_string)
        else:
            updated = content.replace(old_string, new_string, 1)

        self._write(path, updated)
        logger.info(f"Edited file: {logical} ({occurrences} replacement(s))")
        return EditResult(occurrences=occurrences)

    async def glob_info(self, pattern: str, path: Optional[str] = None) -> list[FileInfo]:
        return await asyncio.to_thread(self._glob_info, pattern, path)

    def _glob_info(self, pattern: str, path: Optional[str]) -> list[FileInfo]:
        base = self._search_base(path)
        pattern = pattern.lstrip("/")
        if not pattern:
            raise SearchError("Glob pattern must not be empty")
        if ".." in pattern.split("/"):
            raise SearchError("Glob pattern must not contain '..' segments")

        matches = []
        for item in sorted(base.glob(pattern)):
            if not self._is_visible(item):
                continue
            matches.append(self._info(item))
            if len(matches) >= self.max_search_results:
                logger.warning(f"Reached max results ({self.max_search_results})")
                break

        logger.debug(f"glob {pattern!r} found {len(matches)} entries")
        return matches

    async def grep_raw(
        self, pattern: str, path: Optional[str] = None, glob: Optional[str] = None
    ) -> list[GrepMatch]:
        return await asyncio.to_thread(self._grep_raw, pattern, path, glob)

    def _grep_raw(
        self, pattern: str, path: Optional[str], glob: Optional[str]
    ) -> list[GrepMatch]:
        try:
            regex = re.compile(pattern)
        except re.error as e:
            raise SearchError(f"Invalid regex pattern: {e}")

        base = self._search_base(path)
        results: list[GrepMatch] = []

        for file_path in self._walk_files(base):
            if glob and not self._glob_matches(file_path.relative_to(base).as_posix(), glob):
                continue
            try:
                if file_path.stat().st_size > self.max_file_size_bytes:
                    continue
                with open(file_path, "r", encoding=self.encoding) as f:
                    for line_num, line in enumerate(f, start=1):
                        if regex.search(line):
                            results.append(
                                GrepMatch(
                                    path=to_logical_path(self.root, file_path),
                                    line=line_num,
                                    text=line.rstrip("\r\n"),
                                )
                            )
                            if len(results) >= self.max_search_results:
                                logger.warning(
                                    f"Reached max results ({self.max_search_results})"
                                )
                                return results
            except (UnicodeDecodeError, OSError) as e:
                logger.debug(f"Skipping {file_path.name}: {e}")
                continue

        logger.debug(f"grep {pattern!r} found {len(results)} matches")
        return results

    def _search_base(self, path: Optional[str]) -> Path:
        base = self._resolve(path or "/")
        if not base.exists():
            raise NotFoundError(normalize_workspace_path(path or "/"), "Directory")
        if not base.is_dir():
            raise InvalidPathError(normalize_workspace_path(path or "/"), "Path is not a directory")
        return base

    def _walk_files(self, base: Path):
        for dirpath, dirnames, filenames in os.walk(base, followlinks=False):
            dirnames.sort()
            for name in sorted(filenames):
                file_path = Path(dirpath) / name
                if self._is_visible(file_path):
                    yield file_path

    def _is_visible(self, item: Path) -> bool:
        return is_within_root(self.root, item, self.follow_symlinks)

    @staticmethod
    def _glob_matches(relative: str, pattern: str) -> bool:
        pattern = pattern.lstrip("/")
        if fnmatch.fnmatch(relative, pattern):
            return True
        # "**/" also matches zero directories
        if pattern.startswith("**/") and fnmatch.fnmatch(relative, pattern[3:]):
            return True
        return "/" not in pattern and fnmatch.fnmatch(Path(relative).name, pattern)

    def __repr__(self) -> str:
        return f"LocalFilesystemBackend(root={str(self.root)!r})"
