"""
Tests for logical path normalization and host path resolution.
"""

import os
import tempfile
from pathlib import Path

import pytest

from agent_workspace.filesystem import (
    InvalidPathError,
    PathEscapeError,
    normalize_workspace_path,
    resolve_host_path,
)
from agent_workspace.filesystem.paths import is_within_root, to_logical_path


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def root(temp_dir):
    """Workspace root inside the temp dir, with a sibling outside it."""
    root = temp_dir / "root"
    root.mkdir()
    (temp_dir / "outside").mkdir()
    (temp_dir / "outside" / "secret.txt").write_text("secret")
    return root


class TestNormalizeWorkspacePath:
    """Tests for normalize_workspace_path."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("/", "/"),
            ("", "/"),
            ("notes/a.txt", "/notes/a.txt"),
            ("/notes/./a.txt", "/notes/a.txt"),
            ("//notes///a.txt/", "/notes/a.txt"),
            ("/notes/drafts/../a.txt", "/notes/a.txt"),
            ("\\notes\\a.txt", "/notes/a.txt"),
            ("  /notes/a.txt  ", "/notes/a.txt"),
        ],
    )
    def test_canonical_form(self, raw, expected):
        """Test that paths collapse to one canonical form."""
        assert normalize_workspace_path(raw) == expected

    def test_idempotent(self):
        """Test that normalizing a normalized path changes nothing."""
        once = normalize_workspace_path("a/./b/../c//d")
        assert normalize_workspace_path(once) == once

    @pytest.mark.parametrize("raw", ["..", "/../etc/passwd", "/../../etc/passwd", "/a/../../b"])
    def test_climbing_above_root_rejected(self, raw):
        """Test that '..' above the root is an escape, not a clamp."""
        with pytest.raises(PathEscapeError):
            normalize_workspace_path(raw)

    def test_escape_is_invalid_path(self):
        """Test that escapes are a kind of invalid path."""
        with pytest.raises(InvalidPathError):
            normalize_workspace_path("/../x")

    def test_home_expansion_rejected(self):
        """Test that '~' paths are refused."""
        with pytest.raises(InvalidPathError, match="Home directory"):
            normalize_workspace_path("~/notes")

    def test_nul_byte_rejected(self):
        """Test that NUL bytes are refused."""
        with pytest.raises(InvalidPathError, match="NUL"):
            normalize_workspace_path("/a\x00b")

    def test_non_string_rejected(self):
        """Test that non-string paths are refused."""
        with pytest.raises(InvalidPathError, match="must be a string"):
            normalize_workspace_path(42)


class TestResolveHostPath:
    """Tests for resolve_host_path and to_logical_path."""

    def test_resolves_under_root(self, root):
        """Test mapping a logical path onto the root."""
        assert resolve_host_path(root, "/notes/a.txt") == root / "notes" / "a.txt"
        assert resolve_host_path(root, "/") == root

    def test_escape_rejected(self, root):
        """Test that escapes never reach the host filesystem."""
        with pytest.raises(PathEscapeError):
            resolve_host_path(root, "/../outside/secret.txt")

    def test_to_logical_path(self, root):
        """Test mapping a host path back to its logical path."""
        assert to_logical_path(root, root) == "/"
        assert to_logical_path(root, root / "notes" / "a.txt") == "/notes/a.txt"

    def test_to_logical_path_outside_root(self, root):
        """Test that host paths outside the root have no logical path."""
        with pytest.raises(PathEscapeError):
            to_logical_path(root, root.parent / "outside")

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
    def test_symlink_rejected_by_default(self, root):
        """Test that symlinked components are refused without follow_symlinks."""
        (root / "real").mkdir()
        os.symlink(root / "real", root / "alias")
        with pytest.raises(PathEscapeError, match="Symbolic links"):
            resolve_host_path(root, "/alias/file.txt")

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
    def test_in_root_symlink_followed(self, root):
        """Test that in-root symlinks are allowed with follow_symlinks."""
        (root / "real").mkdir()
        os.symlink(root / "real", root / "alias")
        resolved = resolve_host_path(root, "/alias/file.txt", follow_symlinks=True)
        assert resolved == root / "alias" / "file.txt"

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
    def test_escaping_symlink_rejected_when_following(self, root):
        """Test that symlinks leaving the root are refused even when following."""
        os.symlink(root.parent / "outside", root / "leak")
        with pytest.raises(PathEscapeError):
            resolve_host_path(root, "/leak/secret.txt", follow_symlinks=True)


class TestIsWithinRoot:
    """Tests for is_within_root."""

    def test_regular_entry(self, root):
        """Test that a plain entry under the root is visible."""
        (root / "a.txt").write_text("a")
        assert is_within_root(root, root / "a.txt")

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
    def test_symlinked_entries(self, root):
        """Test visibility of in-root and escaping symlinks."""
        (root / "a.txt").write_text("a")
        os.symlink(root / "a.txt", root / "alias.txt")
        os.symlink(root.parent / "outside" / "secret.txt", root / "leak.txt")

        assert not is_within_root(root, root / "alias.txt")
        assert is_within_root(root, root / "alias.txt", follow_symlinks=True)
        assert not is_within_root(root, root / "leak.txt", follow_symlinks=True)
