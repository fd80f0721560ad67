"""
Workspace runtime: the state and configuration shared by workspace toolkits.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Union

from agent_workspace.filesystem.backend import LocalFilesystemBackend, StorageBackend
from agent_workspace.filesystem.config import WorkspaceConfig
from agent_workspace.filesystem.ledger import (
    OperationKey,
    ReadLedger,
    ReadVersion,
    make_operation_key,
)
from agent_workspace.filesystem.paths import normalize_workspace_path, resolve_host_path
from agent_workspace.filesystem.policy import PolicyGate, ToolkitPolicies, ToolPolicy

logger = logging.getLogger(__name__)


class WorkspaceRuntime:
    """
    Owns the workspace root, tool policies, storage backend and read ledger.

    The root, timeout and policies never change for the lifetime of the
    runtime. The ledger lives until ``destroy()``.

    Usage:
        runtime = WorkspaceRuntime(WorkspaceConfig(filesystem_root_dir="/tmp/ws"))
        await runtime.init()
        toolkit = WorkspaceFilesystemToolkit(runtime)
    """

    def __init__(
        self,
        config: WorkspaceConfig,
        backend: Optional[StorageBackend] = None,
    ):
        """
        Initialize the runtime.

        Args:
            config: Workspace configuration
            backend: Storage backend; defaults to local disk under the root
        """
        self.config = config
        self.ledger = ReadLedger()
        self.policies = PolicyGate(config.tools)
        self._backend = backend or LocalFilesystemBackend(
            config.filesystem_root_dir,
            max_file_size_bytes=config.max_file_size_bytes,
            max_search_results=config.max_search_results,
            follow_symlinks=config.follow_symlinks,
        )

    @property
    def id(self) -> str:
        return self.config.id

    @property
    def operation_timeout_ms(self) -> int:
        return self.config.operation_timeout_ms

    @property
    def filesystem_root_dir(self) -> Path:
        return self.config.filesystem_root_dir

    @property
    def read_only(self) -> bool:
        return self.config.read_only

    @property
    def tool_config(self) -> dict[str, ToolkitPolicies]:
        return self.config.tools

    async def init(self) -> None:
        """Create the root directory if needed."""
        await asyncio.to_thread(self.filesystem_root_dir.mkdir, parents=True, exist_ok=True)
        logger.info(f"Workspace {self.id!r} ready at {self.filesystem_root_dir}")

    async def destroy(self) -> None:
        """Drop all ledger state."""
        self.ledger.clear()
        logger.debug(f"Workspace {self.id!r} destroyed")

    def get_filesystem_backend(self) -> StorageBackend:
        return self._backend

    def get_policy(self, toolkit: str, tool: str) -> ToolPolicy:
        return self.policies.get_policy(toolkit, tool)

    def normalize_workspace_path(self, path: str) -> str:
        return normalize_workspace_path(path)

    def resolve_host_path(self, path: str) -> Path:
        return resolve_host_path(
            self.filesystem_root_dir, path, follow_symlinks=self.config.follow_symlinks
        )

    def get_operation_key(
        self,
        operation_id: Optional[str] = None,
        conversation_id: Optional[str] = None,
        tool_call_id: Optional[str] = None,
    ) -> OperationKey:
        return make_operation_key(operation_id, conversation_id, tool_call_id)

    async def record_read(self, key: OperationKey, path: str) -> None:
        """Record a successful read; paths that no longer exist are skipped."""
        normalized = self.normalize_workspace_path(path)
        version = await self._get_path_version(normalized)
        if version is None:
            return
        self.ledger.record_read(key, normalized, version)

    async def assert_read_before_write(self, key: OperationKey, path: str) -> None:
        """
        Check that ``path`` was read under ``key`` and is unchanged since.

        Raises:
            ReadRequiredError: If no qualifying read exists
        """
        normalized = self.normalize_workspace_path(path)
        current = await self._get_path_version(normalized)
        self.ledger.assert_read_before_write(key, normalized, current)

    def discard_operation(self, key: OperationKey) -> None:
        self.ledger.discard(key)

    async def _get_path_version(self, path: str) -> Optional[ReadVersion]:
        return await asyncio.to_thread(self._stat_version, path)

    def _stat_version(self, path: str) -> Optional[ReadVersion]:
        try:
            stat = self.resolve_host_path(path).stat()
        except OSError:
            return None
        return ReadVersion(mtime_ns=stat.st_mtime_ns, size=stat.st_size)

    def __repr__(self) -> str:
        return f"WorkspaceRuntime(id={self.id!r}, root={str(self.filesystem_root_dir)!r})"


def default_tool_config() -> dict[str, ToolkitPolicies]:
    """Default policies: mutations need approval, edits and deletes need a prior read."""
    return {
        "filesystem": ToolkitPolicies(
            defaults=ToolPolicy(needs_approval=False),
            tools={
                "delete_file": ToolPolicy(needs_approval=True, require_read_before_write=True),
                "write_file": ToolPolicy(needs_approval=True),
                "edit_file": ToolPolicy(needs_approval=True, require_read_before_write=True),
            },
        ),
    }


def create_default_runtime(base_dir: Union[str, Path, None] = None) -> WorkspaceRuntime:
    """Create a runtime rooted at ``<base_dir>/.workspace/fs`` with default policies."""
    root = Path(base_dir or Path.cwd()) / ".workspace"
    config = WorkspaceConfig(
        id="default",
        filesystem_root_dir=root / "fs",
        tools=default_tool_config(),
    )
    return WorkspaceRuntime(config)
