"""
Workspace filesystem toolkit for LLM function calling.

Every tool works on logical paths rooted at ``/`` and runs the same
pre-flight: the calling context must be active, the composed cancellation
token must not have fired, the path must stay inside the workspace, and
mutations must satisfy read-only mode and the tool's policy.
"""

import asyncio
import errno
import logging
import os
import shutil
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from pydantic import BaseModel, Field, ValidationError

from agent_workspace.filesystem.cancellation import (
    CancellationToken,
    compose_operation_token,
    run_with_token,
)
from agent_workspace.filesystem.exceptions import (
    AlreadyExistsError,
    InvalidPathError,
    NotFoundError,
    OperationCancelledError,
    ReadOnlyWorkspaceError,
    ToolDisabledError,
    WorkspaceError,
)
from agent_workspace.filesystem.ledger import OperationKey
from agent_workspace.filesystem.paths import is_within_root, to_logical_path
from agent_workspace.filesystem.policy import ToolPolicy
from agent_workspace.filesystem.runtime import WorkspaceRuntime

logger = logging.getLogger(__name__)

POLICY_SCOPE = "filesystem"

MUTATING_TOOLS = frozenset({"write_file", "edit_file", "delete_file", "mkdir", "rmdir"})


@dataclass
class ToolExecuteOptions:
    """Per-call context supplied by the hosting runtime."""

    is_active: bool = True
    operation_id: Optional[str] = None
    conversation_id: Optional[str] = None
    tool_call_id: Optional[str] = None
    cancellation: Optional[CancellationToken] = None


@dataclass
class _Operation:
    tool: str
    policy: ToolPolicy
    token: CancellationToken
    key: OperationKey
    path: Optional[str]
    host_path: Optional[Path]

    async def run(self, awaitable: Awaitable[Any]) -> Any:
        return await run_with_token(self.token, awaitable)


# Tool parameters


class PathParams(BaseModel):
    path: str = Field(description="Workspace path starting with /")


class ReadFileParams(BaseModel):
    path: str = Field(description="Workspace file path starting with /")
    offset: Optional[int] = Field(default=None, ge=0, description="0-based line offset")
    limit: Optional[int] = Field(default=None, gt=0, description="Max lines to read")


class WriteFileParams(BaseModel):
    path: str = Field(description="Workspace file path starting with /")
    content: str = Field(description="File contents")
    overwrite: bool = Field(default=False, description="Overwrite if the file exists")
    create_parent_dirs: bool = Field(
        default=True, description="Create parent directories if missing"
    )


class EditFileParams(BaseModel):
    path: str = Field(description="Workspace file path starting with /")
    old_string: str = Field(description="Exact string to replace")
    new_string: str = Field(description="Replacement string")
    replace_all: bool = Field(
        default=False,
        description="Replace all occurrences; otherwise the match must be unique",
    )


class DeleteFileParams(BaseModel):
    path: str = Field(description="Workspace path starting with /")
    recursive: bool = Field(default=False, description="Delete directories recursively")


class MkdirParams(BaseModel):
    path: str = Field(description="Workspace directory path starting with /")
    recursive: bool = Field(default=True, description="Create missing parents")


class RmdirParams(BaseModel):
    path: str = Field(description="Workspace directory path starting with /")
    recursive: bool = Field(default=False, description="Remove contents as well")


class GlobParams(BaseModel):
    pattern: str = Field(description="Glob pattern, e.g. **/*.md")
    path: Optional[str] = Field(default=None, description="Workspace directory to search under")


class GrepParams(BaseModel):
    pattern: str = Field(description="Regex pattern")
    path: Optional[str] = Field(default=None, description="Workspace directory to search")
    glob: Optional[str] = Field(default=None, description="Glob filter, e.g. **/*.py")


class ListTreeParams(BaseModel):
    path: str = Field(default="/", description="Workspace directory path starting with /")
    max_depth: int = Field(default=4, ge=0, le=20, description="Maximum depth to descend")


@dataclass
class ToolDefinition:
    """A tool as exposed to the orchestration layer."""

    name: str
    description: str
    parameters: type[BaseModel]
    handler: Callable[..., Awaitable[dict[str, Any]]]
    needs_approval: bool = False
    mutating: bool = False

    def to_schema(self) -> dict[str, Any]:
        """OpenAI function calling schema."""
        schema = self.parameters.model_json_schema()
        schema.pop("title", None)
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": schema,
            },
        }


def _to_dict(item: Any) -> dict[str, Any]:
    if hasattr(item, "to_dict"):
        return item.to_dict()
    return dict(item)


class WorkspaceFilesystemToolkit:
    """
    Workspace-scoped filesystem tools, virtualized under the workspace root.

    Tools disabled by policy are not exposed at all; in read-only mode the
    mutating tools are removed as well.

    Usage:
        runtime = WorkspaceRuntime(config)
        toolkit = WorkspaceFilesystemToolkit(runtime)

        # Get tool schemas for the LLM
        schemas = toolkit.get_tool_schemas()

        # Execute a tool call
        result = await toolkit.execute_tool(
            "read_file",
            {"path": "/notes/a.txt"},
            ToolExecuteOptions(conversation_id="c1", tool_call_id="t1"),
        )
    """

    name = "workspace_filesystem"
    description = "Workspace-scoped filesystem tools (virtualized under a workspace root)."
    instructions = (
        "All paths are workspace-relative and must start with /. "
        "Use read_file before modifying paths when policies require it."
    )

    def __init__(self, runtime: WorkspaceRuntime, read_only: Optional[bool] = None):
        """
        Initialize the toolkit.

        Args:
            runtime: Workspace runtime supplying root, policies and backend
            read_only: Override the runtime's read-only flag
        """
        self.runtime = runtime
        self.backend = runtime.get_filesystem_backend()
        self.read_only = runtime.read_only if read_only is None else read_only

        tools = [t for t in self._build_tools() if self._policy(t.name).enabled]
        if self.read_only:
            tools = [t for t in tools if not t.mutating]
            logger.info("Workspace filesystem toolkit running in read-only mode")

        self._tools = {t.name: t for t in tools}

    @property
    def tools(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools)

    def get_tool(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name)

    def get_tool_schemas(self) -> list[dict[str, Any]]:
        """Get OpenAI function calling schemas for all visible tools."""
        return [tool.to_schema() for tool in self._tools.values()]

    async def execute_tool(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        options: Optional[ToolExecuteOptions] = None,
    ) -> dict[str, Any]:
        """
        Execute a tool call.

        Args:
            tool_name: Name of a visible tool
            arguments: Tool arguments (validated against the tool's parameters)
            options: Per-call context

        Returns:
            Tool result as a dict

        Raises:
            ValueError: If the tool is unknown or not exposed
            pydantic.ValidationError: If the arguments are invalid
            WorkspaceError: If the operation fails
        """
        tool = self._tools.get(tool_name)
        if tool is None:
            raise ValueError(f"Unknown tool: {tool_name}")

        params = tool.parameters.model_validate(arguments)
        return await tool.handler(**params.model_dump(), options=options)

    async def execute_tool_safe(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        options: Optional[ToolExecuteOptions] = None,
    ) -> dict[str, Any]:
        """
        Execute a tool call, reporting failures as a payload instead of raising.

        Returns:
            ``{"success": True, **result}`` or
            ``{"success": False, "error": ..., "error_type": ...}``
        """
        try:
            result = await self.execute_tool(tool_name, arguments, options)
        except ValidationError as e:
            logger.warning(f"Invalid arguments for {tool_name}: {e}")
            return {"success": False, "error": str(e), "error_type": "InvalidArguments"}
        except (WorkspaceError, OSError) as e:
            logger.warning(f"{tool_name} failed: {e}")
            return {"success": False, "error": str(e), "error_type": type(e).__name__}
        except Exception as e:
            logger.error(f"{tool_name} unexpected error: {e}")
            return {
                "success": False,
                "error": f"Unexpected error: {e}",
                "error_type": "UnexpectedError",
            }
        return {"success": True, **result}

    # Operations

    async def ls(self, path: str, options: Optional[ToolExecuteOptions] = None) -> dict[str, Any]:
        async with self._operation("ls", options, path) as op:
            entries = await op.run(self.backend.ls_info(op.path))
            return {"path": op.path, "entries": [_to_dict(e) for e in entries]}

    async def read_file(
        self,
        path: str,
        offset: Optional[int] = None,
        limit: Optional[int] = None,
        options: Optional[ToolExecuteOptions] = None,
    ) -> dict[str, Any]:
        async with self._operation("read_file", options, path) as op:
            content = await op.run(self.backend.read(op.path, offset, limit))
            await op.run(self.runtime.record_read(op.key, op.path))
            return {"path": op.path, "content": content}

    async def write_file(
        self,
        path: str,
        content: str,
        overwrite: bool = False,
        create_parent_dirs: bool = True,
        options: Optional[ToolExecuteOptions] = None,
    ) -> dict[str, Any]:
        """
        Create or overwrite a file.

        Read-before-write applies only when an existing file is overwritten.

        Raises:
            AlreadyExistsError: If the file exists and overwrite is false
        """
        async with self._operation("write_file", options, path, check_read=False) as op:
            exists = await op.run(
                asyncio.to_thread(self._prepare_write, op.host_path, create_parent_dirs)
            )
            if exists and not overwrite:
                raise AlreadyExistsError(op.path)
            if exists and op.policy.require_read_before_write:
                await op.run(self.runtime.assert_read_before_write(op.key, op.path))

            await op.run(self.backend.write(op.path, content))
            await op.run(self.runtime.record_read(op.key, op.path))
            logger.info(f"write_file {op.path} (overwritten={exists})")
            return {"path": op.path, "overwritten": exists}

    async def edit_file(
        self,
        path: str,
        old_string: str,
        new_string: str,
        replace_all: bool = False,
        options: Optional[ToolExecuteOptions] = None,
    ) -> dict[str, Any]:
        async with self._operation("edit_file", options, path) as op:
            result = await op.run(
                self.backend.edit(op.path, old_string, new_string, replace_all)
            )
            # The caller now knows the content it produced
            await op.run(self.runtime.record_read(op.key, op.path))
            return {"path": op.path, **_to_dict(result)}

    async def delete_file(
        self,
        path: str,
        recursive: bool = False,
        options: Optional[ToolExecuteOptions] = None,
    ) -> dict[str, Any]:
        async with self._operation("delete_file", options, path) as op:
            if op.path == "/":
                raise InvalidPathError(op.path, "Cannot delete the workspace root")

            await op.run(asyncio.to_thread(self._delete_path, op.host_path, op.path, recursive))
            logger.info(f"delete_file {op.path}")
            return {"path": op.path, "deleted": True}

    async def mkdir(
        self,
        path: str,
        recursive: bool = True,
        options: Optional[ToolExecuteOptions] = None,
    ) -> dict[str, Any]:
        async with self._operation("mkdir", options, path) as op:
            created = await op.run(
                asyncio.to_thread(self._make_directory, op.host_path, op.path, recursive)
            )
            if created:
                logger.info(f"mkdir {op.path}")
            return {"path": op.path, "created": created}

    async def rmdir(
        self,
        path: str,
        recursive: bool = False,
        options: Optional[ToolExecuteOptions] = None,
    ) -> dict[str, Any]:
        async with self._operation("rmdir", options, path) as op:
            if op.path == "/":
                raise InvalidPathError(op.path, "Cannot remove the workspace root")

            await op.run(asyncio.to_thread(self._rmdir, op.host_path, op.path, recursive))
            logger.info(f"rmdir {op.path}")
            return {"path": op.path, "deleted": True}

    async def stat(self, path: str, options: Optional[ToolExecuteOptions] = None) -> dict[str, Any]:
        async with self._operation("stat", options, path) as op:
            return await op.run(asyncio.to_thread(self._stat, op.host_path, op.path))

    async def glob(
        self,
        pattern: str,
        path: Optional[str] = None,
        options: Optional[ToolExecuteOptions] = None,
    ) -> dict[str, Any]:
        async with self._operation("glob", options, path) as op:
            matches = await op.run(self.backend.glob_info(pattern, op.path))
            return {"pattern": pattern, "matches": [_to_dict(m) for m in matches]}

    async def grep(
        self,
        pattern: str,
        path: Optional[str] = None,
        glob: Optional[str] = None,
        options: Optional[ToolExecuteOptions] = None,
    ) -> dict[str, Any]:
        async with self._operation("grep", options, path) as op:
            matches = await op.run(self.backend.grep_raw(pattern, op.path, glob))
            return {"pattern": pattern, "matches": [_to_dict(m) for m in matches]}

    async def list_tree(
        self,
        path: str = "/",
        max_depth: int = 4,
        options: Optional[ToolExecuteOptions] = None,
    ) -> dict[str, Any]:
        """
        List files and directories recursively.

        Directories carry a trailing ``/``. ``max_depth=0`` lists only the
        immediate children.
        """
        return await self._list_tree("list_tree", path, max_depth, options)

    async def list_files(
        self,
        path: str = "/",
        max_depth: int = 4,
        options: Optional[ToolExecuteOptions] = None,
    ) -> dict[str, Any]:
        return await self._list_tree("list_files", path, max_depth, options)

    async def _list_tree(
        self,
        tool: str,
        path: str,
        max_depth: int,
        options: Optional[ToolExecuteOptions],
    ) -> dict[str, Any]:
        async with self._operation(tool, options, path) as op:
            entries = await op.run(
                asyncio.to_thread(self._walk, op.host_path, op.path, max_depth, op.token)
            )
            return {"path": op.path, "entries": entries}

    def get_summary(self) -> dict[str, Any]:
        """
        Get a summary of the toolkit configuration.

        Returns:
            Dict with configuration summary
        """
        return {
            "workspace": self.runtime.id,
            "root": str(self.runtime.filesystem_root_dir),
            "operation_timeout_ms": self.runtime.operation_timeout_ms,
            "read_only": self.read_only,
            "tools": [
                {"name": t.name, "needs_approval": t.needs_approval} for t in self._tools.values()
            ],
        }

    # Internals

    def _policy(self, tool: str) -> ToolPolicy:
        return self.runtime.get_policy(POLICY_SCOPE, tool)

    @asynccontextmanager
    async def _operation(
        self,
        tool: str,
        options: Optional[ToolExecuteOptions],
        path: Optional[str],
        check_read: bool = True,
    ) -> AsyncIterator[_Operation]:
        """Shared pre-flight for every tool; releases the token's timer afterwards."""
        options = options or ToolExecuteOptions()
        if not options.is_active:
            raise OperationCancelledError()

        policy = self._policy(tool)
        if not policy.enabled:
            raise ToolDisabledError(tool)
        mutating = tool in MUTATING_TOOLS
        if mutating and self.read_only:
            raise ReadOnlyWorkspaceError(path)

        token = compose_operation_token(self.runtime.operation_timeout_ms, options.cancellation)
        try:
            token.raise_if_cancelled()

            normalized = None
            host_path = None
            if path is not None:
                normalized = self.runtime.normalize_workspace_path(path)
                host_path = await run_with_token(
                    token, asyncio.to_thread(self.runtime.resolve_host_path, normalized)
                )

            key = self.runtime.get_operation_key(
                options.operation_id, options.conversation_id, options.tool_call_id
            )
            op = _Operation(
                tool=tool, policy=policy, token=token, key=key, path=normalized, host_path=host_path
            )

            if mutating and check_read and policy.require_read_before_write:
                await op.run(self.runtime.assert_read_before_write(key, normalized))

            yield op
        finally:
            token.dispose()

    # Blocking helpers, run in worker threads

    @staticmethod
    def _prepare_write(host_path: Path, create_parent_dirs: bool) -> bool:
        if create_parent_dirs:
            host_path.parent.mkdir(parents=True, exist_ok=True)
        return host_path.exists()

    def _make_directory(self, host_path: Path, logical: str, recursive: bool) -> bool:
        if host_path.exists():
            if host_path.is_dir() and recursive:
                return False
            raise AlreadyExistsError(logical, "Directory" if host_path.is_dir() else "File")
        try:
            host_path.mkdir(parents=recursive)
        except FileNotFoundError:
            parent = to_logical_path(self.runtime.filesystem_root_dir, host_path.parent)
            raise NotFoundError(parent, "Directory")
        return True

    def _delete_path(self, host_path: Path, logical: str, recursive: bool) -> None:
        if not os.path.lexists(host_path):
            raise NotFoundError(logical)
        # Links are removed themselves, never their target
        if host_path.is_symlink() or not host_path.is_dir():
            host_path.unlink()
        else:
            self._remove_directory(host_path, logical, recursive)

    def _rmdir(self, host_path: Path, logical: str, recursive: bool) -> None:
        if not host_path.exists():
            raise NotFoundError(logical, "Directory")
        if host_path.is_symlink() or not host_path.is_dir():
            raise InvalidPathError(logical, "Path is not a directory")
        self._remove_directory(host_path, logical, recursive)

    @staticmethod
    def _remove_directory(host_path: Path, logical: str, recursive: bool) -> None:
        if recursive:
            shutil.rmtree(host_path)
            return
        try:
            host_path.rmdir()
        except OSError as e:
            if e.errno in (errno.ENOTEMPTY, errno.EEXIST):
                raise InvalidPathError(logical, "Directory not empty; set recursive")
            raise

    @staticmethod
    def _stat(host_path: Path, logical: str) -> dict[str, Any]:
        try:
            stat = host_path.stat()
        except FileNotFoundError:
            raise NotFoundError(logical)

        created = getattr(stat, "st_birthtime", stat.st_ctime)
        return {
            "path": logical,
            "is_dir": host_path.is_dir(),
            "size": stat.st_size,
            "modified_at": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
            "created_at": datetime.fromtimestamp(created, tz=timezone.utc).isoformat(),
        }

    def _walk(
        self, host_root: Path, logical: str, max_depth: int, token: CancellationToken
    ) -> list[dict[str, Any]]:
        if not host_root.exists():
            raise NotFoundError(logical, "Directory")
        if not host_root.is_dir():
            raise InvalidPathError(logical, "Path is not a directory")

        root = self.runtime.filesystem_root_dir
        follow = self.runtime.config.follow_symlinks
        results: list[dict[str, Any]] = []

        def walk(directory: Path, depth: int) -> None:
            if depth > max_depth or token.cancelled:
                return
            for entry in sorted(directory.iterdir(), key=lambda p: p.name):
                if not is_within_root(root, entry, follow):
                    continue
                logical = to_logical_path(root, entry)
                if entry.is_dir():
                    results.append({"path": f"{logical}/", "is_dir": True})
                    walk(entry, depth + 1)
                else:
                    results.append({"path": logical, "is_dir": False})

        walk(host_root, 0)
        return results

    def _build_tools(self) -> list[ToolDefinition]:
        def define(name: str, description: str, parameters: type[BaseModel], handler) -> ToolDefinition:
            return ToolDefinition(
                name=name,
                description=description,
                parameters=parameters,
                handler=handler,
                needs_approval=self._policy(name).needs_approval,
                mutating=name in MUTATING_TOOLS,
            )

        return [
            define("ls", "List files and directories in a workspace directory.", PathParams, self.ls),
            define("read_file", "Read a text file from the workspace filesystem.", ReadFileParams, self.read_file),
            define("glob", "Find files in the workspace filesystem matching a glob pattern.", GlobParams, self.glob),
            define("grep", "Search for a regex pattern in workspace files.", GrepParams, self.grep),
            define("stat", "Get metadata for a workspace file or directory.", PathParams, self.stat),
            define("list_tree", "List files and directories recursively.", ListTreeParams, self.list_tree),
            define("list_files", "Alias for list_tree.", ListTreeParams, self.list_files),
            define("mkdir", "Create a directory in the workspace filesystem.", MkdirParams, self.mkdir),
            define("rmdir", "Remove a directory from the workspace filesystem.", RmdirParams, self.rmdir),
            define(
                "delete_file",
                "Delete a file or directory from the workspace filesystem.",
                DeleteFileParams,
                self.delete_file,
            ),
            define("write_file", "Write a file into the workspace filesystem.", WriteFileParams, self.write_file),
            define("edit_file", "Edit a file by replacing a specific string.", EditFileParams, self.edit_file),
        ]
