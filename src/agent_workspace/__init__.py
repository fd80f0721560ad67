"""
Agent Workspace - sandboxed filesystem tools for autonomous agents.

This package exposes a restricted, virtualized filesystem surface to an
agent: every path is confined to a workspace root, every call carries a
deadline, and mutations are gated by per-tool policies.
"""

__version__ = "0.1.0"

from agent_workspace.filesystem import (
    AlreadyExistsError,
    CancellationToken,
    NotFoundError,
    OperationCancelledError,
    OperationTimeoutError,
    PathEscapeError,
    ReadRequiredError,
    ToolExecuteOptions,
    ToolPolicy,
    WorkspaceConfig,
    WorkspaceError,
    WorkspaceFilesystemToolkit,
    WorkspaceRuntime,
)

from agent_workspace.settings import WorkspaceSettings

__all__ = [
    # Version
    "__version__",
    # Workspace
    "WorkspaceConfig",
    "WorkspaceRuntime",
    "WorkspaceFilesystemToolkit",
    "ToolExecuteOptions",
    "ToolPolicy",
    "CancellationToken",
    # Errors
    "WorkspaceError",
    "PathEscapeError",
    "OperationCancelledError",
    "OperationTimeoutError",
    "ReadRequiredError",
    "AlreadyExistsError",
    "NotFoundError",
    # Settings
    "WorkspaceSettings",
]
