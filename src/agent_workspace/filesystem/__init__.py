"""
Virtualized filesystem access for autonomous agents.

This module confines file access to a workspace root, composes per-call
cancellation from a caller token and a local timeout, enforces
read-before-write per operation, and gates every tool behind a policy.
"""

from agent_workspace.filesystem.backend import (
    EditResult,
    FileInfo,
    GrepMatch,
    LocalFilesystemBackend,
    StorageBackend,
)
from agent_workspace.filesystem.cancellation import (
    CancellationToken,
    compose_operation_token,
    merge_tokens,
    run_with_token,
)
from agent_workspace.filesystem.config import WorkspaceConfig
from agent_workspace.filesystem.exceptions import (
    AlreadyExistsError,
    EditMatchError,
    FileDecodeError,
    FileSizeLimitExceededError,
    InvalidPathError,
    NotFoundError,
    OperationCancelledError,
    OperationTimeoutError,
    PathEscapeError,
    ReadOnlyWorkspaceError,
    ReadRequiredError,
    SearchError,
    ToolDisabledError,
    WorkspaceError,
)
from agent_workspace.filesystem.ledger import ReadLedger, ReadVersion, make_operation_key
from agent_workspace.filesystem.paths import normalize_workspace_path, resolve_host_path
from agent_workspace.filesystem.policy import PolicyGate, ToolkitPolicies, ToolPolicy
from agent_workspace.filesystem.runtime import (
    WorkspaceRuntime,
    create_default_runtime,
    default_tool_config,
)
from agent_workspace.filesystem.toolkit import (
    MUTATING_TOOLS,
    ToolDefinition,
    ToolExecuteOptions,
    WorkspaceFilesystemToolkit,
)

__all__ = [
    # Backend
    "StorageBackend",
    "LocalFilesystemBackend",
    "FileInfo",
    "GrepMatch",
    "EditResult",
    # Cancellation
    "CancellationToken",
    "compose_operation_token",
    "merge_tokens",
    "run_with_token",
    # Config
    "WorkspaceConfig",
    # Exceptions
    "WorkspaceError",
    "InvalidPathError",
    "PathEscapeError",
    "OperationCancelledError",
    "OperationTimeoutError",
    "ReadRequiredError",
    "AlreadyExistsError",
    "NotFoundError",
    "ReadOnlyWorkspaceError",
    "FileDecodeError",
    "FileSizeLimitExceededError",
    "EditMatchError",
    "SearchError",
    "ToolDisabledError",
    # Ledger
    "ReadLedger",
    "ReadVersion",
    "make_operation_key",
    # Paths
    "normalize_workspace_path",
    "resolve_host_path",
    # Policy
    "PolicyGate",
    "ToolPolicy",
    "ToolkitPolicies",
    # Runtime
    "WorkspaceRuntime",
    "create_default_runtime",
    "default_tool_config",
    # Toolkit
    "MUTATING_TOOLS",
    "ToolDefinition",
    "ToolExecuteOptions",
    "WorkspaceFilesystemToolkit",
]
