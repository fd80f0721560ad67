"""
Exceptions for workspace filesystem operations.
"""

from typing import Optional


class WorkspaceError(Exception):
    """Base exception for workspace filesystem operations."""

    pass


class InvalidPathError(WorkspaceError):
    """Raised when a workspace path is invalid or malformed."""

    def __init__(self, path: str, reason: str = "Invalid path"):
        self.path = path
        self.reason = reason
        super().__init__(f"{reason}: {path}")


class PathEscapeError(InvalidPathError):
    """Raised when a logical path resolves outside the workspace root."""

    def __init__(self, path: str, reason: str = "Path outside workspace filesystem root"):
        super().__init__(path, reason)


class OperationCancelledError(WorkspaceError):
    """Raised when the calling context is no longer active."""

    def __init__(self, message: str = "Operation has been cancelled"):
        super().__init__(message)


class OperationTimeoutError(OperationCancelledError, TimeoutError):
    """Raised when the per-operation deadline elapsed."""

    def __init__(self, message: str = "Operation timed out"):
        super().__init__(message)


class ReadRequiredError(WorkspaceError):
    """Raised when a mutating call was attempted without a prior read."""

    def __init__(self, path: str, detail: str = "Call read_file first."):
        self.path = path
        self.detail = detail
        super().__init__(f"Read-before-write required for {path}. {detail}")


class AlreadyExistsError(WorkspaceError):
    """Raised when a target exists and the call did not allow overwriting."""

    def __init__(self, path: str, kind: str = "File"):
        self.path = path
        super().__init__(f"{kind} already exists: {path}")


class NotFoundError(WorkspaceError):
    """Raised when a workspace path does not exist."""

    def __init__(self, path: str, kind: str = "Path"):
        self.path = path
        super().__init__(f"{kind} not found: {path}")


class ReadOnlyWorkspaceError(WorkspaceError):
    """Raised when a mutating operation runs against a read-only workspace."""

    def __init__(self, path: Optional[str] = None):
        self.path = path
        message = "Workspace filesystem is read-only"
        super().__init__(f"{message}: {path}" if path else message)


class FileSizeLimitExceededError(WorkspaceError):
    """Raised when a file exceeds the size limit."""

    def __init__(self, path: str, size: int, limit: int):
        self.path = path
        self.size = size
        self.limit = limit
        super().__init__(f"File too large ({size} bytes > {limit} bytes): {path}")


class FileDecodeError(WorkspaceError):
    """Raised when a file is not valid text in the workspace encoding."""

    def __init__(self, path: str, encoding: str):
        self.path = path
        self.encoding = encoding
        super().__init__(f"File is not valid {encoding} text: {path}")


class EditMatchError(WorkspaceError):
    """Raised when an edit's search string is missing or ambiguous."""

    def __init__(self, path: str, occurrences: int, message: Optional[str] = None):
        self.path = path
        self.occurrences = occurrences
        if message is not None:
            message = f"{message}: {path}"
        elif occurrences == 0:
            message = f"String to replace not found in {path}"
        else:
            message = (
                f"String to replace occurs {occurrences} times in {path}; "
                f"add surrounding context or set replace_all"
            )
        super().__init__(message)


class SearchError(WorkspaceError):
    """Raised when a search operation fails."""

    pass


class ToolDisabledError(WorkspaceError):
    """Raised when a tool disabled by policy is invoked directly."""

    def __init__(self, tool: str):
        self.tool = tool
        super().__init__(f"Tool is disabled by policy: {tool}")
