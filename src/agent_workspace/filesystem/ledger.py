"""
Per-operation record of which workspace paths have been read.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from agent_workspace.filesystem.exceptions import ReadRequiredError

logger = logging.getLogger(__name__)

OperationKey = str


@dataclass(frozen=True)
class ReadVersion:
    """File version observed at read time."""

    mtime_ns: int
    size: int


def make_operation_key(
    operation_id: Optional[str] = None,
    conversation_id: Optional[str] = None,
    tool_call_id: Optional[str] = None,
) -> OperationKey:
    """
    Derive the ledger scope for a tool invocation.

    The operation id wins when present; otherwise the conversation and tool
    call ids are combined.
    """
    if operation_id:
        return operation_id
    return f"{conversation_id or 'unknown'}:{tool_call_id or 'unknown'}"


class ReadLedger:
    """
    Keyed store of visited paths.

    Matching is exact: reading ``/a/b.txt`` says nothing about
    ``/a/b.txt.bak``. When versions are supplied, a write is refused if the
    file changed after it was read.

    Usage:
        ledger = ReadLedger()
        ledger.record_read("op-1", "/notes/a.txt")
        ledger.assert_read_before_write("op-1", "/notes/a.txt")  # ok
        ledger.assert_read_before_write("op-2", "/notes/a.txt")  # raises
    """

    def __init__(self) -> None:
        self._reads: dict[OperationKey, dict[str, Optional[ReadVersion]]] = {}

    def record_read(
        self, key: OperationKey, path: str, version: Optional[ReadVersion] = None
    ) -> None:
        self._reads.setdefault(key, {})[path] = version
        logger.debug(f"Recorded read of {path} under {key}")

    def has_read(self, key: OperationKey, path: str) -> bool:
        return path in self._reads.get(key, {})

    def assert_read_before_write(
        self,
        key: OperationKey,
        path: str,
        current_version: Optional[ReadVersion] = None,
    ) -> None:
        """
        Check that ``path`` was read under ``key``.

        Args:
            key: Operation key of the mutating call
            path: Canonical logical path about to be modified
            current_version: Version of the file now, or None if unknown/missing

        Raises:
            ReadRequiredError: If no qualifying read exists
        """
        reads = self._reads.get(key, {})
        if path not in reads:
            logger.warning(f"Write to {path} under {key} without prior read")
            raise ReadRequiredError(path)

        prior = reads[path]
        if prior is None:
            return
        if current_version is None:
            raise ReadRequiredError(path, "File no longer exists.")
        if prior != current_version:
            logger.warning(f"{path} changed since it was read under {key}")
            raise ReadRequiredError(path, "File changed since last read; re-read it.")

    def discard(self, key: OperationKey) -> None:
        self._reads.pop(key, None)

    def clear(self) -> None:
        self._reads.clear()

    def __len__(self) -> int:
        return len(self._reads)
