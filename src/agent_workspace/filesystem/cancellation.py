"""
Cancellation tokens for workspace operations.

A token fires at most once. Tokens can be merged so that the first source
to fire wins, and bounded by a local timeout.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from agent_workspace.filesystem.exceptions import (
    OperationCancelledError,
    OperationTimeoutError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """
    A fire-once stop signal.

    The reason is an exception instance that operations raise when they
    observe the fired token.

    Usage:
        token = CancellationToken()
        token.add_callback(lambda reason: print(f"stopped: {reason}"))
        token.cancel()
        token.raise_if_cancelled()  # raises OperationCancelledError
    """

    def __init__(self) -> None:
        self._reason: Optional[BaseException] = None
        self._callbacks: list[Callable[[BaseException], Any]] = []
        self._timer: Optional[asyncio.TimerHandle] = None
        self._owned: list["CancellationToken"] = []
        self._sources: list[tuple["CancellationToken", Callable[[BaseException], Any]]] = []

    @property
    def cancelled(self) -> bool:
        return self._reason is not None

    @property
    def reason(self) -> Optional[BaseException]:
        return self._reason

    def cancel(self, reason: Optional[BaseException] = None) -> bool:
        """
        Fire the token.

        Args:
            reason: Exception describing why; defaults to OperationCancelledError

        Returns:
            True if this call fired the token, False if it had already fired
        """
        if self._reason is not None:
            return False

        self._reason = reason if reason is not None else OperationCancelledError()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._detach()

        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback(self._reason)
        return True

    def add_callback(self, callback: Callable[[BaseException], Any]) -> None:
        """Register a callback; runs immediately if the token already fired."""
        if self._reason is not None:
            callback(self._reason)
            return
        self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[BaseException], Any]) -> None:
        """Unregister a callback; unknown callbacks are ignored."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def raise_if_cancelled(self) -> None:
        if self._reason is not None:
            raise self._reason

    async def wait(self) -> BaseException:
        """Suspend until the token fires and return its reason."""
        if self._reason is not None:
            return self._reason

        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()

        def _resolve(reason: BaseException) -> None:
            if not future.done():
                future.set_result(reason)

        self.add_callback(_resolve)
        try:
            return await future
        finally:
            self.remove_callback(_resolve)

    @classmethod
    def with_timeout(cls, seconds: float) -> "CancellationToken":
        """
        Create a token that fires with OperationTimeoutError after ``seconds``.

        Must be called from within a running event loop.
        """
        token = cls()
        if seconds <= 0:
            token.cancel(OperationTimeoutError())
            return token

        loop = asyncio.get_running_loop()
        token._timer = loop.call_later(
            seconds,
            lambda: token.cancel(
                OperationTimeoutError(f"Operation timed out after {seconds:g}s")
            ),
        )
        return token

    def dispose(self) -> None:
        """Release pending timers and source callbacks without firing the token."""
        self._detach()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        for token in self._owned:
            token.dispose()

    def _detach(self) -> None:
        sources, self._sources = self._sources, []
        for token, callback in sources:
            token.remove_callback(callback)

    def __repr__(self) -> str:
        state = f"cancelled={type(self._reason).__name__}" if self._reason else "active"
        return f"CancellationToken({state})"


def merge_tokens(*tokens: CancellationToken) -> CancellationToken:
    """
    Merge several tokens into one that fires when the first of them fires.

    An input that has already fired makes the merged token fire immediately
    with the same reason. Later firings are ignored. Once the merged token
    fires or is disposed it no longer holds callbacks on its inputs.
    """
    merged = CancellationToken()
    for token in tokens:
        if token.cancelled:
            merged.cancel(token.reason)
            return merged

    callback = merged.cancel
    for token in tokens:
        token.add_callback(callback)
        merged._sources.append((token, callback))
    return merged


def compose_operation_token(
    timeout_ms: int, upstream: Optional[CancellationToken] = None
) -> CancellationToken:
    """
    Build the token for one operation.

    Args:
        timeout_ms: Per-operation timeout in milliseconds
        upstream: Optional caller-supplied cancellation source

    Returns:
        A token firing on whichever of timeout or upstream comes first
    """
    if upstream is not None and upstream.cancelled:
        return merge_tokens(upstream)

    local = CancellationToken.with_timeout(timeout_ms / 1000)
    if upstream is None:
        return local

    merged = merge_tokens(upstream, local)
    merged._owned.append(local)
    merged.add_callback(lambda _reason: local.dispose())
    return merged


async def run_with_token(token: CancellationToken, awaitable: Awaitable[T]) -> T:
    """
    Await ``awaitable`` unless ``token`` fires first.

    When the token fires while the work is outstanding, the work is cancelled
    and the token's reason is raised.

    Raises:
        OperationCancelledError: If the token fired (OperationTimeoutError for timeouts)
    """
    if token.cancelled:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        token.raise_if_cancelled()

    work = asyncio.ensure_future(awaitable)
    stop = asyncio.ensure_future(token.wait())
    try:
        done, _ = await asyncio.wait({work, stop}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        work.cancel()
        stop.cancel()
        raise

    if work in done:
        stop.cancel()
        return work.result()

    work.cancel()
    logger.debug(f"Abandoned in-flight operation: {token.reason}")
    token.raise_if_cancelled()
    raise OperationCancelledError()
