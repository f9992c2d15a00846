"""Per-operation context carrying cancellation and a deadline.

Every engine, client and session call accepts an optional ``OperationContext``.
It is checked before the token request, before the resource request and once
more after the response arrives, so a cancelled operation never mutates local
state.

Usage:
    ctx = OperationContext(timeout=30)
    engine.read(resource, ctx)

    # from another thread
    ctx.cancel()
"""
from __future__ import annotations
import threading
import time
from typing import Optional

from .exceptions import OperationCancelledError


class OperationContext:
    """Cancellation token with an optional deadline."""

    def __init__(self, timeout: Optional[float] = None):
        """Create a context.

        Args:
            timeout: Seconds until the operation's deadline (None for no deadline)
        """
        self._cancelled = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, None when there is no deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def timeout_for(self, default: float) -> float:
        """Bound a request timeout by the remaining time.

        Raises:
            OperationCancelledError: The deadline has already passed
        """
        remaining = self.remaining()
        if remaining is None:
            return default
        if remaining <= 0:
            raise OperationCancelledError("Operation deadline exceeded")
        return min(default, remaining)

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelledError if cancelled or past the deadline."""
        if self._cancelled.is_set():
            raise OperationCancelledError()
        if self._deadline is not None and time.monotonic() >= self._deadline:
            raise OperationCancelledError("Operation deadline exceeded")


def ensure_context(ctx: Optional[OperationContext]) -> OperationContext:
    """Return ctx, or a fresh context without deadline when None."""
    return ctx if ctx is not None else OperationContext()
