"""RequestContext model - cancellation signal and deadline for one call"""

from __future__ import annotations

import threading
import time
from typing import Optional

from httpretry.domain.errors import RequestCancelledError


class RequestContext:
    """Cancellation signal and optional deadline shared by all attempts of a call.

    ``cancel()`` may be called from any thread. ``sleep()`` blocks on an event
    rather than ``time.sleep`` so a cancel wakes the sleeper immediately, and it
    never sleeps past the deadline.

    Example:
        >>> ctx = RequestContext.with_timeout(10.0)
        >>> req = new_request("GET", "https://example.com", context=ctx)
        >>> # elsewhere: ctx.cancel()
    """

    def __init__(self, deadline: Optional[float] = None, *, cancellable: bool = True):
        """Initialize context

        Args:
            deadline: Absolute deadline on the ``time.monotonic()`` clock, or None
            cancellable: False for the background context, which ignores cancel()
        """
        self.deadline = deadline
        self._cancellable = cancellable
        self._cancelled = threading.Event()

    @classmethod
    def background(cls) -> "RequestContext":
        """Context that is never cancelled and has no deadline"""
        return cls(cancellable=False)

    @classmethod
    def with_timeout(cls, seconds: float) -> "RequestContext":
        """Context whose deadline is ``seconds`` from now"""
        if seconds < 0:
            raise ValueError("timeout must be non-negative")
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self) -> None:
        """Signal cancellation; wakes any pending sleep"""
        if self._cancellable:
            self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    @property
    def done(self) -> bool:
        """Check if the call should stop (cancelled or past deadline)"""
        return self.cancelled or self.expired

    def remaining(self) -> Optional[float]:
        """Seconds until the deadline (never negative), None without a deadline"""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def error(self, detail: Optional[str] = None) -> RequestCancelledError:
        """Build the error describing why this context is done"""
        reason = "cancelled" if self.cancelled else "deadline exceeded"
        return RequestCancelledError(reason, detail)

    def check(self) -> None:
        """Raise RequestCancelledError if the context is done"""
        if self.done:
            raise self.error()

    def sleep(self, seconds: float) -> None:
        """Wait for ``seconds`` unless cancelled or the deadline passes first

        Raises:
            RequestCancelledError: If the wait was interrupted
        """
        self.check()
        remaining = self.remaining()
        if remaining is not None and remaining < seconds:
            # Sleeping the full backoff would overrun the deadline
            self._cancelled.wait(remaining)
            raise self.error(f"backoff of {seconds:.2f}s exceeds deadline")
        if self._cancelled.wait(seconds):
            raise self.error()
