"""Cancellation and deadline carrier for blocking client calls.

Every blocking operation in the SDK (backoff waits, HTTP round trips, token
exchanges) accepts an optional :class:`Context`. Cancelling the context from
another thread wakes any backoff wait immediately; a deadline bounds both the
waits and the HTTP timeouts of the remaining attempts.
"""

import threading
import time

from .errors import CancelledError, DeadlineExceededError


class Context:
    """Thread-safe cancellation token with an optional deadline.

    cancel() wakes pending backoff waits and stops further attempts, but an
    HTTP round trip already in flight runs until it completes or until the
    deadline, which is applied as its timeout.

    Example:
        ctx = Context(timeout=5.0)
        threading.Timer(1.0, ctx.cancel).start()
        client.execute("GET", "/v1/blueprints", response_model=dict, ctx=ctx)
    """

    def __init__(self, timeout: float | None = None):
        """Initialize the context.

        Args:
            timeout: Seconds until the context expires, or None for no
                deadline.
        """
        self._cancelled = threading.Event()
        self._deadline: float | None = (
            time.monotonic() + timeout if timeout is not None else None
        )

    @classmethod
    def background(cls) -> "Context":
        """Return a context that is never cancelled and has no deadline."""
        return cls()

    def cancel(self) -> None:
        """Cancel the context, waking every pending wait."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> float | None:
        """Seconds left until the deadline (may be negative), None if unbounded."""
        if self._deadline is None:
            return None
        return self._deadline - time.monotonic()

    def done(self) -> bool:
        """Return True once the context is cancelled or past its deadline."""
        remaining = self.remaining()
        return self.cancelled or (remaining is not None and remaining <= 0)

    def err(self) -> CancelledError | None:
        """Return the error describing why the context ended, or None if live."""
        if self.cancelled:
            return CancelledError("context cancelled")
        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            return DeadlineExceededError("context deadline exceeded")
        return None

    def check(self) -> None:
        """Raise if the context is cancelled or expired.

        Raises:
            CancelledError: If cancel() was called.
            DeadlineExceededError: If the deadline has passed.
        """
        err = self.err()
        if err is not None:
            raise err

    def wait(self, seconds: float) -> None:
        """Block for ``seconds`` unless the context ends first.

        Args:
            seconds: Time to wait.

        Raises:
            CancelledError: If the context is cancelled before or during the
                wait.
            DeadlineExceededError: If the deadline falls inside the wait.
        """
        self.check()
        remaining = self.remaining()
        if remaining is not None and remaining < seconds:
            if self._cancelled.wait(max(remaining, 0.0)):
                msg = "context cancelled"
                raise CancelledError(msg)
            msg = "context deadline exceeded"
            raise DeadlineExceededError(msg)
        if self._cancelled.wait(max(seconds, 0.0)):
            msg = "context cancelled"
            raise CancelledError(msg)
