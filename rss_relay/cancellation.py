"""Cooperative cancellation shared by the scheduler and its workers."""

import threading
import time
import weakref

from .errors import OperationCancelled


class CancellationToken:
    """Cancellation signal with an optional deadline.

    Cancelling a token cancels every child derived from it. A child also
    counts as cancelled once its own deadline, or any parent's, has passed.
    Waits go through :meth:`wait` so they return as soon as the token is
    cancelled instead of sleeping out the full duration.
    """

    def __init__(
        self,
        parent: "CancellationToken | None" = None,
        timeout: float | None = None,
    ):
        self._event = threading.Event()
        self._lock = threading.RLock()
        self._children: weakref.WeakSet[CancellationToken] = weakref.WeakSet()
        self._parent = parent
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        """Cancel this token and all of its children."""
        with self._lock:
            self._event.set()
            children = list(self._children)
        for child in children:
            child.cancel()

    def child(self, timeout: float | None = None) -> "CancellationToken":
        """Derive a token that is cancelled with this one or after ``timeout``."""
        token = CancellationToken(parent=self, timeout=timeout)
        with self._lock:
            if self._event.is_set():
                token._event.set()
            else:
                self._children.add(token)
        return token

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def remaining(self) -> float | None:
        """Seconds until the nearest deadline, or None when there is none."""
        limits = []
        if self._deadline is not None:
            limits.append(self._deadline - time.monotonic())
        if self._parent is not None:
            parent_remaining = self._parent.remaining()
            if parent_remaining is not None:
                limits.append(parent_remaining)
        return min(limits) if limits else None

    def wait(self, seconds: float) -> bool:
        """Block for up to ``seconds``.

        Returns:
            True if the token was cancelled (or hit its deadline) before the
            time elapsed, False if the full duration passed.
        """
        remaining = self.remaining()
        if remaining is not None and remaining < seconds:
            self._event.wait(max(remaining, 0))
            return True
        return self._event.wait(max(seconds, 0))

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise OperationCancelled("operation cancelled")

    def timeout_for(self, limit: float) -> float:
        """Clamp a request timeout to the time left on this token."""
        remaining = self.remaining()
        if remaining is None:
            return limit
        return max(min(limit, remaining), 0.001)
