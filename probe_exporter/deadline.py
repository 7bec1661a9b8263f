"""
Shared cancellable deadline for one scrape.

All probes started by a scrape hold the same Deadline. It fires either when
its timeout elapses or when it is cancelled explicitly, and every blocking
wait in the probes goes through it so that they wake up as soon as it fires.
"""

import threading
import time
from typing import Optional


class Deadline:
    """A cancellable point in time shared by concurrent probes."""

    def __init__(self, timeout: float, clock=time.monotonic):
        self.timeout = timeout
        self._clock = clock
        self._expires_at = clock() + timeout
        self._cancelled = threading.Event()
        self._timer = threading.Timer(max(timeout, 0.0), self._cancelled.set)
        self._timer.daemon = True
        self._timer.start()

    def remaining(self) -> float:
        """Seconds left before the deadline, zero once it has fired."""
        if self._cancelled.is_set():
            return 0.0
        return max(0.0, self._expires_at - self._clock())

    def done(self) -> bool:
        """True once the deadline has elapsed or was cancelled."""
        if self._cancelled.is_set():
            return True
        if self._clock() >= self._expires_at:
            self._cancelled.set()
            return True
        return False

    def cancel(self) -> None:
        """Fire the deadline now and release its timer."""
        self._cancelled.set()
        self._timer.cancel()

    def sleep(self, seconds: float) -> bool:
        """
        Sleep for up to ``seconds``, waking early if the deadline fires.

        Returns:
            True if the deadline fired during (or before) the sleep
        """
        if self.done():
            return True
        self._cancelled.wait(min(seconds, self.remaining()))
        return self.done()

    def cap(self, seconds: Optional[float]) -> float:
        """Bound a per-call timeout by the time left."""
        remaining = self.remaining()
        if seconds is None:
            return remaining
        return min(seconds, remaining)

    def __enter__(self) -> "Deadline":
        return self

    def __exit__(self, *exc) -> None:
        self.cancel()
