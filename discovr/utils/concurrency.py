"""
Admission control and cooperative cancellation for scanner workers.
"""

import threading
from contextlib import contextmanager
from typing import Optional


class ConcurrencyGate:
    """
    Fixed-capacity gate limiting how many probes run at once.

    Wraps a bounded semaphore and tracks how many slots are in use and the
    highest count seen, so callers and tests can check the bound held.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"Gate capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self._semaphore = threading.BoundedSemaphore(capacity)
        self._lock = threading.Lock()
        self._in_flight = 0
        self._peak = 0

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    @property
    def peak(self) -> int:
        with self._lock:
            return self._peak

    def acquire(self) -> None:
        self._semaphore.acquire()
        with self._lock:
            self._in_flight += 1
            self._peak = max(self._peak, self._in_flight)

    def release(self) -> None:
        with self._lock:
            self._in_flight -= 1
        self._semaphore.release()

    @contextmanager
    def slot(self):
        """Hold one slot for the duration of the block."""
        self.acquire()
        try:
            yield
        finally:
            self.release()


class CancellationToken:
    """
    Cooperative cancellation flag threaded through long-running scans.

    The scan checks the token between units of work; the boundary layer
    (signal handler, deadline) calls :meth:`cancel`.
    """

    def __init__(self):
        self._event = threading.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or timeout; returns True when cancelled."""
        return self._event.wait(timeout)

    @classmethod
    def with_deadline(cls, seconds: float) -> "CancellationToken":
        """Create a token that cancels itself after ``seconds``."""
        token = cls()
        timer = threading.Timer(seconds, token.cancel, kwargs={"reason": "deadline exceeded"})
        timer.daemon = True
        token._timer = timer
        timer.start()
        return token

    def dispose(self) -> None:
        """Stop a pending deadline timer, if any."""
        timer = getattr(self, "_timer", None)
        if timer is not None:
            timer.cancel()
            timer.join()
