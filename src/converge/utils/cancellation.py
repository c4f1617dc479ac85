"""Run-wide cancellation signal."""

import threading
from typing import Callable, List, Optional


class CancellationToken:
    """
    One-shot cancellation flag shared by the scheduler, workers and waiters.

    Waiting on the token is a blocking wait that returns as soon as the
    token is cancelled, so pollers never spin.
    """

    def __init__(self):
        self.event = threading.Event()
        self.reason: Optional[str] = None
        self._callbacks: List[Callable[[], None]] = []
        self._lock = threading.Lock()

    def cancel(self, reason: str = "cancelled") -> None:
        with self._lock:
            if self.event.is_set():
                return
            self.reason = reason
            self.event.set()
            callbacks = list(self._callbacks)
        for callback in callbacks:
            callback()

    @property
    def cancelled(self) -> bool:
        return self.event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block up to timeout seconds; True if the token was cancelled."""
        return self.event.wait(timeout)

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Run callback on cancellation (immediately if already cancelled)."""
        with self._lock:
            if not self.event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def remove_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)
