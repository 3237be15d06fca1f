"""Cooperative cancellation shared by every suspending call in a turn."""

import threading
from typing import Callable, Optional


class OperationCancelled(Exception):
    """Raised when a cancellation token has been triggered."""

    def __init__(self, reason: str = "Operation cancelled"):
        self.reason = reason
        super().__init__(reason)


class CancellationToken:
    """Thread-safe cancellation flag.

    One token is created per conversation turn and passed explicitly to the
    LLM client, the approval prompt and the tool supervisor. Callers poll
    `is_cancelled` or call `raise_if_cancelled()` at their suspension points.
    """

    def __init__(self):
        self._event = threading.Event()
        self._reason = ""
        self._callbacks: list[Callable[[], None]] = []
        self._lock = threading.Lock()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    def cancel(self, reason: str = "Operation cancelled") -> None:
        """Trigger cancellation. Subsequent calls are no-ops."""
        with self._lock:
            if self._event.is_set():
                return
            self._reason = reason
            self._event.set()
            callbacks = list(self._callbacks)

        for callback in callbacks:
            callback()

    def on_cancel(self, callback: Callable[[], None]) -> None:
        """Register a callback run once when the token is cancelled."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled(self._reason)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or timeout. Returns True if cancelled."""
        return self._event.wait(timeout)
