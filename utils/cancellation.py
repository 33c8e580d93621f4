"""
Cooperative cancellation
A token is created per request and passed down to the planner, executor and capabilities.
"""
from threading import Event


class OperationCancelledError(Exception):
    """Raised when work observes a cancelled token"""
    pass


class CancellationToken:
    """Thread-safe cancellation flag that long waits can block on."""

    def __init__(self):
        self._event = Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError("Operation was cancelled")

    def wait(self, seconds: float) -> None:
        """
        Sleep for up to `seconds`, waking early if cancelled.
        Raises OperationCancelledError when the token fires.
        """
        if self._event.wait(timeout=max(0.0, seconds)):
            raise OperationCancelledError("Operation was cancelled")
