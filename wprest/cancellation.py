"""Cooperative cancellation for in-flight requests.

A :class:`CancellationToken` is either cancelled explicitly from another
thread or expires on its own once its deadline passes.  The dispatcher
checks it between pipeline steps and hands the remaining time to the
transport as its timeout.
"""
from __future__ import annotations

import threading
import time
from typing import Optional

from .errors import RequestCancelledError


class CancellationToken:
    """Thread-safe cancellation signal with an optional deadline."""

    def __init__(self, timeout: Optional[float] = None) -> None:
        self._event = threading.Event()
        self.timeout = timeout
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    @classmethod
    def with_timeout(cls, seconds: float) -> "CancellationToken":
        return cls(timeout=seconds)

    def cancel(self) -> None:
        """Signal that cancellation has been requested."""
        self._event.set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def is_cancelled(self) -> bool:
        return self._event.is_set() or self.expired

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, ``None`` when there is none."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RequestCancelledError("Operation cancelled.", timeout=self.timeout)
        if self.expired:
            raise RequestCancelledError(
                f"Operation cancelled. (passed timeout limit of {self.timeout}s)",
                timeout=self.timeout,
            )
