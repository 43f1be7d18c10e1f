"""Lifecycle notifications for requests."""
from __future__ import annotations

import asyncio
import enum
import inspect
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class ActivityStatus(enum.Enum):
    UNKNOWN = "unknown"
    STARTED = "started"
    RUNNING = "running"
    FINISHED = "finished"
    ABORTED = "aborted"


ActivityCallback = Callable[[ActivityStatus], Any]


class ActivityNotifier:
    """Fire-and-forget delivery of :class:`ActivityStatus` events.

    The callback may be a plain function or a coroutine function. It
    runs on a single background worker, so events for one
    request arrive in the order they were fired and a failing callback
    can't break the request pipeline.
    """

    def __init__(self, callback: Optional[ActivityCallback] = None) -> None:
        self._callback = callback
        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()

    def set_callback(self, callback: Optional[ActivityCallback]) -> None:
        self._callback = callback

    def notify(self, status: ActivityStatus) -> None:
        callback = self._callback
        if callback is None:
            return
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="wprest-activity")
            future = self._executor.submit(_deliver, callback, status)
        future.add_done_callback(_log_failure)

    def close(self, wait: bool = True) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)


def _deliver(callback: ActivityCallback, status: ActivityStatus) -> None:
    result = callback(status)
    if inspect.isawaitable(result):
        asyncio.run(_wait(result))


async def _wait(awaitable: Any) -> Any:
    return await awaitable


def _log_failure(future: Future) -> None:
    exc = future.exception()
    if exc is not None:
        logger.error("Activity callback failed: %s", exc, exc_info=exc)
