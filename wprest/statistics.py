"""Per-endpoint request counters."""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

StatisticCallback = Callable[[str, int], None]


class EndpointStatistics:
    """Thread-safe counter of successful round trips keyed by endpoint.

    Counts never decrease. The registered callback (last registration
    wins) is invoked on a background worker so a slow callback never
    delays the request that triggered it; deliveries happen in the order
    the counts were recorded.
    """

    def __init__(self, callback: Optional[StatisticCallback] = None) -> None:
        self._counts: Dict[str, int] = {}
        self._lock = threading.Lock()
        self._callback = callback
        self._executor: Optional[ThreadPoolExecutor] = None

    def set_callback(self, callback: Optional[StatisticCallback]) -> None:
        self._callback = callback

    def record(self, endpoint: str) -> int:
        """Increment the counter for ``endpoint`` and return the new count."""
        key = endpoint.strip("/").split("/")[0]
        with self._lock:
            count = self._counts.get(key, 0) + 1
            self._counts[key] = count
            callback = self._callback
            if callback is not None:
                # Submitted under the lock so deliveries keep recording order.
                future = self._worker().submit(callback, key, count)
                future.add_done_callback(_log_failure)
        return count

    def get(self, endpoint: str) -> int:
        with self._lock:
            return self._counts.get(endpoint, 0)

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counts)

    def close(self, wait: bool = True) -> None:
        """Stop the callback worker, optionally waiting for pending calls."""
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)

    def _worker(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="wprest-stats")
        return self._executor


def _log_failure(future: Future) -> None:
    exc = future.exception()
    if exc is not None:
        logger.error("Endpoint statistic callback failed: %s", exc, exc_info=exc)
