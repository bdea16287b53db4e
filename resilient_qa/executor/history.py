"""Bounded per-correlation-id execution history."""

from __future__ import annotations

import threading
from collections import deque

from resilient_qa.models.tool_call import ToolExecutionResult


class _Bucket:
    __slots__ = ("lock", "results")

    def __init__(self, max_size: int):
        self.lock = threading.Lock()
        self.results: deque[ToolExecutionResult] = deque(maxlen=max_size)


class ExecutionHistory:
    """FIFO buffer of results per correlation id; the oldest entry is evicted past ``max_size``.

    Each correlation id has its own lock, so concurrent calls with different
    ids never contend.
    """

    def __init__(self, max_size: int = 100):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self._buckets: dict[str, _Bucket] = {}

    def _bucket(self, correlation_id: str) -> _Bucket:
        bucket = self._buckets.get(correlation_id)
        if bucket is None:
            # setdefault is atomic, so racing creators end up sharing one bucket
            bucket = self._buckets.setdefault(correlation_id, _Bucket(self.max_size))
        return bucket

    def record(self, correlation_id: str, result: ToolExecutionResult) -> None:
        bucket = self._bucket(correlation_id)
        with bucket.lock:
            bucket.results.append(result)

    def get(self, correlation_id: str) -> list[ToolExecutionResult]:
        bucket = self._buckets.get(correlation_id)
        if bucket is None:
            return []
        with bucket.lock:
            return list(bucket.results)

    def clear(self, correlation_id: str) -> None:
        self._buckets.pop(correlation_id, None)

    def correlation_ids(self) -> list[str]:
        return list(self._buckets)
