"""Hit/miss counters and per-operation performance metrics for the cache.

One :class:`CacheStatistics` instance is owned by each cache service, so
independent caches in the same process never share counters.
"""

from __future__ import annotations

import threading
import time
import tracemalloc
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any

from wishlist_api.adapters.kv_store.base import Clock


@dataclass(frozen=True)
class OperationMetrics:
    """Timing and memory footprint of one monitored call.

    Attributes:
        duration: Wall-clock duration in milliseconds.
        memory: Traced allocation delta in bytes (0 when tracing is off).
        start_time: UNIX epoch seconds at start.
        end_time: UNIX epoch seconds at end.
    """

    duration: float
    memory: int
    start_time: float
    end_time: float

    def as_dict(self) -> dict[str, Any]:
        return {
            "duration": self.duration,
            "memory": self.memory,
            "startTime": self.start_time,
            "endTime": self.end_time,
        }


class OperationTimer:
    """Started measurement; call :meth:`stop` to obtain the metrics."""

    def __init__(self, label: str, clock: Clock) -> None:
        self.label = label
        self._clock = clock
        self._start_time = clock()
        self._start_counter = time.perf_counter()
        self._start_memory = _traced_memory()

    def stop(self) -> OperationMetrics:
        return OperationMetrics(
            duration=round((time.perf_counter() - self._start_counter) * 1000, 3),
            memory=_traced_memory() - self._start_memory,
            start_time=self._start_time,
            end_time=self._clock(),
        )


def _traced_memory() -> int:
    if not tracemalloc.is_tracing():
        return 0
    current, _peak = tracemalloc.get_traced_memory()
    return current


def format_hit_rate(hits: int, misses: int) -> str:
    """Format ``hits / (hits + misses)`` as a percentage string.

    Examples:
        >>> format_hit_rate(1, 1)
        '50%'
        >>> format_hit_rate(2, 1)
        '66.67%'
        >>> format_hit_rate(0, 0)
        '0%'
    """
    total = hits + misses
    if total == 0:
        return "0%"
    rate = round(hits / total * 100, 2)
    return f"{rate:g}%"


class CacheStatistics:
    """Process-local hit/miss counters and last-write-wins operation metrics.

    Operation labels are retained up to ``max_operations``; when full, the
    label written least recently is dropped.
    """

    def __init__(self, *, max_operations: int = 1000, clock: Clock = time.time) -> None:
        if max_operations < 1:
            raise ValueError("max_operations must be >= 1")

        self._max_operations = max_operations
        self._clock = clock
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._operations: OrderedDict[str, OperationMetrics] = OrderedDict()

    @property
    def hits(self) -> int:
        return self._hits

    @property
    def misses(self) -> int:
        return self._misses

    @property
    def total(self) -> int:
        return self._hits + self._misses

    @property
    def hit_rate(self) -> str:
        return format_hit_rate(self._hits, self._misses)

    def record_hit(self) -> None:
        with self._lock:
            self._hits += 1

    def record_miss(self) -> None:
        with self._lock:
            self._misses += 1

    def start(self, label: str) -> OperationTimer:
        return OperationTimer(label, self._clock)

    def finish(self, timer: OperationTimer) -> OperationMetrics:
        """Stop ``timer`` and store its metrics under the timer's label."""
        metrics = timer.stop()
        with self._lock:
            self._operations.pop(timer.label, None)
            self._operations[timer.label] = metrics
            while len(self._operations) > self._max_operations:
                self._operations.popitem(last=False)
        return metrics

    def metrics_for(self, label: str) -> OperationMetrics | None:
        with self._lock:
            return self._operations.get(label)

    def tracked_operations(self) -> int:
        with self._lock:
            return len(self._operations)

    def reset(self) -> None:
        with self._lock:
            self._hits = 0
            self._misses = 0
            self._operations.clear()
