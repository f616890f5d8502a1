"""
Per-statement timing statistics.

ConnectionManager records the duration of every statement it runs here.
Statements slower than the threshold are logged as warnings.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class _Timing:
    count: int = 0
    total_time: float = 0.0


class QueryMonitor:
    """Thread-safe accumulator of statement counts and durations (seconds)."""

    def __init__(self, slow_threshold: float = 1.0) -> None:
        self.slow_threshold = slow_threshold
        self._timings: dict[str, _Timing] = {}
        self._lock = threading.Lock()

    def record(self, query: str, duration: float) -> None:
        with self._lock:
            timing = self._timings.setdefault(query, _Timing())
            timing.count += 1
            timing.total_time += duration

        if duration > self.slow_threshold:
            logger.warning(f"Slow statement ({duration * 1000:.0f}ms): {query}")

    def stats(self) -> list[dict[str, Any]]:
        """Aggregated timings, slowest average first."""
        with self._lock:
            rows = [
                {
                    "query": query,
                    "count": timing.count,
                    "total_time": timing.total_time,
                    "avg_time": timing.total_time / timing.count,
                }
                for query, timing in self._timings.items()
            ]
        return sorted(rows, key=lambda row: row["avg_time"], reverse=True)

    def clear(self) -> None:
        with self._lock:
            self._timings.clear()
