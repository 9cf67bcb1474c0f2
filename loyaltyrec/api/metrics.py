"""Metrics service for tracking recompute runs.

Singleton service counting recompute runs per strategy, the rows they wrote
and their latency.
"""

import threading
from typing import Dict


class _StrategyStats:
    """Counters for one strategy."""

    def __init__(self) -> None:
        self.runs = 0
        self.failures = 0
        self.rows_written = 0
        self.total_latency_ms = 0.0
        self.min_latency_ms = float("inf")
        self.max_latency_ms = 0.0

    def as_dict(self) -> Dict:
        avg_latency = self.total_latency_ms / self.runs if self.runs > 0 else 0.0
        return {
            "runs": self.runs,
            "failures": self.failures,
            "rows_written": self.rows_written,
            "average_latency_ms": round(avg_latency, 2),
            "min_latency_ms": (
                round(self.min_latency_ms, 2) if self.min_latency_ms != float("inf") else 0.0
            ),
            "max_latency_ms": round(self.max_latency_ms, 2),
        }


class MetricsService:
    """Singleton service for recompute metrics.

    Thread-safe; FastAPI runs sync endpoints in a thread pool.
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        """Create singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super(MetricsService, cls).__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._lock = threading.Lock()
        self._stats: Dict[str, _StrategyStats] = {}
        self._initialized = True

    def record_recompute(self, strategy: str, latency_ms: float, rows_written: int) -> None:
        """Record a completed recompute run.

        Args:
            strategy: Strategy name, e.g. "association_rules" or "kmeans"
            latency_ms: Run latency in milliseconds
            rows_written: Number of recommendation rows stored
        """
        with self._lock:
            stats = self._stats.setdefault(strategy, _StrategyStats())
            stats.runs += 1
            stats.rows_written += rows_written
            stats.total_latency_ms += latency_ms
            stats.min_latency_ms = min(stats.min_latency_ms, latency_ms)
            stats.max_latency_ms = max(stats.max_latency_ms, latency_ms)

    def record_failure(self, strategy: str) -> None:
        """Record a recompute run that raised."""
        with self._lock:
            self._stats.setdefault(strategy, _StrategyStats()).failures += 1

    def get_metrics(self) -> Dict:
        """Get current metrics, keyed by strategy."""
        with self._lock:
            return {
                "recomputes": {
                    strategy: stats.as_dict()
                    for strategy, stats in sorted(self._stats.items())
                }
            }

    def reset(self) -> None:
        """Reset all metrics (useful for testing)."""
        with self._lock:
            self._stats = {}


# Global singleton instance
metrics_service = MetricsService()
