"""
Cache Metrics Collector

Prometheus collectors for cache operations, sliding refreshes and
expired-entry sweeps. Collectors are module-level so several cache
instances in one process share them.
"""

import time
from contextlib import contextmanager
from typing import Iterator

from prometheus_client import Counter, Histogram

CACHE_OPERATIONS = Counter(
    "dbcache_operations_total",
    "Total number of cache operations",
    ["operation", "outcome"],
)
CACHE_OPERATION_DURATION = Histogram(
    "dbcache_operation_duration_seconds",
    "Time spent executing cache operations",
    ["operation"],
)
CACHE_SLIDING_REFRESHES = Counter(
    "dbcache_sliding_refreshes_total",
    "Total number of sliding expiration extensions",
)
CACHE_SWEEPS = Counter(
    "dbcache_sweeps_total",
    "Total number of expired entry sweeps",
    ["status"],
)
CACHE_SWEPT_ENTRIES = Counter(
    "dbcache_swept_entries_total",
    "Total number of expired entries deleted by sweeps",
)


class CacheMetrics:
    """Records cache activity into the Prometheus collectors."""

    def record_operation(self, operation: str, outcome: str) -> None:
        CACHE_OPERATIONS.labels(operation=operation, outcome=outcome).inc()

    def record_sliding_refresh(self) -> None:
        CACHE_SLIDING_REFRESHES.inc()

    def record_sweep(self, deleted: int) -> None:
        CACHE_SWEEPS.labels(status="success").inc()
        if deleted:
            CACHE_SWEPT_ENTRIES.inc(deleted)

    def record_sweep_failure(self) -> None:
        CACHE_SWEEPS.labels(status="error").inc()

    @contextmanager
    def time_operation(self, operation: str) -> Iterator[None]:
        """Observe the duration of the wrapped block."""
        start_time = time.perf_counter()
        try:
            yield
        finally:
            CACHE_OPERATION_DURATION.labels(operation=operation).observe(
                time.perf_counter() - start_time
            )


# Global metrics recorder
cache_metrics = CacheMetrics()
