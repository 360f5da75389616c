"""
Monitoring Module

Prometheus collectors for cache operations and sweeps.
"""

from .cache_metrics import CacheMetrics, cache_metrics

__all__ = ["CacheMetrics", "cache_metrics"]
