"""
Adapters Layer - Concrete Implementations of Interfaces.

    - Signal: in-memory observable holder for store snapshots
    - InMemoryMetricsCollector: in-memory metrics sink
"""

from query_cache.adapters.metrics_collector import InMemoryMetricsCollector
from query_cache.adapters.signal import Signal

__all__ = ["InMemoryMetricsCollector", "Signal"]
