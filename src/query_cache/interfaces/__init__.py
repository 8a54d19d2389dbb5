"""
Interfaces Layer - Abstract Protocols for Dependencies.

Protocols:
    - QueryFn: caller-supplied async fetch function
    - ObservableProtocol: reactive holder wrapping the store
    - MetricsCollectorProtocol: cache metrics sink
"""

from query_cache.interfaces.metrics_collector import MetricsCollectorProtocol
from query_cache.interfaces.observable import ObservableProtocol, Unsubscribe
from query_cache.interfaces.query_fn import QueryFn

__all__ = ["MetricsCollectorProtocol", "ObservableProtocol", "QueryFn", "Unsubscribe"]
