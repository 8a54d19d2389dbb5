"""
Caching Layer.

Provides the storage side of the query cache:
    - key_codec: canonical key tokens and partial (prefix) matching
    - QueryItem: one cached value with staleness/invalidation metadata
    - QueryStore: token to item mapping with observable snapshots
    - DataStrategy: clone/freeze/reference read protection
"""

from query_cache.caching.key_codec import (
    KEY_DELIMITER,
    QueryKey,
    decode,
    encode,
    normalize_key,
    partial_match,
)
from query_cache.caching.query_item import QueryItem, QueryItemMetadata
from query_cache.caching.query_store import QueryStore
from query_cache.caching.strategies import DataStrategy, apply_strategy

__all__ = [
    "DataStrategy",
    "KEY_DELIMITER",
    "QueryItem",
    "QueryItemMetadata",
    "QueryKey",
    "QueryStore",
    "apply_strategy",
    "decode",
    "encode",
    "normalize_key",
    "partial_match",
]
