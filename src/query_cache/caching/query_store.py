"""
Query Store - Token-Addressed Storage for Query Items.

Maps canonical key tokens to QueryItem instances and publishes a new
read-only snapshot through an observable holder whenever membership
changes.

Design Notes:
    - The held mapping is never mutated in place; every change builds a
      new dict, so subscribers always see a replacement
    - Snapshots handed to callers are shallow copies
    - Removing an item cancels its eviction timer
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Callable, Dict, Iterator, List, Mapping, Optional, Tuple

from query_cache.adapters.signal import Signal
from query_cache.caching.key_codec import QueryKeyLike, decode, encode, partial_match
from query_cache.caching.query_item import QueryItem
from query_cache.interfaces.observable import ObservableProtocol, Unsubscribe

logger = logging.getLogger(__name__)

StoreSnapshot = Mapping[str, QueryItem]


class QueryStore:
    """
    Mapping of key token to QueryItem wrapped in an observable holder.

    Lookup:
        exact: direct token lookup
        partial: first item (iteration order) whose key starts with the probe
    """

    def __init__(self, holder: Optional[ObservableProtocol[StoreSnapshot]] = None) -> None:
        """
        Initialize the store.

        Args:
            holder: Observable holder to publish snapshots through
                (defaults to an in-memory Signal)
        """
        self._holder: ObservableProtocol[StoreSnapshot] = (
            holder if holder is not None else Signal(MappingProxyType({}))
        )

    @property
    def _queries(self) -> StoreSnapshot:
        return self._holder.value

    def _publish(self, queries: Dict[str, QueryItem]) -> None:
        self._holder.value = MappingProxyType(queries)

    def _iter_matches(self, probe: QueryKeyLike) -> Iterator[Tuple[str, QueryItem]]:
        for token, item in self._queries.items():
            if partial_match(probe, decode(token)):
                yield token, item

    def get(self, query_key: QueryKeyLike, exact: bool = True) -> Optional[QueryItem]:
        """
        Look up an item.

        Args:
            query_key: Key (exact) or key prefix (partial)
            exact: Direct token lookup if True, prefix scan otherwise

        Returns:
            The item or None
        """
        if exact:
            return self._queries.get(encode(query_key))

        for _, item in self._iter_matches(query_key):
            return item
        return None

    def find_all(self, probe: QueryKeyLike) -> List[QueryItem]:
        """Return every item whose key starts with ``probe``."""
        return [item for _, item in self._iter_matches(probe)]

    def put(self, query_key: QueryKeyLike, item: QueryItem) -> None:
        """Insert or replace the item stored under ``query_key``."""
        token = encode(query_key)
        previous = self._queries.get(token)
        if previous is not None and previous is not item:
            previous.cancel_eviction()

        queries = dict(self._queries)
        queries[token] = item
        self._publish(queries)
        logger.debug(f"Store PUT: {token}")

    def remove_exact(self, query_key: QueryKeyLike) -> bool:
        """
        Remove the item stored under the exact key.

        Returns:
            True if an item was removed
        """
        return self._remove_tokens([encode(query_key)]) == 1

    def discard(self, query_key: QueryKeyLike, item: QueryItem) -> bool:
        """
        Remove ``item`` only if it is still the one stored under the key.

        Used by eviction timers so a timer left over from a replaced item
        never removes its replacement.
        """
        token = encode(query_key)
        if self._queries.get(token) is not item:
            return False
        return self._remove_tokens([token]) == 1

    def remove_by_prefix(self, query_key: QueryKeyLike) -> int:
        """
        Remove by exact key, or by key prefix when no exact match exists.

        Args:
            query_key: Exact key or key prefix

        Returns:
            Number of items removed
        """
        token = encode(query_key)
        if token in self._queries:
            return self._remove_tokens([token])

        tokens = [t for t, _ in self._iter_matches(query_key)]
        removed = self._remove_tokens(tokens)
        if removed:
            logger.debug(f"Store REMOVED {removed} entries matching {tuple(query_key)!r}")
        return removed

    def sweep(self, now: float, gc_time: float) -> List[str]:
        """
        Remove items idle for longer than the GC window.

        Staleness and invalidation are ignored; only the time since the last
        successful write counts. A per-item gc_time overrides ``gc_time``.

        Args:
            now: Current time in seconds
            gc_time: Idle window in seconds

        Returns:
            Tokens of the removed items
        """
        expired = [
            token
            for token, item in self._queries.items()
            if item.idle_time(now) > (item.gc_time if item.gc_time is not None else gc_time)
        ]
        self._remove_tokens(expired)
        return expired

    def clear(self) -> None:
        """Remove every item."""
        for item in self._queries.values():
            item.cancel_eviction()
        self._publish({})

    def touch(self) -> None:
        """Republish the current contents as a new snapshot."""
        self._publish(dict(self._queries))

    def snapshot(self) -> Dict[str, QueryItem]:
        """Shallow copy of the token to item mapping."""
        return dict(self._queries)

    def items(self) -> List[Tuple[str, QueryItem]]:
        """Token/item pairs in iteration order."""
        return list(self._queries.items())

    def size(self) -> int:
        """Number of stored items."""
        return len(self._queries)

    def subscribe(self, callback: Callable[[StoreSnapshot], None]) -> Unsubscribe:
        """Subscribe to snapshot replacements."""
        return self._holder.subscribe(callback)

    def __len__(self) -> int:
        return self.size()

    def _remove_tokens(self, tokens: List[str]) -> int:
        """Remove tokens in one publish; returns how many were present."""
        queries = dict(self._queries)
        removed = 0
        for token in tokens:
            item = queries.pop(token, None)
            if item is not None:
                item.cancel_eviction()
                removed += 1

        if removed:
            self._publish(queries)
        return removed
