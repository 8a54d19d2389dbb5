"""
Query Item - A Single Cached Query with Metadata.

Holds one cached value, the query function that produced it, and the
timestamps and counters that drive staleness, invalidation and eviction.

Design Notes:
    - Data is private and only exposed through read(), which applies the
      configured protection strategy
    - Mutators return self so calls can be chained
    - The clock is injectable so staleness can be tested deterministically
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Generic, Optional, TypeVar

from query_cache.caching.key_codec import QueryKey, QueryKeyLike, normalize_key
from query_cache.caching.strategies import DataStrategy, apply_strategy

if TYPE_CHECKING:
    from query_cache.interfaces.query_fn import QueryFn

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class QueryItemMetadata:
    """Point-in-time view of a query item's metadata."""

    data_created_at: float
    data_updated_at: float
    error_updated_at: Optional[float]
    error_update_count: int
    is_invalidated: bool
    stale_time: float
    gc_time: Optional[float]
    has_pending_eviction: bool


class QueryItem(Generic[T]):
    """
    Cached value for one query key.

    Lifecycle:
        fresh -> stale (time based) -> invalidated (explicit) -> evicted
        (removed from the store by a timer, the GC sweep or the caller)
    """

    def __init__(
        self,
        data: Optional[T],
        query_key: QueryKeyLike = (),
        query_fn: Optional[QueryFn[T]] = None,
        stale_time: float = 0.0,
        gc_time: Optional[float] = None,
        data_strategy: DataStrategy = DataStrategy.CLONE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize query item.

        Args:
            data: Value to cache
            query_key: Key the item is stored under
            query_fn: Function able to produce fresh data for this key
            stale_time: Seconds after the last write before the item is stale
            gc_time: Optional idle window overriding the client's gc_time
            data_strategy: Protection strategy applied on read
            clock: Callable returning the current time in seconds
        """
        self.query_key: QueryKey = normalize_key(query_key)
        self.query_fn = query_fn
        self.stale_time = stale_time
        self.gc_time = gc_time
        self.data_strategy = DataStrategy(data_strategy)
        self._clock = clock
        self._data = data

        now = clock()
        self.data_created_at = now
        self.data_updated_at = now
        self.error_updated_at: Optional[float] = None
        self.error_update_count = 0
        self.is_invalidated = False
        self._eviction_handle: Optional[asyncio.TimerHandle] = None

    @property
    def data(self) -> Optional[T]:
        """Cached data exposed through the protection strategy."""
        return self.read()

    @property
    def has_pending_eviction(self) -> bool:
        """Check if an eviction timer is armed."""
        return self._eviction_handle is not None and not self._eviction_handle.cancelled()

    def read(self) -> Optional[T]:
        """Return the cached data transformed by the active strategy."""
        return apply_strategy(self._data, self.data_strategy)

    def write(self, data: T) -> QueryItem[T]:
        """
        Replace the cached data and bump the update timestamp.

        Invalidation is left untouched; see clear_invalidation().
        """
        self._data = data
        self.data_updated_at = max(self._clock(), self.data_created_at)
        return self

    def clear_invalidation(self) -> QueryItem[T]:
        """Mark the item as trustworthy again after fresh data landed."""
        self.is_invalidated = False
        return self

    def mark_error(self) -> QueryItem[T]:
        """Record a failed fetch attempt."""
        self.error_update_count += 1
        self.error_updated_at = self._clock()
        return self

    def invalidate(self) -> QueryItem[T]:
        """Drop the cached data and force the next fetch to miss."""
        self._data = None
        self.is_invalidated = True
        return self

    def is_stale(self) -> bool:
        """Check if the item is older than its stale window."""
        return self._clock() - self.data_updated_at > self.stale_time

    def time_until_stale(self) -> float:
        """Seconds left before the item becomes stale (never negative)."""
        return max(0.0, self.data_updated_at + self.stale_time - self._clock())

    def idle_time(self, now: Optional[float] = None) -> float:
        """Seconds since the last successful write."""
        current = self._clock() if now is None else now
        return current - self.data_updated_at

    def schedule_eviction(self, delay: float, callback: Callable[[], Any]) -> None:
        """
        Arm the eviction timer, replacing any pending one.

        Requires a running event loop; without one no timer is armed.
        """
        self.cancel_eviction()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running loop, eviction timer not armed for {self.query_key}")
            return
        self._eviction_handle = loop.call_later(delay, callback)

    def cancel_eviction(self) -> None:
        """Cancel the pending eviction timer, if any."""
        if self._eviction_handle is not None:
            self._eviction_handle.cancel()
            self._eviction_handle = None

    def get_metadata(self) -> QueryItemMetadata:
        """Get a snapshot of the item's metadata."""
        return QueryItemMetadata(
            data_created_at=self.data_created_at,
            data_updated_at=self.data_updated_at,
            error_updated_at=self.error_updated_at,
            error_update_count=self.error_update_count,
            is_invalidated=self.is_invalidated,
            stale_time=self.stale_time,
            gc_time=self.gc_time,
            has_pending_eviction=self.has_pending_eviction,
        )

    def __repr__(self) -> str:
        return (
            f"QueryItem(query_key={self.query_key!r}, "
            f"invalidated={self.is_invalidated}, stale_time={self.stale_time})"
        )
