"""
Query Client - Read-Through Cache Facade for Async Queries.

Decides fresh vs stale vs missing, drives the retry loop around the
caller-supplied query function, writes results back into the store and
runs periodic garbage collection.

Design Notes:
    - One client per process, constructed by the host application and
      passed to call sites (no hidden global)
    - Single-threaded: all mutation happens on the running event loop;
      suspension only while awaiting the query function or a backoff delay
    - No single-flight: concurrent fetches for one key each run, last
      write wins
    - Two independent eviction paths: a per-item timer armed for the
      item's stale_time, and the periodic gc_time sweep
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Optional, TypeVar, Union

from query_cache.caching.key_codec import QueryKey, QueryKeyLike, normalize_key
from query_cache.caching.query_item import QueryItem
from query_cache.caching.query_store import QueryStore, StoreSnapshot
from query_cache.caching.strategies import DataStrategy
from query_cache.client.abort import AbortSignal
from query_cache.client.responses import (
    QueryCachedResponse,
    QueryErrorResponse,
    QueryResponse,
    QuerySuccessResponse,
)
from query_cache.config.models import QueryClientConfig, RetryDelay
from query_cache.exceptions import QueryFnMissingError, QueryNotFoundError
from query_cache.interfaces.metrics_collector import MetricsCollectorProtocol
from query_cache.interfaces.observable import Unsubscribe
from query_cache.interfaces.query_fn import QueryFn
from query_cache.resilience.retry import RetryExhausted, retry_async

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class QueryClientStats:
    """Client statistics."""

    hits: int = 0
    misses: int = 0
    fetches: int = 0
    failures: int = 0
    retries: int = 0
    evictions: int = 0
    gc_runs: int = 0
    current_entries: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0


class QueryClient:
    """
    Key-addressed cache for async queries.

    Lifecycle of a fetch:
        CHECK_CACHE -> HIT (cached envelope)
                    -> MISS -> FETCHING -> SUCCESS (success envelope)
                                        -> RETRY* -> FAIL (error envelope)

    Example:
        >>> async with QueryClient() as client:
        ...     response = await client.fetch_query(["users", "1"], load_user)
        ...     user = response.data
    """

    def __init__(
        self,
        config: Optional[QueryClientConfig] = None,
        store: Optional[QueryStore] = None,
        metrics_collector: Optional[MetricsCollectorProtocol] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize query client.

        Garbage collection starts immediately when constructed inside a
        running event loop, otherwise on the first operation issued from one.

        Args:
            config: Client-wide defaults
            store: Query store (a fresh one if omitted)
            metrics_collector: Optional metrics sink
            clock: Callable returning the current time in seconds
        """
        self.config = config or QueryClientConfig()
        self._store = store if store is not None else QueryStore()
        self._metrics = metrics_collector
        self._clock = clock
        self._stats = QueryClientStats()
        self._gc_task: Optional[asyncio.Task[None]] = None
        self._gc_interval: Optional[float] = None
        self._destroyed = False
        self._ensure_garbage_collection()

    async def __aenter__(self) -> QueryClient:
        self._ensure_garbage_collection()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.destroy()

    # ------------------------------------------------------------------
    # Garbage collection
    # ------------------------------------------------------------------

    def _start_garbage_collection(self) -> None:
        """(Re)start the GC loop, cancelling any previous one."""
        self._stop_garbage_collection()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return

        self._gc_interval = self.config.gc_time
        self._gc_task = loop.create_task(self._garbage_collection_loop(self.config.gc_time))
        logger.debug(f"Garbage collection started (every {self.config.gc_time}s)")

    def _stop_garbage_collection(self) -> None:
        if self._gc_task is not None and not self._gc_task.done():
            self._gc_task.cancel()
        self._gc_task = None
        self._gc_interval = None

    def _ensure_garbage_collection(self) -> None:
        """Start GC if it is not running or its interval is outdated."""
        if self._destroyed:
            return
        running = self._gc_task is not None and not self._gc_task.done()
        if running and self._gc_interval == self.config.gc_time:
            return
        self._start_garbage_collection()

    async def _garbage_collection_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.run_garbage_collection()

    def run_garbage_collection(self) -> int:
        """
        Sweep items idle longer than gc_time and republish the store.

        Returns:
            Number of items removed
        """
        removed = self._store.sweep(self._clock(), self.config.gc_time)
        self._store.touch()
        self._stats.gc_runs += 1
        self._stats.evictions += len(removed)

        if removed:
            logger.info(f"Garbage collection removed {len(removed)} queries")
        self._record_gauge("query_cache.store_size", self._store.size())
        return len(removed)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def clear(self) -> QueryClient:
        """Remove every query and restart garbage collection."""
        self._store.clear()
        self._destroyed = False
        self._start_garbage_collection()
        logger.info("Query cache CLEARED")
        return self

    def destroy(self) -> None:
        """Stop garbage collection and cancel all pending eviction timers."""
        self._destroyed = True
        self._stop_garbage_collection()
        for _, item in self._store.items():
            item.cancel_eviction()
        logger.debug("Query client destroyed")

    def set_config(self, **overrides: Any) -> QueryClient:
        """
        Update client-wide defaults.

        Restarts garbage collection when gc_time changes.

        Raises:
            ValidationError: If an override is invalid or unknown
        """
        previous_gc_time = self.config.gc_time
        self.config = self.config.merged(**overrides)
        if self.config.gc_time != previous_gc_time and not self._destroyed:
            self._start_garbage_collection()
        return self

    # ------------------------------------------------------------------
    # Store access
    # ------------------------------------------------------------------

    def get_query_data(
        self,
        query_key: QueryKeyLike,
        exact: bool = False,
    ) -> Optional[QueryItem[Any]]:
        """
        Look up a stored query.

        Args:
            query_key: Exact key, or key prefix when exact is False
            exact: Only accept an exact key match

        Returns:
            The stored QueryItem or None
        """
        return self._store.get(query_key, exact=exact)

    def set_query_data(
        self,
        query_key: QueryKeyLike,
        data: T,
        query_fn: Optional[QueryFn[T]] = None,
        stale_time: Optional[float] = None,
        gc_time: Optional[float] = None,
        data_strategy: Optional[DataStrategy] = None,
    ) -> QueryItem[T]:
        """
        Seed the cache without fetching.

        Replaces any stored item and arms an eviction timer for stale_time.
        Without a query_fn the item cannot be refetched later.
        """
        self._ensure_garbage_collection()
        key = normalize_key(query_key)
        item: QueryItem[T] = QueryItem(
            data,
            query_key=key,
            query_fn=query_fn,
            stale_time=self.config.stale_time if stale_time is None else stale_time,
            gc_time=gc_time,
            data_strategy=data_strategy or self.config.data_strategy,
            clock=self._clock,
        )
        self._store.put(key, item)
        self._arm_eviction(item)
        return item

    def refresh_query_data(self, query_key: QueryKeyLike, data: T) -> Optional[QueryItem[T]]:
        """
        Write new data into an existing item in place.

        Clears any invalidation, since the item holds data again.

        Returns:
            The updated item, or None if no item is stored under the key
        """
        item = self._store.get(query_key, exact=True)
        if item is None:
            return None
        item.write(data)
        item.clear_invalidation()
        self._store.put(item.query_key, item)
        return item

    def remove_queries(self, query_key: QueryKeyLike) -> int:
        """
        Remove by exact key, or every query under the key prefix.

        Returns:
            Number of queries removed
        """
        return self._store.remove_by_prefix(query_key)

    def invalidate_query_data(self, query_key: QueryKeyLike, exact: bool = False) -> QueryItem[Any]:
        """
        Drop a query's data and force the next fetch to miss.

        The item stays in the store.

        Raises:
            QueryNotFoundError: If no query matches
        """
        item = self._store.get(query_key, exact=exact)
        if item is None:
            raise QueryNotFoundError(tuple(query_key))

        item.invalidate()
        self._store.put(item.query_key, item)
        logger.debug(f"Query INVALIDATED: {item.query_key}")
        return item

    def get_store_size(self) -> int:
        """Number of stored queries."""
        return self._store.size()

    def get_queue(self) -> Dict[str, QueryItem[Any]]:
        """Shallow copy of the store (token -> item)."""
        return self._store.snapshot()

    def subscribe(self, callback: Callable[[StoreSnapshot], None]) -> Unsubscribe:
        """Subscribe to store snapshot replacements."""
        return self._store.subscribe(callback)

    def get_stats(self) -> QueryClientStats:
        """Get client statistics."""
        return replace(self._stats, current_entries=self._store.size())

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    async def refetch_queries(self, query_key: QueryKeyLike) -> QueryResponse[Any]:
        """
        Re-run a stored query's own query function, bypassing freshness.

        Raises:
            QueryNotFoundError: If no query is stored under the exact key
            QueryFnMissingError: If the stored query has no query function
        """
        item = self._store.get(query_key, exact=True)
        if item is None:
            raise QueryNotFoundError(tuple(query_key))
        if item.query_fn is None:
            raise QueryFnMissingError(tuple(query_key))

        item.cancel_eviction()
        return await self._fetch(
            item.query_key,
            item.query_fn,
            ignore_cache=True,
            stale_time=item.stale_time,
            gc_time=item.gc_time,
            data_strategy=item.data_strategy,
            refetch=True,
        )

    async def fetch_query(
        self,
        query_key: QueryKeyLike,
        query_fn: QueryFn[T],
        retry: Optional[int] = None,
        retry_delay: Optional[RetryDelay] = None,
        stale_time: Optional[float] = None,
        gc_time: Optional[float] = None,
        ignore_cache: Optional[bool] = None,
        data_strategy: Optional[DataStrategy] = None,
    ) -> QueryResponse[T]:
        """
        Return cached data when fresh, otherwise fetch with retry.

        Args:
            query_key: Ordered sequence of key segments
            query_fn: Coroutine function producing fresh data
            retry: Additional attempts after a failure (default: config)
            retry_delay: Seconds to wait given the failed attempt count
            stale_time: Freshness window in seconds
            gc_time: Idle window for this item in the GC sweep
            ignore_cache: Always fetch, even when a fresh item exists
            data_strategy: Read protection for the stored item

        Returns:
            QueryCachedResponse, QuerySuccessResponse or QueryErrorResponse
        """
        return await self._fetch(
            normalize_key(query_key),
            query_fn,
            retry=retry,
            retry_delay=retry_delay,
            stale_time=stale_time,
            gc_time=gc_time,
            ignore_cache=ignore_cache,
            data_strategy=data_strategy,
        )

    async def _fetch(
        self,
        query_key: QueryKey,
        query_fn: QueryFn[T],
        retry: Optional[int] = None,
        retry_delay: Optional[RetryDelay] = None,
        stale_time: Optional[float] = None,
        gc_time: Optional[float] = None,
        ignore_cache: Optional[bool] = None,
        data_strategy: Optional[DataStrategy] = None,
        refetch: bool = False,
    ) -> QueryResponse[T]:
        self._ensure_garbage_collection()
        config = self.config
        retry = config.retry if retry is None else retry
        delay_fn = retry_delay or config.resolve_retry_delay()
        stale_time = config.stale_time if stale_time is None else stale_time
        ignore_cache = config.ignore_cache if ignore_cache is None else ignore_cache
        data_strategy = data_strategy or config.data_strategy

        stored = self._store.get(query_key, exact=True)
        if (
            not ignore_cache
            and stored is not None
            and not stored.is_stale()
            and not stored.is_invalidated
        ):
            self._stats.hits += 1
            self._record_count("query_cache.hit")
            if config.log_access:
                logger.debug(f"Query cache HIT: {query_key}")
            return QueryCachedResponse(item=stored)

        self._stats.misses += 1
        self._record_count("query_cache.miss")
        if config.log_access:
            logger.debug(f"Query cache MISS: {query_key}")

        async def attempt() -> T:
            self._stats.fetches += 1
            return await query_fn(AbortSignal())

        def on_failure(attempts: int, error: Exception) -> None:
            existing = self._store.get(query_key, exact=True)
            if existing is not None:
                existing.mark_error()
            if attempts <= retry:
                self._stats.retries += 1
                self._record_count("query_cache.retry")

        started = time.perf_counter()
        try:
            data = await retry_async(
                attempt,
                retry=retry,
                retry_delay=delay_fn,
                operation_name=f"Query {query_key}",
                on_failure=on_failure,
            )
        except RetryExhausted as e:
            self._stats.failures += 1
            self._record_count("query_cache.failure")
            return QueryErrorResponse(error=e.last_error, attempts=e.attempts)
        finally:
            self._record_timing("query_cache.fetch_seconds", time.perf_counter() - started)

        item = self._store_result(
            query_key,
            data,
            query_fn,
            stale_time=stale_time,
            gc_time=gc_time,
            data_strategy=data_strategy,
            refetch=refetch,
        )
        return QuerySuccessResponse(item=item)

    def _store_result(
        self,
        query_key: QueryKey,
        data: T,
        query_fn: QueryFn[T],
        stale_time: float,
        gc_time: Optional[float],
        data_strategy: DataStrategy,
        refetch: bool,
    ) -> QueryItem[T]:
        """Write fetched data back: in place on refetch, as a new item otherwise."""
        if refetch:
            item = self.refresh_query_data(query_key, data)
            if item is not None:
                self._arm_eviction(item)
                return item
            logger.debug(f"Refetched query {query_key} was removed mid-flight, storing anew")

        return self.set_query_data(
            query_key,
            data,
            query_fn=query_fn,
            stale_time=stale_time,
            gc_time=gc_time,
            data_strategy=data_strategy,
        )

    def _arm_eviction(self, item: QueryItem[Any]) -> None:
        item.schedule_eviction(item.stale_time, lambda: self._evict(item))

    def _evict(self, item: QueryItem[Any]) -> None:
        if self._store.discard(item.query_key, item):
            self._stats.evictions += 1
            logger.debug(f"Query EVICTED: {item.query_key}")

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def _record_count(self, name: str, value: int = 1) -> None:
        if self._metrics is not None:
            self._metrics.record_count(name, value)

    def _record_gauge(self, name: str, value: Union[int, float]) -> None:
        if self._metrics is not None:
            self._metrics.record_gauge(name, value)

    def _record_timing(self, name: str, duration_seconds: float) -> None:
        if self._metrics is not None:
            self._metrics.record_timing(name, duration_seconds)
