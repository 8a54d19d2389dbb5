"""
Unit Tests for QueryClient.

Test Aspects Covered:
    ✅ Business Logic: hit/miss, retry, refetch, invalidate, remove, seed
    ✅ Error Handling: missing queries, missing query functions, exhausted retries
    ✅ Edge Cases: ignore_cache, stale entries, concurrent fetches
"""

from __future__ import annotations

import asyncio
from typing import Any, List

import pytest
from pydantic import ValidationError

from query_cache.adapters.metrics_collector import InMemoryMetricsCollector
from query_cache.caching.strategies import DataStrategy
from query_cache.client.abort import AbortSignal
from query_cache.client.query_client import QueryClient
from query_cache.client.responses import ResponseKind
from query_cache.config.models import QueryClientConfig
from query_cache.exceptions import QueryFetchError, QueryFnMissingError, QueryNotFoundError
from tests.conftest import CountingQueryFn, FakeClock, run_async


def make_client(clock: FakeClock, config: QueryClientConfig, **kwargs: Any) -> QueryClient:
    return QueryClient(config=config, clock=clock, **kwargs)


class TestFetchQuery:
    """Test cases for the hit/miss decision."""

    def test_miss_then_hit(self, clock: FakeClock, fast_config: QueryClientConfig) -> None:
        """
        SCENARIO: same key fetched twice within stale_time
        EXPECTED: success then cached envelope, one fetch in total
        """
        async def scenario() -> None:
            client = make_client(clock, fast_config)
            fn = CountingQueryFn(result={"id": 1})

            first = await client.fetch_query(["users", "1"], fn)
            second = await client.fetch_query(["users", "1"], fn)

            assert first.kind is ResponseKind.SUCCESS
            assert first.is_cached is False
            assert second.kind is ResponseKind.CACHED
            assert second.is_cached is True and second.is_success is True
            assert second.data == {"id": 1}
            assert fn.calls == 1
            client.destroy()

        run_async(scenario())

    def test_ignore_cache_always_fetches(self, clock: FakeClock, fast_config: QueryClientConfig) -> None:
        async def scenario() -> None:
            client = make_client(clock, fast_config)
            fn = CountingQueryFn()

            await client.fetch_query(["k"], fn)
            response = await client.fetch_query(["k"], fn, ignore_cache=True)

            assert response.kind is ResponseKind.SUCCESS
            assert fn.calls == 2
            client.destroy()

        run_async(scenario())

    def test_stale_entry_is_refetched(self, clock: FakeClock, fast_config: QueryClientConfig) -> None:
        async def scenario() -> None:
            client = make_client(clock, fast_config)
            fn = CountingQueryFn()

            await client.fetch_query(["k"], fn, stale_time=10)
            clock.advance(11)
            response = await client.fetch_query(["k"], fn, stale_time=10)

            assert response.kind is ResponseKind.SUCCESS
            assert fn.calls == 2
            client.destroy()

        run_async(scenario())

    def test_invalidated_entry_is_refetched(self, clock: FakeClock, fast_config: QueryClientConfig) -> None:
        async def scenario() -> None:
            client = make_client(clock, fast_config)
            fn = CountingQueryFn(result="fresh")

            await client.fetch_query(["k"], fn)
            client.invalidate_query_data(["k"])
            response = await client.fetch_query(["k"], fn)

            assert response.kind is ResponseKind.SUCCESS
            assert response.data == "fresh"
            assert client.get_query_data(["k"], exact=True).is_invalidated is False
            assert fn.calls == 2
            client.destroy()

        run_async(scenario())

    def test_each_attempt_gets_fresh_signal(self, clock: FakeClock, fast_config: QueryClientConfig) -> None:
        async def scenario() -> None:
            client = make_client(clock, fast_config)
            fn = CountingQueryFn(failures=2)

            await client.fetch_query(["k"], fn, retry=2)

            assert len(fn.signals) == 3
            assert all(isinstance(s, AbortSignal) for s in fn.signals)
            assert len({id(s) for s in fn.signals}) == 3
            assert not any(s.aborted for s in fn.signals)
            client.destroy()

        run_async(scenario())

    def test_item_uses_requested_strategy(self, clock: FakeClock, fast_config: QueryClientConfig) -> None:
        async def scenario() -> None:
            client = make_client(clock, fast_config)
            payload = {"a": [1, 2]}

            response = await client.fetch_query(
                ["k"], CountingQueryFn(result=payload), data_strategy=DataStrategy.REFERENCE
            )

            assert response.data is payload
            client.destroy()

        run_async(scenario())

    def test_concurrent_fetches_last_write_wins(self, clock: FakeClock, fast_config: QueryClientConfig) -> None:
        async def scenario() -> None:
            client = make_client(clock, fast_config)

            async def slow(signal: AbortSignal) -> str:
                await asyncio.sleep(0.02)
                return "slow"

            async def fast(signal: AbortSignal) -> str:
                return "fast"

            await asyncio.gather(
                client.fetch_query(["k"], slow),
                client.fetch_query(["k"], fast),
            )

            assert client.get_query_data(["k"], exact=True).read() == "slow"
            client.destroy()

        run_async(scenario())


class TestFetchQueryRetry:
    """Test cases for the retry loop."""

    def test_retry_exhaustion_count(self, clock: FakeClock, fast_config: QueryClientConfig) -> None:
        """
        SCENARIO: retry = 3, always failing
        EXPECTED: 4 calls, error envelope carrying the last error
        """
        async def scenario() -> None:
            client = make_client(clock, fast_config)
            fn = CountingQueryFn(failures=100)

            response = await client.fetch_query(["k"], fn, retry=3)

            assert fn.calls == 4
            assert response.kind is ResponseKind.ERROR
            assert response.is_error and not response.is_success
            assert response.data is None
            assert isinstance(response.error, RuntimeError)
            assert str(response.error) == "boom-4"
            assert response.attempts == 4
            assert client.get_store_size() == 0
            client.destroy()

        run_async(scenario())

    def test_retry_recovery(self, clock: FakeClock, fast_config: QueryClientConfig) -> None:
        async def scenario() -> None:
            client = make_client(clock, fast_config)
            fn = CountingQueryFn(result="ok", failures=2)

            response = await client.fetch_query(["k"], fn, retry=2)

            assert response.kind is ResponseKind.SUCCESS
            assert response.data == "ok"
            assert fn.calls == 3
            client.destroy()

        run_async(scenario())

    def test_config_retry_used_by_default(self, clock: FakeClock) -> None:
        async def scenario() -> None:
            client = make_client(clock, QueryClientConfig(retry=1, retry_delay=lambda a: 0))
            fn = CountingQueryFn(failures=100)

            await client.fetch_query(["k"], fn)

            assert fn.calls == 2
            client.destroy()

        run_async(scenario())

    def test_per_call_retry_delay(self, clock: FakeClock, fast_config: QueryClientConfig) -> None:
        async def scenario() -> None:
            client = make_client(clock, fast_config)
            seen: List[int] = []

            def delay(attempt: int) -> float:
                seen.append(attempt)
                return 0.0

            await client.fetch_query(["k"], CountingQueryFn(failures=100), retry=2, retry_delay=delay)

            assert seen == [1, 2]
            client.destroy()

        run_async(scenario())

    def test_failures_mark_existing_entry(self, clock: FakeClock, fast_config: QueryClientConfig) -> None:
        async def scenario() -> None:
            client = make_client(clock, fast_config)
            client.set_query_data(["k"], "seed", stale_time=100)

            response = await client.fetch_query(
                ["k"], CountingQueryFn(failures=100), retry=1, ignore_cache=True
            )

            item = client.get_query_data(["k"], exact=True)
            assert response.is_error
            assert item.error_update_count == 2
            assert item.read() == "seed"
            client.destroy()

        run_async(scenario())

    def test_raise_for_error(self, clock: FakeClock, fast_config: QueryClientConfig) -> None:
        async def scenario() -> None:
            client = make_client(clock, fast_config)

            response = await client.fetch_query(["k"], CountingQueryFn(failures=100), retry=0)

            with pytest.raises(QueryFetchError) as exc_info:
                response.raise_for_error()
            assert isinstance(exc_info.value.__cause__, RuntimeError)
            assert exc_info.value.attempts == 1
            client.destroy()

        run_async(scenario())

    def test_success_raise_for_error_is_noop(self, clock: FakeClock, fast_config: QueryClientConfig) -> None:
        async def scenario() -> None:
            client = make_client(clock, fast_config)
            response = await client.fetch_query(["k"], CountingQueryFn())
            response.raise_for_error()
            client.destroy()

        run_async(scenario())


class TestRefetchQueries:
    """Test cases for refetch."""

    def test_refetch_missing_query_raises(self, clock: FakeClock, fast_config: QueryClientConfig) -> None:
        async def scenario() -> None:
            client = make_client(clock, fast_config)
            with pytest.raises(QueryNotFoundError):
                await client.refetch_queries(["missing"])
            client.destroy()

        run_async(scenario())

    def test_refetch_without_query_fn_raises(self, clock: FakeClock, fast_config: QueryClientConfig) -> None:
        async def scenario() -> None:
            client = make_client(clock, fast_config)
            client.set_query_data(["k"], "seed")

            with pytest.raises(QueryFnMissingError):
                await client.refetch_queries(["k"])
            client.destroy()

        run_async(scenario())

    def test_refetch_reuses_stored_fn_and_updates_in_place(
        self, clock: FakeClock, fast_config: QueryClientConfig
    ) -> None:
        async def scenario() -> None:
            client = make_client(clock, fast_config)
            fn = CountingQueryFn(result="v1")
            await client.fetch_query(["k"], fn)
            item = client.get_query_data(["k"], exact=True)

            fn.result = "v2"
            clock.advance(5)
            response = await client.refetch_queries(["k"])

            assert response.kind is ResponseKind.SUCCESS
            assert response.item is item
            assert item.read() == "v2"
            assert item.data_updated_at == 5
            assert item.data_created_at == 0
            assert fn.calls == 2
            client.destroy()

        run_async(scenario())

    def test_refetch_bypasses_freshness(self, clock: FakeClock, fast_config: QueryClientConfig) -> None:
        async def scenario() -> None:
            client = make_client(clock, fast_config)
            fn = CountingQueryFn()
            await client.fetch_query(["k"], fn, stale_time=1000)

            await client.refetch_queries(["k"])

            assert fn.calls == 2
            client.destroy()

        run_async(scenario())

    def test_refetch_clears_invalidation(self, clock: FakeClock, fast_config: QueryClientConfig) -> None:
        async def scenario() -> None:
            client = make_client(clock, fast_config)
            await client.fetch_query(["k"], CountingQueryFn(result="v"))
            client.invalidate_query_data(["k"])

            response = await client.refetch_queries(["k"])

            item = client.get_query_data(["k"], exact=True)
            assert response.data == "v"
            assert item.is_invalidated is False
            client.destroy()

        run_async(scenario())

    def test_refetch_requires_exact_key(self, clock: FakeClock, fast_config: QueryClientConfig) -> None:
        async def scenario() -> None:
            client = make_client(clock, fast_config)
            await client.fetch_query(["users", "1"], CountingQueryFn())

            with pytest.raises(QueryNotFoundError):
                await client.refetch_queries(["users"])
            client.destroy()

        run_async(scenario())


class TestInvalidateAndRemove:
    """Test cases for invalidation and removal."""

    def test_invalidate_missing_raises(self, clock: FakeClock, fast_config: QueryClientConfig) -> None:
        client = make_client(clock, fast_config)
        with pytest.raises(QueryNotFoundError):
            client.invalidate_query_data(["missing"])

    def test_invalidate_keeps_entry(self, clock: FakeClock, fast_config: QueryClientConfig) -> None:
        client = make_client(clock, fast_config)
        client.set_query_data(["users", "1"], {"id": 1})

        item = client.invalidate_query_data(["users", "1"])

        assert client.get_store_size() == 1
        assert item.is_invalidated is True
        assert item.read() is None

    def test_invalidate_by_partial_key_keeps_original_token(
        self, clock: FakeClock, fast_config: QueryClientConfig
    ) -> None:
        client = make_client(clock, fast_config)
        client.set_query_data(["users", "1"], {"id": 1})

        client.invalidate_query_data(["users"])

        assert list(client.get_queue()) == ["users:1"]
        assert client.get_query_data(["users", "1"], exact=True).is_invalidated

    def test_invalidate_exact_does_not_fall_back_to_prefix(
        self, clock: FakeClock, fast_config: QueryClientConfig
    ) -> None:
        client = make_client(clock, fast_config)
        client.set_query_data(["users", "1"], {"id": 1})

        with pytest.raises(QueryNotFoundError):
            client.invalidate_query_data(["users"], exact=True)

    def test_remove_queries_by_prefix(self, clock: FakeClock, fast_config: QueryClientConfig) -> None:
        client = make_client(clock, fast_config)
        client.set_query_data(["users", "1"], 1)
        client.set_query_data(["users", "2"], 2)
        client.set_query_data(["posts", "1"], 3)

        removed = client.remove_queries(["users"])

        assert removed == 2
        assert client.get_store_size() == 1


class TestStoreAccess:
    """Test cases for seeding, lookup and snapshots."""

    def test_set_query_data_uses_config_defaults(self, clock: FakeClock) -> None:
        client = make_client(
            clock, QueryClientConfig(stale_time=42, data_strategy=DataStrategy.FREEZE)
        )

        item = client.set_query_data(["k"], {"a": 1})

        assert item.stale_time == 42
        assert item.data_strategy is DataStrategy.FREEZE

    def test_get_query_data_defaults_to_partial(self, clock: FakeClock, fast_config: QueryClientConfig) -> None:
        client = make_client(clock, fast_config)
        item = client.set_query_data(["users", "1"], 1)

        assert client.get_query_data(["users"]) is item
        assert client.get_query_data(["users"], exact=True) is None

    def test_refresh_query_data(self, clock: FakeClock, fast_config: QueryClientConfig) -> None:
        client = make_client(clock, fast_config)
        item = client.set_query_data(["k"], "old")
        clock.advance(3)

        assert client.refresh_query_data(["k"], "new") is item
        assert item.read() == "new"
        assert item.data_updated_at == 3
        assert client.refresh_query_data(["missing"], "x") is None

    def test_refresh_query_data_clears_invalidation(self, clock: FakeClock, fast_config: QueryClientConfig) -> None:
        """
        SCENARIO: Fresh data is written into an invalidated item
        EXPECTED: The item is valid again and serves the new data as a hit
        """
        async def scenario() -> None:
            client = make_client(clock, fast_config)
            client.set_query_data(["k"], {"v": 1})
            client.invalidate_query_data(["k"])

            item = client.refresh_query_data(["k"], {"v": 2})

            assert item is not None
            assert item.is_invalidated is False
            assert item.read() == {"v": 2}

            query_fn = CountingQueryFn({"v": 3})
            response = await client.fetch_query(["k"], query_fn)

            assert response.is_cached
            assert response.data == {"v": 2}
            assert query_fn.calls == 0
            client.destroy()

        run_async(scenario())

    def test_get_queue_is_a_copy(self, clock: FakeClock, fast_config: QueryClientConfig) -> None:
        client = make_client(clock, fast_config)
        client.set_query_data(["k"], 1)

        queue = client.get_queue()
        queue.clear()

        assert client.get_store_size() == 1

    def test_subscribe_receives_snapshots(self, clock: FakeClock, fast_config: QueryClientConfig) -> None:
        client = make_client(clock, fast_config)
        snapshots: List[Any] = []
        unsubscribe = client.subscribe(snapshots.append)

        client.set_query_data(["a"], 1)
        client.remove_queries(["a"])
        unsubscribe()
        client.set_query_data(["b"], 2)

        assert len(snapshots) == 2
        assert len(snapshots[-1]) == 0

    def test_clear_empties_store(self, clock: FakeClock, fast_config: QueryClientConfig) -> None:
        client = make_client(clock, fast_config)
        client.set_query_data(["a"], 1)

        assert client.clear() is client
        assert client.get_store_size() == 0


class TestConfigAndStats:
    """Test cases for set_config and statistics."""

    def test_set_config_merges(self, clock: FakeClock, fast_config: QueryClientConfig) -> None:
        client = make_client(clock, fast_config)

        assert client.set_config(retry=5) is client
        assert client.config.retry == 5
        assert client.config.stale_time == fast_config.stale_time

    def test_set_config_none_clears_retry_delay(self, clock: FakeClock, fast_config: QueryClientConfig) -> None:
        client = make_client(clock, fast_config)

        client.set_config(retry_delay=None)

        assert client.config.retry_delay is None
        assert client.config.resolve_retry_delay()(0) == 1.0

    def test_set_config_rejects_unknown_keys(self, clock: FakeClock, fast_config: QueryClientConfig) -> None:
        client = make_client(clock, fast_config)
        with pytest.raises(ValidationError):
            client.set_config(retries=5)

    def test_stats_and_metrics(
        self,
        clock: FakeClock,
        fast_config: QueryClientConfig,
        metrics_collector: InMemoryMetricsCollector,
    ) -> None:
        async def scenario() -> None:
            client = make_client(clock, fast_config, metrics_collector=metrics_collector)

            await client.fetch_query(["a"], CountingQueryFn())
            await client.fetch_query(["a"], CountingQueryFn())
            await client.fetch_query(["b"], CountingQueryFn(failures=100), retry=1)

            stats = client.get_stats()
            assert stats.hits == 1
            assert stats.misses == 2
            assert stats.fetches == 3
            assert stats.retries == 1
            assert stats.failures == 1
            assert stats.current_entries == 1
            assert stats.hit_rate == pytest.approx(1 / 3)

            metrics = metrics_collector.get_metrics()
            assert metrics["query_cache.hit"]["total"] == 1
            assert metrics["query_cache.miss"]["total"] == 2
            assert metrics["query_cache.failure"]["total"] == 1
            assert metrics["query_cache.fetch_seconds"]["count"] == 2
            client.destroy()

        run_async(scenario())
