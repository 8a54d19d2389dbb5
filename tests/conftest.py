"""
Pytest Configuration and Shared Fixtures.

This module contains fixtures available to all tests.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Awaitable, Callable, List

import pytest

from query_cache.adapters.metrics_collector import InMemoryMetricsCollector
from query_cache.config.models import QueryClientConfig


class FakeClock:
    """Manually advanced clock returning seconds."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingQueryFn:
    """Async query function that fails a set number of times, then succeeds."""

    def __init__(self, result: Any = "data", failures: int = 0) -> None:
        self.result = result
        self.failures = failures
        self.calls = 0
        self.signals: List[Any] = []

    async def __call__(self, signal: Any) -> Any:
        self.calls += 1
        self.signals.append(signal)
        if self.calls <= self.failures:
            raise RuntimeError(f"boom-{self.calls}")
        return self.result


def run_async(coro: Awaitable[Any]) -> Any:
    return asyncio.run(coro)


def no_delay(attempt: int) -> float:
    return 0.0


@pytest.fixture
def clock() -> FakeClock:
    """Fake clock starting at t=0."""
    return FakeClock()


@pytest.fixture
def fast_config() -> QueryClientConfig:
    """Config with no backoff delay between retries."""
    return QueryClientConfig(retry_delay=no_delay)


@pytest.fixture
def metrics_collector() -> InMemoryMetricsCollector:
    """Create metrics collector for testing."""
    return InMemoryMetricsCollector()


@pytest.fixture
def sample_config_path() -> Path:
    """Path to sample configuration file."""
    return Path(__file__).parent / "fixtures" / "sample_config.yaml"


@pytest.fixture
def query_fn_factory() -> Callable[..., CountingQueryFn]:
    """Factory for counting query functions."""
    return CountingQueryFn
