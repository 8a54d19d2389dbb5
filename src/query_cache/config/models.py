"""
Configuration Models - Pydantic Models for Type-Safe Config.

All configuration is validated when a model is constructed.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, Field

from query_cache.caching.strategies import DataStrategy

DEFAULT_STALE_TIME = 60.0
DEFAULT_RETRY = 3
DEFAULT_GC_TIME = 5 * 60.0

RetryDelay = Callable[[int], float]


class BackoffConfig(BaseModel):
    """Exponential backoff used when no retry_delay callable is supplied."""

    base_delay_seconds: float = Field(default=1.0, ge=0)
    exponential_base: float = Field(default=2.0, ge=1)
    max_delay_seconds: float = Field(default=30.0, ge=0)

    def delay_for(self, attempt: int) -> float:
        """Delay before the retry following failed attempt number ``attempt``."""
        delay = self.base_delay_seconds * (self.exponential_base ** attempt)
        return min(delay, self.max_delay_seconds)


class QueryClientConfig(BaseModel):
    """Root configuration object for a QueryClient."""

    retry: int = Field(default=DEFAULT_RETRY, ge=0)
    retry_delay: Optional[RetryDelay] = Field(default=None, exclude=True)
    backoff: BackoffConfig = Field(default_factory=BackoffConfig)
    stale_time: float = Field(default=DEFAULT_STALE_TIME, ge=0)
    gc_time: float = Field(default=DEFAULT_GC_TIME, gt=0)
    ignore_cache: bool = False
    data_strategy: DataStrategy = DataStrategy.CLONE

    # Log cache hits/misses
    log_access: bool = False

    model_config = {"validate_assignment": True, "extra": "forbid"}

    def resolve_retry_delay(self) -> RetryDelay:
        """The retry_delay callable, or the backoff schedule if none is set."""
        if self.retry_delay is not None:
            return self.retry_delay
        return self.backoff.delay_for

    def merged(self, **overrides: Any) -> QueryClientConfig:
        """
        Return a validated copy with ``overrides`` applied.

        Only the keys passed are changed. An explicit None is applied as
        given, so ``retry_delay=None`` switches back to the backoff schedule.
        """
        data: Dict[str, Any] = self.model_dump()
        data["retry_delay"] = self.retry_delay
        data.update(overrides)
        return QueryClientConfig.model_validate(data)
