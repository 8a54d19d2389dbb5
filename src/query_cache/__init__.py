"""
Query Cache - Read-Through Cache for Async Queries.

An in-process, key-addressed cache: given a key and a coroutine function
that fetches fresh data, it returns cached data while fresh, fetches with
bounded retry when stale or missing, and evicts idle entries.

Main Components:
    - caching: key codec, QueryItem, QueryStore, protection strategies
    - client: QueryClient facade and response envelopes
    - resilience: async retry with backoff
    - config: Pydantic models and YAML loader
    - adapters: Signal and in-memory metrics collector

Example:
    >>> from query_cache import QueryClient
    >>> async with QueryClient() as client:
    ...     response = await client.fetch_query(["users", "1"], load_user)
    ...     if response.is_error:
    ...         response.raise_for_error()
"""

import logging

from query_cache.caching import DataStrategy, QueryItem, QueryStore
from query_cache.client import (
    AbortSignal,
    QueryCachedResponse,
    QueryClient,
    QueryErrorResponse,
    QueryResponse,
    QuerySuccessResponse,
    ResponseKind,
)
from query_cache.config import QueryClientConfig, load_config
from query_cache.exceptions import (
    QueryCacheError,
    QueryFetchError,
    QueryFnMissingError,
    QueryNotFoundError,
)

__version__ = "0.1.0"


def configure_logging(
    level: int = logging.INFO,
    format: str = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
) -> None:
    """
    Configure logging for query_cache.

    Call this at application startup to see log messages.
    By default, only WARNING and above are visible.

    Args:
        level: Logging level (default: INFO)
        format: Log message format

    Example:
        >>> import query_cache
        >>> query_cache.configure_logging(logging.DEBUG)
    """
    logging.basicConfig(
        level=level,
        format=format,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("query_cache").setLevel(level)


__all__ = [
    "AbortSignal",
    "DataStrategy",
    "QueryCacheError",
    "QueryCachedResponse",
    "QueryClient",
    "QueryClientConfig",
    "QueryErrorResponse",
    "QueryFetchError",
    "QueryFnMissingError",
    "QueryItem",
    "QueryNotFoundError",
    "QueryResponse",
    "QueryStore",
    "QuerySuccessResponse",
    "ResponseKind",
    "configure_logging",
    "load_config",
]
