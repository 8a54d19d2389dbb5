"""
Client Layer.

    - QueryClient: fetch/refetch/invalidate facade over the query store
    - Response envelopes: success, success-from-cache, error
    - AbortSignal: advisory cancellation handed to query functions
"""

from query_cache.client.abort import AbortSignal
from query_cache.client.query_client import QueryClient, QueryClientStats
from query_cache.client.responses import (
    QueryCachedResponse,
    QueryErrorResponse,
    QueryResponse,
    QuerySuccessResponse,
    ResponseKind,
)

__all__ = [
    "AbortSignal",
    "QueryCachedResponse",
    "QueryClient",
    "QueryClientStats",
    "QueryErrorResponse",
    "QueryResponse",
    "QuerySuccessResponse",
    "ResponseKind",
]
