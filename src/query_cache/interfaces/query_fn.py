"""
Query Function Protocol.

Defines the contract for the caller-supplied fetch function. A query
function is a coroutine function that receives an abort signal and returns
the value to cache. The client never inspects the returned value.

Design Notes:
    - Each attempt receives a fresh signal
    - Cancellation is advisory: honoring the signal is up to the function
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Awaitable, Protocol, TypeVar

if TYPE_CHECKING:
    from query_cache.client.abort import AbortSignal

T_co = TypeVar("T_co", covariant=True)


class QueryFn(Protocol[T_co]):
    """Async fetch function producing fresh data for a query."""

    def __call__(self, signal: AbortSignal) -> Awaitable[T_co]:
        """
        Fetch fresh data.

        Args:
            signal: Abort signal for this attempt

        Returns:
            Awaitable resolving to the data to cache
        """
        ...
