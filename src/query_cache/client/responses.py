"""
Response Envelopes.

Every fetch-like operation returns one of:
    - QuerySuccessResponse: data was fetched
    - QueryCachedResponse: data was served from a fresh cache entry
    - QueryErrorResponse: the fetch failed after all retries
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, NoReturn, Optional, TypeVar

from query_cache.caching.query_item import QueryItem, QueryItemMetadata
from query_cache.exceptions import QueryFetchError

T = TypeVar("T")


class ResponseKind(str, Enum):
    """Envelope tags."""

    SUCCESS = "success"
    CACHED = "cached"
    ERROR = "error"


@dataclass
class QueryResponse(Generic[T]):
    """Base envelope."""

    kind: ResponseKind
    item: Optional[QueryItem[T]] = None
    error: Optional[BaseException] = None
    attempts: int = 0
    is_pending: bool = False

    @property
    def is_success(self) -> bool:
        return self.kind is not ResponseKind.ERROR

    @property
    def is_cached(self) -> bool:
        return self.kind is ResponseKind.CACHED

    @property
    def is_error(self) -> bool:
        return self.kind is ResponseKind.ERROR

    @property
    def data(self) -> Optional[T]:
        """Item data through its protection strategy, None on error."""
        if self.item is None:
            return None
        return self.item.read()

    @property
    def metadata(self) -> Optional[QueryItemMetadata]:
        """Item metadata snapshot, None on error."""
        if self.item is None:
            return None
        return self.item.get_metadata()

    def raise_for_error(self) -> None:
        """Raise QueryFetchError if this is an error envelope."""


@dataclass
class QuerySuccessResponse(QueryResponse[T]):
    """Data freshly fetched and stored."""

    kind: ResponseKind = field(default=ResponseKind.SUCCESS, init=False)


@dataclass
class QueryCachedResponse(QueryResponse[T]):
    """Data served from a fresh cache entry without fetching."""

    kind: ResponseKind = field(default=ResponseKind.CACHED, init=False)


@dataclass
class QueryErrorResponse(QueryResponse[Any]):
    """Fetch failed after exhausting retries; ``error`` is the last cause."""

    kind: ResponseKind = field(default=ResponseKind.ERROR, init=False)

    def raise_for_error(self) -> NoReturn:
        raise QueryFetchError(
            f"Query failed after {self.attempts} attempts: {self.error}",
            attempts=self.attempts,
        ) from self.error
