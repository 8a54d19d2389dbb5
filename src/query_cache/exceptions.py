"""Exception hierarchy for query_cache."""


class QueryCacheError(Exception):
    """Base exception for all query_cache errors."""


class QueryNotFoundError(QueryCacheError):
    """Raised when an operation requires a stored query that is absent."""

    def __init__(self, query_key: object, message: str = "No query in store") -> None:
        super().__init__(f"{message}: {query_key!r}")
        self.query_key = query_key


class QueryFnMissingError(QueryNotFoundError):
    """Raised when a stored query has no fetch function to re-run."""

    def __init__(self, query_key: object) -> None:
        super().__init__(query_key, message="No query function for stored query")


class QueryFetchError(QueryCacheError):
    """Raised from an error envelope when the fetch failed after all retries."""

    def __init__(self, message: str, attempts: int = 0) -> None:
        super().__init__(message)
        self.attempts = attempts
