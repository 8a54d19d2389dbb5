"""
Resilience Package - Retry and Backoff for Query Functions.

    - retry_async: bounded retry around an async fetch
    - RetryExhausted: raised once the retry budget is spent

Design Principles:
    - Fail fast for precondition errors (never retried)
    - Retry with backoff for fetch errors
    - Surface the original cause after exhaustion
"""

from query_cache.resilience.retry import RetryExhausted, retry_async

__all__ = ["RetryExhausted", "retry_async"]
