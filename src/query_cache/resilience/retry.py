"""
Retry - Async Retry with Pluggable Backoff.

Provides:
    - retry_async(): run a coroutine function until it succeeds or the
      retry budget is spent
    - RetryExhausted: raised with the last error once attempts run out

Design Notes:
    - ``retry`` counts additional attempts: retry=N means N + 1 calls
    - The delay callable receives the number of failed attempts so far
    - Cancellation is never retried
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryExhausted(Exception):
    """Raised when all retry attempts are exhausted."""

    def __init__(self, message: str, attempts: int, last_error: BaseException) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


async def retry_async(
    func: Callable[[], Awaitable[T]],
    retry: int,
    retry_delay: Callable[[int], float],
    operation_name: str = "operation",
    on_failure: Optional[Callable[[int, Exception], Any]] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Await ``func`` with retry and backoff.

    Args:
        func: Zero-argument coroutine function to execute
        retry: Additional attempts after the first failure
        retry_delay: Delay in seconds given the failed attempt count
        operation_name: Name for logging
        on_failure: Called with (attempts, error) after every failed attempt
        sleep: Awaitable sleep used between attempts

    Returns:
        Result of the successful attempt

    Raises:
        RetryExhausted: When all attempts fail, chained from the last error
    """
    attempts = 0

    while True:
        try:
            result = await func()
            if attempts > 0:
                logger.info(f"{operation_name} succeeded on attempt {attempts + 1}")
            return result

        except Exception as e:
            attempts += 1
            if on_failure is not None:
                on_failure(attempts, e)

            if attempts > retry:
                logger.error(f"{operation_name} failed after {attempts} attempts: {e}")
                raise RetryExhausted(
                    f"{operation_name} failed after {attempts} attempts",
                    attempts=attempts,
                    last_error=e,
                ) from e

            delay = max(0.0, float(retry_delay(attempts)))
            logger.warning(
                f"{operation_name} failed (attempt {attempts}/{retry + 1}), "
                f"retrying in {delay:.2f}s: {e}"
            )
            await sleep(delay)
