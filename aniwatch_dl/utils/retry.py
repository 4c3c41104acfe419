"""
Bounded retry with a fixed delay for transient network failures.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int,
    delay: float,
    retry_on: tuple[type[BaseException], ...],
    description: str = "operation",
    on_retry: Callable[[int, BaseException], None] | None = None,
) -> T:
    """
    Runs ``operation`` up to ``attempts`` times, sleeping ``delay`` seconds
    between attempts.

    Only exceptions listed in ``retry_on`` are retried; anything else is
    terminal and propagates immediately. The last retryable exception is
    re-raised once all attempts are exhausted.

    Args:
        operation: A zero-argument coroutine factory.
        attempts: Total number of attempts (at least 1).
        delay: Fixed pause between attempts, in seconds.
        retry_on: Exception classes considered transient.
        description: Human-readable name used in debug logs.
        on_retry: Optional callback invoked with (attempt, error) before sleeping.
    """
    attempts = max(1, attempts)
    last_exception: BaseException | None = None

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except retry_on as e:
            last_exception = e
            log.debug(f"{description} attempt {attempt}/{attempts} failed: {e}")
            if attempt < attempts:
                if on_retry:
                    on_retry(attempt, e)
                if delay > 0:
                    await asyncio.sleep(delay)

    assert last_exception is not None
    raise last_exception
