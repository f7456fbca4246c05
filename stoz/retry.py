"""Opt-in retry with exponential backoff for gateway callers."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Type, TypeVar

from .errors import RequestFailed

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delay(attempt: int, initial_delay: float, max_delay: float, backoff_factor: float) -> float:
    """Delay before retry number ``attempt + 1`` (0-based)."""
    return min(initial_delay * (backoff_factor ** attempt), max_delay)


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    *,
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 10.0,
    backoff_factor: float = 2.0,
    retry_on: tuple[Type[BaseException], ...] = (RequestFailed,),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Await ``fn`` until it succeeds or ``max_retries`` retries are used up.

    Args:
        fn: Zero-argument coroutine factory
        max_retries: Retries after the first attempt
        initial_delay: Delay in seconds before the first retry
        max_delay: Upper bound on any single delay
        backoff_factor: Multiplier applied per attempt
        retry_on: Exception types that trigger a retry
        sleep: Awaitable sleep, replaceable in tests

    Returns:
        The result of the first successful attempt

    Raises:
        The last exception once all attempts have failed
    """
    last_error: Optional[BaseException] = None
    for attempt in range(max_retries + 1):
        try:
            return await fn()
        except retry_on as exc:
            last_error = exc
            if attempt < max_retries:
                delay = backoff_delay(attempt, initial_delay, max_delay, backoff_factor)
                logger.info(f"Attempt {attempt + 1} failed ({exc}); retrying in {delay:.1f}s")
                await sleep(delay)

    assert last_error is not None
    raise last_error
