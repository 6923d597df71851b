#!/usr/bin/env python

"""Exponential backoff around a repeatable async operation."""

import asyncio
import time
from typing import Awaitable, Callable, TypeVar

from .constants import BACKOFF_MULTIPLIER
from .errors import QueryError, RetryError
from .logger import logger

T = TypeVar("T")


def should_retry(error: Exception) -> bool:
    """Network failures and rate limits are worth another attempt; nothing else is."""
    return isinstance(error, QueryError) and error.retryable


async def with_backoff(
    operation: Callable[[], Awaitable[T]],
    max_retries: int,
    initial_delay: float,
    max_delay: float,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> T:
    """Run ``operation`` until it succeeds or retrying stops making sense.

    ``max_retries`` bounds the total number of attempts; ``0`` still makes a
    single attempt. The delay starts at ``initial_delay`` and doubles after
    every failure, clamped to ``max_delay``. The whole run is additionally
    bounded by ``max_delay * max_retries`` seconds when that is positive;
    zero delays retry immediately with no deadline.

    Raises:
        RetryError: wrapping the last ``QueryError`` once the error is not
            retryable, the attempts are used up, or the deadline would pass.
    """
    delay = min(initial_delay, max_delay)
    budget = max_delay * max_retries
    deadline = clock() + budget if budget > 0 else None
    attempt = 0

    while True:
        try:
            return await operation()
        except QueryError as exc:
            attempt += 1
            if not should_retry(exc) or attempt >= max_retries:
                raise RetryError(exc, attempt) from exc
            if deadline is not None and clock() + delay > deadline:
                raise RetryError(exc, attempt, "retry deadline exceeded") from exc

            logger.log_retry(attempt, delay, exc)
            await sleep(delay)
            delay = min(delay * BACKOFF_MULTIPLIER, max_delay)
