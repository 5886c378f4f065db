"""Deadline-bounded exponential backoff on top of tenacity."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import time
from typing import Any

from loguru import logger
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    wait_exponential,
)

from core.errors import PhotoDedupeError

INITIAL_DELAY = 0.25
MAX_DURATION = 60.0


async def retry_with_backoff(
    operation: Callable[[], Awaitable[Any]],
    description: str = "operation",
    initial_delay: float = INITIAL_DELAY,
    max_duration: float = MAX_DURATION,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> bool:
    """Run `operation` until it succeeds or `max_duration` seconds have passed.

    The delay starts at `initial_delay` and doubles after every failure. The
    last sleep is clamped to whatever budget is left; with no budget left the
    loop gives up without sleeping. Only `PhotoDedupeError` is retried, any
    other exception propagates.

    Returns:
        True if an attempt succeeded, False once the budget is spent.
    """
    start = clock()
    backoff = wait_exponential(multiplier=initial_delay)

    def remaining() -> float:
        return max_duration - (clock() - start)

    def budget_spent(_: RetryCallState) -> bool:
        return remaining() <= 0

    def clamped_wait(retry_state: RetryCallState) -> float:
        return min(backoff(retry_state), remaining())

    def log_failure(retry_state: RetryCallState) -> None:
        logger.warning(
            "{} attempt {} failed: {}",
            description,
            retry_state.attempt_number,
            retry_state.outcome.exception() if retry_state.outcome else None,
        )

    retrying = AsyncRetrying(
        retry=retry_if_exception_type(PhotoDedupeError),
        stop=budget_spent,
        wait=clamped_wait,
        after=log_failure,
        sleep=sleep,
    )
    try:
        async for attempt in retrying:
            with attempt:
                await operation()
    except RetryError as ex:
        logger.error("{} gave up after {} attempts", description, ex.last_attempt.attempt_number)
        return False
    return True
