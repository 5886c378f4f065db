"""Rate and concurrency guard for outbound photo-server calls.

`RateGate.call` takes a token from a continuously refilling bucket, then a
slot from a semaphore, runs the call and frees the slot. Tokens are spent,
never returned.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import time
from typing import Any, TypeVar

from core.errors import ValidationError

T = TypeVar("T")

# Absorbs float drift when refill lands a hair under a whole token
_EPSILON = 1e-9


class TokenBucket:
    """Continuously refilling token bucket for asyncio callers.

    Waiters are served in arrival order. With the default capacity of one
    token, permits are spaced exactly `1 / rate` seconds apart.
    """

    def __init__(
        self,
        rate: float,
        capacity: int = 1,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if rate <= 0:
            raise ValidationError("rate must be positive")
        if capacity < 1:
            raise ValidationError("capacity must be at least 1")
        self._rate = float(rate)
        self._capacity = float(capacity)
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(capacity)
        self._updated = clock()
        self._lock: asyncio.Lock | None = None

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated)
        self._tokens = min(self._capacity, self._tokens + elapsed * self._rate)
        self._updated = now

    async def acquire(self) -> None:
        """Wait until a token is available and consume it."""
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            self._refill()
            while self._tokens < 1.0 - _EPSILON:
                await self._sleep((1.0 - self._tokens) / self._rate)
                self._refill()
            self._tokens = max(0.0, self._tokens - 1.0)


class RateGate:
    """Throughput and fan-out limits applied to every remote call.

    One instance is owned by one executor and passed in at construction.
    """

    def __init__(
        self,
        requests_per_sec: int,
        max_concurrent: int,
        bucket: TokenBucket | None = None,
    ) -> None:
        if max_concurrent <= 0:
            raise ValidationError("max_concurrent must be positive")
        self._bucket = bucket or TokenBucket(requests_per_sec)
        self._max_concurrent = max_concurrent
        self._semaphore: asyncio.Semaphore | None = None
        self._in_flight = 0
        self.peak_in_flight = 0
        self.calls = 0

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    async def call(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Run `func(*args, **kwargs)` once a token and a slot are available."""
        await self._bucket.acquire()
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self._max_concurrent)
        async with self._semaphore:
            self.calls += 1
            self._in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self._in_flight)
            try:
                return await func(*args, **kwargs)
            finally:
                self._in_flight -= 1
