from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from logging import getLogger
import time

logger = getLogger("dependency_age")

WINDOW_SECONDS = 60.0


class RateLimiter:
    """Fixed one-minute request window shared by every batch of one gateway."""

    def __init__(
        self,
        max_requests_per_minute: int = 60,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        enabled: bool = True,
    ) -> None:
        if max_requests_per_minute <= 0:
            raise ValueError("max_requests_per_minute must be positive")
        self._max_requests = max_requests_per_minute
        self._clock = clock
        self._sleep = sleep
        self._enabled = enabled
        self._lock = asyncio.Lock()
        self._window_start: float | None = None
        self._count = 0

    @property
    def request_count(self) -> int:
        return self._count

    async def acquire(self) -> None:
        if not self._enabled:
            return

        async with self._lock:
            now = self._clock()
            if self._window_start is None or now - self._window_start >= WINDOW_SECONDS:
                self._window_start = now
                self._count = 0

            if self._count >= self._max_requests:
                wait = WINDOW_SECONDS - (now - self._window_start)
                if wait > 0:
                    logger.debug("Registry rate limit reached, waiting %.1fs", wait)
                    await self._sleep(wait)
                self._window_start = self._clock()
                self._count = 0

            self._count += 1
