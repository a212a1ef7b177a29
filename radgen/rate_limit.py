"""Outbound rate limiting for Accounting-Request issuance.

Provides a leaky-bucket admission gate with a bucket size of one: the first
``take()`` is granted immediately and every later grant is spaced at least
``1 / rate_per_sec`` seconds after the previous one, so the long-run average
issuance rate never exceeds the configured rate.

Configuration via environment variables:
    RADGEN_RATE_PER_SEC – default rate when none is passed (default 10)
"""

from __future__ import annotations

import asyncio
import os
import time
from typing import Awaitable, Callable

from radgen.logger import session_logger as logger


class RateLimiter:
    """Leaky-bucket limiter shared by every caller of ``take()``.

    Safe for concurrent callers: grants are serialised by an asyncio lock,
    so each waiter is scheduled one interval after the previous grant.
    """

    def __init__(
        self,
        rate_per_sec: float | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if rate_per_sec is None:
            rate_per_sec = float(os.environ.get("RADGEN_RATE_PER_SEC", "10"))
        if rate_per_sec <= 0:
            raise ValueError("rate_per_sec must be > 0")

        self.rate_per_sec = rate_per_sec
        self.interval_seconds = 1.0 / rate_per_sec
        self._clock = clock
        self._sleep = sleep
        self._last_grant: float | None = None
        self._lock = asyncio.Lock()

    async def take(self) -> float:
        """Wait until one more unit may be issued.

        Returns:
            The clock reading at which the permit was granted.
        """
        async with self._lock:
            now = self._clock()
            if self._last_grant is None:
                self._last_grant = now
                return now

            next_slot = self._last_grant + self.interval_seconds
            if now < next_slot:
                await self._sleep(next_slot - now)
                now = next_slot
            elif now - next_slot > self.interval_seconds:
                logger.debug(
                    "rate_limit.behind_schedule",
                    event="rate_limit.behind_schedule",
                    lag_seconds=round(now - next_slot, 4),
                )

            self._last_grant = now
            return now
