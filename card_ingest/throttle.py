"""Delay policy and minimum-spacing rate limiter for outbound requests."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


@dataclass
class DelayPolicy:
    """Fixed delays applied by the pipeline, in milliseconds."""

    between_pages: int = 2000
    between_items: int = 1000
    between_uploads: int = 500
    between_partitions: int = 5000
    page_load: int = 1000
    navigation_timeout: int = 30000

    def validate(self) -> list[str]:
        return [
            f"delays.{name} must be >= 0 (got {value})"
            for name, value in vars(self).items()
            if value < 0
        ]


class RateLimiter:
    """Enforces a minimum interval between successive calls to ``wait()``.

    The first call never waits. Clock and sleep are injectable so tests can
    drive the limiter without real time passing.
    """

    def __init__(
        self,
        min_interval_ms: int,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._interval = max(0, min_interval_ms) / 1000.0
        self._clock = clock
        self._sleep = sleep
        self._last: Optional[float] = None

    @property
    def interval(self) -> float:
        return self._interval

    async def wait(self) -> float:
        """Suspend until the interval has elapsed. Returns seconds slept."""
        slept = 0.0
        now = self._clock()
        if self._last is not None and self._interval > 0:
            remaining = self._interval - (now - self._last)
            if remaining > 0:
                logger.debug("Throttling for %.2fs", remaining)
                await self._sleep(remaining)
                slept = remaining
                now = self._clock()
        self._last = now
        return slept

    async def pause(self, ms: int) -> None:
        """Fixed settle delay, independent of the spacing contract."""
        if ms > 0:
            await self._sleep(ms / 1000.0)
