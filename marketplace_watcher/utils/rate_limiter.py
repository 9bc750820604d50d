"""
Politeness throttling for marketplace scraping.

Scrape invocations are spaced by a minimum interval measured from the end
of the previous invocation, whether it succeeded or failed.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional

from ..utils.logging import get_logger

logger = get_logger("rate_limiter")


class ScrapeThrottle:
    """Enforces a minimum gap between consecutive scrape invocations."""

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize throttle.

        Args:
            min_interval: Minimum seconds between the end of one scrape and
                the start of the next
            clock: Monotonic clock used to measure elapsed time
            sleep: Coroutine used to wait
        """
        self.min_interval = max(0.0, min_interval)
        self._clock = clock
        self._sleep = sleep
        self._last_release: Optional[float] = None
        self._lock = asyncio.Lock()

    async def acquire(self) -> float:
        """
        Wait until the next scrape may start.

        Returns:
            Seconds actually waited
        """
        async with self._lock:
            if self._last_release is None or self.min_interval == 0:
                return 0.0

            remaining = self.min_interval - (self._clock() - self._last_release)
            if remaining <= 0:
                return 0.0

            logger.debug(f"Throttling next scrape for {remaining:.2f}s")
            await self._sleep(remaining)
            return remaining

    def release(self) -> None:
        """Mark the end of a scrape invocation."""
        self._last_release = self._clock()

    async def __aenter__(self) -> "ScrapeThrottle":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.release()
