"""
Tests for the scrape throttle.
"""

import pytest

from marketplace_watcher.utils.rate_limiter import ScrapeThrottle


class FakeTime:
    """Clock and sleep that advance together without waiting."""

    def __init__(self):
        self.now = 100.0
        self.sleeps = []

    def clock(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class TestScrapeThrottle:
    """Test cases for ScrapeThrottle."""

    def setup_method(self):
        self.time = FakeTime()
        self.throttle = ScrapeThrottle(3.0, clock=self.time.clock, sleep=self.time.sleep)

    @pytest.mark.asyncio
    async def test_first_acquire_does_not_wait(self):
        assert await self.throttle.acquire() == 0.0
        assert self.time.sleeps == []

    @pytest.mark.asyncio
    async def test_waits_remaining_interval_after_release(self):
        await self.throttle.acquire()
        self.throttle.release()
        self.time.now += 1.0

        waited = await self.throttle.acquire()

        assert waited == pytest.approx(2.0)
        assert self.time.sleeps == [pytest.approx(2.0)]

    @pytest.mark.asyncio
    async def test_no_wait_once_interval_elapsed(self):
        self.throttle.release()
        self.time.now += 5.0

        assert await self.throttle.acquire() == 0.0

    @pytest.mark.asyncio
    async def test_zero_interval_never_waits(self):
        self.throttle.min_interval = 0
        self.throttle.release()

        assert await self.throttle.acquire() == 0.0

    def test_negative_interval_clamped(self):
        assert ScrapeThrottle(-1).min_interval == 0.0

    @pytest.mark.asyncio
    async def test_context_manager_releases_on_error(self):
        with pytest.raises(RuntimeError):
            async with self.throttle:
                raise RuntimeError("scrape failed")

        assert await self.throttle.acquire() == pytest.approx(3.0)
