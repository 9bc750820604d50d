"""
Playwright browser session used to fetch marketplace search pages.

The session is an explicitly owned resource: the application creates one,
injects it into every platform adapter and closes it on shutdown. The
Chromium instance is launched on first use, reused across fetches and
recycled once it is older than the configured maximum age.
"""

import asyncio
import time
from typing import Any, Callable, Dict, Optional

from playwright.async_api import Browser, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..exceptions import PageFetchError
from ..utils.logging import get_logger

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)
DEFAULT_VIEWPORT = {"width": 1280, "height": 900}

LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-sandbox",
]


class BrowserSession:
    """Owns one Chromium instance and fetches rendered pages with it."""

    def __init__(
        self,
        headless: bool = True,
        max_age_minutes: float = 60,
        user_agent: str = DEFAULT_USER_AGENT,
        viewport: Optional[Dict[str, int]] = None,
        selector_timeout: float = 15.0,
        settle_delay: float = 2.0,
        playwright_factory: Callable[[], Any] = async_playwright,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize browser session.

        Args:
            headless: Run Chromium without a window
            max_age_minutes: Relaunch the browser once it is older than this
            user_agent: Desktop user agent sent with every page
            viewport: Page viewport size
            selector_timeout: Seconds to wait for the listing selector
            settle_delay: Seconds to let lazy-loaded content render
            playwright_factory: Callable returning a Playwright context manager
            clock: Monotonic clock used for the max-age policy
        """
        self.headless = headless
        self.max_age_seconds = max_age_minutes * 60
        self.user_agent = user_agent
        self.viewport = viewport or dict(DEFAULT_VIEWPORT)
        self.selector_timeout = selector_timeout
        self.settle_delay = settle_delay

        self._playwright_factory = playwright_factory
        self._clock = clock
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._launched_at: Optional[float] = None
        self._closed = False
        self._lock = asyncio.Lock()
        self.launch_count = 0

        self.logger = get_logger("browser_session")

    @property
    def is_running(self) -> bool:
        return self._browser is not None

    @property
    def age_seconds(self) -> Optional[float]:
        if self._launched_at is None:
            return None
        return self._clock() - self._launched_at

    def _is_expired(self) -> bool:
        age = self.age_seconds
        return age is not None and age > self.max_age_seconds

    async def _ensure_browser(self) -> Browser:
        """Launch, relaunch or recycle the browser as needed."""
        async with self._lock:
            if self._closed:
                raise PageFetchError("Browser session is closed")

            if self._browser is not None:
                if not self._browser.is_connected():
                    self.logger.warning("Browser disconnected, relaunching")
                    await self._close_browser()
                elif self._is_expired():
                    self.logger.info(
                        "Recycling browser",
                        extra={"age_seconds": round(self.age_seconds or 0, 1)},
                    )
                    await self._close_browser()

            if self._browser is None:
                if self._playwright is None:
                    self._playwright = await self._playwright_factory().start()

                self._browser = await self._playwright.chromium.launch(
                    headless=self.headless, args=LAUNCH_ARGS
                )
                self._launched_at = self._clock()
                self.launch_count += 1
                self.logger.info(
                    "Browser launched", extra={"headless": self.headless}
                )

            return self._browser

    async def fetch(
        self, url: str, wait_selector: Optional[str] = None, timeout: float = 60.0
    ) -> str:
        """
        Load ``url`` in a fresh page and return its rendered HTML.

        A missing ``wait_selector`` is tolerated (the page may have no
        results). Navigation failures raise PageFetchError.
        """
        browser = await self._ensure_browser()

        try:
            context = await browser.new_context(
                user_agent=self.user_agent,
                viewport=self.viewport,
                locale="pt-BR",
            )
        except PlaywrightError as e:
            await self._discard_browser()
            raise PageFetchError(f"Could not open browser context: {e}") from e

        try:
            page = await context.new_page()

            try:
                await page.goto(url, wait_until="load", timeout=timeout * 1000)
            except PlaywrightTimeoutError as e:
                raise PageFetchError(f"Timed out loading {url}") from e
            except PlaywrightError as e:
                raise PageFetchError(f"Navigation to {url} failed: {e}") from e

            if wait_selector:
                try:
                    await page.wait_for_selector(
                        wait_selector, timeout=self.selector_timeout * 1000
                    )
                except PlaywrightTimeoutError:
                    self.logger.debug(
                        f"Selector not found: {wait_selector}", extra={"url": url}
                    )

            if self.settle_delay > 0:
                await asyncio.sleep(self.settle_delay)

            try:
                return await page.content()
            except PlaywrightError as e:
                raise PageFetchError(f"Could not read content of {url}: {e}") from e
        finally:
            try:
                await context.close()
            except PlaywrightError as e:
                self.logger.debug(f"Error closing browser context: {e}")

    async def _discard_browser(self) -> None:
        async with self._lock:
            await self._close_browser()

    async def _close_browser(self) -> None:
        if self._browser is not None:
            try:
                await self._browser.close()
            except PlaywrightError as e:
                self.logger.debug(f"Error closing browser: {e}")
            self._browser = None
            self._launched_at = None

    async def close(self) -> None:
        """Close the browser and stop Playwright. Later fetches fail."""
        async with self._lock:
            self._closed = True
            await self._close_browser()
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None
                self.logger.info("Browser session closed")

    async def __aenter__(self) -> "BrowserSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
