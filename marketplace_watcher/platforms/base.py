"""
Base platform adapter.

Every marketplace is queried through a subclass of BasePlatformAdapter.
Subclasses supply the URL scheme, the DOM extraction and the filter
vocabulary; this module supplies the shared fetch/retry/degradation logic
and the filter operations consumed by the chat layer.
"""

from abc import ABC, abstractmethod
from typing import ClassVar, List, Optional, Tuple, Type

from bs4 import BeautifulSoup

from ..exceptions import FilterPlatformMismatch, PageFetchError, ScrapeError
from ..interfaces import IPageFetcher, IPlatformAdapter
from ..models.filters import CLEAR_KEY, BaseFilterSet, FilterOption, FilterView
from ..models.listing import Listing
from ..models.watch import Watch
from ..utils.error_handling import ErrorCategory, RetryConfig, retry_async
from ..utils.logging import get_logger

# (label, key, token)
FilterButton = Tuple[str, str, str]

CLEAR_LABEL = "🗑 Limpar filtros"

# Markers of an interstitial served instead of search results
BLOCK_MARKERS = (
    "captcha",
    "access denied",
    "attention required",
    "acesso negado",
    "cf-challenge",
)


class BasePlatformAdapter(IPlatformAdapter, ABC):
    """Abstract base class for all marketplace adapters."""

    platform_key: ClassVar[str] = ""
    platform_name: ClassVar[str] = ""
    filter_type: ClassVar[Type[BaseFilterSet]] = BaseFilterSet
    card_selector: ClassVar[str] = ""
    base_url: ClassVar[str] = ""
    FILTER_LAYOUT: ClassVar[List[List[FilterButton]]] = []

    def __init__(
        self,
        page_fetcher: IPageFetcher,
        retry_config: Optional[RetryConfig] = None,
        navigation_timeout: float = 60.0,
    ):
        """
        Initialize adapter.

        Args:
            page_fetcher: Shared page-fetch capability (browser session)
            retry_config: Retry policy for recoverable fetch failures
            navigation_timeout: Page navigation timeout in seconds
        """
        self.page_fetcher = page_fetcher
        self.retry_config = retry_config or RetryConfig(max_attempts=3, base_delay=2.0)
        self.navigation_timeout = navigation_timeout
        self.last_failure: Optional[BaseException] = None
        self.logger = get_logger(f"platforms.{self.platform_key}")

    # Search

    async def search(
        self, keyword: str, filters: Optional[BaseFilterSet] = None
    ) -> List[Listing]:
        """
        Search the marketplace for ``keyword`` with ``filters`` applied to
        the query.

        Recoverable failures are retried. Once attempts are exhausted the
        failure is kept in ``last_failure`` and an empty list is returned.
        """
        filters = self._check_filters(filters)
        url = self.build_search_url(keyword, filters)

        try:
            listings = await retry_async(
                lambda: self._fetch_listings(url),
                self.retry_config,
                component=f"platforms.{self.platform_key}",
                category=ErrorCategory.SCRAPING,
                retry_on=(PageFetchError, ScrapeError),
                context={"keyword": keyword, "url": url},
            )
        except (PageFetchError, ScrapeError) as e:
            self.last_failure = e
            self.logger.error(
                f"Search failed after {self.retry_config.max_attempts} attempts: {e}",
                extra={"keyword": keyword, "url": url},
            )
            return []

        self.last_failure = None
        self.logger.info(
            f"Found {len(listings)} listings",
            extra={"keyword": keyword, "url": url},
        )
        return listings

    async def _fetch_listings(self, url: str) -> List[Listing]:
        html = await self.page_fetcher.fetch(
            url, wait_selector=self.card_selector, timeout=self.navigation_timeout
        )

        try:
            listings = self.parse_listings(html)
        except (AttributeError, TypeError, ValueError) as e:
            raise ScrapeError(f"Could not extract listings from {url}: {e}") from e

        if not listings and self._looks_blocked(html):
            raise ScrapeError(f"Blocked by {self.platform_name} anti-bot page")

        return self._valid_listings(listings, url)

    def _valid_listings(self, listings: List[Listing], url: str) -> List[Listing]:
        """Drop cards that parsed into malformed listings."""
        valid = []
        for listing in listings:
            try:
                listing.validate()
            except ValueError as e:
                self.logger.warning(
                    f"Dropping malformed listing: {e}",
                    extra={"listing_id": listing.id, "url": url},
                )
                continue
            valid.append(listing)
        return valid

    @staticmethod
    def _looks_blocked(html: str) -> bool:
        lowered = (html or "").lower()
        return any(marker in lowered for marker in BLOCK_MARKERS)

    @abstractmethod
    def build_search_url(self, keyword: str, filters: Optional[BaseFilterSet]) -> str:
        """Build the search URL with filters encoded in the query."""

    @abstractmethod
    def parse_listings(self, html: str) -> List[Listing]:
        """Extract listings from a rendered search page."""

    def _soup(self, html: str) -> BeautifulSoup:
        return BeautifulSoup(html or "", "html.parser")

    @staticmethod
    def _text(element) -> str:
        if element is None:
            return ""
        return " ".join(element.get_text(" ", strip=True).split())

    # Filters

    def _check_filters(
        self, filters: Optional[BaseFilterSet]
    ) -> Optional[BaseFilterSet]:
        """Runtime tag check: a filter set never crosses platforms."""
        if filters is None:
            return None
        if not isinstance(filters, BaseFilterSet):
            raise TypeError(f"Expected a filter set, got {type(filters).__name__}")
        if filters.platform != self.platform_key or not isinstance(
            filters, self.filter_type
        ):
            raise FilterPlatformMismatch(self.platform_key, filters.platform)
        return filters

    def toggle_filter(
        self, filters: Optional[BaseFilterSet], key: str, value: str
    ) -> Optional[BaseFilterSet]:
        """
        Toggle ``key:value`` and return the new filter set.

        Pure: the input set is never modified. Returns None once nothing
        differs from the platform defaults.
        """
        filters = self._check_filters(filters)
        current = filters if filters is not None else self.filter_type()

        updated = current.toggled(key, value)
        if updated is current:
            return filters

        return None if updated.is_default() else updated

    def clear_filters(self) -> None:
        """Clearing every filter reverts to platform defaults (no filter set)."""
        return None

    def summarize_filters(self, filters: Optional[BaseFilterSet]) -> str:
        """Short tag string such as ``[usado, masculino]``; empty for defaults."""
        filters = self._check_filters(filters)
        if filters is None:
            return ""
        parts = self._summary_parts(filters)
        return f"[{', '.join(parts)}]" if parts else ""

    @abstractmethod
    def _summary_parts(self, filters: BaseFilterSet) -> List[str]:
        """Human-readable fragments for the non-default fields."""

    def build_filter_view(self, watch: Watch) -> FilterView:
        """Describe every togglable option of ``watch`` and its state."""
        filters = self._check_filters(watch.filters)
        current = filters if filters is not None else self.filter_type()

        rows = [
            [
                FilterOption(
                    label,
                    key,
                    current.callback_token(key, token),
                    current.is_active(key, token),
                )
                for label, key, token in row
            ]
            for row in self.FILTER_LAYOUT
        ]
        rows.extend(self._extra_filter_rows(current))
        rows.append([FilterOption(CLEAR_LABEL, CLEAR_KEY, "0")])

        return FilterView(
            watch_id=watch.id,
            keyword=watch.keyword,
            platform_name=self.platform_name,
            rows=rows,
            summary=self.summarize_filters(filters),
        )

    def _extra_filter_rows(self, filters: BaseFilterSet) -> List[List[FilterOption]]:
        """Rows that depend on the current values (free-text fields)."""
        return []

    @staticmethod
    def _slug(keyword: str) -> str:
        return "-".join(keyword.strip().split())
