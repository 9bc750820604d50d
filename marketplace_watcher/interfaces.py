"""
Protocol interfaces for the Marketplace Watcher system.

This module defines the protocol interfaces that establish system
boundaries and enable dependency injection throughout the application.
The check orchestrator depends only on these ports.
"""

from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional, Protocol

from .models.alert import FormattedAlert
from .models.delivery import DeliveryResult
from .models.filters import BaseFilterSet
from .models.listing import Listing, SeenRecord
from .models.watch import Watch

if TYPE_CHECKING:
    from .models.config import Configuration


class IPageFetcher(Protocol):
    """Protocol for fetching rendered marketplace pages."""

    async def fetch(
        self, url: str, wait_selector: Optional[str] = None, timeout: float = 60.0
    ) -> str:
        """Return the rendered HTML of ``url``."""
        ...

    async def close(self) -> None:
        """Release the underlying browser resources."""
        ...


class IPlatformAdapter(Protocol):
    """Protocol for one marketplace search adapter."""

    platform_key: str
    platform_name: str
    last_failure: Optional[BaseException]

    async def search(
        self, keyword: str, filters: Optional[BaseFilterSet] = None
    ) -> List[Listing]:
        """Return the listings for a keyword, or [] when the scrape failed."""
        ...

    def build_search_url(self, keyword: str, filters: Optional[BaseFilterSet]) -> str:
        ...

    def parse_listings(self, html: str) -> List[Listing]:
        ...


class IWatchStore(Protocol):
    """Protocol for watch persistence."""

    def list_active_watches(self) -> List[Watch]:
        """Watches whose owners are not paused."""
        ...

    def add_watch(
        self,
        owner: str,
        keyword: str,
        platform: str,
        max_price: Optional[Decimal] = None,
    ) -> Optional[Watch]:
        """Create a watch. Returns None if it already exists."""
        ...

    def remove_watch(self, owner: str, keyword: str, platform: Optional[str] = None) -> int:
        """Remove matching watches, returning how many were removed."""
        ...

    def list_watches(self, owner: str) -> List[Watch]:
        ...

    def get_watch(self, watch_id: int, owner: str) -> Optional[Watch]:
        ...

    def find_watches(self, owner: str, keyword: str) -> List[Watch]:
        ...

    def set_filters(self, watch_id: int, filters: Optional[BaseFilterSet]) -> None:
        ...

    def set_max_price(self, watch_id: int, max_price: Optional[Decimal]) -> None:
        ...

    def count_watches(self, owner: str) -> int:
        ...

    def set_paused(self, owner: str, paused: bool) -> None:
        ...

    def is_paused(self, owner: str) -> bool:
        ...


class ISeenStore(Protocol):
    """Protocol for the dedup / price-change ledger."""

    def is_seen(self, listing_id: str, keyword: str, owner: str, platform: str) -> bool:
        ...

    def mark_seen(self, listing: Listing, keyword: str, owner: str, platform: str) -> bool:
        """Insert once. Returns False if the key already existed."""
        ...

    def get_last_price(
        self, listing_id: str, keyword: str, owner: str, platform: str
    ) -> Optional[str]:
        ...

    def update_price(
        self, listing_id: str, keyword: str, owner: str, platform: str, price: str
    ) -> None:
        ...

    def get_record(
        self, listing_id: str, keyword: str, owner: str, platform: str
    ) -> Optional[SeenRecord]:
        ...

    def purge_older_than(self, days: int) -> int:
        ...


class IRelevanceRefiner(Protocol):
    """Protocol for optional relevance refinement of scraped listings."""

    async def refine(self, listings: List[Listing], keyword: str) -> List[Listing]:
        """Return the subset of ``listings`` relevant to ``keyword``."""
        ...


class INotificationTransport(Protocol):
    """Protocol for delivering listing notifications to owners."""

    async def notify_new(
        self, listing: Listing, keyword: str, owner: str, platform: str
    ) -> bool:
        ...

    async def notify_price_drop(
        self,
        listing: Listing,
        keyword: str,
        owner: str,
        old_price: str,
        new_price: str,
        platform: str,
    ) -> bool:
        ...


class IOperatorAlerter(Protocol):
    """Protocol for operator escalations (scrape failures, staleness)."""

    async def notify_operator(self, message: str) -> None:
        ...


class IMessageDispatcher(Protocol):
    """Protocol for dispatching alert messages."""

    def send_alert(self, chat_id: str, alert: FormattedAlert) -> DeliveryResult:
        """Send an alert to one chat."""
        ...

    def send_text(self, chat_id: str, text: str) -> DeliveryResult:
        """Send a plain text message to one chat."""
        ...

    def test_connection(self) -> bool:
        """Test connection to the messaging platform."""
        ...



class IConfigurationManager(Protocol):
    """Protocol for managing system configuration."""

    def load_configuration(self) -> "Configuration":
        """Load configuration from file."""
        ...

    def get_config(self) -> "Configuration":
        """Return the loaded configuration, loading it on first use."""
        ...

    def reload_if_changed(self) -> bool:
        """Reload configuration without restart when the file changed."""
        ...
