"""
Listing data models for the Marketplace Watcher system.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from urllib.parse import urlparse


@dataclass
class Listing:
    """A normalized marketplace item produced by a platform scrape."""

    id: str
    title: str
    price: str
    url: str
    image: Optional[str] = None

    def validate(self) -> bool:
        """Validate the listing data."""
        if not self.id or not self.id.strip():
            raise ValueError("Listing ID cannot be empty")

        if not isinstance(self.title, str):
            raise ValueError("Listing title must be a string")

        if not isinstance(self.price, str):
            raise ValueError("Listing price must be a string")

        if not self.url or not self.url.strip():
            raise ValueError("Listing URL cannot be empty")

        parsed_url = urlparse(self.url)
        if not parsed_url.scheme or not parsed_url.netloc:
            raise ValueError(f"Invalid URL format: {self.url}")

        if self.image is not None and not isinstance(self.image, str):
            raise ValueError("Listing image must be a string or None")

        if len(self.title) > 500:
            raise ValueError("Listing title too long (max 500 characters)")

        return True

    @property
    def display_title(self) -> str:
        """Title to show to users, falling back to the listing id."""
        return self.title.strip() or self.id


@dataclass
class SeenRecord:
    """Dedup ledger entry keyed by (listing_id, keyword, owner, platform)."""

    listing_id: str
    keyword: str
    owner: str
    platform: str
    price: Optional[str]
    title: Optional[str] = None
    url: Optional[str] = None
    first_seen_at: Optional[datetime] = None

    @property
    def key(self) -> tuple:
        return (self.listing_id, self.keyword, self.owner, self.platform)
