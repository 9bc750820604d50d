"""
Pytest configuration and shared fixtures.

This module provides common fixtures for the Marketplace Watcher test suite:
an in-memory database, the stores built on it, a scripted page fetcher and
recording notification doubles.
"""

from typing import Dict, List, Optional

import pytest

from marketplace_watcher.models.listing import Listing
from marketplace_watcher.platforms.registry import create_default_registry
from marketplace_watcher.services.database import Database
from marketplace_watcher.services.seen_store import SeenStore
from marketplace_watcher.services.watch_store import WatchStore
from marketplace_watcher.utils.error_handling import RetryConfig


class FakePageFetcher:
    """Page fetcher returning canned HTML per URL, or raising for scripted URLs."""

    def __init__(self, pages: Optional[Dict[str, str]] = None, default: str = ""):
        self.pages = pages or {}
        self.default = default
        self.failures: Dict[str, Exception] = {}
        self.calls: List[str] = []
        self.closed = False

    async def fetch(self, url: str, wait_selector: Optional[str] = None, timeout: float = 60.0) -> str:
        self.calls.append(url)
        if url in self.failures:
            raise self.failures[url]
        return self.pages.get(url, self.default)

    async def close(self) -> None:
        self.closed = True


class RecordingNotifier:
    """Notification transport that records every call."""

    def __init__(self):
        self.new: List[tuple] = []
        self.drops: List[tuple] = []

    async def notify_new(self, listing, keyword, owner, platform) -> bool:
        self.new.append((listing.id, keyword, owner, platform))
        return True

    async def notify_price_drop(self, listing, keyword, owner, old_price, new_price, platform) -> bool:
        self.drops.append((listing.id, keyword, owner, old_price, new_price, platform))
        return True


class RecordingAlerter:
    """Operator alerter that records messages."""

    def __init__(self):
        self.messages: List[str] = []

    async def notify_operator(self, message: str) -> None:
        self.messages.append(message)


@pytest.fixture
def database():
    """Fresh in-memory database with the schema created."""
    db = Database("sqlite://")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def watch_store(database):
    return WatchStore(database)


@pytest.fixture
def seen_store(database):
    return SeenStore(database)


@pytest.fixture
def fake_fetcher():
    return FakePageFetcher()


@pytest.fixture
def no_retry():
    return RetryConfig(max_attempts=1, base_delay=0, jitter=False)


@pytest.fixture
def registry(fake_fetcher, no_retry):
    """Default registry wired to the fake fetcher, without retry delays."""
    return create_default_registry(fake_fetcher, no_retry)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def alerter():
    return RecordingAlerter()


@pytest.fixture
def sample_listing():
    return Listing(
        id="abc-123",
        title="Tênis Nike Air Max 90",
        price="R$ 150,00",
        url="https://www.enjoei.com.br/p/abc-123",
        image="https://photos.enjoei.com.br/abc-123.jpg",
    )
