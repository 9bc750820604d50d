"""
Exception hierarchy for the Marketplace Watcher.
"""


class MarketplaceWatcherError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(MarketplaceWatcherError, ValueError):
    """Configuration file is missing, malformed or invalid."""


class PageFetchError(MarketplaceWatcherError):
    """A marketplace page could not be loaded (timeout, navigation, block)."""


class ScrapeError(MarketplaceWatcherError):
    """A search page loaded but its listings could not be extracted."""


class UnknownPlatformError(MarketplaceWatcherError, KeyError):
    """No adapter is registered for the requested platform."""

    def __init__(self, platform: str):
        super().__init__(platform)
        self.platform = platform

    def __str__(self) -> str:
        return f"Unknown platform: {self.platform}"


class FilterPlatformMismatch(MarketplaceWatcherError, TypeError):
    """A filter set was handed to an adapter of a different platform."""

    def __init__(self, expected: str, actual: str):
        super().__init__(f"Filter set for '{actual}' used with '{expected}' adapter")
        self.expected = expected
        self.actual = actual
