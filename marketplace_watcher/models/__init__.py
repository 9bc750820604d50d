"""
Data models for the Marketplace Watcher system.

This module contains all data classes and type definitions used throughout
the application for representing listings, watches, filter sets,
configuration, and check-cycle state.
"""

from .alert import FormattedAlert
from .config import (
    Configuration,
    LimitsConfig,
    LoggingConfig,
    RelevanceConfig,
    ScrapingConfig,
    StorageConfig,
    TelegramConfig,
)
from .delivery import DeliveryResult
from .filters import (
    BaseFilterSet,
    EnjoeiFilters,
    FilterOption,
    FilterSet,
    FilterView,
    MercadoLivreFilters,
    OlxFilters,
    deserialize_filters,
    filters_for_platform,
    serialize_filters,
)
from .listing import Listing, SeenRecord
from .summary import CycleSummary, ScrapeGroup
from .watch import Watch, normalize_keyword, sanitize_keyword

__all__ = [
    "Listing",
    "SeenRecord",
    "Watch",
    "sanitize_keyword",
    "normalize_keyword",
    "BaseFilterSet",
    "EnjoeiFilters",
    "MercadoLivreFilters",
    "OlxFilters",
    "FilterSet",
    "FilterOption",
    "FilterView",
    "serialize_filters",
    "deserialize_filters",
    "filters_for_platform",
    "CycleSummary",
    "ScrapeGroup",
    "FormattedAlert",
    "DeliveryResult",
    "Configuration",
    "TelegramConfig",
    "ScrapingConfig",
    "StorageConfig",
    "RelevanceConfig",
    "LimitsConfig",
    "LoggingConfig",
]
