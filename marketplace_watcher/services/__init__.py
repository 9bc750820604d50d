"""
Service layer for the Marketplace Watcher system.

This module contains configuration loading, persistence of watches and
seen listings, and the watch management operations used by the chat layer.
"""

from .config_manager import ConfigurationManager
from .database import Database
from .seen_store import SeenStore
from .watch_service import WatchOperationResult, WatchService
from .watch_store import WatchStore

__all__ = [
    "ConfigurationManager",
    "Database",
    "SeenStore",
    "WatchStore",
    "WatchService",
    "WatchOperationResult",
]
