"""
Marketplace adapters for the Marketplace Watcher system.
"""

from .base import BasePlatformAdapter
from .enjoei import EnjoeiAdapter
from .mercadolivre import MercadoLivreAdapter
from .olx import OlxAdapter
from .registry import (
    DEFAULT_PLATFORM,
    PlatformHint,
    PlatformRegistry,
    create_default_registry,
    extract_platform_hint,
)

__all__ = [
    "BasePlatformAdapter",
    "EnjoeiAdapter",
    "MercadoLivreAdapter",
    "OlxAdapter",
    "PlatformRegistry",
    "PlatformHint",
    "DEFAULT_PLATFORM",
    "create_default_registry",
    "extract_platform_hint",
]
