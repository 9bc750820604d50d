"""
Platform registry and platform-hint extraction.

The registry maps canonical platform ids and user-typed aliases to adapter
instances. It is built once at startup by ``create_default_registry``.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from ..exceptions import UnknownPlatformError
from ..interfaces import IPageFetcher
from ..utils.error_handling import RetryConfig
from .base import BasePlatformAdapter
from .enjoei import EnjoeiAdapter
from .mercadolivre import MercadoLivreAdapter
from .olx import OlxAdapter

DEFAULT_PLATFORM = "enjoei"

DEFAULT_ALIASES = {
    "enjoei": "enjoei",
    "ml": "ml",
    "mercadolivre": "ml",
    "mercado livre": "ml",
    "olx": "olx",
}


class PlatformRegistry:
    """Maps platform ids and aliases to adapters."""

    def __init__(
        self,
        adapters: Iterable[BasePlatformAdapter],
        aliases: Optional[Dict[str, str]] = None,
        default_platform: str = DEFAULT_PLATFORM,
    ):
        self._adapters: Dict[str, BasePlatformAdapter] = {}
        for adapter in adapters:
            if adapter.platform_key in self._adapters:
                raise ValueError(f"Duplicate adapter for platform '{adapter.platform_key}'")
            self._adapters[adapter.platform_key] = adapter

        if default_platform not in self._adapters:
            raise ValueError(f"Default platform '{default_platform}' is not registered")
        self.default_platform = default_platform

        self._aliases: Dict[str, str] = {key: key for key in self._adapters}
        for alias, platform in (aliases or DEFAULT_ALIASES).items():
            if platform in self._adapters:
                self._aliases[self._normalize(alias)] = platform

    @staticmethod
    def _normalize(text: str) -> str:
        return " ".join(text.lower().split())

    def get(self, platform: str) -> BasePlatformAdapter:
        """Return the adapter for a canonical platform id."""
        try:
            return self._adapters[platform]
        except KeyError:
            raise UnknownPlatformError(platform) from None

    def resolve_alias(self, text: Optional[str]) -> Optional[str]:
        """Canonical platform id for a user-typed alias, or None."""
        if not text:
            return None
        return self._aliases.get(self._normalize(text))

    def keys(self) -> List[str]:
        return list(self._adapters)

    def adapters(self) -> List[BasePlatformAdapter]:
        return list(self._adapters.values())

    def platform_name(self, platform: str) -> str:
        adapter = self._adapters.get(platform)
        return adapter.platform_name if adapter else platform

    def __contains__(self, platform: str) -> bool:
        return platform in self._adapters


@dataclass
class PlatformHint:
    """Keyword text split from an optional trailing platform alias."""

    keyword: str
    platform: str
    explicit: bool


def extract_platform_hint(text: str, registry: PlatformRegistry) -> PlatformHint:
    """
    Split a trailing platform alias off free text.

    The last two words are tried first (``"mercado livre"``), then the last
    word. The alias must leave at least one word of keyword behind; text made
    only of an alias is a keyword. Without a hint the default platform
    applies and ``explicit`` is False.
    """
    words = text.split()

    for size in (2, 1):
        if len(words) <= size:
            continue
        platform = registry.resolve_alias(" ".join(words[-size:]))
        if platform is not None:
            return PlatformHint(
                keyword=" ".join(words[:-size]),
                platform=platform,
                explicit=True,
            )

    return PlatformHint(
        keyword=" ".join(words),
        platform=registry.default_platform,
        explicit=False,
    )


def create_default_registry(
    page_fetcher: IPageFetcher,
    retry_config: Optional[RetryConfig] = None,
    navigation_timeout: float = 60.0,
) -> PlatformRegistry:
    """Wire the Enjoei, Mercado Livre and OLX adapters around one fetcher."""
    adapters = [
        adapter_class(page_fetcher, retry_config, navigation_timeout)
        for adapter_class in (EnjoeiAdapter, MercadoLivreAdapter, OlxAdapter)
    ]
    return PlatformRegistry(adapters, DEFAULT_ALIASES, DEFAULT_PLATFORM)
