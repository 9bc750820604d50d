"""
Watch management service.

The entry point the chat layer calls for keyword and filter commands. All
platform-hint extraction goes through ``extract_platform_hint`` here so the
add, remove and filter paths resolve "nike ml" the same way.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from ..interfaces import IWatchStore
from ..models.filters import CLEAR_KEY, FilterView
from ..models.watch import (
    MAX_KEYWORD_LENGTH,
    MIN_KEYWORD_LENGTH,
    Watch,
    normalize_keyword,
    sanitize_keyword,
)
from ..platforms.registry import PlatformRegistry, extract_platform_hint
from ..utils.logging import get_logger
from ..utils.price import format_price

logger = get_logger("watch_service")

PAUSED_MESSAGE = "Notificacoes pausadas. Use /retomar para reativar."
RESUMED_MESSAGE = "Notificacoes reativadas."
EMPTY_LIST_MESSAGE = (
    "Nenhuma palavra-chave configurada. Use /adicionar <palavra> para comecar."
)
WATCH_NOT_FOUND_MESSAGE = "Palavra-chave nao encontrada."


@dataclass
class WatchOperationResult:
    """Outcome of a watch command, with the reply shown to the owner."""

    success: bool
    message: str
    watch: Optional[Watch] = None


class WatchService:
    """Keyword, filter and pause operations for one owner at a time."""

    def __init__(
        self,
        watch_store: IWatchStore,
        registry: PlatformRegistry,
        max_watches_per_owner: int = 50,
    ):
        """
        Initialize watch service.

        Args:
            watch_store: Watch persistence
            registry: Platform registry used for hints and filter operations
            max_watches_per_owner: Cap on watches per owner
        """
        self.watch_store = watch_store
        self.registry = registry
        self.max_watches_per_owner = max_watches_per_owner

    def _label(self, keyword: str, platform: str) -> str:
        return f'"{keyword}" ({self.registry.platform_name(platform)})'

    def add_keyword(
        self, owner: str, text: str, max_price: Optional[Decimal] = None
    ) -> WatchOperationResult:
        """
        Add a watch from free text such as ``"nike air max ml"``.

        The trailing platform hint is optional; the default platform applies
        without one.
        """
        hint = extract_platform_hint(sanitize_keyword(text), self.registry)
        keyword = normalize_keyword(hint.keyword)

        if len(keyword) < MIN_KEYWORD_LENGTH:
            return WatchOperationResult(
                False,
                f"Palavra-chave muito curta (minimo {MIN_KEYWORD_LENGTH} caracteres).",
            )
        if len(keyword) > MAX_KEYWORD_LENGTH:
            return WatchOperationResult(
                False,
                f"Palavra-chave muito longa (maximo {MAX_KEYWORD_LENGTH} caracteres).",
            )
        if max_price is not None and max_price <= 0:
            return WatchOperationResult(False, "O preco maximo deve ser positivo.")

        if self.watch_store.count_watches(owner) >= self.max_watches_per_owner:
            return WatchOperationResult(
                False,
                f"Limite de {self.max_watches_per_owner} palavras-chave atingido. "
                "Remova uma com /remover antes de adicionar outra.",
            )

        watch = self.watch_store.add_watch(owner, keyword, hint.platform, max_price)
        if watch is None:
            return WatchOperationResult(
                False, f"Palavra-chave {self._label(keyword, hint.platform)} ja existe."
            )

        message = f"Palavra-chave adicionada: {self._label(keyword, hint.platform)}"
        if max_price is not None:
            message += f" max {format_price(max_price)}"
        return WatchOperationResult(True, message, watch)

    def remove_keyword(self, owner: str, text: str) -> WatchOperationResult:
        """
        Remove a keyword. With an explicit platform hint only that platform's
        watch goes; otherwise the keyword is removed on every platform.
        """
        hint = extract_platform_hint(sanitize_keyword(text), self.registry)
        keyword = normalize_keyword(hint.keyword)
        platform = hint.platform if hint.explicit else None

        removed = self.watch_store.remove_watch(owner, keyword, platform)
        label = self._label(keyword, hint.platform) if hint.explicit else f'"{keyword}"'

        if not removed:
            return WatchOperationResult(False, f"Palavra-chave {label} nao encontrada.")
        return WatchOperationResult(True, f"Palavra-chave removida: {label}")

    def resolve_watch(self, owner: str, text: str) -> Optional[Watch]:
        """
        Find the watch a free-text reference points at.

        An explicit hint selects that platform. Otherwise the only watch for
        the keyword wins, or the default platform's one when there are several.
        """
        hint = extract_platform_hint(sanitize_keyword(text), self.registry)
        candidates = self.watch_store.find_watches(owner, normalize_keyword(hint.keyword))
        if not candidates:
            return None

        if hint.explicit:
            return next((w for w in candidates if w.platform == hint.platform), None)
        if len(candidates) == 1:
            return candidates[0]
        return next(
            (w for w in candidates if w.platform == self.registry.default_platform),
            candidates[0],
        )

    def toggle_filter(
        self, owner: str, watch_id: int, key: str, value: str
    ) -> WatchOperationResult:
        """Apply one filter toggle from the inline keyboard."""
        if key == CLEAR_KEY:
            return self.clear_filters(owner, watch_id)

        watch = self.watch_store.get_watch(watch_id, owner)
        if watch is None:
            return WatchOperationResult(False, WATCH_NOT_FOUND_MESSAGE)

        adapter = self.registry.get(watch.platform)
        updated = adapter.toggle_filter(watch.filters, key, value)
        if updated is not watch.filters:
            self.watch_store.set_filters(watch.id, updated)
            watch.filters = updated
            logger.info(
                "Filter toggled",
                extra={"owner": owner, "watch_id": watch_id, "key": key, "value": value},
            )

        summary = adapter.summarize_filters(watch.filters)
        return WatchOperationResult(True, summary or "Sem filtros.", watch)

    def clear_filters(self, owner: str, watch_id: int) -> WatchOperationResult:
        watch = self.watch_store.get_watch(watch_id, owner)
        if watch is None:
            return WatchOperationResult(False, WATCH_NOT_FOUND_MESSAGE)

        adapter = self.registry.get(watch.platform)
        watch.filters = adapter.clear_filters()
        self.watch_store.set_filters(watch.id, watch.filters)
        return WatchOperationResult(True, "Filtros removidos.", watch)

    def filter_view(self, owner: str, watch_id: int) -> Optional[FilterView]:
        watch = self.watch_store.get_watch(watch_id, owner)
        if watch is None:
            return None
        return self.registry.get(watch.platform).build_filter_view(watch)

    def set_max_price(
        self, owner: str, watch_id: int, max_price: Optional[Decimal]
    ) -> WatchOperationResult:
        """Set or clear (``None``) a watch's price ceiling."""
        if max_price is not None and max_price <= 0:
            return WatchOperationResult(False, "O preco maximo deve ser positivo.")

        watch = self.watch_store.get_watch(watch_id, owner)
        if watch is None:
            return WatchOperationResult(False, WATCH_NOT_FOUND_MESSAGE)

        self.watch_store.set_max_price(watch.id, max_price)
        watch.max_price = max_price
        if max_price is None:
            return WatchOperationResult(True, "Preco maximo removido.", watch)
        return WatchOperationResult(
            True, f"Preco maximo definido: {format_price(max_price)}", watch
        )

    def describe_watch(self, watch: Watch) -> str:
        line = f"{watch.keyword} ({self.registry.platform_name(watch.platform)})"
        if watch.max_price is not None:
            line += f" max {format_price(watch.max_price)}"
        if watch.platform in self.registry:
            summary = self.registry.get(watch.platform).summarize_filters(watch.filters)
            if summary:
                line += f" {summary}"
        return line

    def describe_watches(self, owner: str) -> str:
        """Numbered list of an owner's watches for the /listar reply."""
        watches: List[Watch] = self.watch_store.list_watches(owner)
        if not watches:
            return EMPTY_LIST_MESSAGE

        lines = [
            f"{index}. {self.describe_watch(watch)}"
            for index, watch in enumerate(watches, start=1)
        ]
        text = "Suas palavras-chave:\n\n" + "\n".join(lines)
        if self.watch_store.is_paused(owner):
            text += "\n\n" + PAUSED_MESSAGE
        return text

    def pause(self, owner: str) -> WatchOperationResult:
        self.watch_store.set_paused(owner, True)
        return WatchOperationResult(True, PAUSED_MESSAGE)

    def resume(self, owner: str) -> WatchOperationResult:
        self.watch_store.set_paused(owner, False)
        return WatchOperationResult(True, RESUMED_MESSAGE)
