"""
Mercado Livre marketplace adapter.

Filters are encoded as path segments appended to the search slug, e.g.
``https://lista.mercadolivre.com.br/nike-air_Desde_USADO_OrderId_PRICE``.
"""

import re
from typing import List, Optional
from urllib.parse import quote

from ..models.filters import BaseFilterSet, MercadoLivreFilters
from ..models.listing import Listing
from .base import BasePlatformAdapter

_ITEM_ID = re.compile(r"MLB-?\d+", re.IGNORECASE)

CONDITION_SEGMENTS = {"usado": "_Desde_USADO", "novo": "_Desde_NOVO"}
SORT_SEGMENTS = {"price_asc": "_OrderId_PRICE", "price_desc": "_OrderId_PRICE*DESC"}
FREE_SHIPPING_SEGMENT = "_Frete_Gr%C3%A1tis"
DEFAULT_SORT_SEGMENT = "_OrderId_PriceAsc_PublishedToday"

_SORT_LABELS = {"price_asc": "menor preço", "price_desc": "maior preço"}


class MercadoLivreAdapter(BasePlatformAdapter):
    """Searches lista.mercadolivre.com.br."""

    platform_key = "ml"
    platform_name = "Mercado Livre"
    filter_type = MercadoLivreFilters
    card_selector = "div.ui-search-result__content-wrapper"
    base_url = "https://lista.mercadolivre.com.br"

    FILTER_LAYOUT = [
        [("Novo", "cond", "novo"), ("Usado", "cond", "usado")],
        [("Menor preço", "sort", "a"), ("Maior preço", "sort", "d")],
        [("Frete grátis", "ship", "t")],
    ]

    def build_search_url(self, keyword: str, filters: Optional[BaseFilterSet]) -> str:
        filters = self._check_filters(filters) or MercadoLivreFilters()

        segments = []
        if filters.cond:
            segments.append(CONDITION_SEGMENTS[filters.cond])
        segments.append(SORT_SEGMENTS.get(filters.sort, DEFAULT_SORT_SEGMENT))
        if filters.ship:
            segments.append(FREE_SHIPPING_SEGMENT)

        return f"{self.base_url}/{quote(self._slug(keyword))}{''.join(segments)}"

    def parse_listings(self, html: str) -> List[Listing]:
        soup = self._soup(html)
        listings: List[Listing] = []
        seen_ids = set()

        for card in soup.select(self.card_selector):
            link = card.select_one("a.ui-search-link")
            if link is None:
                continue

            href = link.get("href") or ""
            match = _ITEM_ID.search(href)
            product_id = match.group(0) if match else href
            if not product_id or product_id in seen_ids:
                continue
            seen_ids.add(product_id)

            title = self._text(card.select_one("h2.ui-search-item__title"))

            fraction = self._text(card.select_one("span.andes-money-amount__fraction"))
            price = f"R$ {fraction}" if fraction else ""

            listings.append(
                Listing(
                    id=product_id,
                    title=title,
                    price=price,
                    url=href.split("?")[0].split("#")[0],
                    image=self._extract_image(card),
                )
            )

        return listings

    @staticmethod
    def _extract_image(card) -> Optional[str]:
        # The picture sits outside the content wrapper, in the enclosing result
        result = card.find_parent(class_="ui-search-result") or card
        image = result.select_one("img")
        if image is None:
            return None
        return image.get("data-zoom") or image.get("src") or None

    def _summary_parts(self, filters: BaseFilterSet) -> List[str]:
        parts = []
        if filters.cond:
            parts.append(filters.cond)
        if filters.sort:
            parts.append(_SORT_LABELS.get(filters.sort, filters.sort))
        if filters.ship:
            parts.append("frete grátis")
        return parts
