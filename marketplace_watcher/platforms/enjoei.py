"""
Enjoei marketplace adapter.
"""

import re
from typing import List, Optional
from urllib.parse import quote, urlencode

from ..models.filters import BaseFilterSet, EnjoeiFilters
from ..models.listing import Listing
from .base import BasePlatformAdapter

_PRODUCT_PATH = re.compile(r"/p/(.+?)(?:\?|$)")
_PRICE_TEXT = re.compile(r"R\$\s*[\d.,]+")

_RECENCY_LABELS = {"7d": "7 dias", "14d": "14 dias", "30d": "30 dias"}
_REGION_LABELS = {"near_regions": "perto de mim", "same_country": "todo o Brasil"}
_SORT_LABELS = {"price_asc": "menor preço", "price_desc": "maior preço"}


class EnjoeiAdapter(BasePlatformAdapter):
    """Searches enjoei.com.br. Default recency window is the last 24 hours."""

    platform_key = "enjoei"
    platform_name = "Enjoei"
    filter_type = EnjoeiFilters
    card_selector = ".c-product-card"
    base_url = "https://www.enjoei.com.br"

    FILTER_LAYOUT = [
        [
            ("24h", "lp", "24h"),
            ("7 dias", "lp", "7d"),
            ("14 dias", "lp", "14d"),
            ("30 dias", "lp", "30d"),
        ],
        [("Somente usados", "used", "t")],
        [("Masculino", "dep", "m"), ("Feminino", "dep", "f")],
        [
            ("PP", "sz", "pp"),
            ("P", "sz", "p"),
            ("M", "sz", "m"),
            ("G", "sz", "g"),
            ("GG", "sz", "gg"),
        ],
        [("Perto de mim", "sr", "near"), ("Todo o Brasil", "sr", "country")],
        [("Menor preço", "sort", "a"), ("Maior preço", "sort", "d")],
    ]

    def build_search_url(self, keyword: str, filters: Optional[BaseFilterSet]) -> str:
        filters = self._check_filters(filters) or EnjoeiFilters()
        slug = self._slug(keyword).lower()

        params = [("q", slug), ("lp", filters.effective("lp"))]
        if filters.used:
            params.append(("u", "true"))
        if filters.dep:
            params.append(("d", filters.dep))
        if filters.sr:
            params.append(("sr", filters.sr))
        if filters.sz:
            params.append(("st[sc]", filters.sz))
        if filters.sort:
            params.append(("sort", filters.sort))

        return f"{self.base_url}/{quote(slug)}/s?{urlencode(params)}"

    def parse_listings(self, html: str) -> List[Listing]:
        soup = self._soup(html)
        listings: List[Listing] = []
        seen_ids = set()

        for card in soup.select(self.card_selector):
            link = card.select_one('a[href*="/p/"]')
            if link is None:
                continue

            href = link.get("href") or ""
            match = _PRODUCT_PATH.search(href)
            if not match:
                continue

            product_id = match.group(1)
            if product_id in seen_ids:
                continue
            seen_ids.add(product_id)

            title = self._text(
                card.select_one('[data-test="div-nome-prod"], h2.c-product-card__title')
            )

            image_el = card.select_one("img.c-product-card__img")
            image = image_el.get("src") if image_el is not None else None

            clean_href = href.split("?")[0]
            url = clean_href if clean_href.startswith("http") else f"{self.base_url}{clean_href}"

            listings.append(
                Listing(
                    id=product_id,
                    title=title or product_id,
                    price=self._extract_price(card),
                    url=url,
                    image=image or None,
                )
            )

        return listings

    def _extract_price(self, card) -> str:
        container = card.select_one('[data-test="div-preco"], .c-product-card__price')
        if container is None:
            return ""

        # Current price, skipping the struck-through original price
        for span in container.select("span"):
            classes = span.get("class") or []
            if (
                "c-product-card__price-discount" in classes
                or "c-product-card__price" in classes
            ):
                continue
            text = self._text(span)
            if _PRICE_TEXT.search(text):
                return text

        match = _PRICE_TEXT.search(self._text(container))
        return match.group(0) if match else ""

    def _summary_parts(self, filters: BaseFilterSet) -> List[str]:
        parts = []
        if filters.lp in _RECENCY_LABELS:
            parts.append(f"período: {_RECENCY_LABELS[filters.lp]}")
        if filters.used:
            parts.append("usado")
        if filters.dep:
            parts.append(filters.dep)
        if filters.sz:
            parts.append(f"tam: {filters.sz.upper()}")
        if filters.sr:
            parts.append(_REGION_LABELS.get(filters.sr, filters.sr))
        if filters.sort:
            parts.append(_SORT_LABELS.get(filters.sort, filters.sort))
        return parts
