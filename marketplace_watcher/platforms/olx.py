"""
OLX marketplace adapter.
"""

import re
from typing import List, Optional
from urllib.parse import urlencode

from ..models.filters import BaseFilterSet, FilterOption, OlxFilters
from ..models.listing import Listing
from .base import BasePlatformAdapter

_AD_ID = re.compile(r"(\d+)$")
_PRICE_TEXT = re.compile(r"R\$\s*[\d.,]+")

# "relevance" is the site's own ordering and takes no parameter
SORT_PARAMS = {"date": "1", "price_asc": "2", "price_desc": "3"}

_SORT_LABELS = {
    "relevance": "relevância",
    "price_asc": "menor preço",
    "price_desc": "maior preço",
}


class OlxAdapter(BasePlatformAdapter):
    """Searches olx.com.br nationwide, newest ads first by default."""

    platform_key = "olx"
    platform_name = "OLX"
    filter_type = OlxFilters
    card_selector = 'a[href*="/d/"]'
    base_url = "https://www.olx.com.br"

    FILTER_LAYOUT = [
        [("Relevância", "sort", "rel"), ("Mais recente", "sort", "date")],
        [("Menor preço", "sort", "a"), ("Maior preço", "sort", "d")],
    ]

    def build_search_url(self, keyword: str, filters: Optional[BaseFilterSet]) -> str:
        filters = self._check_filters(filters) or OlxFilters()

        params = [("q", keyword.strip())]
        if filters.ps:
            params.append(("ps", filters.ps))
        if filters.pe:
            params.append(("pe", filters.pe))

        sort_param = SORT_PARAMS.get(filters.effective("sort"))
        if sort_param:
            params.append(("sf", sort_param))

        return f"{self.base_url}/brasil?{urlencode(params)}"

    def parse_listings(self, html: str) -> List[Listing]:
        soup = self._soup(html)
        listings: List[Listing] = []
        seen_hrefs = set()

        for link in soup.select(self.card_selector):
            href = link.get("href") or ""
            if href in seen_hrefs:
                continue
            seen_hrefs.add(href)

            # Links without a heading are navigation, not ads
            title = self._text(link.select_one('h2, [data-ds-component="DS-Text"]'))
            if not title:
                continue

            path = href.split("?")[0].split("#")[0]
            match = _AD_ID.search(path)
            product_id = match.group(1) if match else path

            image = link.select_one("img")

            listings.append(
                Listing(
                    id=product_id,
                    title=title,
                    price=self._extract_price(link),
                    url=href if href.startswith("http") else f"{self.base_url}{href}",
                    image=(image.get("src") or None) if image is not None else None,
                )
            )

        return listings

    def _extract_price(self, link) -> str:
        for element in link.select('[data-ds-component="DS-Text"], span, p'):
            match = _PRICE_TEXT.search(self._text(element))
            if match:
                return match.group(0)
        return ""

    def _extra_filter_rows(self, filters: BaseFilterSet) -> List[List[FilterOption]]:
        row = []
        if filters.ps:
            row.append(FilterOption(f"Preço mín: R$ {filters.ps}", "ps", filters.ps, True))
        if filters.pe:
            row.append(FilterOption(f"Preço máx: R$ {filters.pe}", "pe", filters.pe, True))
        return [row] if row else []

    def _summary_parts(self, filters: BaseFilterSet) -> List[str]:
        parts = []
        if filters.sort in _SORT_LABELS:
            parts.append(_SORT_LABELS[filters.sort])
        if filters.ps:
            parts.append(f"mín: R$ {filters.ps}")
        if filters.pe:
            parts.append(f"máx: R$ {filters.pe}")
        return parts
