"""
Watch data models for the Marketplace Watcher system.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from .filters import BaseFilterSet

MIN_KEYWORD_LENGTH = 2
MAX_KEYWORD_LENGTH = 50

_STRIPPED_CHARACTERS = re.compile(r"[“”‘’\"'`<>\[\]{}|\\]")
_WHITESPACE = re.compile(r"\s+")


def sanitize_keyword(text: str) -> str:
    """
    Remove quoting, bracket and shell-ish characters users paste around
    keywords, collapse whitespace and trim. Accents are kept.
    """
    cleaned = _STRIPPED_CHARACTERS.sub("", text or "")
    return _WHITESPACE.sub(" ", cleaned).strip()


def normalize_keyword(text: str) -> str:
    """Canonical stored form of a keyword: sanitised and lowercase."""
    return sanitize_keyword(text).lower()


@dataclass
class Watch:
    """One owner's interest in one keyword on one platform."""

    id: int
    owner: str
    keyword: str
    platform: str
    max_price: Optional[Decimal] = None
    filters: Optional[BaseFilterSet] = None
    created_at: Optional[datetime] = None

    def validate(self) -> bool:
        """Validate the watch data."""
        if not self.owner or not str(self.owner).strip():
            raise ValueError("Watch owner cannot be empty")

        if not self.keyword or not self.keyword.strip():
            raise ValueError("Watch keyword cannot be empty")

        if self.keyword != normalize_keyword(self.keyword):
            raise ValueError(f"Watch keyword is not normalised: {self.keyword!r}")

        if not MIN_KEYWORD_LENGTH <= len(self.keyword) <= MAX_KEYWORD_LENGTH:
            raise ValueError(
                f"Watch keyword must have {MIN_KEYWORD_LENGTH}-"
                f"{MAX_KEYWORD_LENGTH} characters"
            )

        if not self.platform:
            raise ValueError("Watch platform cannot be empty")

        if self.max_price is not None and self.max_price <= 0:
            raise ValueError("max_price must be positive")

        if self.filters is not None and self.filters.platform != self.platform:
            raise ValueError(
                f"Filters for '{self.filters.platform}' attached to "
                f"'{self.platform}' watch"
            )

        return True

    @property
    def unique_key(self) -> tuple:
        return (self.owner, self.keyword, self.platform)
