"""
Check cycle data models.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from .filters import BaseFilterSet
from .watch import Watch


@dataclass
class ScrapeGroup:
    """All watches sharing (platform, keyword, serialized filters)."""

    platform: str
    keyword: str
    filters_key: Optional[str]
    filters: Optional[BaseFilterSet]
    watches: List[Watch] = field(default_factory=list)

    @property
    def key(self) -> Tuple[str, str, Optional[str]]:
        return (self.platform, self.keyword, self.filters_key)

    @property
    def label(self) -> str:
        suffix = f" {self.filters_key}" if self.filters_key else ""
        return f"{self.platform}:{self.keyword}{suffix}"

    @property
    def owners(self) -> List[str]:
        return [watch.owner for watch in self.watches]


@dataclass
class CycleSummary:
    """Outcome of one check cycle."""

    total_new: int = 0
    by_platform: Dict[str, int] = field(default_factory=dict)
    price_drops: int = 0
    groups_total: int = 0
    groups_failed: int = 0
    failed_groups: List[str] = field(default_factory=list)
    listings_found: int = 0
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    def record_new(self, platform: str, count: int = 1) -> None:
        self.total_new += count
        self.by_platform[platform] = self.by_platform.get(platform, 0) + count

    def record_failure(self, label: str) -> None:
        self.groups_failed += 1
        self.failed_groups.append(label)

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at is None or self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def validate(self) -> bool:
        """Validate summary consistency."""
        if self.total_new < 0 or self.price_drops < 0:
            raise ValueError("Counters cannot be negative")

        if sum(self.by_platform.values()) != self.total_new:
            raise ValueError("Platform breakdown does not add up to total_new")

        if self.groups_failed > self.groups_total:
            raise ValueError("More failed groups than groups")

        return True
