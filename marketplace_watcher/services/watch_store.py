"""
Watch persistence.
"""

from decimal import Decimal, InvalidOperation
from typing import List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError

from ..models.filters import BaseFilterSet, deserialize_filters, serialize_filters
from ..models.watch import Watch, normalize_keyword
from ..utils.logging import get_logger
from .database import Database, UserSettingsRow, WatchRow


def _decimal_or_none(value: Optional[str]) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(value)
    except InvalidOperation:
        return None


class WatchStore:
    """CRUD operations on watches and per-owner pause state."""

    def __init__(self, database: Database):
        self.database = database
        self.logger = get_logger("storage.watch_store")

    @staticmethod
    def _to_model(row: WatchRow) -> Watch:
        return Watch(
            id=row.id,
            owner=row.owner,
            keyword=row.keyword,
            platform=row.platform,
            max_price=_decimal_or_none(row.max_price),
            filters=deserialize_filters(row.platform, row.filters),
            created_at=row.created_at,
        )

    def add_watch(
        self,
        owner: str,
        keyword: str,
        platform: str,
        max_price: Optional[Decimal] = None,
    ) -> Optional[Watch]:
        """
        Create a watch.

        Returns:
            The new watch, or None when (owner, keyword, platform) exists.
        """
        row = WatchRow(
            owner=str(owner),
            keyword=normalize_keyword(keyword),
            platform=platform,
            max_price=str(max_price) if max_price is not None else None,
        )
        try:
            with self.database.session() as session:
                session.add(row)
                session.flush()
                watch = self._to_model(row)
        except IntegrityError:
            self.logger.debug(
                "Watch already exists",
                extra={"owner": owner, "keyword": keyword, "platform": platform},
            )
            return None

        self.logger.info(
            "Watch added",
            extra={"owner": owner, "keyword": watch.keyword, "platform": platform},
        )
        return watch

    def remove_watch(
        self, owner: str, keyword: str, platform: Optional[str] = None
    ) -> int:
        """
        Remove a keyword; without a platform it is removed on every platform.

        Returns:
            Number of watches removed.
        """
        statement = delete(WatchRow).where(
            WatchRow.owner == str(owner),
            WatchRow.keyword == normalize_keyword(keyword),
        )
        if platform is not None:
            statement = statement.where(WatchRow.platform == platform)

        with self.database.session() as session:
            removed = session.execute(statement).rowcount or 0

        if removed:
            self.logger.info(
                f"Removed {removed} watch(es)",
                extra={"owner": owner, "keyword": keyword, "platform": platform},
            )
        return removed

    def list_watches(self, owner: str) -> List[Watch]:
        with self.database.session() as session:
            rows = session.scalars(
                select(WatchRow)
                .where(WatchRow.owner == str(owner))
                .order_by(WatchRow.created_at, WatchRow.id)
            ).all()
            return [self._to_model(row) for row in rows]

    def get_watch(self, watch_id: int, owner: str) -> Optional[Watch]:
        """Watch by id, only if it belongs to ``owner``."""
        with self.database.session() as session:
            row = session.scalars(
                select(WatchRow).where(
                    WatchRow.id == watch_id, WatchRow.owner == str(owner)
                )
            ).first()
            return self._to_model(row) if row is not None else None

    def find_watches(self, owner: str, keyword: str) -> List[Watch]:
        """All of an owner's watches for a keyword, across platforms."""
        with self.database.session() as session:
            rows = session.scalars(
                select(WatchRow)
                .where(
                    WatchRow.owner == str(owner),
                    WatchRow.keyword == normalize_keyword(keyword),
                )
                .order_by(WatchRow.id)
            ).all()
            return [self._to_model(row) for row in rows]

    def set_filters(self, watch_id: int, filters: Optional[BaseFilterSet]) -> None:
        """Store a filter set; an empty set is stored as absent."""
        with self.database.session() as session:
            row = session.get(WatchRow, watch_id)
            if row is None:
                return
            if filters is not None and filters.platform != row.platform:
                raise ValueError(
                    f"Filters for '{filters.platform}' cannot be stored on a "
                    f"'{row.platform}' watch"
                )
            row.filters = serialize_filters(filters)

    def set_max_price(self, watch_id: int, max_price: Optional[Decimal]) -> None:
        with self.database.session() as session:
            row = session.get(WatchRow, watch_id)
            if row is not None:
                row.max_price = str(max_price) if max_price is not None else None

    def count_watches(self, owner: str) -> int:
        with self.database.session() as session:
            return session.scalar(
                select(func.count()).select_from(WatchRow).where(
                    WatchRow.owner == str(owner)
                )
            ) or 0

    def list_active_watches(self) -> List[Watch]:
        """Every watch whose owner has not paused notifications."""
        paused_owners = select(UserSettingsRow.owner).where(
            UserSettingsRow.paused.is_(True)
        )
        with self.database.session() as session:
            rows = session.scalars(
                select(WatchRow)
                .where(WatchRow.owner.not_in(paused_owners))
                .order_by(WatchRow.id)
            ).all()
            return [self._to_model(row) for row in rows]

    def set_paused(self, owner: str, paused: bool) -> None:
        with self.database.session() as session:
            settings = session.get(UserSettingsRow, str(owner))
            if settings is None:
                session.add(UserSettingsRow(owner=str(owner), paused=paused))
            else:
                settings.paused = paused

        self.logger.info(
            "Notifications paused" if paused else "Notifications resumed",
            extra={"owner": owner},
        )

    def is_paused(self, owner: str) -> bool:
        with self.database.session() as session:
            settings = session.get(UserSettingsRow, str(owner))
            return bool(settings and settings.paused)
