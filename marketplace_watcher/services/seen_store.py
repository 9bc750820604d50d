"""
Dedup / price-change ledger.

One record per (listing_id, keyword, owner, platform). The first insert
wins; later writes only touch the price. Records older than the retention
window are purged by the application's maintenance task, after which a
listing simply shows up as new again.
"""

from datetime import timedelta
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..models.listing import Listing, SeenRecord
from ..utils.error_handling import ErrorCategory, ErrorSeverity, get_error_tracker
from ..utils.logging import get_logger
from .database import Database, SeenListingRow, utcnow


class SeenStore:
    """Persistence of seen listings and their last known price."""

    def __init__(self, database: Database):
        self.database = database
        self.logger = get_logger("storage.seen_store")

    @staticmethod
    def _key_clause(listing_id: str, keyword: str, owner: str, platform: str):
        return (
            SeenListingRow.listing_id == listing_id,
            SeenListingRow.keyword == keyword,
            SeenListingRow.owner == str(owner),
            SeenListingRow.platform == platform,
        )

    def is_seen(self, listing_id: str, keyword: str, owner: str, platform: str) -> bool:
        return self.get_record(listing_id, keyword, owner, platform) is not None

    def mark_seen(self, listing: Listing, keyword: str, owner: str, platform: str) -> bool:
        """
        Record a listing as seen at its current price.

        Idempotent: an existing key is left untouched. A failed insert is
        logged and reported as already seen so no alert goes out for it.

        Returns:
            True if a record was created, False otherwise.
        """
        row = SeenListingRow(
            listing_id=listing.id,
            keyword=keyword,
            owner=str(owner),
            platform=platform,
            title=listing.title,
            price=listing.price,
            url=listing.url,
        )
        try:
            with self.database.session() as session:
                session.add(row)
        except IntegrityError:
            self.logger.debug(
                "Listing already seen",
                extra={"listing_id": listing.id, "keyword": keyword, "owner": owner},
            )
            return False
        except SQLAlchemyError as e:
            get_error_tracker().record_error(
                component="storage.seen_store",
                category=ErrorCategory.STORAGE,
                severity=ErrorSeverity.MEDIUM,
                message=f"Could not record seen listing: {e}",
                exception=e,
                context={"listing_id": listing.id, "keyword": keyword, "owner": owner},
            )
            return False
        return True

    def get_record(
        self, listing_id: str, keyword: str, owner: str, platform: str
    ) -> Optional[SeenRecord]:
        with self.database.session() as session:
            row = session.scalars(
                select(SeenListingRow).where(
                    *self._key_clause(listing_id, keyword, owner, platform)
                )
            ).first()
            if row is None:
                return None
            return SeenRecord(
                listing_id=row.listing_id,
                keyword=row.keyword,
                owner=row.owner,
                platform=row.platform,
                price=row.price,
                title=row.title,
                url=row.url,
                first_seen_at=row.first_seen_at,
            )

    def get_last_price(
        self, listing_id: str, keyword: str, owner: str, platform: str
    ) -> Optional[str]:
        record = self.get_record(listing_id, keyword, owner, platform)
        return record.price if record is not None else None

    def update_price(
        self, listing_id: str, keyword: str, owner: str, platform: str, price: str
    ) -> None:
        with self.database.session() as session:
            session.execute(
                update(SeenListingRow)
                .where(*self._key_clause(listing_id, keyword, owner, platform))
                .values(price=price)
            )

    def purge_older_than(self, days: int) -> int:
        """
        Delete records first seen more than ``days`` days ago.

        Returns:
            Number of records deleted.
        """
        cutoff = utcnow() - timedelta(days=days)
        with self.database.session() as session:
            deleted = session.execute(
                delete(SeenListingRow).where(SeenListingRow.first_seen_at < cutoff)
            ).rowcount or 0

        self.logger.info(
            f"Purged {deleted} seen listing(s) older than {days} days",
            extra={"deleted": deleted, "retention_days": days},
        )
        return deleted

    def count(self) -> int:
        with self.database.session() as session:
            return session.scalar(select(func.count()).select_from(SeenListingRow)) or 0
