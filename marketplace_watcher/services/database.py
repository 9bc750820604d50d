"""
SQLAlchemy database setup for the Marketplace Watcher.

Defines the ORM tables (watches, per-owner settings and the seen-listing
ledger) and a small Database wrapper owning the engine and session factory.
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from ..utils.logging import get_logger


def utcnow() -> datetime:
    """Naive UTC timestamp (SQLite stores datetimes without zone)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


class WatchRow(Base):
    __tablename__ = "watches"
    __table_args__ = (
        UniqueConstraint("owner", "keyword", "platform", name="uq_watch_owner_keyword_platform"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    keyword: Mapped[str] = mapped_column(String(100), nullable=False)
    platform: Mapped[str] = mapped_column(String(32), nullable=False, default="enjoei")
    # Decimal kept as text for exact round trips on every dialect
    max_price: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    filters: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)


class UserSettingsRow(Base):
    __tablename__ = "user_settings"

    owner: Mapped[str] = mapped_column(String(64), primary_key=True)
    paused: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class SeenListingRow(Base):
    __tablename__ = "seen_listings"
    __table_args__ = (
        UniqueConstraint(
            "listing_id", "keyword", "owner", "platform", name="uq_seen_listing_key"
        ),
        Index("idx_seen_listings_first_seen_at", "first_seen_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    listing_id: Mapped[str] = mapped_column(String(255), nullable=False)
    keyword: Mapped[str] = mapped_column(String(100), nullable=False)
    owner: Mapped[str] = mapped_column(String(64), nullable=False)
    platform: Mapped[str] = mapped_column(String(32), nullable=False, default="enjoei")
    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    first_seen_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)


class Database:
    """Owns the SQLAlchemy engine and hands out sessions."""

    def __init__(self, database_url: str = "sqlite:///data/bot.db", echo: bool = False):
        """
        Initialize database.

        Args:
            database_url: SQLAlchemy URL; ``sqlite://`` gives an in-memory database
            echo: Log emitted SQL
        """
        self.database_url = database_url
        self.logger = get_logger("storage.database")
        self.engine = self._create_engine(database_url, echo)
        self._session_factory = sessionmaker(
            bind=self.engine, autoflush=False, expire_on_commit=False
        )

    @staticmethod
    def _create_engine(database_url: str, echo: bool) -> Engine:
        url = make_url(database_url)

        if url.get_backend_name() != "sqlite":
            return create_engine(database_url, echo=echo, pool_pre_ping=True)

        if url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
            return create_engine(database_url, echo=echo)

        # One shared connection so every session sees the same in-memory data
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    def create_all(self) -> None:
        """Create missing tables."""
        Base.metadata.create_all(self.engine)
        self.logger.info("Database schema ready", extra={"url": self._safe_url()})

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Transactional session: commits on success, rolls back on error."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        """Close pooled connections."""
        self.engine.dispose()
        self.logger.info("Database engine disposed")

    def _safe_url(self) -> str:
        return make_url(self.database_url).render_as_string(hide_password=True)
