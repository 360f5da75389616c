"""
dbcache Database Models

SQLAlchemy models for the cache table. CacheEntryMixin carries the
entry shape so applications can map it onto their own declarative base.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import DateTime, Interval, LargeBinary, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from ..constants import DEFAULT_TABLE_NAME, MAX_KEY_LENGTH


class Base(DeclarativeBase):
    """Canonical Base class for all database models."""

    pass


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC timestamp.

    PostgreSQL stores timestamptz; SQLite has no timezone support, so
    values are stored as naive UTC and re-tagged as UTC when loaded.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("Naive datetime cannot be stored in a UTCDateTime column")
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class CacheEntryMixin:
    """Columns of a cache entry row."""

    id: Mapped[str] = mapped_column(String(MAX_KEY_LENGTH), primary_key=True)
    value: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    # Indexed for the sweep predicate delete
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    absolute_expiration: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime, nullable=True
    )
    sliding_expiration: Mapped[Optional[timedelta]] = mapped_column(
        Interval, nullable=True
    )

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(id={self.id!r}, expires_at={self.expires_at})>"


class CacheEntry(Base, CacheEntryMixin):
    """Default cache entry table."""

    __tablename__ = DEFAULT_TABLE_NAME


__all__ = ["Base", "UTCDateTime", "CacheEntryMixin", "CacheEntry"]
