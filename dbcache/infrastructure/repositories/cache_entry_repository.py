"""
SQLAlchemy Cache Entry Repository

Infrastructure implementation of CacheEntryRepository over a synchronous
SQLAlchemy Session. The async cache path reaches the same code through
AsyncSession.run_sync, so there is a single implementation.
"""

from datetime import datetime
from typing import Optional, Type

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from ...domain.cache.repository_interfaces import CacheEntryRepository
from ...domain.cache.value_objects import ExpirationPolicy
from ...models import CacheEntry, CacheEntryMixin

logger = structlog.get_logger(__name__)

# Dialects with a native INSERT ... ON CONFLICT DO UPDATE
_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _matches(column, value):
    return column.is_(None) if value is None else column == value


class SqlAlchemyCacheEntryRepository(CacheEntryRepository):
    """SQLAlchemy implementation of the cache entry repository."""

    def __init__(self, session: Session, model: Type[CacheEntryMixin] = CacheEntry):
        """
        Initialize repository with strict input validation.

        Args:
            session: Session owning the current unit of work
            model: Mapped class carrying the CacheEntryMixin columns

        Raises:
            TypeError: If session is not a Session or model is not mapped
        """
        if not isinstance(session, Session):
            raise TypeError(
                f"session must be Session instance, got {type(session).__name__}"
            )

        if not hasattr(model, "__tablename__") or not issubclass(
            model, CacheEntryMixin
        ):
            raise TypeError(
                f"model must be a mapped CacheEntryMixin subclass, got {model!r}"
            )

        self.session = session
        self.model = model

    def find_live(self, key: str, now: datetime) -> Optional[CacheEntryMixin]:
        try:
            stmt = select(self.model).where(
                self.model.id == key,
                self.model.expires_at >= now,
            )
            entry = self.session.execute(stmt).scalar_one_or_none()

            logger.debug(
                "Repository: Cache entry lookup",
                table=self.model.__tablename__,
                key=key,
                hit=entry is not None,
            )
            return entry

        except SQLAlchemyError as e:
            logger.error(
                "Repository: Failed to find cache entry",
                table=self.model.__tablename__,
                key=key,
                error=str(e),
                exc_info=True,
            )
            raise

    def find(self, key: str) -> Optional[CacheEntryMixin]:
        try:
            return self.session.get(self.model, key)

        except SQLAlchemyError as e:
            logger.error(
                "Repository: Failed to load cache entry",
                table=self.model.__tablename__,
                key=key,
                error=str(e),
                exc_info=True,
            )
            raise

    def upsert(self, key: str, value: bytes, policy: ExpirationPolicy) -> None:
        values = {
            "id": key,
            "value": value,
            "expires_at": policy.expires_at,
            "absolute_expiration": policy.absolute_expiration,
            "sliding_expiration": policy.sliding_expiration,
        }

        try:
            stmt = self._upsert_statement(values)
            if stmt is not None:
                self.session.execute(stmt)
            else:
                self._merge_entry(values)

            logger.debug(
                "Repository: Cache entry saved",
                table=self.model.__tablename__,
                key=key,
                atomic=stmt is not None,
                size_bytes=len(value),
                expires_at=policy.expires_at.isoformat(),
            )

        except SQLAlchemyError as e:
            logger.error(
                "Repository: Failed to save cache entry",
                table=self.model.__tablename__,
                key=key,
                error=str(e),
                exc_info=True,
            )
            raise

    def _upsert_statement(self, values: dict):
        """Build INSERT ... ON CONFLICT DO UPDATE, or None if the dialect has none."""
        insert = _DIALECT_INSERTS.get(self.session.get_bind().dialect.name)
        if insert is None:
            return None

        stmt = insert(self.model).values(**values)
        return stmt.on_conflict_do_update(
            index_elements=[self.model.id],
            set_={name: stmt.excluded[name] for name in values if name != "id"},
        )

    def _merge_entry(self, values: dict) -> None:
        # Read-then-write; concurrent first writes of one key can conflict
        entry = self.find(values["id"])
        if entry is None:
            self.session.add(self.model(**values))
        else:
            for name, value in values.items():
                setattr(entry, name, value)
        self.session.flush()

    def update_expiration(self, entry: CacheEntryMixin, expires_at: datetime) -> bool:
        try:
            stmt = (
                update(self.model)
                .where(
                    self.model.id == entry.id,
                    _matches(self.model.expires_at, entry.expires_at),
                    _matches(self.model.absolute_expiration, entry.absolute_expiration),
                    _matches(self.model.sliding_expiration, entry.sliding_expiration),
                )
                .values(expires_at=expires_at)
                .execution_options(synchronize_session=False)
            )
            result = self.session.execute(stmt)
            updated = (result.rowcount or 0) > 0
            if updated:
                set_committed_value(entry, "expires_at", expires_at)

            logger.debug(
                "Repository: Sliding expiration extended"
                if updated
                else "Repository: Sliding expiration skipped, entry replaced concurrently",
                table=self.model.__tablename__,
                key=entry.id,
                expires_at=expires_at.isoformat(),
            )
            return updated

        except SQLAlchemyError as e:
            logger.error(
                "Repository: Failed to extend cache entry",
                table=self.model.__tablename__,
                key=entry.id,
                error=str(e),
                exc_info=True,
            )
            raise

    def delete(self, key: str) -> bool:
        try:
            stmt = (
                delete(self.model)
                .where(self.model.id == key)
                .execution_options(synchronize_session=False)
            )
            result = self.session.execute(stmt)
            removed = (result.rowcount or 0) > 0

            logger.debug(
                "Repository: Cache entry deleted",
                table=self.model.__tablename__,
                key=key,
                removed=removed,
            )
            return removed

        except SQLAlchemyError as e:
            logger.error(
                "Repository: Failed to delete cache entry",
                table=self.model.__tablename__,
                key=key,
                error=str(e),
                exc_info=True,
            )
            raise

    def delete_expired(self, now: datetime) -> int:
        try:
            stmt = (
                delete(self.model)
                .where(self.model.expires_at < now)
                .execution_options(synchronize_session=False)
            )
            result = self.session.execute(stmt)
            return result.rowcount or 0

        except SQLAlchemyError as e:
            logger.error(
                "Repository: Failed to delete expired cache entries",
                table=self.model.__tablename__,
                now=now.isoformat(),
                error=str(e),
                exc_info=True,
            )
            raise
