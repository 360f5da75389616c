"""
dbcache Database Configuration

Connection management for the cache store. Builds a blocking and an
async SQLAlchemy engine over the same database so DatabaseCache can
serve both calling conventions.
"""

from typing import Optional

import structlog
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import Session, sessionmaker
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..models import Base
from .config import Settings, get_settings

logger = structlog.get_logger(__name__)

# Async driver -> blocking driver used by the sync engine and migrations
_SYNC_DRIVER_REWRITES = (
    ("postgresql+asyncpg://", "postgresql://"),
    ("sqlite+aiosqlite://", "sqlite://"),
)
_ASYNC_DRIVER_REWRITES = (
    ("postgresql+psycopg2://", "postgresql+asyncpg://"),
    ("postgresql://", "postgresql+asyncpg://"),
    ("sqlite://", "sqlite+aiosqlite://"),
)


def to_sync_url(url: str) -> str:
    """Rewrite an async driver URL to its blocking counterpart."""
    for prefix, replacement in _SYNC_DRIVER_REWRITES:
        if url.startswith(prefix):
            return replacement + url[len(prefix):]
    return url


def to_async_url(url: str) -> str:
    """Rewrite a blocking driver URL to its async counterpart."""
    if url.startswith(("postgresql+asyncpg://", "sqlite+aiosqlite://")):
        return url
    for prefix, replacement in _ASYNC_DRIVER_REWRITES:
        if url.startswith(prefix):
            return replacement + url[len(prefix):]
    return url


_connect_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((OperationalError, ConnectionError)),
    reraise=True,
    before_sleep=lambda retry_state: logger.warning(
        "Database connection retry",
        attempt=retry_state.attempt_number,
        wait_time=retry_state.next_action.sleep,
    ),
)


class DatabaseManager:
    """
    Database connection manager for the cache store.

    Features:
    - Blocking and async engines over one database
    - Pooling for server databases, driver defaults for SQLite
    - Connectivity check with retry and exponential backoff
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.async_url = to_async_url(self.settings.DATABASE_URL)
        self.sync_url = self.settings.SYNC_DATABASE_URL or to_sync_url(
            self.settings.DATABASE_URL
        )

        engine_kwargs = self._engine_kwargs()
        self.engine: Engine = create_engine(self.sync_url, **engine_kwargs)
        self.async_engine: AsyncEngine = create_async_engine(
            self.async_url, **engine_kwargs
        )

        self.session_factory: sessionmaker[Session] = sessionmaker(
            bind=self.engine,
            expire_on_commit=False,
            autoflush=False,
        )
        self.async_session_factory: async_sessionmaker[AsyncSession] = (
            async_sessionmaker(
                bind=self.async_engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False,
            )
        )

        logger.info(
            "Database manager initialized",
            dialect=self.engine.dialect.name,
            pool_size=engine_kwargs.get("pool_size"),
            max_overflow=engine_kwargs.get("max_overflow"),
        )

    def _engine_kwargs(self) -> dict:
        kwargs = {"echo": self.settings.DATABASE_ECHO}
        if self.settings.is_sqlite:
            return kwargs

        kwargs.update(
            pool_size=self.settings.DATABASE_POOL_SIZE,
            max_overflow=self.settings.DATABASE_MAX_OVERFLOW,
            pool_timeout=self.settings.DATABASE_POOL_TIMEOUT,
            pool_recycle=self.settings.DATABASE_POOL_RECYCLE,
            pool_pre_ping=True,
        )
        return kwargs

    @_connect_retry
    def initialize(self) -> None:
        """Verify the blocking engine can reach the database."""
        with self.engine.connect() as conn:
            result = conn.execute(text("SELECT 1"))
            assert result.scalar() == 1

        logger.info("Database connectivity verified", driver=self.engine.driver)

    @_connect_retry
    async def initialize_async(self) -> None:
        """Verify the async engine can reach the database."""
        async with self.async_engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            assert result.scalar() == 1

        logger.info("Database connectivity verified", driver=self.async_engine.driver)

    def create_schema(self) -> None:
        """Create the cache tables. Production deployments use Alembic instead."""
        Base.metadata.create_all(self.engine)
        logger.info("Cache schema created", tables=sorted(Base.metadata.tables))

    async def create_schema_async(self) -> None:
        """Async variant of create_schema."""
        async with self.async_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Cache schema created", tables=sorted(Base.metadata.tables))

    def close(self) -> None:
        """Dispose the blocking engine."""
        self.engine.dispose()
        logger.info("Database connections closed", engine="sync")

    async def close_async(self) -> None:
        """Dispose both engines."""
        await self.async_engine.dispose()
        self.engine.dispose()
        logger.info("Database connections closed", engine="all")
