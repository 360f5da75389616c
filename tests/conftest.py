"""
Main pytest configuration for dbcache tests.

Store-backed tests run against a temporary SQLite file through both the
blocking (sqlite) and async (sqlite+aiosqlite) drivers, with a manual
clock so expiration is deterministic.
"""

import os
from datetime import datetime, timedelta, timezone

import pytest

# Set test environment variables before importing dbcache modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./dbcache-test.db"
os.environ["LOG_LEVEL"] = "DEBUG"

from dbcache.core.clock import ManualClock
from dbcache.core.config import DatabaseCacheOptions, Settings
from dbcache.core.database import DatabaseManager
from dbcache.core.logging import configure_logging
from dbcache.models import CacheEntry
from dbcache.services.cache.database_cache import DatabaseCache

configure_logging("DEBUG", json=False)

START_TIME = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    """Manual clock starting at a fixed instant."""
    return ManualClock(START_TIME)


@pytest.fixture
def cache_options(clock):
    """Options with the minimum sweep interval and the default sliding window."""
    return DatabaseCacheOptions(
        sweep_interval=timedelta(minutes=5),
        default_sliding_expiration=timedelta(minutes=20),
        clock=clock,
    )


@pytest.fixture
def database_settings(tmp_path):
    """Settings pointing at a per-test SQLite file."""
    db_path = tmp_path / "cache.db"
    return Settings(DATABASE_URL=f"sqlite+aiosqlite:///{db_path}")


@pytest.fixture
def database_manager(database_settings):
    """Database manager with the cache schema created through the blocking engine."""
    manager = DatabaseManager(database_settings)
    manager.create_schema()
    yield manager
    manager.close()


@pytest.fixture
async def async_database_manager(database_settings):
    """Database manager with the cache schema created through the async engine."""
    manager = DatabaseManager(database_settings)
    await manager.create_schema_async()
    yield manager
    await manager.close_async()


@pytest.fixture
def cache(database_manager, cache_options):
    """Blocking cache over the test database."""
    return DatabaseCache(
        session_factory=database_manager.session_factory,
        options=cache_options,
    )


@pytest.fixture
async def async_cache(async_database_manager, cache_options):
    """Async cache over the test database."""
    return DatabaseCache(
        async_session_factory=async_database_manager.async_session_factory,
        options=cache_options,
    )


@pytest.fixture
def fetch_entry(database_settings):
    """Load a raw row, bypassing expiry filtering."""
    manager = DatabaseManager(database_settings)

    def _fetch(key):
        with manager.session_factory() as session:
            return session.get(CacheEntry, key)

    yield _fetch
    manager.close()


@pytest.fixture
def count_entries(database_settings):
    """Count physical rows in the cache table."""
    manager = DatabaseManager(database_settings)

    def _count():
        with manager.session_factory() as session:
            return session.query(CacheEntry).count()

    yield _count
    manager.close()
