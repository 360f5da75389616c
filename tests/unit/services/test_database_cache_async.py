"""
Unit tests for the Database Cache Service (async API).

The async methods share their operation bodies with the blocking API;
these tests check the same behavior through AsyncSession, plus
cancellation of an in-flight unit of work.
"""

import asyncio
import pytest
from datetime import timedelta
from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from dbcache.core.exceptions import (
    InvalidConfigurationError,
    InvalidExpirationError,
    StoreUnavailableError,
)
from dbcache.domain.cache.value_objects import CacheEntryOptions
from dbcache.infrastructure.repositories.cache_entry_repository import (
    SqlAlchemyCacheEntryRepository,
)
from dbcache.services.cache.database_cache import DatabaseCache


class TestDatabaseCacheAsync:
    """Test the async calling convention."""

    @pytest.mark.asyncio
    async def test_get_missing_key(self, async_cache):
        """Test a key that was never written reads as absent."""
        assert await async_cache.get_async("never-written") is None

    @pytest.mark.asyncio
    async def test_set_then_get(self, async_cache):
        """Test a value is readable immediately after it is written."""
        await async_cache.set_async("a", b"\x01\x02\x03")

        assert await async_cache.get_async("a") == b"\x01\x02\x03"

    @pytest.mark.asyncio
    async def test_default_sliding_scenario(self, async_cache, clock, fetch_entry):
        """Test set, extend on read, then expire after the extended window."""
        t0 = clock.now()
        await async_cache.set_async("a", bytes([1, 2, 3]))
        assert fetch_entry("a").expires_at == t0 + timedelta(minutes=20)

        clock.advance(timedelta(minutes=10))
        assert await async_cache.get_async("a") == bytes([1, 2, 3])
        assert fetch_entry("a").expires_at == t0 + timedelta(minutes=30)

        clock.advance(timedelta(minutes=21))
        assert await async_cache.get_async("a") is None

    @pytest.mark.asyncio
    async def test_refresh(self, async_cache, clock, fetch_entry):
        """Test refresh extends the sliding deadline."""
        await async_cache.set_async("a", b"v", CacheEntryOptions.sliding(timedelta(minutes=10)))
        now = clock.advance(timedelta(minutes=4))

        assert await async_cache.refresh_async("a") is None
        assert fetch_entry("a").expires_at == now + timedelta(minutes=10)

    @pytest.mark.asyncio
    async def test_remove(self, async_cache, count_entries):
        """Test remove deletes the row and tolerates missing keys."""
        await async_cache.set_async("a", b"v")
        await async_cache.remove_async("a")
        await async_cache.remove_async("a")

        assert await async_cache.get_async("a") is None
        assert count_entries() == 0

    @pytest.mark.asyncio
    async def test_sliding_never_exceeds_absolute(self, async_cache, clock, fetch_entry):
        """Test reads stop extending at the absolute ceiling."""
        absolute = clock.now() + timedelta(minutes=12)
        await async_cache.set_async(
            "a",
            b"v",
            CacheEntryOptions(absolute_expiration=absolute, sliding_expiration=timedelta(minutes=10)),
        )

        clock.advance(timedelta(minutes=5))
        assert await async_cache.get_async("a") == b"v"
        assert fetch_entry("a").expires_at == absolute

        clock.advance(timedelta(minutes=7, seconds=1))
        assert await async_cache.get_async("a") is None

    @pytest.mark.asyncio
    async def test_invalid_expiration_keeps_prior_value(self, async_cache, fetch_entry):
        """Test a rejected write leaves the existing entry untouched."""
        await async_cache.set_async("a", b"original")

        with pytest.raises(InvalidExpirationError):
            await async_cache.set_async(
                "a", b"replacement", CacheEntryOptions.relative(timedelta(0))
            )

        assert fetch_entry("a").value == b"original"

    @pytest.mark.asyncio
    async def test_sweep_deletes_expired_keeps_live(self, async_cache, clock, fetch_entry, count_entries):
        """Test a due sweep physically removes only expired rows."""
        await async_cache.set_async("expired", b"1", CacheEntryOptions.sliding(timedelta(minutes=1)))
        await async_cache.set_async("live", b"2", CacheEntryOptions.sliding(timedelta(minutes=30)))

        clock.advance(timedelta(minutes=6))
        await async_cache.refresh_async("live")

        assert count_entries() == 1
        assert fetch_entry("expired") is None
        assert fetch_entry("live") is not None

    @pytest.mark.asyncio
    async def test_store_failure_wrapped(self, async_cache):
        """Test store errors surface as StoreUnavailableError with the cause."""
        with patch.object(
            SqlAlchemyCacheEntryRepository,
            "find_live",
            side_effect=OperationalError("SELECT", {}, Exception("connection refused")),
        ):
            with pytest.raises(StoreUnavailableError) as exc_info:
                await async_cache.get_async("a")

        assert exc_info.value.details["operation"] == "get"
        assert isinstance(exc_info.value.__cause__, OperationalError)

    @pytest.mark.asyncio
    async def test_async_call_without_async_factory(self, database_manager, cache_options):
        """Test async calls need an async session factory."""
        cache = DatabaseCache(
            session_factory=database_manager.session_factory,
            options=cache_options,
        )

        with pytest.raises(InvalidConfigurationError, match="async_session_factory"):
            await cache.get_async("a")

    @pytest.mark.asyncio
    async def test_blocking_and_async_share_state(
        self, database_manager, async_database_manager, cache_options
    ):
        """Test both conventions on one instance see the same entries."""
        cache = DatabaseCache(
            session_factory=database_manager.session_factory,
            async_session_factory=async_database_manager.async_session_factory,
            options=cache_options,
        )

        cache.set("a", b"from-blocking")
        await cache.set_async("b", b"from-async")

        assert await cache.get_async("a") == b"from-blocking"
        assert cache.get("b") == b"from-async"


class TestDatabaseCacheCancellation:
    """Test cancellation of in-flight operations."""

    @pytest.mark.asyncio
    async def test_cancelled_write_not_committed(self, async_cache, fetch_entry, count_entries):
        """Test a write cancelled after its flush leaves no row behind."""
        original_upsert = SqlAlchemyCacheEntryRepository.upsert

        def cancelled_upsert(self, key, value, policy):
            original_upsert(self, key, value, policy)
            raise asyncio.CancelledError()

        with patch.object(SqlAlchemyCacheEntryRepository, "upsert", cancelled_upsert):
            with pytest.raises(asyncio.CancelledError):
                await async_cache.set_async("a", b"v")

        assert count_entries() == 0
        assert fetch_entry("a") is None

    @pytest.mark.asyncio
    async def test_cancelled_overwrite_keeps_prior_value(self, async_cache, fetch_entry):
        """Test a cancelled overwrite leaves the committed value in place."""
        await async_cache.set_async("a", b"original")
        original_upsert = SqlAlchemyCacheEntryRepository.upsert

        def cancelled_upsert(self, key, value, policy):
            original_upsert(self, key, value, policy)
            raise asyncio.CancelledError()

        with patch.object(SqlAlchemyCacheEntryRepository, "upsert", cancelled_upsert):
            with pytest.raises(asyncio.CancelledError):
                await async_cache.set_async("a", b"replacement")

        assert fetch_entry("a").value == b"original"
        assert await async_cache.get_async("a") == b"original"

    @pytest.mark.asyncio
    async def test_task_cancellation(self, async_cache):
        """Test cancelling the task running an operation propagates CancelledError."""
        task = asyncio.create_task(async_cache.set_async("a", b"v"))
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        # The cache remains usable afterwards
        await async_cache.set_async("b", b"w")
        assert await async_cache.get_async("b") == b"w"
