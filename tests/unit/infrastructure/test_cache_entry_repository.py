"""
Unit tests for SqlAlchemyCacheEntryRepository.
"""

import pytest
from datetime import timedelta
from unittest.mock import MagicMock, patch

from dbcache.domain.cache.value_objects import ExpirationPolicy
from dbcache.infrastructure.repositories.cache_entry_repository import (
    SqlAlchemyCacheEntryRepository,
)
from dbcache.models import CacheEntry


class TestSqlAlchemyCacheEntryRepository:
    """Test the SQLAlchemy cache entry repository."""

    @pytest.fixture
    def session(self, database_manager):
        with database_manager.session_factory() as session:
            yield session

    @pytest.fixture
    def repository(self, session):
        return SqlAlchemyCacheEntryRepository(session)

    @pytest.fixture
    def policy(self, clock):
        now = clock.now()
        return ExpirationPolicy(
            expires_at=now + timedelta(minutes=10),
            absolute_expiration=now + timedelta(hours=1),
            sliding_expiration=timedelta(minutes=10),
        )

    def test_rejects_non_session(self):
        """Test the repository requires a real Session."""
        with pytest.raises(TypeError, match="Session instance"):
            SqlAlchemyCacheEntryRepository(MagicMock())

    def test_rejects_unmapped_model(self, session):
        """Test the model must be a mapped cache entry class."""
        with pytest.raises(TypeError, match="CacheEntryMixin"):
            SqlAlchemyCacheEntryRepository(session, model=object)

    def test_upsert_inserts(self, repository, session, policy):
        """Test upsert creates a row with every policy field."""
        with session.begin():
            repository.upsert("a", b"v", policy)

        entry = session.get(CacheEntry, "a")
        assert entry.value == b"v"
        assert entry.expires_at == policy.expires_at
        assert entry.absolute_expiration == policy.absolute_expiration
        assert entry.sliding_expiration == policy.sliding_expiration

    def test_upsert_overwrites_in_place(self, repository, session, policy, clock):
        """Test a second upsert replaces the row instead of adding one."""
        replacement = ExpirationPolicy(expires_at=clock.now() + timedelta(minutes=3))

        with session.begin():
            repository.upsert("a", b"first", policy)
        with session.begin():
            repository.upsert("a", b"second", replacement)

        session.expire_all()
        assert session.query(CacheEntry).count() == 1
        entry = session.get(CacheEntry, "a")
        assert entry.value == b"second"
        assert entry.absolute_expiration is None
        assert entry.sliding_expiration is None

    def test_find_live_filters_expired(self, repository, session, policy, clock):
        """Test find_live hides expired rows that find still returns."""
        with session.begin():
            repository.upsert("a", b"v", policy)

        with session.begin():
            assert repository.find_live("a", clock.now()) is not None
            assert repository.find_live("a", policy.expires_at) is not None
            later = policy.expires_at + timedelta(seconds=1)
            assert repository.find_live("a", later) is None
            assert repository.find("a") is not None

    def test_update_expiration(self, repository, session, policy):
        """Test the new deadline is persisted."""
        new_deadline = policy.expires_at + timedelta(minutes=5)

        with session.begin():
            repository.upsert("a", b"v", policy)
        with session.begin():
            entry = repository.find("a")
            assert repository.update_expiration(entry, new_deadline) is True
            assert entry.expires_at == new_deadline

        session.expire_all()
        assert session.get(CacheEntry, "a").expires_at == new_deadline

    def test_update_expiration_skips_replaced_entry(
        self, repository, session, policy, clock, database_manager
    ):
        """Test the extension is dropped when another writer replaced the row."""
        replacement = ExpirationPolicy(
            expires_at=clock.now() + timedelta(minutes=1),
            absolute_expiration=clock.now() + timedelta(minutes=1),
        )

        with session.begin():
            repository.upsert("a", b"v", policy)
        with session.begin():
            entry = repository.find("a")
            with database_manager.session_factory() as other, other.begin():
                SqlAlchemyCacheEntryRepository(other).upsert("a", b"new", replacement)

            assert repository.update_expiration(entry, policy.expires_at + timedelta(minutes=5)) is False

        session.expire_all()
        stored = session.get(CacheEntry, "a")
        assert stored.value == b"new"
        assert stored.expires_at == replacement.expires_at
        assert stored.absolute_expiration == replacement.absolute_expiration

    def test_upsert_without_native_upsert(self, repository, session, policy, clock):
        """Test the read-then-write path used for dialects without ON CONFLICT."""
        replacement = ExpirationPolicy(expires_at=clock.now() + timedelta(minutes=3))

        with patch.object(repository, "_upsert_statement", return_value=None):
            with session.begin():
                repository.upsert("a", b"first", policy)
            with session.begin():
                repository.upsert("a", b"second", replacement)

        session.expire_all()
        assert session.query(CacheEntry).count() == 1
        entry = session.get(CacheEntry, "a")
        assert entry.value == b"second"
        assert entry.expires_at == replacement.expires_at
        assert entry.sliding_expiration is None

    def test_delete(self, repository, session, policy):
        """Test delete reports whether a row was removed."""
        with session.begin():
            repository.upsert("a", b"v", policy)

        with session.begin():
            assert repository.delete("a") is True
        with session.begin():
            assert repository.delete("a") is False

        assert session.get(CacheEntry, "a") is None

    def test_delete_expired(self, repository, session, clock):
        """Test the predicate delete only removes rows past their deadline."""
        now = clock.now()
        with session.begin():
            repository.upsert("old", b"1", ExpirationPolicy(expires_at=now - timedelta(minutes=1)))
            repository.upsert("edge", b"2", ExpirationPolicy(expires_at=now))
            repository.upsert("new", b"3", ExpirationPolicy(expires_at=now + timedelta(minutes=1)))

        with session.begin():
            deleted = repository.delete_expired(now)

        session.expire_all()
        assert deleted == 1
        remaining = {entry.id for entry in session.query(CacheEntry).all()}
        assert remaining == {"edge", "new"}
