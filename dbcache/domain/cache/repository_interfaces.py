"""
Cache Repository Interfaces

Abstract repository for cache entry persistence. Implementations run
inside a unit of work owned by the caller; they never commit.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from ...models import CacheEntryMixin
from .value_objects import ExpirationPolicy


class CacheEntryRepository(ABC):
    """
    Abstract repository for cache entries.

    Point lookups are by primary key; the only range operation is the
    predicate delete used by the sweep.
    """

    @abstractmethod
    def find_live(self, key: str, now: datetime) -> Optional[CacheEntryMixin]:
        """Find the entry for key if it has not expired at now."""
        pass

    @abstractmethod
    def find(self, key: str) -> Optional[CacheEntryMixin]:
        """Find the entry for key regardless of expiry."""
        pass

    @abstractmethod
    def upsert(self, key: str, value: bytes, policy: ExpirationPolicy) -> None:
        """Insert the entry or overwrite value and policy in place, atomically."""
        pass

    @abstractmethod
    def update_expiration(
        self, entry: CacheEntryMixin, expires_at: datetime
    ) -> bool:
        """
        Move the deadline of a loaded entry.

        The update only applies while the stored row still carries the
        policy the entry was loaded with. Returns False when a concurrent
        write replaced it first.
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Delete entry by key. Returns True if a row was removed."""
        pass

    @abstractmethod
    def delete_expired(self, now: datetime) -> int:
        """Delete every entry whose expires_at is before now."""
        pass
