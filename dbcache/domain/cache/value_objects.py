"""
Cache Value Objects

Immutable value objects for the cache domain: keys, caller-supplied
expiration options and the resolved expiration policy of an entry.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from ...constants import MAX_KEY_LENGTH
from ...core.clock import ensure_utc
from ...core.exceptions import InvalidCacheKeyError, InvalidExpirationError


@dataclass(frozen=True)
class CacheKey:
    """
    Immutable cache key value object.

    Keys are opaque strings; only emptiness and length are enforced.
    """

    value: str

    def __post_init__(self) -> None:
        """Validate cache key format."""
        if not isinstance(self.value, str):
            raise InvalidCacheKeyError(
                f"Cache key must be a string, got {type(self.value).__name__}",
                key=self.value,
            )

        if not self.value:
            raise InvalidCacheKeyError("Cache key cannot be empty")

        if len(self.value) > MAX_KEY_LENGTH:
            raise InvalidCacheKeyError(
                f"Cache key too long (max {MAX_KEY_LENGTH} characters)",
                key=self.value,
            )

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class CacheEntryOptions:
    """
    Expiration options supplied with a write.

    At most one of absolute_expiration and absolute_expiration_relative_to_now
    is expected; when both are given the relative duration wins.
    Naive absolute instants are interpreted as UTC.
    """

    absolute_expiration: Optional[datetime] = None
    absolute_expiration_relative_to_now: Optional[timedelta] = None
    sliding_expiration: Optional[timedelta] = None

    def __post_init__(self) -> None:
        """Validate option types and the sliding window."""
        if self.absolute_expiration is not None:
            if not isinstance(self.absolute_expiration, datetime):
                raise InvalidExpirationError("absolute_expiration must be a datetime")
            object.__setattr__(
                self, "absolute_expiration", ensure_utc(self.absolute_expiration)
            )

        if self.absolute_expiration_relative_to_now is not None and not isinstance(
            self.absolute_expiration_relative_to_now, timedelta
        ):
            raise InvalidExpirationError(
                "absolute_expiration_relative_to_now must be a timedelta"
            )

        if self.sliding_expiration is not None:
            if not isinstance(self.sliding_expiration, timedelta):
                raise InvalidExpirationError("sliding_expiration must be a timedelta")
            if self.sliding_expiration <= timedelta(0):
                raise InvalidExpirationError(
                    "The sliding expiration value must be positive",
                    duration=self.sliding_expiration,
                )

    @classmethod
    def absolute(cls, at: datetime) -> "CacheEntryOptions":
        """Expire at a fixed instant."""
        return cls(absolute_expiration=at)

    @classmethod
    def relative(cls, delta: timedelta) -> "CacheEntryOptions":
        """Expire a fixed duration after the write."""
        return cls(absolute_expiration_relative_to_now=delta)

    @classmethod
    def sliding(cls, delta: timedelta) -> "CacheEntryOptions":
        """Expire after delta without a read."""
        return cls(sliding_expiration=delta)


@dataclass(frozen=True)
class ExpirationPolicy:
    """
    Resolved expiration of an entry at write time.

    expires_at never exceeds absolute_expiration when the latter is set.
    """

    expires_at: datetime
    absolute_expiration: Optional[datetime] = None
    sliding_expiration: Optional[timedelta] = None

    def __post_init__(self) -> None:
        if (
            self.absolute_expiration is not None
            and self.expires_at > self.absolute_expiration
        ):
            raise InvalidExpirationError(
                "expires_at cannot exceed the absolute expiration",
                expiration=self.absolute_expiration,
            )
