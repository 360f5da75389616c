"""
Clock Abstraction

Supplies the current instant to the cache. Production code uses the
system clock; tests inject a ManualClock to move time deterministically.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

from ..constants import get_current_timestamp


def ensure_utc(value: datetime) -> datetime:
    """Return value as an aware UTC datetime, treating naive input as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Clock(ABC):
    """Source of the current instant."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current timezone-aware UTC instant."""
        pass


class SystemClock(Clock):
    """Wall clock backed by the host's UTC time."""

    def now(self) -> datetime:
        return get_current_timestamp()

    def __repr__(self) -> str:
        return "SystemClock()"


class ManualClock(Clock):
    """
    Clock that only moves when told to.

    Used to drive expiration and sweep behavior in tests without sleeping.
    """

    def __init__(self, start: datetime):
        self._now = ensure_utc(start)

    def now(self) -> datetime:
        return self._now

    def advance(self, delta: timedelta) -> datetime:
        """Move the clock forward by delta and return the new instant."""
        if delta < timedelta(0):
            raise ValueError("ManualClock cannot move backwards")
        self._now = self._now + delta
        return self._now

    def set(self, instant: datetime) -> None:
        """Jump the clock to an explicit instant."""
        self._now = ensure_utc(instant)

    def __repr__(self) -> str:
        return f"ManualClock(now={self._now.isoformat()})"
