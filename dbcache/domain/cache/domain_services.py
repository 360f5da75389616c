"""
Cache Domain Services

Expiration rules for cache entries: resolving caller options into a
policy, extending sliding windows on read, and deciding when the
expired-entry sweep is due.
"""

from datetime import datetime, timedelta
from typing import Optional

import structlog

from ...core.exceptions import InvalidConfigurationError, InvalidExpirationError
from .value_objects import CacheEntryOptions, ExpirationPolicy

logger = structlog.get_logger(__name__)


class ExpirationPolicyCalculator:
    """
    Converts write options into a concrete expiration policy.

    Writes without any expiration fall back to the default sliding window.
    """

    def __init__(self, default_sliding_expiration: timedelta):
        if default_sliding_expiration <= timedelta(0):
            raise InvalidConfigurationError(
                "default_sliding_expiration must be positive",
                config_key="default_sliding_expiration",
                config_value=default_sliding_expiration,
            )
        self.default_sliding_expiration = default_sliding_expiration

    def resolve_absolute_expiration(
        self, now: datetime, options: CacheEntryOptions
    ) -> Optional[datetime]:
        """
        Resolve the absolute ceiling of an entry.

        Args:
            now: Current instant
            options: Caller-supplied options

        Returns:
            Absolute expiration instant, or None when the caller set none

        Raises:
            InvalidExpirationError: If the resolved instant is not in the future
        """
        if options.absolute_expiration_relative_to_now is not None:
            absolute_expiration = now + options.absolute_expiration_relative_to_now
        elif options.absolute_expiration is not None:
            absolute_expiration = options.absolute_expiration
        else:
            return None

        if absolute_expiration <= now:
            raise InvalidExpirationError(
                "The absolute expiration value must be in the future.",
                expiration=absolute_expiration,
                now=now,
            )

        return absolute_expiration

    def calculate(self, now: datetime, options: CacheEntryOptions) -> ExpirationPolicy:
        """Resolve options into the policy stored with the entry."""
        absolute_expiration = self.resolve_absolute_expiration(now, options)
        sliding_expiration = options.sliding_expiration

        if absolute_expiration is None and sliding_expiration is None:
            sliding_expiration = self.default_sliding_expiration

        if sliding_expiration is None:
            expires_at = absolute_expiration
        elif absolute_expiration is None:
            expires_at = now + sliding_expiration
        else:
            expires_at = min(absolute_expiration, now + sliding_expiration)

        return ExpirationPolicy(
            expires_at=expires_at,
            absolute_expiration=absolute_expiration,
            sliding_expiration=sliding_expiration,
        )


def compute_sliding_extension(entry, now: datetime) -> Optional[datetime]:
    """
    Compute the new deadline of a live entry after a read.

    Args:
        entry: Cache entry row (expires_at, absolute_expiration, sliding_expiration)
        now: Instant of the read

    Returns:
        New expires_at, or None when the entry has no sliding window or is
        already pinned at its absolute ceiling
    """
    sliding_expiration = entry.sliding_expiration
    if sliding_expiration is None:
        return None

    absolute_expiration = entry.absolute_expiration
    if absolute_expiration is not None and entry.expires_at == absolute_expiration:
        return None

    if absolute_expiration is not None and absolute_expiration - now <= sliding_expiration:
        return absolute_expiration

    return now + sliding_expiration


class ExpirationSweepScheduler:
    """
    Decides when expired rows should be bulk-deleted.

    The sweep piggybacks on regular cache traffic. last_sweep_at is
    recorded before the delete runs; racing callers may both sweep,
    which is harmless because the delete is idempotent.
    """

    def __init__(self, sweep_interval: timedelta):
        self.sweep_interval = sweep_interval
        self.last_sweep_at: Optional[datetime] = None

    def is_due(self, now: datetime) -> bool:
        """Check whether more than sweep_interval has passed since the last sweep."""
        if self.last_sweep_at is None:
            return True
        return now - self.last_sweep_at > self.sweep_interval

    def try_begin(self, now: datetime) -> bool:
        """Claim the sweep for this caller if one is due."""
        if not self.is_due(now):
            return False

        previous = self.last_sweep_at
        self.last_sweep_at = now
        logger.debug(
            "Expired entry sweep due",
            previous_sweep_at=previous.isoformat() if previous else None,
            now=now.isoformat(),
        )
        return True
