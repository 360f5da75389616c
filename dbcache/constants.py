"""
dbcache Global Constants

Centralized location for the defaults and limits shared across the cache.
"""

from datetime import datetime, timedelta, timezone

# Sweep scheduling
DEFAULT_SWEEP_INTERVAL = timedelta(minutes=30)
MINIMUM_SWEEP_INTERVAL = timedelta(minutes=5)

# Expiration
DEFAULT_SLIDING_EXPIRATION = timedelta(minutes=20)

# Schema
DEFAULT_TABLE_NAME = "cache_entries"
MAX_KEY_LENGTH = 449


def get_current_timestamp() -> datetime:
    """Get current timestamp with UTC timezone.

    Returns:
        datetime: Current UTC timestamp
    """
    return datetime.now(timezone.utc)


# Package Constants
APP_VERSION = "0.1.0"
