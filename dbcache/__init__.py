"""
dbcache

Distributed key-value cache with absolute and sliding expiration,
stored in a relational database through SQLAlchemy.
"""

from .constants import APP_VERSION
from .core.clock import Clock, ManualClock, SystemClock
from .core.config import DatabaseCacheOptions, Settings, get_settings
from .core.database import DatabaseManager
from .core.exceptions import (
    CacheException,
    ExpirationSweepError,
    InvalidCacheKeyError,
    InvalidConfigurationError,
    InvalidExpirationError,
    StoreUnavailableError,
)
from .domain.cache.value_objects import CacheEntryOptions, ExpirationPolicy
from .models import Base, CacheEntry, CacheEntryMixin
from .services.cache import DatabaseCache, create_database_cache

__version__ = APP_VERSION

__all__ = [
    "Base",
    "CacheEntry",
    "CacheEntryMixin",
    "CacheEntryOptions",
    "CacheException",
    "Clock",
    "DatabaseCache",
    "DatabaseCacheOptions",
    "DatabaseManager",
    "ExpirationPolicy",
    "ExpirationSweepError",
    "InvalidCacheKeyError",
    "InvalidConfigurationError",
    "InvalidExpirationError",
    "ManualClock",
    "Settings",
    "StoreUnavailableError",
    "SystemClock",
    "create_database_cache",
    "get_settings",
]
