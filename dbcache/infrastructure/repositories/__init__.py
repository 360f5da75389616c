"""
Repository Module

SQLAlchemy implementations of the cache repository interfaces.
"""

from .cache_entry_repository import SqlAlchemyCacheEntryRepository

__all__ = ["SqlAlchemyCacheEntryRepository"]
