"""
Cache Service Module

Distributed cache over a relational store.

This module provides:
- DatabaseCache: blocking and async get/set/remove/refresh
- create_database_cache: construction from environment settings
"""

from .database_cache import DatabaseCache
from .factory import create_database_cache

__all__ = ["DatabaseCache", "create_database_cache"]
