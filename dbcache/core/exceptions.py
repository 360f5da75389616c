"""
Cache Exceptions

Domain-specific exceptions for cache configuration, expiration and
store operations. Store failures are never swallowed - the original
error is always preserved as the exception cause.
"""

from datetime import datetime, timedelta
from typing import Optional, Any, Dict


class CacheException(Exception):
    """Base exception for cache-related errors.

    All cache operations should raise this or its subclasses.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class InvalidConfigurationError(CacheException):
    """Raised when the cache is constructed with invalid settings."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
    ):
        details = {}
        if config_key:
            details["config_key"] = config_key
        if config_value is not None:
            details["config_value"] = str(config_value)

        super().__init__(
            message=message, error_code="CACHE_CONFIGURATION_ERROR", details=details
        )


class InvalidExpirationError(CacheException):
    """Raised when caller-supplied expiration options cannot be honored."""

    def __init__(
        self,
        message: str,
        expiration: Optional[datetime] = None,
        now: Optional[datetime] = None,
        duration: Optional[timedelta] = None,
    ):
        details = {}
        if expiration is not None:
            details["expiration"] = expiration.isoformat()
        if now is not None:
            details["now"] = now.isoformat()
        if duration is not None:
            details["duration_seconds"] = duration.total_seconds()

        super().__init__(
            message=message, error_code="CACHE_INVALID_EXPIRATION", details=details
        )


class InvalidCacheKeyError(CacheException):
    """Raised when a cache key is empty, not a string or too long."""

    def __init__(self, message: str, key: Optional[Any] = None):
        details = {}
        if key is not None:
            details["key"] = str(key)[:64]

        super().__init__(message=message, error_code="CACHE_INVALID_KEY", details=details)


class StoreUnavailableError(CacheException):
    """Raised when the backing database fails during a cache operation.

    Covers connectivity loss, transaction conflicts and driver timeouts.
    No retry is attempted by the cache.
    """

    def __init__(
        self,
        message: str = "Cache store unavailable",
        operation: Optional[str] = None,
        key: Optional[str] = None,
        original_error: Optional[Exception] = None,
        error_code: str = "CACHE_STORE_UNAVAILABLE",
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if key is not None:
            details["key"] = key
        if original_error:
            details["original_error"] = str(original_error)
            details["original_error_type"] = type(original_error).__name__

        super().__init__(message=message, error_code=error_code, details=details)
        if original_error:
            self.__cause__ = original_error


class ExpirationSweepError(StoreUnavailableError):
    """Raised when the expired-entry sweep fails after the primary operation committed."""

    def __init__(
        self,
        message: str = "Expired cache entry sweep failed",
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message=message,
            operation="sweep",
            original_error=original_error,
            error_code="CACHE_SWEEP_FAILED",
        )
