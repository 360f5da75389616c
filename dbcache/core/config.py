"""
dbcache Configuration

Environment-backed settings for the database connection and cache
behavior, plus the per-instance options consumed by DatabaseCache.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..constants import (
    DEFAULT_SLIDING_EXPIRATION,
    DEFAULT_SWEEP_INTERVAL,
    MINIMUM_SWEEP_INTERVAL,
)
from .clock import Clock, SystemClock
from .exceptions import InvalidConfigurationError

# Load environment variables from .env file
load_dotenv()

SUPPORTED_URL_PREFIXES = (
    "postgresql://",
    "postgresql+asyncpg://",
    "postgresql+psycopg2://",
    "sqlite://",
    "sqlite+aiosqlite://",
)


class Settings(BaseSettings):
    """Cache settings with validation and secure defaults."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )

    # Database configuration
    DATABASE_URL: str = Field(
        ...,
        description="Database connection URL (async driver, e.g. postgresql+asyncpg://)",
    )
    SYNC_DATABASE_URL: Optional[str] = Field(
        default=None,
        description="Blocking driver URL; derived from DATABASE_URL when unset",
    )
    DATABASE_POOL_SIZE: int = Field(
        default=20, ge=1, le=100, description="Database connection pool size"
    )
    DATABASE_MAX_OVERFLOW: int = Field(
        default=30, ge=0, le=100, description="Maximum overflow connections"
    )
    DATABASE_POOL_TIMEOUT: int = Field(
        default=30, ge=1, le=300, description="Connection pool timeout in seconds"
    )
    DATABASE_POOL_RECYCLE: int = Field(
        default=3600, ge=300, le=86400, description="Connection recycle time in seconds"
    )
    DATABASE_ECHO: bool = Field(default=False, description="Echo emitted SQL")

    # Cache behavior
    CACHE_SWEEP_INTERVAL: timedelta = Field(
        default=DEFAULT_SWEEP_INTERVAL,
        description="Minimum time between expired-entry sweeps",
    )
    CACHE_DEFAULT_SLIDING_EXPIRATION: timedelta = Field(
        default=DEFAULT_SLIDING_EXPIRATION,
        description="Sliding window applied when a write sets no expiration",
    )
    CACHE_RAISE_SWEEP_ERRORS: bool = Field(
        default=False,
        description="Raise sweep failures to the caller instead of only logging them",
    )

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_JSON: bool = Field(default=True, description="Render logs as JSON lines")

    @field_validator("DATABASE_URL", "SYNC_DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v):
        """Validate database URL format."""
        if v is None:
            return v
        if not v.startswith(SUPPORTED_URL_PREFIXES):
            raise ValueError("Database URL must be a PostgreSQL or SQLite connection URL")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of: {allowed}")
        return v.upper()

    @property
    def is_sqlite(self) -> bool:
        """Check if the configured database is SQLite."""
        return self.DATABASE_URL.startswith("sqlite")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


@dataclass
class DatabaseCacheOptions:
    """
    Per-instance cache options.

    sweep_interval bounds how often expired rows are bulk-deleted;
    default_sliding_expiration applies to writes that set no expiration.
    """

    sweep_interval: timedelta = DEFAULT_SWEEP_INTERVAL
    default_sliding_expiration: timedelta = DEFAULT_SLIDING_EXPIRATION
    clock: Clock = field(default_factory=SystemClock)
    raise_sweep_errors: bool = False

    @classmethod
    def from_settings(
        cls, settings: Settings, clock: Optional[Clock] = None
    ) -> "DatabaseCacheOptions":
        """Build options from environment settings."""
        return cls(
            sweep_interval=settings.CACHE_SWEEP_INTERVAL,
            default_sliding_expiration=settings.CACHE_DEFAULT_SLIDING_EXPIRATION,
            clock=clock or SystemClock(),
            raise_sweep_errors=settings.CACHE_RAISE_SWEEP_ERRORS,
        )

    def validate(self) -> None:
        """
        Validate option values.

        Raises:
            InvalidConfigurationError: If the sweep interval is below the
                five minute floor or the default sliding expiration is not positive
        """
        if not isinstance(self.sweep_interval, timedelta):
            raise InvalidConfigurationError(
                "sweep_interval must be a timedelta",
                config_key="sweep_interval",
                config_value=self.sweep_interval,
            )
        if self.sweep_interval < MINIMUM_SWEEP_INTERVAL:
            raise InvalidConfigurationError(
                f"sweep_interval must be at least {MINIMUM_SWEEP_INTERVAL}",
                config_key="sweep_interval",
                config_value=self.sweep_interval,
            )
        if not isinstance(self.default_sliding_expiration, timedelta):
            raise InvalidConfigurationError(
                "default_sliding_expiration must be a timedelta",
                config_key="default_sliding_expiration",
                config_value=self.default_sliding_expiration,
            )
        if self.default_sliding_expiration <= timedelta(0):
            raise InvalidConfigurationError(
                "default_sliding_expiration must be positive",
                config_key="default_sliding_expiration",
                config_value=self.default_sliding_expiration,
            )
        if not isinstance(self.clock, Clock):
            raise InvalidConfigurationError(
                "clock must be a Clock instance",
                config_key="clock",
                config_value=type(self.clock).__name__,
            )
