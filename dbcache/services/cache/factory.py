"""
Cache Factory

Builds a DatabaseCache wired to both engines of a DatabaseManager.
"""

from typing import Optional

import structlog

from ...core.clock import Clock
from ...core.config import DatabaseCacheOptions, Settings, get_settings
from ...core.database import DatabaseManager
from ...core.logging import configure_logging
from .database_cache import DatabaseCache

logger = structlog.get_logger(__name__)


def create_database_cache(
    settings: Optional[Settings] = None,
    clock: Optional[Clock] = None,
    database_manager: Optional[DatabaseManager] = None,
    setup_logging: bool = False,
) -> DatabaseCache:
    """
    Create a cache from settings.

    Args:
        settings: Settings to use, loaded from the environment when omitted
        clock: Clock override, the system clock when omitted
        database_manager: Existing manager to reuse instead of building one
        setup_logging: Configure structlog from LOG_LEVEL and LOG_JSON first

    Returns:
        DatabaseCache supporting both blocking and async calls

    Raises:
        InvalidConfigurationError: If the cache options are out of range
    """
    settings = settings or get_settings()
    if setup_logging:
        configure_logging(settings.LOG_LEVEL, json=settings.LOG_JSON)

    options = DatabaseCacheOptions.from_settings(settings, clock=clock)
    # Fail before any engine is created
    options.validate()

    manager = database_manager or DatabaseManager(settings)
    cache = DatabaseCache(
        session_factory=manager.session_factory,
        async_session_factory=manager.async_session_factory,
        options=options,
    )

    logger.info("Database cache created", dialect=manager.engine.dialect.name)
    return cache
