"""
Database Cache Service

Distributed cache backed by a relational table. Every public operation
opens one session (unit of work), performs its primary step in its own
transaction and then runs the lazy expired-entry sweep check.

Blocking and async entry points share one implementation: the operation
bodies are written against a synchronous Session, and the async methods
drive them through AsyncSession.run_sync, which only suspends on driver I/O.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Iterator, Optional, Type, Union

import structlog
from opentelemetry import trace
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import Session, sessionmaker

from ...core.config import DatabaseCacheOptions
from ...core.exceptions import (
    ExpirationSweepError,
    InvalidConfigurationError,
    StoreUnavailableError,
)
from ...domain.cache.domain_services import (
    ExpirationPolicyCalculator,
    ExpirationSweepScheduler,
    compute_sliding_extension,
)
from ...domain.cache.repository_interfaces import CacheEntryRepository
from ...domain.cache.value_objects import CacheEntryOptions, CacheKey
from ...infrastructure.repositories.cache_entry_repository import (
    SqlAlchemyCacheEntryRepository,
)
from ...models import CacheEntry, CacheEntryMixin
from ...monitoring.cache_metrics import cache_metrics

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

BytesLike = Union[bytes, bytearray, memoryview]


class DatabaseCache:
    """
    Key-value cache with absolute and sliding expiration stored in a database.

    Missing and expired keys are indistinguishable to callers: both read as
    None. Removing a missing key is not an error.
    """

    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        async_session_factory: Optional[async_sessionmaker] = None,
        options: Optional[DatabaseCacheOptions] = None,
        entry_model: Type[CacheEntryMixin] = CacheEntry,
    ):
        """
        Initialize the cache.

        Args:
            session_factory: Factory for blocking sessions
            async_session_factory: Factory for async sessions
            options: Sweep interval, default sliding window and clock
            entry_model: Mapped class carrying the cache entry columns

        Raises:
            InvalidConfigurationError: If no session factory is given or
                the options are out of range
        """
        if session_factory is None and async_session_factory is None:
            raise InvalidConfigurationError(
                "DatabaseCache requires a session_factory or an async_session_factory"
            )

        if (
            not isinstance(entry_model, type)
            or not issubclass(entry_model, CacheEntryMixin)
            or not hasattr(entry_model, "__tablename__")
        ):
            raise InvalidConfigurationError(
                "entry_model must be a mapped CacheEntryMixin subclass",
                config_key="entry_model",
                config_value=entry_model,
            )

        self._options = options or DatabaseCacheOptions()
        self._options.validate()

        self._session_factory = session_factory
        self._async_session_factory = async_session_factory
        self._entry_model = entry_model
        self._clock = self._options.clock
        self._calculator = ExpirationPolicyCalculator(
            self._options.default_sliding_expiration
        )
        self._sweep_scheduler = ExpirationSweepScheduler(self._options.sweep_interval)

        logger.info(
            "Database cache initialized",
            table=entry_model.__tablename__,
            sweep_interval_seconds=self._options.sweep_interval.total_seconds(),
            default_sliding_expiration_seconds=(
                self._options.default_sliding_expiration.total_seconds()
            ),
            blocking=session_factory is not None,
            asynchronous=async_session_factory is not None,
        )

    @property
    def options(self) -> DatabaseCacheOptions:
        """Options the cache was built with."""
        return self._options

    @property
    def last_sweep_at(self) -> Optional[datetime]:
        """Instant of the most recent sweep claim, None before the first one."""
        return self._sweep_scheduler.last_sweep_at

    # Blocking API

    def get(self, key: str) -> Optional[bytes]:
        """Return the value for key, extending its sliding window, or None."""
        return self._run_blocking("get", key, self._get_core, key)

    def refresh(self, key: str) -> None:
        """Extend the sliding window of key without returning its value."""
        self._run_blocking("refresh", key, self._get_core, key)

    def set(
        self,
        key: str,
        value: BytesLike,
        options: Optional[CacheEntryOptions] = None,
    ) -> None:
        """Insert or overwrite key with value and the given expiration."""
        payload = self._coerce_value(value)
        entry_options = self._coerce_options(options)
        self._run_blocking("set", key, self._set_core, key, payload, entry_options)

    def remove(self, key: str) -> None:
        """Delete key. Missing keys are ignored."""
        self._run_blocking("remove", key, self._remove_core, key)

    # Async API

    async def get_async(self, key: str) -> Optional[bytes]:
        """Async variant of get."""
        return await self._run_async("get", key, self._get_core, key)

    async def refresh_async(self, key: str) -> None:
        """Async variant of refresh."""
        await self._run_async("refresh", key, self._get_core, key)

    async def set_async(
        self,
        key: str,
        value: BytesLike,
        options: Optional[CacheEntryOptions] = None,
    ) -> None:
        """Async variant of set."""
        payload = self._coerce_value(value)
        entry_options = self._coerce_options(options)
        await self._run_async("set", key, self._set_core, key, payload, entry_options)

    async def remove_async(self, key: str) -> None:
        """Async variant of remove."""
        await self._run_async("remove", key, self._remove_core, key)

    # Execution strategies

    def _run_blocking(
        self, operation: str, key: str, core: Callable[..., Any], *args: Any
    ) -> Any:
        CacheKey(key)
        if self._session_factory is None:
            raise InvalidConfigurationError(
                f"Blocking {operation} requires a session_factory",
                config_key="session_factory",
            )

        with tracer.start_as_current_span(f"dbcache.{operation}") as span:
            span.set_attribute("cache.key", key)
            try:
                with cache_metrics.time_operation(operation):
                    with self._session_factory() as session:
                        result = core(session, *args)
            except Exception as e:
                cache_metrics.record_operation(operation, "error")
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                raise

            self._record_outcome(operation, result, span)
            return result

    async def _run_async(
        self, operation: str, key: str, core: Callable[..., Any], *args: Any
    ) -> Any:
        CacheKey(key)
        if self._async_session_factory is None:
            raise InvalidConfigurationError(
                f"Async {operation} requires an async_session_factory",
                config_key="async_session_factory",
            )

        with tracer.start_as_current_span(f"dbcache.{operation}") as span:
            span.set_attribute("cache.key", key)
            try:
                with cache_metrics.time_operation(operation):
                    async with self._async_session_factory() as session:
                        result = await session.run_sync(core, *args)
            except Exception as e:
                cache_metrics.record_operation(operation, "error")
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                raise

            self._record_outcome(operation, result, span)
            return result

    def _record_outcome(self, operation: str, result: Any, span) -> None:
        if operation in ("get", "refresh"):
            outcome = "hit" if result is not None else "miss"
            span.set_attribute("cache.hit", result is not None)
        else:
            outcome = "ok"
        cache_metrics.record_operation(operation, outcome)

    @contextmanager
    def _unit_of_work(
        self, session: Session, operation: str, key: Optional[str] = None
    ) -> Iterator[CacheEntryRepository]:
        """Run one transaction, translating store failures."""
        try:
            with session.begin():
                yield SqlAlchemyCacheEntryRepository(session, self._entry_model)
        except SQLAlchemyError as e:
            logger.error(
                "Cache store operation failed",
                operation=operation,
                key=key,
                error=str(e),
                exc_info=True,
            )
            raise StoreUnavailableError(
                f"Cache {operation} failed: {e}",
                operation=operation,
                key=key,
                original_error=e,
            ) from e

    # Operation bodies, shared by both execution strategies

    def _get_core(self, session: Session, key: str) -> Optional[bytes]:
        now = self._clock.now()
        value = None
        extended = False

        with self._unit_of_work(session, "get", key) as repository:
            entry = repository.find_live(key, now)
            if entry is not None:
                value = entry.value
                expires_at = compute_sliding_extension(entry, now)
                if expires_at is not None:
                    # A concurrent Set wins; the value read here is still returned
                    extended = repository.update_expiration(entry, expires_at)

        if extended:
            cache_metrics.record_sliding_refresh()

        self._scan_expired_items(session)
        return value

    def _set_core(
        self,
        session: Session,
        key: str,
        value: bytes,
        options: CacheEntryOptions,
    ) -> None:
        now = self._clock.now()
        # Raises before any write when the expiration is not in the future
        policy = self._calculator.calculate(now, options)

        with self._unit_of_work(session, "set", key) as repository:
            repository.upsert(key, value, policy)

        self._scan_expired_items(session)

    def _remove_core(self, session: Session, key: str) -> None:
        with self._unit_of_work(session, "remove", key) as repository:
            repository.delete(key)

        self._scan_expired_items(session)

    def _scan_expired_items(self, session: Session) -> None:
        now = self._clock.now()
        if not self._sweep_scheduler.try_begin(now):
            return

        try:
            with self._unit_of_work(session, "sweep") as repository:
                deleted = repository.delete_expired(now)
        except StoreUnavailableError as e:
            cache_metrics.record_sweep_failure()
            logger.error(
                "Expired cache entry sweep failed after primary operation committed",
                error=str(e),
                swept_at=now.isoformat(),
            )
            if self._options.raise_sweep_errors:
                raise ExpirationSweepError(original_error=e.__cause__ or e) from e
            return

        cache_metrics.record_sweep(deleted)
        logger.info(
            "Expired cache entries swept",
            deleted=deleted,
            swept_at=now.isoformat(),
        )

    # Input validation

    @staticmethod
    def _coerce_value(value: BytesLike) -> bytes:
        if isinstance(value, bytes):
            return value
        if isinstance(value, (bytearray, memoryview)):
            return bytes(value)
        raise TypeError(f"Cache value must be bytes-like, got {type(value).__name__}")

    @staticmethod
    def _coerce_options(options: Optional[CacheEntryOptions]) -> CacheEntryOptions:
        if options is None:
            return CacheEntryOptions()
        if not isinstance(options, CacheEntryOptions):
            raise TypeError(
                f"options must be CacheEntryOptions, got {type(options).__name__}"
            )
        return options

    def __repr__(self) -> str:
        return (
            f"<DatabaseCache(table={self._entry_model.__tablename__}, "
            f"sweep_interval={self._options.sweep_interval})>"
        )
