"""Database engine and session management.

PostgreSQL (psycopg async driver) is the production target; the outbox
relies on ``SELECT ... FOR UPDATE SKIP LOCKED`` there. SQLite (aiosqlite) is
supported for tests and local runs: it has no row locks, so every
transaction is opened with ``BEGIN IMMEDIATE``, which takes the database
write lock up front and serializes concurrent batch transactions instead.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from outbox_service.core.database import Base
from outbox_service.core.settings import get_db_settings
from outbox_service.utils.retry import retry

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def build_engine(url: str, **engine_kwargs: Any) -> AsyncEngine:
    """Create an async engine, wiring SQLite transaction hooks when needed.

    Args:
        url: SQLAlchemy async URL (postgresql+psycopg://... or sqlite+aiosqlite://...).
        **engine_kwargs: Passed through to create_async_engine.

    Returns:
        Configured AsyncEngine.
    """
    engine = create_async_engine(url, **engine_kwargs)
    if engine.dialect.name == "sqlite":
        _install_sqlite_hooks(engine)
    return engine


def _install_sqlite_hooks(engine: AsyncEngine) -> None:
    """Take over SQLite transaction control from the driver.

    With ``isolation_level = None`` the sqlite3 module stops emitting its own
    deferred BEGIN, so the "begin" hook can open every transaction with
    BEGIN IMMEDIATE.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA busy_timeout=30000")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory used everywhere a unit of work needs its own session."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_engine() -> AsyncEngine:
    """Get the process-wide engine, creating it from settings on first use."""
    global _engine
    if _engine is None:
        db_settings = get_db_settings()
        _engine = build_engine(db_settings.url, **db_settings.sqlalchemy_engine_kwargs())
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the process-wide session factory bound to get_engine()."""
    global _session_factory
    if _session_factory is None:
        _session_factory = create_session_factory(get_engine())
    return _session_factory


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """Get async database session.

    Yields:
        Database session that is automatically closed.

    Example:
        async with get_async_session() as session:
            record = await store.get(session, record_id)
    """
    async with get_session_factory()() as session:
        try:
            yield session
        finally:
            await session.close()


async def create_schema(engine: AsyncEngine) -> None:
    """Create missing tables (idempotent, ``checkfirst``)."""
    # Registers every mapped table on Base.metadata
    import outbox_service.infra.events.outbox.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_database() -> None:
    """Check connectivity with retry, then ensure the schema exists.

    Uses retry settings from PostgresSettings:
    - startup_retry_attempts: Maximum number of connection attempts
    - startup_retry_delay: Initial delay between retries

    Raises:
        RetryError: If unable to connect after all retry attempts.
    """
    db_settings = get_db_settings()
    engine = get_engine()

    logger.info(
        "Initializing database connection with retry",
        extra={
            "max_attempts": db_settings.startup_retry_attempts,
            "initial_delay": db_settings.startup_retry_delay,
            "dialect": engine.dialect.name,
        },
    )

    @retry(
        max_attempts=db_settings.startup_retry_attempts,
        initial_delay=db_settings.startup_retry_delay,
        max_delay=30.0,
    )
    async def _ping() -> None:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    await _ping()

    if db_settings.create_schema:
        await create_schema(engine)

    logger.info(
        "Database connection established successfully",
        extra={"host": engine.url.host, "database": engine.url.database},
    )


async def close_database() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _session_factory
    if _engine is None:
        return

    logger.info("Closing database connection")
    await _engine.dispose()
    _engine = None
    _session_factory = None


__all__ = [
    "build_engine",
    "close_database",
    "create_schema",
    "create_session_factory",
    "get_async_session",
    "get_engine",
    "get_session_factory",
    "init_database",
]
