"""Database infrastructure: engine, sessions, schema bootstrap."""

from outbox_service.infra.database.session import (
    build_engine,
    close_database,
    create_schema,
    create_session_factory,
    get_async_session,
    get_engine,
    get_session_factory,
    init_database,
)

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
