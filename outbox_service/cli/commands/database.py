"""Database commands.

Example:bash
    # Verify connectivity and create missing tables
    outbox-service db init
"""

import sys

import click
from sqlalchemy import inspect as sa_inspect

from outbox_service.cli.utils import coro, error, info, success
from outbox_service.core.settings import get_db_settings


@click.group(name="db")
def db() -> None:
    """Database management commands."""


@db.command()
@coro
async def init() -> None:
    """Verify the database connection and create missing tables."""
    from outbox_service.infra.database import close_database, create_schema, get_engine

    db_settings = get_db_settings()
    if db_settings.is_sqlite:
        target = db_settings.url
    else:
        target = f"{db_settings.host}:{db_settings.port}/{db_settings.name}"
    info(f"Connecting to: {target}")

    try:
        engine = get_engine()
        await create_schema(engine)
        async with engine.connect() as conn:
            tables = await conn.run_sync(
                lambda sync_conn: sa_inspect(sync_conn).get_table_names()
            )
    except Exception as e:
        error(f"Failed to initialize database: {e}")
        sys.exit(1)
    finally:
        await close_database()

    success("Database ready")
    info(f"Tables: {', '.join(sorted(tables))}")
