"""Outbox inspection and maintenance commands.

Example:bash
    # Record counts per status
    outbox-service outbox status

    # Every event recorded for one aggregate
    outbox-service outbox inspect channel 0190c3a8-...

    # One record with its envelope
    outbox-service outbox show 0190c3a9-...

    # Records that exhausted their retries
    outbox-service outbox failed --format json

    # Delete published records older than 14 days
    outbox-service outbox cleanup --days 14
"""

import sys
import uuid
from datetime import timedelta

import click

from outbox_service.cli.utils import (
    coro,
    echo_json,
    error,
    header,
    info,
    record_row,
    section,
    success,
    warning,
)
from outbox_service.core.settings import get_outbox_settings

FORMAT_OPTION = click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)


@click.group(name="outbox")
def outbox() -> None:
    """Event outbox inspection and maintenance."""


@outbox.command()
@FORMAT_OPTION
@coro
async def status(output_format: str) -> None:
    """Show record counts per status."""
    from outbox_service.infra.database import close_database, get_async_session
    from outbox_service.infra.events.outbox import EventRecordStore

    store = EventRecordStore()
    max_retries = get_outbox_settings().max_retries

    try:
        async with get_async_session() as session:
            counts = await store.count_by_status(session)
            exhausted = await store.find_exhausted(session, max_attempts=max_retries)
    except Exception as e:
        error(f"Failed to read outbox status: {e}")
        sys.exit(1)
    finally:
        await close_database()

    if output_format == "json":
        echo_json(
            {
                **{event_status.value: count for event_status, count in counts.items()},
                "exhausted": len(exhausted),
            }
        )
        return

    header("Outbox Status")
    for event_status, count in counts.items():
        click.echo(f"  {event_status.value:<10} {count:>8}")
    click.echo(f"  {'exhausted':<10} {len(exhausted):>8}")

    if exhausted:
        warning(f"{len(exhausted)} record(s) exhausted {max_retries} attempts")


@outbox.command()
@click.argument("aggregate_type")
@click.argument("aggregate_id")
@FORMAT_OPTION
@coro
async def inspect(aggregate_type: str, aggregate_id: str, output_format: str) -> None:
    """List every event recorded for one aggregate, oldest first."""
    from outbox_service.infra.database import close_database, get_async_session
    from outbox_service.infra.events.outbox import EventRecordStore

    try:
        async with get_async_session() as session:
            records = await EventRecordStore().find_by_aggregate(
                session, aggregate_type, aggregate_id
            )
    except Exception as e:
        error(f"Failed to read event records: {e}")
        sys.exit(1)
    finally:
        await close_database()

    if output_format == "json":
        echo_json([record_row(record) for record in records])
        return

    if not records:
        info(f"No events recorded for {aggregate_type} {aggregate_id}")
        return

    section(f"Events for {aggregate_type} {aggregate_id}")
    for record in records:
        row = record_row(record)
        click.echo(
            f"  {row['produced_at']}  {row['status']:<10} {row['event_type']:<28} "
            f"attempts={row['failed_attempts']}  event_id={row['event_id']}"
        )


@outbox.command()
@click.argument("record_id", type=click.UUID)
@coro
async def show(record_id: uuid.UUID) -> None:
    """Show one event record, including its envelope."""
    from outbox_service.core.exceptions import NotFoundException
    from outbox_service.infra.database import close_database, get_async_session
    from outbox_service.infra.events.outbox import EventRecordStore

    max_retries = get_outbox_settings().max_retries

    try:
        async with get_async_session() as session:
            record = await EventRecordStore().get_or_raise(session, record_id)
    except NotFoundException as e:
        error(e.detail)
        sys.exit(1)
    except Exception as e:
        error(f"Failed to read event record: {e}")
        sys.exit(1)
    finally:
        await close_database()

    echo_json(
        {
            **record_row(record),
            "retryable": record.can_retry(max_retries),
            "payload": record.payload,
        }
    )


@outbox.command()
@click.option("--limit", default=100, show_default=True, help="Maximum records to list")
@FORMAT_OPTION
@coro
async def failed(limit: int, output_format: str) -> None:
    """List failed records that reached the retry ceiling."""
    from outbox_service.infra.database import close_database, get_async_session
    from outbox_service.infra.events.outbox import EventRecordStore

    max_retries = get_outbox_settings().max_retries

    try:
        async with get_async_session() as session:
            records = await EventRecordStore().find_exhausted(
                session, max_attempts=max_retries, limit=limit
            )
    except Exception as e:
        error(f"Failed to read event records: {e}")
        sys.exit(1)
    finally:
        await close_database()

    if output_format == "json":
        echo_json([record_row(record) for record in records])
        return

    if not records:
        success("No exhausted records")
        return

    header(f"Exhausted Records ({len(records)})")
    for record in records:
        row = record_row(record)
        click.echo(
            f"  {row['id']}  {row['event_type']:<28} "
            f"{row['aggregate_type']}:{row['aggregate_id']}  attempts={row['failed_attempts']}"
        )


@outbox.command()
@click.option(
    "--days",
    type=click.IntRange(min=0),
    default=None,
    help="Retention window in days (OUTBOX_RETENTION_DAYS by default)",
)
@coro
async def cleanup(days: int | None) -> None:
    """Delete published records older than the retention window."""
    from outbox_service.infra.database import close_database
    from outbox_service.infra.events.outbox import RetentionSweeper

    retention = timedelta(days=days) if days is not None else None
    sweeper = RetentionSweeper(retention=retention)
    info(f"Deleting published records older than {sweeper.retention.days} day(s)...")

    try:
        deleted = await sweeper.sweep_once()
    except Exception as e:
        error(f"Cleanup failed: {e}")
        sys.exit(1)
    finally:
        await close_database()

    success(f"Deleted {deleted} published record(s)")
