"""Output formatting utilities for CLI commands."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import click

if TYPE_CHECKING:
    from outbox_service.infra.events.outbox.models import EventRecord


def success(message: str) -> None:
    click.secho(f"✓ {message}", fg="green")


def error(message: str) -> None:
    click.secho(f"✗ {message}", fg="red", err=True)


def warning(message: str) -> None:
    click.secho(f"⚠ {message}", fg="yellow")


def info(message: str) -> None:
    click.secho(f"ℹ {message}", fg="blue")


def header(message: str) -> None:
    click.secho(f"\n{message}", fg="cyan", bold=True)


def section(title: str) -> None:
    """Print a title between two rules."""
    click.secho(f"\n{'=' * 60}", dim=True)
    click.secho(title, bold=True)
    click.secho("=" * 60, dim=True)


def echo_json(data: Any) -> None:
    """Print data as indented JSON; datetimes and UUIDs become strings."""
    click.echo(json.dumps(data, indent=2, default=str))


def record_row(record: EventRecord) -> dict[str, Any]:
    """Flatten an event record for display, without the payload body."""
    return {
        "id": str(record.id),
        "event_id": record.event_id,
        "event_type": record.event_type,
        "aggregate_type": record.aggregate_type,
        "aggregate_id": record.aggregate_id,
        "status": str(record.status),
        "failed_attempts": record.failed_attempts,
        "produced_at": record.produced_at.isoformat() if record.produced_at else None,
        "published_at": record.published_at.isoformat() if record.published_at else None,
    }
