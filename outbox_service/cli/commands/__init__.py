"""CLI command modules."""

from outbox_service.cli.commands import database, outbox, worker

__all__ = [
    "database",
    "outbox",
    "worker",
]
