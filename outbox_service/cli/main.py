"""Main CLI entry point for outbox-service commands."""

import click

from outbox_service.cli.commands import database, outbox, worker
from outbox_service.infra.logging.config import setup_logging


@click.group()
@click.version_option(version="1.0.0", prog_name="outbox-service")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Outbox Service CLI - publisher worker and outbox maintenance.

    \b
    Command Groups:
      worker     Run the publisher worker
      outbox     Inspect and clean up event records
      db         Database bootstrap

    \b
    Quick Start:
      outbox-service db init                  # Create tables
      outbox-service worker run               # Publish until Ctrl+C
      outbox-service outbox status            # Record counts per status
      outbox-service outbox failed            # Records that need an operator
    """
    ctx.ensure_object(dict)


cli.add_command(worker.worker)
cli.add_command(outbox.outbox)
cli.add_command(database.db)


def main() -> None:
    """Entry point for CLI."""
    setup_logging()
    cli(obj={})


if __name__ == "__main__":
    main()
