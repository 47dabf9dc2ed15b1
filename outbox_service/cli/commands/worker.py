"""Publisher worker commands.

Example:bash
    # Run the publisher (and the retention sweeper) until SIGINT/SIGTERM
    outbox-service worker run

    # Publish one pending batch and one retry batch, then exit
    outbox-service worker run --once
"""

import asyncio
import signal
import sys

import click

from outbox_service.cli.utils import coro, error, info, success, warning
from outbox_service.core.settings import get_outbox_settings


@click.group(name="worker")
def worker() -> None:
    """Outbox publisher worker commands."""


@worker.command()
@click.option("--once", is_flag=True, help="Process one batch of each kind and exit")
@click.option(
    "--cleanup/--no-cleanup",
    default=None,
    help="Run the retention sweeper alongside the worker (OUTBOX_CLEANUP_ENABLED by default)",
)
@coro
async def run(once: bool, cleanup: bool | None) -> None:
    """Run the outbox publisher worker."""
    from outbox_service.infra.database import close_database, init_database
    from outbox_service.infra.events.outbox import PublisherWorker, RetentionSweeper
    from outbox_service.infra.messaging import BrokerClient

    outbox_settings = get_outbox_settings()
    run_cleanup = outbox_settings.cleanup_enabled if cleanup is None else cleanup

    try:
        await init_database()
    except Exception as e:
        error(f"Database unavailable: {e}")
        sys.exit(1)

    broker = BrokerClient()
    publisher = PublisherWorker(broker, settings=outbox_settings)

    if once:
        try:
            pending = await publisher.process_batch()
            retried = await publisher.process_retry_batch()
        except Exception as e:
            error(f"Batch processing failed: {e}")
            sys.exit(1)
        finally:
            await broker.disconnect()
            await close_database()
        success(
            f"Published {pending.published + retried.published}, "
            f"failed {pending.failed + retried.failed}"
        )
        return

    sweeper = RetentionSweeper(settings=outbox_settings) if run_cleanup else None

    stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_requested.set)

    info(
        f"Publisher running (batch size {publisher.batch_size}, "
        f"poll every {publisher.poll_interval}s); press Ctrl+C to stop"
    )
    await publisher.start()
    if sweeper is not None:
        await sweeper.start()

    try:
        await stop_requested.wait()
    finally:
        warning("Shutting down...")
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        await publisher.stop()
        if sweeper is not None:
            await sweeper.stop()
        await close_database()

    success("Publisher stopped")
