"""Retention sweep for published event records.

Published records are only kept for diagnostics; the sweeper deletes those
older than ``retention_days`` on a fixed interval. Pending and failed
records are never touched.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from outbox_service.core.database import utcnow
from outbox_service.core.settings import get_outbox_settings
from outbox_service.infra.database.session import get_session_factory
from outbox_service.infra.events.outbox.repository import EventRecordStore

if TYPE_CHECKING:
    from datetime import timedelta

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from outbox_service.core.settings import OutboxSettings

logger = logging.getLogger(__name__)


class RetentionSweeper:
    """Periodically deletes published records past the retention window."""

    def __init__(
        self,
        *,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        store: EventRecordStore | None = None,
        settings: OutboxSettings | None = None,
        retention: timedelta | None = None,
        interval: float | None = None,
        shutdown_timeout: float | None = None,
    ) -> None:
        settings = settings or get_outbox_settings()

        self.store = store or EventRecordStore()
        self.retention = retention if retention is not None else settings.retention
        self.interval = interval if interval is not None else settings.cleanup_interval
        self.shutdown_timeout = (
            shutdown_timeout if shutdown_timeout is not None else settings.shutdown_timeout
        )

        self._session_factory = session_factory
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._draining: asyncio.Task[None] | None = None

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            self._session_factory = get_session_factory()
        return self._session_factory

    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Schedule the sweep loop; the first sweep runs immediately."""
        if self.is_running():
            return

        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(
            self._run_loop(self._stop_event), name="outbox-retention"
        )
        logger.info(
            "Retention sweeper started",
            extra={
                "retention_days": self.retention.days,
                "interval": self.interval,
            },
        )

    async def stop(self) -> None:
        """Stop the loop, waiting up to shutdown_timeout for a sweep in progress.

        A sweep still running after that is left to finish on its own.
        """
        self._stop_event.set()
        task = self._task
        if task is not None:
            try:
                await asyncio.wait_for(asyncio.shield(task), timeout=self.shutdown_timeout)
            except TimeoutError:
                logger.warning(
                    "Retention sweeper shutdown timed out, proceeding without the sweep in flight",
                    extra={"shutdown_timeout": self.shutdown_timeout},
                )
                self._draining = task
            self._task = None
        logger.info("Retention sweeper stopped")

    async def sweep_once(self) -> int:
        """Delete published records older than the retention window.

        Runs in its own committed transaction.

        Returns:
            Number of records deleted
        """
        cutoff = utcnow() - self.retention
        async with self.session_factory() as session, session.begin():
            deleted = await self.store.delete_old_published(session, cutoff)

        if deleted:
            logger.info(
                "Deleted published event records past retention",
                extra={"deleted": deleted, "cutoff": cutoff.isoformat()},
            )
        return deleted

    async def _run_loop(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            try:
                await self.sweep_once()
            except Exception:
                logger.exception("Retention sweep failed")

            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval)


__all__ = ["RetentionSweeper"]
