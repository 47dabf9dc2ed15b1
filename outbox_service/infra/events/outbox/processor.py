"""Background publisher worker for the event outbox.

The worker runs as a background task that:
1. Locks a batch of pending records (FOR UPDATE SKIP LOCKED)
2. Publishes each record to RabbitMQ with its event type as routing key
3. Marks each record published or failed, then commits the batch

Failed records are retried on a separate, slower cadence until they reach
``max_retries`` failed attempts. Any number of workers can run against the
same database; row locks keep their batches disjoint.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from outbox_service.core.exceptions import PersistentProcessingFailure
from outbox_service.core.settings import get_outbox_settings
from outbox_service.infra.database.session import get_session_factory
from outbox_service.infra.events.outbox.repository import EventRecordStore
from outbox_service.infra.logging import log_context

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from outbox_service.core.settings import OutboxSettings
    from outbox_service.infra.events.outbox.models import EventRecord
    from outbox_service.infra.messaging.broker import BrokerClient

logger = logging.getLogger(__name__)

# Global worker instance
_worker: PublisherWorker | None = None


@dataclass(slots=True, frozen=True)
class BatchResult:
    """Outcome of one batch.

    Attributes:
        locked: Records locked by this batch
        published: Records marked published
        failed: Records marked failed
    """

    locked: int = 0
    published: int = 0
    failed: int = 0


class PublisherWorker:
    """Polls the outbox and publishes records to the broker.

    Delivery is at-least-once: a crash between publish and commit leaves the
    record pending and it is published again by the next batch.

    Attributes:
        broker: Broker client used for every publish
        store: Record store
        poll_interval: Seconds between polls when the last batch was not full
        batch_size: Records locked per batch
        max_retries: Failed attempts after which a record is no longer retried
        retry_interval: Minimum seconds between retry sweeps
        shutdown_timeout: Seconds stop() waits for the batch in flight
    """

    def __init__(
        self,
        broker: BrokerClient,
        *,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        store: EventRecordStore | None = None,
        settings: OutboxSettings | None = None,
        poll_interval: float | None = None,
        batch_size: int | None = None,
        max_retries: int | None = None,
        retry_interval: float | None = None,
        shutdown_timeout: float | None = None,
    ) -> None:
        """Initialize the worker.

        Explicit arguments override the matching OutboxSettings field.

        Args:
            broker: Broker client (disconnected by stop())
            session_factory: Session factory (the process-wide one by default)
            store: Record store (a new EventRecordStore by default)
            settings: Outbox settings (loaded from the environment by default)
            poll_interval: Seconds between polls when idle
            batch_size: Records per batch
            max_retries: Retry ceiling for failed records
            retry_interval: Minimum seconds between retry sweeps
            shutdown_timeout: Seconds to wait for the batch in flight on stop
        """
        settings = settings or get_outbox_settings()

        self.broker = broker
        self.store = store or EventRecordStore()
        self.poll_interval = poll_interval if poll_interval is not None else settings.poll_interval
        self.batch_size = batch_size if batch_size is not None else settings.batch_size
        self.max_retries = max_retries if max_retries is not None else settings.max_retries
        self.retry_interval = (
            retry_interval if retry_interval is not None else settings.retry_interval
        )
        self.shutdown_timeout = (
            shutdown_timeout if shutdown_timeout is not None else settings.shutdown_timeout
        )

        self._session_factory = session_factory
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._draining: asyncio.Task[None] | None = None
        self._last_retry: float | None = None

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            self._session_factory = get_session_factory()
        return self._session_factory

    def is_running(self) -> bool:
        """True between start() and the end of stop()."""
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Schedule the poll loop and return without waiting for the first poll."""
        if self.is_running():
            logger.warning("Publisher worker already running")
            return

        # A loop left draining by a timed-out stop() keeps its own event
        self._stop_event = asyncio.Event()
        self._last_retry = None
        self._task = asyncio.create_task(
            self._run_loop(self._stop_event), name="outbox-publisher"
        )
        logger.info(
            "Publisher worker started",
            extra={
                "batch_size": self.batch_size,
                "poll_interval": self.poll_interval,
                "max_retries": self.max_retries,
                "retry_interval": self.retry_interval,
            },
        )

    async def stop(self) -> None:
        """Stop polling, let the batch in flight finish, then disconnect the broker.

        Waits up to shutdown_timeout for the batch. After that the worker
        stops waiting and proceeds; the in-flight database or broker call is
        never aborted, and the loop disconnects the broker and exits on its
        own once that batch ends.
        """
        self._stop_event.set()

        task = self._task
        if task is not None:
            try:
                await asyncio.wait_for(asyncio.shield(task), timeout=self.shutdown_timeout)
            except TimeoutError:
                logger.warning(
                    "Publisher worker shutdown timed out, proceeding without the batch in flight",
                    extra={"shutdown_timeout": self.shutdown_timeout},
                )
                self._draining = task
                self._task = None
                return
            self._task = None

        await self.broker.disconnect()
        logger.info("Publisher worker stopped")

    async def process_batch(self) -> BatchResult:
        """Publish one batch of pending records in a single transaction.

        Publish failures are isolated per record. A database failure rolls the
        whole batch back and propagates; every record stays pending.
        """
        return await self._run_batch(retry=False)

    async def process_retry_batch(self) -> BatchResult:
        """Publish one batch of failed records still below max_retries."""
        return await self._run_batch(retry=True)

    # ─────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────
    async def _run_loop(self, stop_event: asyncio.Event) -> None:
        loop = asyncio.get_running_loop()

        while not stop_event.is_set():
            full_batch = False
            try:
                result = await self.process_batch()
                full_batch = result.locked >= self.batch_size

                now = loop.time()
                if self._last_retry is None or now - self._last_retry >= self.retry_interval:
                    self._last_retry = now
                    await self.process_retry_batch()
            except Exception:
                logger.exception("Outbox batch failed, records left for the next poll")

            if stop_event.is_set():
                break
            if full_batch:
                # More records are likely waiting
                await asyncio.sleep(0)
                continue

            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(stop_event.wait(), timeout=self.poll_interval)

        if self._draining is asyncio.current_task():
            # stop() stopped waiting for this loop; disconnect after its last batch
            self._draining = None
            await self.broker.disconnect()
            logger.info("Publisher worker stopped after draining")

    async def _run_batch(self, *, retry: bool) -> BatchResult:
        batch_id = uuid.uuid4().hex[:16]
        kind = "retry" if retry else "pending"
        published = failed = 0

        with log_context(batch_id=batch_id, batch_kind=kind):
            async with self.session_factory() as session, session.begin():
                if retry:
                    records = await self.store.find_failed_for_retry(
                        session,
                        max_attempts=self.max_retries,
                        limit=self.batch_size,
                    )
                else:
                    records = await self.store.find_pending(session, limit=self.batch_size)

                if not records:
                    return BatchResult()

                logger.debug("Processing outbox batch", extra={"locked": len(records)})

                for record in records:
                    if await self._deliver(session, record):
                        published += 1
                    else:
                        failed += 1

            result = BatchResult(locked=len(records), published=published, failed=failed)
            logger.info(
                "Outbox batch processed",
                extra={"locked": result.locked, "published": published, "failed": failed},
            )
            return result

    async def _deliver(self, session: AsyncSession, record: EventRecord) -> bool:
        """Publish one record and record the outcome; publish errors stay here."""
        record_id = record.id
        attempts = record.failed_attempts + 1

        try:
            await self.broker.publish(record.event_type, record.payload)
        except Exception as exc:
            await self.store.mark_failed(session, record_id)
            logger.warning(
                "Failed to publish event, marked failed",
                extra={
                    "record_id": str(record_id),
                    "event_type": record.event_type,
                    "failed_attempts": attempts,
                    "error": str(exc),
                },
            )
            if attempts >= self.max_retries:
                self._report_exhausted(record, attempts, exc)
            return False

        await self.store.mark_published(session, record_id)
        logger.debug(
            "Event published",
            extra={
                "record_id": str(record_id),
                "event_id": record.event_id,
                "event_type": record.event_type,
            },
        )
        return True

    def _report_exhausted(self, record: EventRecord, attempts: int, cause: Exception) -> None:
        failure = PersistentProcessingFailure(
            detail=f"Event record {record.id} failed {attempts} times and will not be retried",
            extra={
                "record_id": str(record.id),
                "event_id": record.event_id,
                "event_type": record.event_type,
                "failed_attempts": attempts,
            },
        )
        logger.error(
            failure.detail,
            extra={**failure.extra, "error_type": failure.type, "error": str(cause)},
        )


async def start_publisher_worker(
    broker: BrokerClient,
    *,
    settings: OutboxSettings | None = None,
) -> PublisherWorker:
    """Start the global publisher worker.

    Args:
        broker: Broker client for the worker
        settings: Outbox settings (loaded from the environment by default)

    Returns:
        The running worker
    """
    global _worker

    if _worker is not None and _worker.is_running():
        return _worker

    _worker = PublisherWorker(broker, settings=settings)
    await _worker.start()
    return _worker


async def stop_publisher_worker() -> None:
    """Stop the global publisher worker."""
    global _worker

    if _worker is not None:
        await _worker.stop()
        _worker = None


def get_publisher_worker() -> PublisherWorker | None:
    """Get the global publisher worker instance."""
    return _worker


__all__ = [
    "BatchResult",
    "PublisherWorker",
    "get_publisher_worker",
    "start_publisher_worker",
    "stop_publisher_worker",
]
