"""EventRecordStore: persistence and locked-batch retrieval for event records.

Provides methods for:
- Creating records inside the caller's transaction
- Locking batches of pending or retryable records (FOR UPDATE SKIP LOCKED)
- Marking records published or failed
- Deleting old published records
- Diagnostics (by aggregate, counts per status, exhausted records)

Every method takes the session that owns the current transaction; the store
never commits.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError

from outbox_service.core.database import BaseRepository, utcnow
from outbox_service.core.exceptions import ConflictException, NotFoundException
from outbox_service.infra.events.outbox.models import EventRecord, EventStatus

if TYPE_CHECKING:
    import uuid
    from collections.abc import Sequence
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

# SQLSTATE codes (PostgreSQL) and message fragments (SQLite)
_FOREIGN_KEY_VIOLATION = "23503"
_UNIQUE_VIOLATION = "23505"


@dataclass(slots=True, frozen=True)
class NewEventRecord:
    """Input for EventRecordStore.create.

    Attributes:
        aggregate_type: Aggregate kind, e.g. "workspace"
        aggregate_id: Aggregate identifier
        event_type: Dot-delimited event type (routing key)
        payload: Complete event envelope
        workspace_id: Optional workspace partition key
        channel_id: Optional channel partition key
    """

    aggregate_type: str
    aggregate_id: str | None
    event_type: str
    payload: dict[str, Any]
    workspace_id: uuid.UUID | None = None
    channel_id: uuid.UUID | None = None


class EventRecordStore(BaseRepository[EventRecord]):
    """Repository for event record operations.

    Locking reads only work inside an open transaction; the lock lasts until
    the caller commits or rolls back. On SQLite the FOR UPDATE clause is
    dropped by the compiler and the engine's BEGIN IMMEDIATE hook provides
    the mutual exclusion instead.
    """

    def __init__(self) -> None:
        super().__init__(EventRecord)

    # ─────────────────────────────────────────────────────
    # Writes
    # ─────────────────────────────────────────────────────
    async def create(self, session: AsyncSession, data: NewEventRecord) -> EventRecord:
        """Insert a pending record and flush it.

        The flush surfaces constraint violations here instead of at commit.
        After a violation the caller's transaction must be rolled back.

        Args:
            session: Session holding the caller's transaction
            data: Record contents

        Returns:
            The persisted record (status pending, failed_attempts 0)

        Raises:
            NotFoundException: workspace_id or channel_id references a missing row
            ConflictException: A uniqueness constraint was violated
        """
        record = EventRecord(
            aggregate_type=data.aggregate_type,
            aggregate_id=data.aggregate_id,
            workspace_id=data.workspace_id,
            channel_id=data.channel_id,
            event_type=data.event_type,
            payload=data.payload,
            status=EventStatus.PENDING,
            failed_attempts=0,
            produced_at=utcnow(),
        )
        session.add(record)
        try:
            await session.flush()
        except IntegrityError as exc:
            translated = self._translate_integrity_error(exc, data)
            if translated is None:
                raise
            raise translated from exc

        self._logger.debug(
            "Event record created",
            extra={
                "record_id": str(record.id),
                "event_type": record.event_type,
                "aggregate_type": record.aggregate_type,
                "aggregate_id": record.aggregate_id,
            },
        )
        return record

    async def mark_published(self, session: AsyncSession, record_id: uuid.UUID) -> None:
        """Set status published and stamp published_at.

        Raises:
            NotFoundException: No record with this id
            ConflictException: The record is already published
        """
        stmt = (
            update(EventRecord)
            .where(
                EventRecord.id == record_id,
                EventRecord.status.in_([EventStatus.PENDING, EventStatus.FAILED]),
            )
            .values(status=EventStatus.PUBLISHED, published_at=utcnow())
        )
        result = await session.execute(stmt)
        if result.rowcount == 0:
            await self._raise_for_missed_update(session, record_id, "mark_published")

    async def mark_failed(self, session: AsyncSession, record_id: uuid.UUID) -> None:
        """Set status failed and increment failed_attempts in one UPDATE.

        The increment happens in SQL so concurrent writers cannot lose an
        attempt.

        Raises:
            NotFoundException: No record with this id
            ConflictException: The record is already published
        """
        stmt = (
            update(EventRecord)
            .where(
                EventRecord.id == record_id,
                EventRecord.status.in_([EventStatus.PENDING, EventStatus.FAILED]),
            )
            .values(
                status=EventStatus.FAILED,
                failed_attempts=EventRecord.failed_attempts + 1,
            )
        )
        result = await session.execute(stmt)
        if result.rowcount == 0:
            await self._raise_for_missed_update(session, record_id, "mark_failed")

    async def delete_old_published(self, session: AsyncSession, cutoff: datetime) -> int:
        """Delete published records whose published_at is before cutoff.

        Pending and failed records are never touched.

        Args:
            session: Database session
            cutoff: Records published strictly before this instant are deleted

        Returns:
            Number of records deleted
        """
        stmt = (
            delete(EventRecord)
            .where(
                EventRecord.status == EventStatus.PUBLISHED,
                EventRecord.published_at.is_not(None),
                EventRecord.published_at < cutoff,
            )
            .returning(EventRecord.id)
            .execution_options(synchronize_session="fetch")
        )
        result = await session.execute(stmt)
        deleted = len(result.scalars().all())
        self._logger.debug(
            "Deleted old published event records",
            extra={"deleted": deleted, "cutoff": cutoff.isoformat()},
        )
        return deleted

    # ─────────────────────────────────────────────────────
    # Locking reads
    # ─────────────────────────────────────────────────────
    async def find_pending(
        self,
        session: AsyncSession,
        *,
        limit: int = 50,
    ) -> Sequence[EventRecord]:
        """Lock up to ``limit`` pending records, oldest first.

        Rows locked by another transaction are skipped, so concurrent
        workers receive disjoint batches.

        Args:
            session: Session holding the batch transaction
            limit: Maximum number of records

        Returns:
            Locked records ordered by produced_at
        """
        stmt = (
            select(EventRecord)
            .where(EventRecord.status == EventStatus.PENDING)
            .order_by(EventRecord.produced_at.asc(), EventRecord.id.asc())
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def find_failed_for_retry(
        self,
        session: AsyncSession,
        *,
        max_attempts: int = 3,
        limit: int = 50,
    ) -> Sequence[EventRecord]:
        """Lock failed records still below the retry ceiling, oldest first.

        Args:
            session: Session holding the batch transaction
            max_attempts: Only records with failed_attempts below this qualify
            limit: Maximum number of records

        Returns:
            Locked records ordered by produced_at
        """
        stmt = (
            select(EventRecord)
            .where(
                EventRecord.status == EventStatus.FAILED,
                EventRecord.failed_attempts < max_attempts,
            )
            .order_by(EventRecord.produced_at.asc(), EventRecord.id.asc())
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    # ─────────────────────────────────────────────────────
    # Diagnostics
    # ─────────────────────────────────────────────────────
    async def find_by_aggregate(
        self,
        session: AsyncSession,
        aggregate_type: str,
        aggregate_id: str,
    ) -> Sequence[EventRecord]:
        """All records for one aggregate, ordered by produced_at."""
        stmt = (
            select(EventRecord)
            .where(
                EventRecord.aggregate_type == aggregate_type,
                EventRecord.aggregate_id == aggregate_id,
            )
            .order_by(EventRecord.produced_at.asc(), EventRecord.id.asc())
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def find_exhausted(
        self,
        session: AsyncSession,
        *,
        max_attempts: int = 3,
        limit: int = 100,
    ) -> Sequence[EventRecord]:
        """Failed records that reached the retry ceiling and need an operator."""
        stmt = (
            select(EventRecord)
            .where(
                EventRecord.status == EventStatus.FAILED,
                EventRecord.failed_attempts >= max_attempts,
            )
            .order_by(EventRecord.produced_at.asc(), EventRecord.id.asc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def count_by_status(self, session: AsyncSession) -> dict[EventStatus, int]:
        """Number of records per status; statuses with no rows report 0."""
        stmt = select(EventRecord.status, func.count()).group_by(EventRecord.status)
        result = await session.execute(stmt)
        counts = {status: 0 for status in EventStatus}
        for status, count in result.all():
            counts[EventStatus(status)] = count
        return counts

    # ─────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────
    async def _raise_for_missed_update(
        self,
        session: AsyncSession,
        record_id: uuid.UUID,
        operation: str,
    ) -> None:
        exists = await session.scalar(
            select(func.count()).select_from(EventRecord).where(EventRecord.id == record_id)
        )
        if not exists:
            self._logger.info(
                "Entity not found",
                extra={"entity": "EventRecord", "id": str(record_id), "operation": operation},
            )
            raise self.not_found(record_id)
        raise ConflictException(
            detail=f"EventRecord {record_id} is already published",
            type="event-record-already-published",
            extra={"id": str(record_id), "operation": operation},
        )

    @staticmethod
    def _translate_integrity_error(
        exc: IntegrityError,
        data: NewEventRecord,
    ) -> NotFoundException | ConflictException | None:
        """Map a constraint violation to the matching application exception.

        PostgreSQL reports the SQLSTATE and the constraint name; SQLite only
        reports a message, so the referenced aggregate is inferred from which
        partition keys were supplied.
        """
        orig = exc.orig
        sqlstate = getattr(orig, "sqlstate", None)
        message = str(orig)

        if sqlstate == _FOREIGN_KEY_VIOLATION or "FOREIGN KEY constraint failed" in message:
            diag = getattr(orig, "diag", None)
            constraint = (getattr(diag, "constraint_name", None) or "").lower()
            if "channel" in constraint or (not constraint and data.channel_id is not None):
                entity, key, value = "Channel", "channel_id", data.channel_id
            else:
                entity, key, value = "Workspace", "workspace_id", data.workspace_id
            return NotFoundException(
                detail=f"{entity} not found",
                type=f"{entity.lower()}-not-found",
                extra={key: str(value) if value else None, "event_type": data.event_type},
            )

        if sqlstate == _UNIQUE_VIOLATION or "UNIQUE constraint failed" in message:
            return ConflictException(
                detail="Event record already exists",
                type="event-record-conflict",
                extra={"event_type": data.event_type},
            )

        logger.error(
            "Unexpected integrity error creating event record",
            extra={"event_type": data.event_type, "error": message},
        )
        return None


__all__ = ["EventRecordStore", "NewEventRecord"]
