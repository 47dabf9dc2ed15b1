"""EventRecord SQLAlchemy model for the transactional outbox.

Records are written in the same transaction as the domain change they
describe. The publisher worker reads pending records, publishes their
envelope to the broker and marks them published, or failed with an
incremented attempt counter.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from outbox_service.core.database import Base, UUIDv7PKMixin, utcnow
from outbox_service.core.models import Channel, Workspace


class EventStatus(StrEnum):
    """Delivery status of an event record.

    Allowed transitions: pending -> published, pending -> failed,
    failed -> failed, failed -> published. Nothing returns to pending.
    """

    PENDING = "pending"
    PUBLISHED = "published"
    FAILED = "failed"


class EventRecord(Base, UUIDv7PKMixin):
    """Outbox row holding one event envelope awaiting delivery.

    Attributes:
        id: UUID v7 primary key
        aggregate_type: Aggregate kind, e.g. "workspace" or "channel"
        aggregate_id: Aggregate identifier, e.g. the workspace id
        workspace_id: Optional workspace partition key (FK, SET NULL on delete)
        channel_id: Optional channel partition key (FK, SET NULL on delete)
        event_type: Dot-delimited event type, also the broker routing key
        payload: Full event envelope; never changed after creation
        status: pending / published / failed
        failed_attempts: Number of failed publish attempts; never decreases
        produced_at: Creation time, the processing order key
        published_at: Set once, when the record is published
    """

    __tablename__ = "event_records"

    aggregate_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Aggregate type (e.g., workspace, channel)",
    )
    aggregate_id: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        comment="Aggregate identifier",
    )

    # Partition keys
    workspace_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey(Workspace.id, ondelete="SET NULL"),
        nullable=True,
        comment="Workspace the event belongs to",
    )
    channel_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey(Channel.id, ondelete="SET NULL"),
        nullable=True,
        comment="Channel the event belongs to",
    )

    event_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Event type identifier and routing key",
    )
    payload: Mapped[dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
        comment="Event envelope",
    )

    # Delivery state
    status: Mapped[EventStatus] = mapped_column(
        Enum(
            EventStatus,
            name="event_status",
            native_enum=False,
            length=16,
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        nullable=False,
        default=EventStatus.PENDING,
        comment="pending / published / failed",
    )
    failed_attempts: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Number of failed publish attempts",
    )
    produced_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        comment="When the event was produced",
    )
    published_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the event was published",
    )

    __table_args__ = (
        # Pending and retry scans, oldest first
        Index("ix_event_records_status_produced_at", "status", "produced_at"),
        Index("ix_event_records_aggregate", "aggregate_type", "aggregate_id"),
        Index("ix_event_records_workspace_id", "workspace_id"),
        Index("ix_event_records_channel_id", "channel_id"),
    )

    @property
    def event_id(self) -> str | None:
        """The envelope's eventId, the consumer-side deduplication key."""
        return (self.payload or {}).get("eventId")

    def can_retry(self, max_attempts: int) -> bool:
        """Check if a failed record is still below the retry ceiling."""
        return self.status == EventStatus.FAILED and self.failed_attempts < max_attempts

    def __repr__(self) -> str:
        return (
            f"EventRecord("
            f"id={self.id}, "
            f"event_type={self.event_type!r}, "
            f"status={self.status}, "
            f"failed_attempts={self.failed_attempts}"
            f")"
        )


__all__ = ["EventRecord", "EventStatus"]
