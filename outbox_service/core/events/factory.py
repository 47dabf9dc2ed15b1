"""EventFactory: builds event envelopes and stages them in the outbox.

Records are written through the caller's session, inside the caller's
transaction, so the event commits or rolls back together with the domain
change it describes. The factory never commits.

Usage:
    async with session.begin():
        session.add(channel)
        await session.flush()
        await factory.create_channel_created_event(
            session,
            {"channelId": channel.id, "workspaceId": ..., ...},
            trace=current_trace_context(),
        )
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import ValidationError

from outbox_service.core.events.envelope import EventEnvelope, EventMetadata
from outbox_service.core.events.payloads import (
    ChannelCreatedData,
    ChannelDeletedData,
    ChannelMemberJoinedData,
    EventData,
    InviteCreatedData,
    WorkspaceMemberJoinedData,
)
from outbox_service.core.exceptions import ValidationException
from outbox_service.core.settings import get_outbox_settings
from outbox_service.infra.events.outbox.repository import EventRecordStore, NewEventRecord

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from outbox_service.core.events.context import TraceContext
    from outbox_service.infra.events.outbox.models import EventRecord

logger = logging.getLogger(__name__)

DataT = TypeVar("DataT", bound=EventData)

# Event types (also the broker routing keys)
WORKSPACE_INVITE_CREATED = "workspace.invite.created"
WORKSPACE_MEMBER_JOINED = "workspace.member.joined"
CHANNEL_MEMBER_JOINED = "channel.member.joined"
CHANNEL_CREATED = "channel.created"
CHANNEL_DELETED = "channel.deleted"


class EventFactory:
    """Creates one outbox record per domain event.

    Attributes:
        store: Record store used for the insert
        source: Value of metadata.source
    """

    def __init__(
        self,
        store: EventRecordStore | None = None,
        *,
        source: str | None = None,
    ) -> None:
        """Initialize the factory.

        Args:
            store: Record store (a new EventRecordStore by default)
            source: Producing service name (OUTBOX_SOURCE by default)
        """
        self.store = store or EventRecordStore()
        self.source = source or get_outbox_settings().source

    # ──────────────────────────────────────────────────────────────
    # Workspace events
    # ──────────────────────────────────────────────────────────────

    async def create_invite_event(
        self,
        session: AsyncSession,
        data: InviteCreatedData | Mapping[str, Any],
        correlation_id: str | None = None,
        causation_id: str | None = None,
        trace: TraceContext | None = None,
    ) -> EventRecord:
        """Stage ``workspace.invite.created`` for a new workspace invite.

        Args:
            session: Session holding the caller's transaction
            data: Invite details
            correlation_id: Explicit correlation id (falls back to the trace id)
            causation_id: Id of the event or command that caused this one
            trace: Captured trace context

        Returns:
            The pending EventRecord

        Raises:
            ValidationException: data is malformed; nothing was written
            NotFoundException: The workspace does not exist
        """
        invite = self._validate(InviteCreatedData, data, WORKSPACE_INVITE_CREATED)
        return await self._stage(
            session,
            event_type=WORKSPACE_INVITE_CREATED,
            aggregate_type="workspace",
            aggregate_id=invite.workspace_id,
            data=invite,
            workspace_id=invite.workspace_id,
            correlation_id=correlation_id,
            causation_id=causation_id,
            trace=trace,
        )

    async def create_workspace_member_joined_event(
        self,
        session: AsyncSession,
        data: WorkspaceMemberJoinedData | Mapping[str, Any],
        correlation_id: str | None = None,
        causation_id: str | None = None,
        trace: TraceContext | None = None,
    ) -> EventRecord:
        """Stage ``workspace.member.joined``."""
        joined = self._validate(WorkspaceMemberJoinedData, data, WORKSPACE_MEMBER_JOINED)
        return await self._stage(
            session,
            event_type=WORKSPACE_MEMBER_JOINED,
            aggregate_type="workspace",
            aggregate_id=joined.workspace_id,
            data=joined,
            workspace_id=joined.workspace_id,
            correlation_id=correlation_id,
            causation_id=causation_id,
            trace=trace,
        )

    # ──────────────────────────────────────────────────────────────
    # Channel events
    # ──────────────────────────────────────────────────────────────

    async def create_channel_member_joined_event(
        self,
        session: AsyncSession,
        data: ChannelMemberJoinedData | Mapping[str, Any],
        correlation_id: str | None = None,
        causation_id: str | None = None,
        trace: TraceContext | None = None,
    ) -> EventRecord:
        """Stage ``channel.member.joined``."""
        joined = self._validate(ChannelMemberJoinedData, data, CHANNEL_MEMBER_JOINED)
        return await self._stage(
            session,
            event_type=CHANNEL_MEMBER_JOINED,
            aggregate_type="channel",
            aggregate_id=joined.channel_id,
            data=joined,
            workspace_id=joined.workspace_id,
            channel_id=joined.channel_id,
            correlation_id=correlation_id,
            causation_id=causation_id,
            trace=trace,
        )

    async def create_channel_created_event(
        self,
        session: AsyncSession,
        data: ChannelCreatedData | Mapping[str, Any],
        correlation_id: str | None = None,
        causation_id: str | None = None,
        trace: TraceContext | None = None,
    ) -> EventRecord:
        """Stage ``channel.created`` including the initial member list."""
        created = self._validate(ChannelCreatedData, data, CHANNEL_CREATED)
        return await self._stage(
            session,
            event_type=CHANNEL_CREATED,
            aggregate_type="channel",
            aggregate_id=created.channel_id,
            data=created,
            workspace_id=created.workspace_id,
            channel_id=created.channel_id,
            correlation_id=correlation_id,
            causation_id=causation_id,
            trace=trace,
        )

    async def create_channel_deleted_event(
        self,
        session: AsyncSession,
        data: ChannelDeletedData | Mapping[str, Any],
        correlation_id: str | None = None,
        causation_id: str | None = None,
        trace: TraceContext | None = None,
    ) -> EventRecord:
        """Stage ``channel.deleted``.

        The record keeps workspace_id as its partition key. channel_id is
        left empty: the channel row is usually deleted in the same
        transaction, and the event must outlive it.
        """
        deleted = self._validate(ChannelDeletedData, data, CHANNEL_DELETED)
        return await self._stage(
            session,
            event_type=CHANNEL_DELETED,
            aggregate_type="channel",
            aggregate_id=deleted.channel_id,
            data=deleted,
            workspace_id=deleted.workspace_id,
            correlation_id=correlation_id,
            causation_id=causation_id,
            trace=trace,
        )

    # ──────────────────────────────────────────────────────────────
    # Internals
    # ──────────────────────────────────────────────────────────────

    def build_metadata(
        self,
        correlation_id: str | None,
        causation_id: str | None,
        trace: TraceContext | None,
    ) -> EventMetadata:
        """Metadata block: explicit correlation id wins over the trace id."""
        return EventMetadata(
            source=self.source,
            correlation_id=correlation_id or (trace.trace_id if trace else None),
            causation_id=causation_id,
            user_id=trace.user_id if trace else None,
        )

    @staticmethod
    def _validate(
        model: type[DataT],
        data: DataT | Mapping[str, Any],
        event_type: str,
    ) -> DataT:
        if isinstance(data, model):
            return data
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise ValidationException(
                detail=f"Invalid {event_type} data",
                extra={
                    "event_type": event_type,
                    "errors": exc.errors(include_url=False, include_context=False),
                },
            ) from exc

    async def _stage(
        self,
        session: AsyncSession,
        *,
        event_type: str,
        aggregate_type: str,
        aggregate_id: uuid.UUID,
        data: EventData,
        correlation_id: str | None,
        causation_id: str | None,
        trace: TraceContext | None,
        workspace_id: uuid.UUID | None = None,
        channel_id: uuid.UUID | None = None,
    ) -> EventRecord:
        envelope = EventEnvelope(
            event_type=event_type,
            aggregate_type=aggregate_type,
            aggregate_id=str(aggregate_id),
            data=data.to_payload(),
            metadata=self.build_metadata(correlation_id, causation_id, trace),
        )

        record = await self.store.create(
            session,
            NewEventRecord(
                aggregate_type=aggregate_type,
                aggregate_id=str(aggregate_id),
                event_type=event_type,
                payload=envelope.to_payload(),
                workspace_id=workspace_id,
                channel_id=channel_id,
            ),
        )

        logger.debug(
            "Event staged in outbox",
            extra={
                "event_id": str(envelope.event_id),
                "event_type": event_type,
                "record_id": str(record.id),
                "correlation_id": envelope.metadata.correlation_id,
            },
        )
        return record


__all__ = [
    "CHANNEL_CREATED",
    "CHANNEL_DELETED",
    "CHANNEL_MEMBER_JOINED",
    "WORKSPACE_INVITE_CREATED",
    "WORKSPACE_MEMBER_JOINED",
    "EventFactory",
]
