"""Event creation: envelopes, per-kind data models, and the outbox factory.

Usage:
    from outbox_service.core.events import EventFactory, current_trace_context

    factory = EventFactory()
    async with session.begin():
        ...  # domain writes
        await factory.create_channel_deleted_event(
            session, data, trace=current_trace_context()
        )
"""

from outbox_service.core.events.context import TraceContext, current_trace_context
from outbox_service.core.events.envelope import SCHEMA_VERSION, EventEnvelope, EventMetadata
from outbox_service.core.events.factory import EventFactory
from outbox_service.core.events.payloads import (
    ChannelCreatedData,
    ChannelDeletedData,
    ChannelMemberData,
    ChannelMemberJoinedData,
    InviteCreatedData,
    UserSummary,
    WorkspaceMemberJoinedData,
)

__all__ = [
    "SCHEMA_VERSION",
    "ChannelCreatedData",
    "ChannelDeletedData",
    "ChannelMemberData",
    "ChannelMemberJoinedData",
    "EventEnvelope",
    "EventFactory",
    "EventMetadata",
    "InviteCreatedData",
    "TraceContext",
    "UserSummary",
    "WorkspaceMemberJoinedData",
    "current_trace_context",
]
