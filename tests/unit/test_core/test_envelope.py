"""Unit tests for the event envelope, data models and trace context."""
from __future__ import annotations

import uuid

import pytest
from opentelemetry import trace
from opentelemetry.trace import NonRecordingSpan, SpanContext, TraceFlags
from pydantic import ValidationError

from outbox_service.core.events import (
    EventEnvelope,
    EventMetadata,
    InviteCreatedData,
    UserSummary,
    current_trace_context,
)
from outbox_service.infra.logging import log_context


@pytest.mark.unit
class TestEventEnvelope:
    """Tests for EventEnvelope."""

    def test_payload_uses_camel_case_keys(self):
        envelope = EventEnvelope(
            event_type="channel.deleted",
            aggregate_type="channel",
            aggregate_id="c1",
            data={"channelId": "c1"},
            metadata=EventMetadata(source="svc"),
        )

        payload = envelope.to_payload()

        assert set(payload) == {
            "eventId",
            "eventType",
            "aggregateType",
            "aggregateId",
            "timestamp",
            "version",
            "data",
            "metadata",
        }
        assert payload["metadata"] == {"source": "svc"}
        assert str(uuid.UUID(payload["eventId"])) == payload["eventId"]

    def test_event_type_must_be_dotted(self):
        with pytest.raises(ValidationError):
            EventEnvelope(
                event_type="ChannelDeleted",
                aggregate_type="channel",
                aggregate_id="c1",
                data={},
                metadata=EventMetadata(source="svc"),
            )

    def test_envelope_is_immutable(self):
        envelope = EventEnvelope(
            event_type="channel.deleted",
            aggregate_type="channel",
            aggregate_id="c1",
            data={},
            metadata=EventMetadata(source="svc"),
        )

        with pytest.raises(ValidationError):
            envelope.event_type = "channel.created"


@pytest.mark.unit
class TestEventData:
    """Tests for per-kind data models."""

    def test_invite_role_defaults_to_member(self):
        data = InviteCreatedData.model_validate(
            {
                "inviteId": "inv_1",
                "workspaceId": str(uuid.uuid4()),
                "workspaceName": "acme",
                "email": "a@example.com",
                "inviterUserId": "u1",
                "inviteToken": "t",
                "inviteUrl": "https://x/t",
            }
        )

        payload = data.to_payload()

        assert payload["role"] == "member"
        assert "customMessage" not in payload
        assert payload["expiresAt"] is None

    def test_unknown_fields_rejected(self):
        with pytest.raises(ValidationError):
            InviteCreatedData.model_validate(
                {
                    "inviteId": "inv_1",
                    "workspaceId": str(uuid.uuid4()),
                    "workspaceName": "acme",
                    "email": "a@example.com",
                    "inviterUserId": "u1",
                    "inviteToken": "t",
                    "inviteUrl": "https://x/t",
                    "unexpected": True,
                }
            )

    def test_user_summary_passes_extra_fields_through(self):
        summary = UserSummary.model_validate({"id": "u1", "timezone": "UTC"})

        assert summary.model_dump(by_alias=True)["timezone"] == "UTC"


@pytest.mark.unit
class TestTraceContext:
    """Tests for current_trace_context."""

    def test_empty_without_span_or_user(self):
        context = current_trace_context()

        assert context.trace_id is None
        assert context.user_id is None

    def test_reads_active_span_and_logged_user(self):
        span_context = SpanContext(
            trace_id=0x4BF92F3577B34DA6A3CE929D0E0E4736,
            span_id=0x00F067AA0BA902B7,
            is_remote=False,
            trace_flags=TraceFlags(TraceFlags.SAMPLED),
        )

        with (
            trace.use_span(NonRecordingSpan(span_context)),
            log_context(user_id="user_9"),
        ):
            context = current_trace_context()

        assert context.trace_id == "4bf92f3577b34da6a3ce929d0e0e4736"
        assert context.user_id == "user_9"
