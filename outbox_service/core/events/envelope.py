"""Event envelope: the JSON document stored in an event record and sent to the broker.

Every published message has the same outer shape regardless of event kind:

    {
      "eventId": "7d4c...",
      "eventType": "channel.created",
      "aggregateType": "channel",
      "aggregateId": "0190...",
      "timestamp": "2025-01-01T00:00:00.123456Z",
      "version": "1.0",
      "data": {...},
      "metadata": {"source": "workspace-channel-service", "correlationId": "..."}
    }

Keys are camelCase on the wire; optional metadata keys are omitted when
unset.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SCHEMA_VERSION = "1.0"


class CamelModel(BaseModel):
    """Immutable model serialized with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        str_strip_whitespace=True,
        extra="forbid",
    )


class EventMetadata(CamelModel):
    """Provenance of an event.

    Attributes:
        source: Producing service name
        correlation_id: Request/trace the event belongs to
        causation_id: Id of the event or command that caused this one
        user_id: Acting user, when known
    """

    source: str = Field(min_length=1)
    correlation_id: str | None = None
    causation_id: str | None = None
    user_id: str | None = None


class EventEnvelope(CamelModel):
    """Outer structure shared by every event kind."""

    event_id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        description="Unique per logical event; consumers deduplicate on it",
    )
    event_type: str = Field(min_length=1, pattern=r"^[a-z0-9_]+(\.[a-z0-9_]+)+$")
    aggregate_type: str = Field(min_length=1)
    aggregate_id: str = Field(min_length=1)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    version: str = SCHEMA_VERSION
    data: dict[str, Any]
    metadata: EventMetadata

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict with camelCase keys, unset metadata omitted."""
        payload = self.model_dump(mode="json", by_alias=True, exclude={"metadata"})
        payload["metadata"] = self.metadata.model_dump(
            mode="json", by_alias=True, exclude_none=True
        )
        return payload


__all__ = ["SCHEMA_VERSION", "CamelModel", "EventEnvelope", "EventMetadata"]
