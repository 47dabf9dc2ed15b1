"""Test utilities and helper functions.

Usage:
    from tests.utils import RecordingBroker, add_records, load_records

    records = await add_records(session_factory, ["channel.created"] * 3)
    broker = RecordingBroker(fail_routing_keys={"channel.deleted"})
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from outbox_service.core.exceptions import TransientBrokerError
from outbox_service.infra.events.outbox import EventRecord, EventRecordStore, NewEventRecord

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


# ============================================================================
# Record helpers
# ============================================================================


def envelope(event_type: str = "channel.created", **data: Any) -> dict[str, Any]:
    """Minimal envelope with a fresh eventId."""
    return {
        "eventId": str(uuid.uuid4()),
        "eventType": event_type,
        "aggregateType": event_type.split(".")[0],
        "aggregateId": str(uuid.uuid4()),
        "timestamp": "2025-01-01T00:00:00Z",
        "version": "1.0",
        "data": data,
        "metadata": {"source": "test-service"},
    }


async def add_records(
    session_factory: async_sessionmaker[AsyncSession],
    event_types: Iterable[str],
) -> list[EventRecord]:
    """Commit one pending record per event type, in order."""
    store = EventRecordStore()
    records = []
    async with session_factory() as session, session.begin():
        for event_type in event_types:
            payload = envelope(event_type)
            records.append(
                await store.create(
                    session,
                    NewEventRecord(
                        aggregate_type=payload["aggregateType"],
                        aggregate_id=payload["aggregateId"],
                        event_type=event_type,
                        payload=payload,
                    ),
                )
            )
    return records


async def load_records(session_factory: async_sessionmaker[AsyncSession]) -> list[EventRecord]:
    """All records, oldest first, read in a fresh session."""
    async with session_factory() as session:
        result = await session.execute(
            select(EventRecord).order_by(EventRecord.produced_at, EventRecord.id)
        )
        return list(result.scalars().all())


# ============================================================================
# Broker double
# ============================================================================


class RecordingBroker:
    """In-memory stand-in for BrokerClient.

    Attributes:
        published: (routing_key, message) pairs in publish order
        fail_routing_keys: Routing keys whose publish raises TransientBrokerError
        delay: Seconds each publish takes
        disconnect_calls: Number of disconnect() calls
        in_flight: Publishes currently awaiting
        cancelled: Publishes aborted by task cancellation
    """

    def __init__(
        self,
        *,
        fail_routing_keys: Iterable[str] = (),
        delay: float = 0.0,
    ) -> None:
        self.published: list[tuple[str, dict[str, Any]]] = []
        self.fail_routing_keys = set(fail_routing_keys)
        self.delay = delay
        self.disconnect_calls = 0
        self.in_flight = 0
        self.cancelled = 0

    async def publish(self, routing_key: str, message: dict[str, Any]) -> None:
        self.in_flight += 1
        try:
            # Always yield so concurrent workers interleave
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        finally:
            self.in_flight -= 1
        if routing_key in self.fail_routing_keys:
            raise TransientBrokerError(
                detail="broker unavailable",
                extra={"routing_key": routing_key},
            )
        self.published.append((routing_key, message))

    async def disconnect(self) -> None:
        self.disconnect_calls += 1

    @property
    def event_ids(self) -> list[str]:
        return [message["eventId"] for _, message in self.published]


async def wait_until(predicate, timeout: float = 5.0, interval: float = 0.01) -> None:
    """Poll ``predicate`` until it returns true or fail after ``timeout`` seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(interval)
