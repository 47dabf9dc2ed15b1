"""Event infrastructure for reliable event delivery.

This package provides the infrastructure for the transactional outbox pattern:
- EventRecord model for storing events until they are published
- EventRecordStore for persistence and locked batch reads
- PublisherWorker for publishing records to the message broker
- RetentionSweeper for deleting published records past retention
"""

from outbox_service.infra.events.outbox.cleanup import RetentionSweeper
from outbox_service.infra.events.outbox.models import EventRecord, EventStatus
from outbox_service.infra.events.outbox.processor import (
    PublisherWorker,
    start_publisher_worker,
    stop_publisher_worker,
)
from outbox_service.infra.events.outbox.repository import EventRecordStore

__all__ = [
    "EventRecord",
    "EventRecordStore",
    "EventStatus",
    "PublisherWorker",
    "RetentionSweeper",
    "start_publisher_worker",
    "stop_publisher_worker",
]
