"""Transactional outbox implementation.

The outbox gives at-least-once event delivery by:
1. Writing event records in the same transaction as the domain change
2. Publishing them to the broker from a background worker
3. Marking them published, or failed for a bounded number of retries

Published records are deleted by the retention sweeper once they are older
than the retention window.
"""

from outbox_service.infra.events.outbox.cleanup import RetentionSweeper
from outbox_service.infra.events.outbox.models import EventRecord, EventStatus
from outbox_service.infra.events.outbox.processor import (
    BatchResult,
    PublisherWorker,
    get_publisher_worker,
    start_publisher_worker,
    stop_publisher_worker,
)
from outbox_service.infra.events.outbox.repository import EventRecordStore, NewEventRecord

__all__ = [
    "BatchResult",
    "EventRecord",
    "EventRecordStore",
    "EventStatus",
    "NewEventRecord",
    "PublisherWorker",
    "RetentionSweeper",
    "get_publisher_worker",
    "start_publisher_worker",
    "stop_publisher_worker",
]
