"""Message broker infrastructure.

RabbitMQ publishing via aio-pika: a durable topic exchange, persistent JSON
messages routed by event type, and connection state tracking.
"""

from __future__ import annotations

from outbox_service.infra.messaging.broker import BrokerClient, BrokerState

__all__ = ["BrokerClient", "BrokerState"]
