"""RabbitMQ client used by the publisher worker.

Wraps an aio-pika robust connection, one channel and a durable topic
exchange. Events are published with the event type as routing key, as
persistent JSON messages.

Connection lifecycle:
- ``connect()`` is idempotent; concurrent callers share one in-flight attempt
- a closed connection or channel drops the client back to ``disconnected``
- ``publish()`` reconnects lazily and retries exactly once after a reset
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import aio_pika
from aio_pika import DeliveryMode, ExchangeType
from aio_pika.exceptions import (
    AMQPChannelError,
    AMQPConnectionError,
    AMQPError,
    ChannelInvalidStateError,
)

from outbox_service.core.exceptions import TransientBrokerError
from outbox_service.core.settings import get_rabbit_settings

if TYPE_CHECKING:
    from aio_pika.abc import (
        AbstractChannel,
        AbstractExchange,
        AbstractRobustConnection,
    )

    from outbox_service.core.settings import RabbitSettings

logger = logging.getLogger(__name__)

# Failures that mean the connection or channel is gone and a reconnect may help
_CONNECTION_LOST_ERRORS: tuple[type[BaseException], ...] = (
    AMQPConnectionError,
    AMQPChannelError,
    ChannelInvalidStateError,
    ConnectionError,
)
_PUBLISH_ERRORS: tuple[type[BaseException], ...] = (*_CONNECTION_LOST_ERRORS, AMQPError)


class BrokerState(StrEnum):
    """Connection states for the broker client.

    Attributes:
        DISCONNECTED: No usable connection.
        CONNECTING: A connection attempt is in flight.
        CONNECTED: Connection, channel and exchange are ready.
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class BrokerClient:
    """Publishes event envelopes to a durable topic exchange.

    Attributes:
        settings: RabbitMQ connection and exchange settings
    """

    def __init__(self, settings: RabbitSettings | None = None) -> None:
        self.settings = settings or get_rabbit_settings()

        self._connection: AbstractRobustConnection | None = None
        self._channel: AbstractChannel | None = None
        self._exchange: AbstractExchange | None = None
        self._state = BrokerState.DISCONNECTED
        self._connect_task: asyncio.Task[None] | None = None

    @property
    def state(self) -> BrokerState:
        """Current connection state."""
        return self._state

    def is_connected(self) -> bool:
        """True when both the connection and the channel are open."""
        return (
            self._connection is not None
            and self._channel is not None
            and not self._connection.is_closed
            and not self._channel.is_closed
        )

    async def connect(self) -> None:
        """Open the connection, channel and exchange if not already open.

        Concurrent callers await the same attempt.

        Raises:
            TransientBrokerError: The broker could not be reached
        """
        if self.is_connected() and self._state is BrokerState.CONNECTED:
            return

        task = self._connect_task
        if task is None or task.done():
            task = asyncio.create_task(self._open())
            self._connect_task = task

        try:
            # One caller being cancelled must not cancel the shared attempt
            await asyncio.shield(task)
        finally:
            if task.done() and self._connect_task is task:
                self._connect_task = None

    async def publish(self, routing_key: str, message: Mapping[str, Any]) -> None:
        """Publish one message as persistent JSON.

        Args:
            routing_key: Topic routing key (the event type)
            message: Event envelope

        Raises:
            TransientBrokerError: Connecting failed, or publishing failed again
                after one reconnect
        """
        body = json.dumps(message, ensure_ascii=False, default=str).encode("utf-8")

        try:
            await self._publish_once(routing_key, message, body)
        except _CONNECTION_LOST_ERRORS as exc:
            logger.warning(
                "Broker connection lost while publishing, reconnecting",
                extra={"routing_key": routing_key, "error": str(exc)},
            )
            await self._invalidate()
            try:
                await self._publish_once(routing_key, message, body)
            except TransientBrokerError:
                raise
            except _PUBLISH_ERRORS as retry_exc:
                raise TransientBrokerError(
                    detail=f"Publish failed after reconnect: {retry_exc}",
                    extra={"routing_key": routing_key},
                ) from retry_exc
        except AMQPError as exc:
            raise TransientBrokerError(
                detail=f"Publish failed: {exc}",
                extra={"routing_key": routing_key},
            ) from exc

    async def disconnect(self) -> None:
        """Close the channel, then the connection. Always ends disconnected."""
        task = self._connect_task
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError, TransientBrokerError):
                await task
        self._connect_task = None

        await self._close_handles()
        self._state = BrokerState.DISCONNECTED
        logger.info("Broker client disconnected")

    # ─────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────
    async def _publish_once(
        self,
        routing_key: str,
        message: Mapping[str, Any],
        body: bytes,
    ) -> None:
        await self.connect()
        if self._exchange is None:
            raise ChannelInvalidStateError("Exchange is not declared")

        event_id = message.get("eventId")
        amqp_message = aio_pika.Message(
            body,
            content_type="application/json",
            delivery_mode=DeliveryMode.PERSISTENT,
            timestamp=datetime.now(UTC),
            message_id=str(event_id) if event_id is not None else None,
        )
        await self._exchange.publish(amqp_message, routing_key=routing_key)

        logger.debug(
            "Message published",
            extra={"routing_key": routing_key, "message_id": amqp_message.message_id},
        )

    async def _open(self) -> None:
        self._state = BrokerState.CONNECTING
        await self._close_handles()

        logger.info(
            "Connecting to RabbitMQ",
            extra={
                "host": self.settings.host,
                "port": self.settings.port,
                "exchange": self.settings.exchange_name,
            },
        )

        connection: AbstractRobustConnection | None = None
        try:
            connection = await aio_pika.connect_robust(
                self.settings.url,
                **self.settings.to_connection_kwargs(),
            )
            channel = await connection.channel()
            exchange = await channel.declare_exchange(
                self.settings.exchange_name,
                ExchangeType.TOPIC,
                durable=True,
            )
        except asyncio.CancelledError:
            # disconnect() during the handshake: do not leak a half-open connection
            self._state = BrokerState.DISCONNECTED
            if connection is not None:
                await self._close_quietly(connection, "connection")
            raise
        except Exception as exc:
            self._state = BrokerState.DISCONNECTED
            if connection is not None:
                await self._close_quietly(connection, "connection")
            logger.warning(
                "RabbitMQ connection failed",
                extra={"host": self.settings.host, "error": str(exc)},
            )
            raise TransientBrokerError(
                detail=f"Could not connect to RabbitMQ: {exc}",
                extra={"host": self.settings.host, "port": self.settings.port},
            ) from exc

        connection.close_callbacks.add(self._on_closed)
        channel.close_callbacks.add(self._on_closed)

        self._connection = connection
        self._channel = channel
        self._exchange = exchange
        self._state = BrokerState.CONNECTED
        logger.info(
            "Connected to RabbitMQ",
            extra={"exchange": self.settings.exchange_name},
        )

    def _on_closed(self, sender: Any, exc: BaseException | None = None) -> None:
        if sender is not self._connection and sender is not self._channel:
            return
        self._state = BrokerState.DISCONNECTED
        logger.warning(
            "RabbitMQ connection or channel closed",
            extra={"error": str(exc) if exc else None},
        )

    async def _invalidate(self) -> None:
        self._state = BrokerState.DISCONNECTED
        await self._close_handles()

    async def _close_handles(self) -> None:
        channel, connection = self._channel, self._connection
        self._channel = None
        self._connection = None
        self._exchange = None

        if channel is not None:
            await self._close_quietly(channel, "channel")
        if connection is not None:
            await self._close_quietly(connection, "connection")

    @staticmethod
    async def _close_quietly(handle: Any, kind: str) -> None:
        if handle.is_closed:
            return
        try:
            await handle.close()
        except Exception as exc:
            logger.warning(
                "Error closing RabbitMQ %s",
                kind,
                extra={"error": str(exc)},
            )


__all__ = ["BrokerClient", "BrokerState"]
