"""RabbitMQTopic — TopicHandle over a durable fanout exchange."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import aio_pika
from aio_pika.exceptions import AMQPError

from ..exceptions import MessagingConnectionError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from aio_pika.abc import AbstractExchange

    from .connection import RabbitMQConnectionManager


class RabbitMQTopic:
    """A topic is a durable fanout exchange; each bound queue is a subscription.

    Publishes are confirmed by the broker (publisher confirms on the shared
    channel) before ``publish`` returns.
    """

    def __init__(self, connection: RabbitMQConnectionManager, name: str) -> None:
        self._connection = connection
        self._name = name
        self._exchange: AbstractExchange | None = None

    @property
    def name(self) -> str:
        return self._name

    async def ensure_exchange(self) -> AbstractExchange:
        """Declare the fanout exchange (idempotent)."""
        if self._exchange is not None:
            return self._exchange
        await self._connection.connect()
        self._exchange = await self._connection.channel.declare_exchange(
            self._name,
            aio_pika.ExchangeType.FANOUT,
            durable=True,
        )
        return self._exchange

    async def publish(self, data: bytes, attributes: Mapping[str, str]) -> str:
        """Publish one persistent message and return its generated message id."""
        exchange = await self.ensure_exchange()
        message_id = str(uuid.uuid4())
        try:
            await exchange.publish(
                aio_pika.Message(
                    body=data,
                    content_type="application/json",
                    message_id=message_id,
                    timestamp=datetime.now(timezone.utc),
                    headers=dict(attributes),
                    delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
                ),
                routing_key="",
            )
        except (AMQPError, ConnectionError) as e:
            raise MessagingConnectionError(
                f"Publish to {self._name!r} failed: {e}"
            ) from e
        return message_id

    async def exists(self) -> bool:
        return await self._connection.exchange_exists(self._name)
