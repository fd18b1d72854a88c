"""RabbitMQBrokerClient — BrokerClient backed by aio_pika."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .consumer import RabbitMQSubscription
from .publisher import RabbitMQTopic

if TYPE_CHECKING:
    from .connection import RabbitMQConnectionManager

logger = logging.getLogger(__name__)


class RabbitMQBrokerClient:
    """Resolves topics to fanout exchanges and subscriptions to queues.

    AMQP has no listing operation, so ``list_topics`` and
    ``list_subscriptions`` report what this client has provisioned or
    resolved and still exists on the broker.
    """

    def __init__(self, connection: RabbitMQConnectionManager) -> None:
        self._connection = connection
        self._topics: dict[str, RabbitMQTopic] = {}
        self._subscriptions: dict[str, RabbitMQSubscription] = {}
        self._bindings: dict[str, str] = {}

    @property
    def connection(self) -> RabbitMQConnectionManager:
        return self._connection

    def topic(self, name: str) -> RabbitMQTopic:
        if name not in self._topics:
            self._topics[name] = RabbitMQTopic(self._connection, name)
        return self._topics[name]

    def subscription(self, name: str) -> RabbitMQSubscription:
        if name not in self._subscriptions:
            self._subscriptions[name] = RabbitMQSubscription(self._connection, name)
        return self._subscriptions[name]

    async def create_topic(self, name: str) -> RabbitMQTopic:
        """Declare the durable fanout exchange for *name*."""
        topic = self.topic(name)
        await topic.ensure_exchange()
        logger.info("Provisioned topic %s", name)
        return topic

    async def bind(self, subscription: str, topic: str) -> RabbitMQSubscription:
        """Declare a durable queue *subscription* and bind it to *topic*'s exchange."""
        exchange = await self.topic(topic).ensure_exchange()
        queue = await self._connection.channel.declare_queue(
            subscription, durable=True
        )
        await queue.bind(exchange, routing_key="")
        self._bindings[subscription] = topic
        logger.info("Provisioned subscription %s on topic %s", subscription, topic)
        return self.subscription(subscription)

    async def list_topics(self) -> list[str]:
        return [
            name for name, topic in self._topics.items() if await topic.exists()
        ]

    async def list_subscriptions(self, topic: str) -> list[str]:
        names = [name for name, bound in self._bindings.items() if bound == topic]
        return [
            name for name in names if await self.subscription(name).exists()
        ]

    async def close(self) -> None:
        await self._connection.close()
