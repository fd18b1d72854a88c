"""RabbitMQ transport adapter (optional extra: pubsub-messaging[rabbitmq])."""

from __future__ import annotations

from .client import RabbitMQBrokerClient
from .connection import RabbitMQConnectionManager
from .consumer import RabbitMQMessage, RabbitMQSubscription
from .publisher import RabbitMQTopic

__all__ = [
    "RabbitMQBrokerClient",
    "RabbitMQConnectionManager",
    "RabbitMQMessage",
    "RabbitMQSubscription",
    "RabbitMQTopic",
]
