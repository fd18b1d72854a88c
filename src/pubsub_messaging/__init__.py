"""Publish/subscribe messaging with explicit acknowledgement and bounded retry."""

from __future__ import annotations

from .clock import Clock, ManualClock, SystemClock
from .codec import Codec
from .config import PubSubSettings
from .delivery import Decision, DeliveryHandle
from .envelope import DEFAULT_ORIGIN, Envelope, PublishReceipt
from .exceptions import (
    ConfigurationError,
    DeserializationError,
    DoubleResolutionWarning,
    MessagingConnectionError,
    MessagingError,
    ProcessingError,
    PublishError,
    PubSubError,
    SerializationError,
)
from .manager import PubSubManager
from .memory import InMemoryBroker
from .payloads import BasePayload, PayloadRegistry, UnknownPayload, parse_payload
from .ports import BrokerClient, IncomingMessage, SubscriptionHandle, TopicHandle
from .publisher import Publisher
from .retry import RetryingSubscriber, RetryPolicy
from .routing import TypeRouter
from .subscriber import Subscriber, SubscriberState

__all__ = [
    "DEFAULT_ORIGIN",
    "BasePayload",
    "BrokerClient",
    "Clock",
    "Codec",
    "ConfigurationError",
    "Decision",
    "DeliveryHandle",
    "DeserializationError",
    "DoubleResolutionWarning",
    "Envelope",
    "InMemoryBroker",
    "IncomingMessage",
    "ManualClock",
    "MessagingConnectionError",
    "MessagingError",
    "PayloadRegistry",
    "ProcessingError",
    "PubSubError",
    "PubSubManager",
    "PubSubSettings",
    "PublishError",
    "PublishReceipt",
    "Publisher",
    "RetryPolicy",
    "RetryingSubscriber",
    "SerializationError",
    "Subscriber",
    "SubscriberState",
    "SubscriptionHandle",
    "SystemClock",
    "TopicHandle",
    "TypeRouter",
    "UnknownPayload",
    "parse_payload",
]
