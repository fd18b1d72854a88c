"""In-memory broker for testing — connects topics to their subscriptions."""

from __future__ import annotations

import itertools
from typing import TYPE_CHECKING

from ..clock import SystemClock
from ..exceptions import MessagingError
from .consumer import InMemoryMessage, InMemorySubscription
from .publisher import InMemoryTopic

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ..clock import Clock


class InMemoryBroker:
    """Shared broker: publish records the message and pushes it to every
    subscription bound to the topic.

    Topics and subscriptions must be provisioned with :meth:`create_topic` and
    :meth:`create_subscription` (or ``auto_create=True``).
    """

    def __init__(
        self, *, auto_create: bool = False, clock: Clock | None = None
    ) -> None:
        self._auto_create = auto_create
        self._clock = clock or SystemClock()
        self._topics: dict[str, InMemoryTopic] = {}
        self._subscriptions: dict[str, InMemorySubscription] = {}
        self._bindings: dict[str, list[str]] = {}
        self._published: list[tuple[str, bytes, dict[str, str], str]] = []
        self._ids = itertools.count(1)

    # ── Provisioning ─────────────────────────────────────────────

    def create_topic(self, name: str) -> InMemoryTopic:
        """Create topic *name* (idempotent)."""
        if name not in self._topics:
            self._topics[name] = InMemoryTopic(self, name)
            self._bindings.setdefault(name, [])
        return self._topics[name]

    def create_subscription(self, name: str, topic: str) -> InMemorySubscription:
        """Create subscription *name* on *topic* (idempotent)."""
        self.create_topic(topic)
        if name not in self._subscriptions:
            self._subscriptions[name] = InMemorySubscription(self, name, topic)
            self._bindings[topic].append(name)
        return self._subscriptions[name]

    # ── BrokerClient ─────────────────────────────────────────────

    def topic(self, name: str) -> InMemoryTopic:
        if name in self._topics:
            return self._topics[name]
        if self._auto_create:
            return self.create_topic(name)
        return InMemoryTopic(self, name)

    def subscription(self, name: str) -> InMemorySubscription:
        if name in self._subscriptions:
            return self._subscriptions[name]
        return InMemorySubscription(self, name, topic=None)

    async def list_topics(self) -> list[str]:
        return list(self._topics)

    async def list_subscriptions(self, topic: str) -> list[str]:
        return list(self._bindings.get(topic, []))

    # ── Internals used by the handles ────────────────────────────

    def has_topic(self, name: str) -> bool:
        return name in self._topics

    def has_subscription(self, name: str) -> bool:
        return name in self._subscriptions

    async def publish(
        self, topic: str, data: bytes, attributes: Mapping[str, str]
    ) -> str:
        """Record the message and push it to every bound subscription."""
        if topic not in self._topics:
            if not self._auto_create:
                raise MessagingError(f"Topic {topic!r} does not exist")
            self.create_topic(topic)
        message_id = str(next(self._ids))
        attrs = dict(attributes)
        self._published.append((topic, bytes(data), attrs, message_id))
        publish_time = self._clock.now()
        for name in self._bindings[topic]:
            subscription = self._subscriptions[name]
            await subscription.push(
                InMemoryMessage(
                    subscription=subscription,
                    message_id=message_id,
                    data=bytes(data),
                    attributes=attrs,
                    publish_time=publish_time,
                )
            )
        return message_id

    # ── Test helpers ─────────────────────────────────────────────

    def get_published(self) -> list[tuple[str, bytes, dict[str, str], str]]:
        """Return all published (topic, data, attributes, message_id) in order."""
        return list(self._published)

    def clear(self) -> None:
        """Forget published messages (for test teardown)."""
        self._published.clear()
