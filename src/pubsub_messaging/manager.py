"""PubSubManager — wires one Publisher and named Subscribers for a process."""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from .codec import Codec
from .publisher import Publisher
from .subscriber import Subscriber

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .config import PubSubSettings
    from .ports import BrokerClient

logger = logging.getLogger("pubsub.manager")


class PubSubManager:
    """Composes a Publisher for ``settings.topic_name`` with named Subscribers.

    The broker client is constructed by the caller and passed in; the manager
    owns no process-wide state of its own.

    Usage::

        settings = PubSubSettings.from_env()
        manager = PubSubManager(client, settings)
        await manager.get_publisher().publish_message({"tipo": "log", "level": "INFO"})
        subscriber = manager.add_subscriber(settings.subscription_names[0])
        await subscriber.start_listening()
    """

    def __init__(
        self,
        client: BrokerClient,
        settings: PubSubSettings,
        *,
        codec: Codec | None = None,
    ) -> None:
        self._client = client
        self._settings = settings
        self._codec = codec or Codec(settings.origin)
        self._publisher = Publisher(
            client.topic(settings.topic_name), codec=self._codec
        )
        self._subscribers: dict[str, Subscriber] = {}

    @property
    def settings(self) -> PubSubSettings:
        return self._settings

    @property
    def subscribers(self) -> Mapping[str, Subscriber]:
        return MappingProxyType(self._subscribers)

    def get_publisher(self) -> Publisher:
        return self._publisher

    def add_subscriber(
        self,
        name: str,
        *,
        subscriber_cls: type[Subscriber] = Subscriber,
        **kwargs: Any,
    ) -> Subscriber:
        """Create and register a subscriber for subscription *name*.

        Extra *kwargs* go to ``subscriber_cls``; concurrency settings default
        to the values in ``settings``.
        """
        if name in self._subscribers:
            raise ValueError(f"Subscriber {name!r} is already registered")
        kwargs.setdefault("codec", self._codec)
        kwargs.setdefault(
            "max_concurrent_deliveries", self._settings.max_concurrent_deliveries
        )
        kwargs.setdefault("queue_size", self._settings.queue_size)
        subscriber = subscriber_cls(self._client.subscription(name), **kwargs)
        self._subscribers[name] = subscriber
        logger.info("Registered subscriber for subscription %s", name)
        return subscriber

    def get_subscriber(self, name: str) -> Subscriber | None:
        return self._subscribers.get(name)

    async def stop_all(self) -> None:
        """Stop every registered subscriber."""
        for subscriber in self._subscribers.values():
            await subscriber.stop_listening()

    # ── Broker queries ───────────────────────────────────────────

    async def check_topic(self) -> bool:
        """Return True if the configured topic exists; False on broker errors."""
        name = self._settings.topic_name
        try:
            exists = bool(await self._client.topic(name).exists())
        except Exception as e:  # noqa: BLE001
            logger.error("Failed to check topic %s: %s", name, e)
            return False
        logger.info("Topic %s: %s", name, "exists" if exists else "does not exist")
        return exists

    async def check_subscription(self, name: str) -> bool:
        """Return True if subscription *name* exists; False on broker errors."""
        try:
            exists = bool(await self._client.subscription(name).exists())
        except Exception as e:  # noqa: BLE001
            logger.error("Failed to check subscription %s: %s", name, e)
            return False
        logger.info(
            "Subscription %s: %s", name, "exists" if exists else "does not exist"
        )
        return exists

    async def list_topics(self) -> list[str]:
        """Return every topic name known to the broker; [] on broker errors."""
        try:
            topics = list(await self._client.list_topics())
        except Exception as e:  # noqa: BLE001
            logger.error("Failed to list topics: %s", e)
            return []
        logger.info("Available topics: %s", ", ".join(topics) or "(none)")
        return topics

    async def list_subscriptions(self) -> list[str]:
        """Return the subscriptions of the configured topic; [] on broker errors."""
        name = self._settings.topic_name
        try:
            subscriptions = list(await self._client.list_subscriptions(name))
        except Exception as e:  # noqa: BLE001
            logger.error("Failed to list subscriptions of topic %s: %s", name, e)
            return []
        logger.info(
            "Subscriptions of topic %s: %s", name, ", ".join(subscriptions) or "(none)"
        )
        return subscriptions
