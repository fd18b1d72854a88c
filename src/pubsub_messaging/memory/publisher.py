"""InMemoryTopic — TopicHandle backed by the in-memory broker."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .bus import InMemoryBroker


class InMemoryTopic:
    """Topic handle that publishes through a shared :class:`InMemoryBroker`."""

    def __init__(self, broker: InMemoryBroker, name: str) -> None:
        self._broker = broker
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    async def publish(self, data: bytes, attributes: Mapping[str, str]) -> str:
        """Publish to the broker; raises ``MessagingError`` for unknown topics."""
        return await self._broker.publish(self._name, data, attributes)

    async def exists(self) -> bool:
        return self._broker.has_topic(self._name)

    def get_published(self) -> list[tuple[bytes, dict[str, str], str]]:
        """Return (data, attributes, message_id) published to this topic."""
        return [
            (data, attrs, message_id)
            for topic, data, attrs, message_id in self._broker.get_published()
            if topic == self._name
        ]
