"""Publisher — single and sequential batch publication to one topic."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from .codec import Codec
from .envelope import PublishReceipt
from .exceptions import PublishError, SerializationError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .ports import TopicHandle

logger = logging.getLogger("pubsub.publisher")


def _payload_to_mapping(payload: Any) -> Any:
    """Dump pydantic models (e.g. typed payload variants) to plain mappings."""
    if hasattr(payload, "model_dump"):
        return payload.model_dump(mode="json", by_alias=True)
    return payload


class Publisher:
    """Encodes payloads with a :class:`Codec` and submits them to a topic.

    The publisher never retries on its own: every broker failure surfaces to
    the caller as :class:`PublishError`.
    """

    def __init__(self, topic: TopicHandle, *, codec: Codec | None = None) -> None:
        """Take exclusive ownership of *topic*.

        Args:
            topic: Broker topic handle (from ``BrokerClient.topic(name)``).
            codec: Payload codec; default ``Codec()``.
        """
        self._topic = topic
        self._codec = codec or Codec()

    @property
    def topic_name(self) -> str:
        return self._topic.name

    @property
    def codec(self) -> Codec:
        return self._codec

    async def publish_message(
        self,
        payload: Mapping[str, Any] | Any,
        *,
        attributes: Mapping[str, str] | None = None,
    ) -> PublishReceipt:
        """Encode *payload* and submit it to the topic (one broker round trip).

        Raises:
            SerializationError: payload cannot be encoded.
            PublishError: the broker or transport rejected the publish.
        """
        try:
            envelope = self._codec.encode(_payload_to_mapping(payload), attributes)
        except SerializationError as e:
            logger.error(
                "Failed to encode message for topic %s: %s", self.topic_name, e
            )
            raise
        try:
            message_id = await self._topic.publish(envelope.data, envelope.attributes)
        except Exception as e:
            logger.error(
                "Failed to publish message to topic %s: %s", self.topic_name, e
            )
            raise PublishError(
                f"Failed to publish to topic {self.topic_name!r}: {e}"
            ) from e
        logger.info("Published message %s to topic %s", message_id, self.topic_name)
        return PublishReceipt(message_id=str(message_id))

    async def publish_batch(
        self, payloads: Sequence[Mapping[str, Any] | Any]
    ) -> list[PublishReceipt]:
        """Publish *payloads* one after another, preserving input order.

        ``receipts[i]`` belongs to ``payloads[i]``. The first failure aborts the
        batch with :class:`PublishError` (``failed_index`` set) and no receipts
        are returned, including those of messages that already landed.
        """
        receipts: list[PublishReceipt] = []
        for index, payload in enumerate(payloads):
            try:
                receipts.append(await self.publish_message(payload))
            except Exception as e:
                logger.error(
                    "Batch publish to topic %s aborted at item %d of %d",
                    self.topic_name,
                    index,
                    len(payloads),
                )
                raise PublishError(
                    f"Batch publish aborted at item {index}: {e}",
                    failed_index=index,
                ) from e
        logger.info(
            "Published batch of %d messages to topic %s",
            len(receipts),
            self.topic_name,
        )
        return receipts

    async def health_check(self) -> bool:
        """Return True if the topic exists and is reachable."""
        try:
            return bool(await self._topic.exists())
        except Exception:  # noqa: BLE001
            return False
