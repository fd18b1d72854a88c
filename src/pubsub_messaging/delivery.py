"""DeliveryHandle — one inbound message with an exactly-once terminal decision."""

from __future__ import annotations

import asyncio
import enum
import logging
import threading
import warnings
from typing import TYPE_CHECKING

from .codec import Codec
from .exceptions import DoubleResolutionWarning

if TYPE_CHECKING:
    from datetime import datetime

    from .codec import Payload
    from .ports import IncomingMessage

logger = logging.getLogger("pubsub.delivery")


class Decision(str, enum.Enum):
    """Local acknowledgment state of a delivery."""

    PENDING = "pending"
    ACKED = "acked"
    NACKED = "nacked"


class DeliveryHandle:
    """Wraps an :class:`IncomingMessage` and tracks the handler's decision.

    ``accept()`` and ``reject()`` are terminal and mutually exclusive: the
    first call is recorded and forwarded to the broker, every later call is
    ignored with a :class:`DoubleResolutionWarning`. The decision is recorded
    before the broker is contacted, so ``decision`` is reliable as soon as the
    call returns.
    """

    def __init__(
        self,
        message: IncomingMessage,
        *,
        subscription_name: str | None = None,
    ) -> None:
        self._message = message
        self._subscription_name = subscription_name
        self.id: str = str(message.message_id)
        self.publish_time: datetime | None = message.publish_time
        self.raw_bytes: bytes = bytes(message.data)
        self.size_bytes: int = len(self.raw_bytes)
        self.attributes: dict[str, str] = dict(message.attributes or {})
        self._decision = Decision.PENDING
        self._lock = threading.Lock()
        self._resolved = asyncio.Event()

    @property
    def decision(self) -> Decision:
        return self._decision

    @property
    def is_resolved(self) -> bool:
        return self._decision is not Decision.PENDING

    @property
    def subscription_name(self) -> str | None:
        return self._subscription_name

    def payload(self, codec: Codec | None = None) -> Payload:
        """Decode the raw bytes (raises ``DeserializationError`` if malformed)."""
        return (codec or Codec()).decode(self.raw_bytes)

    async def accept(self) -> bool:
        """Acknowledge: the broker must not redeliver this message.

        Returns True if this call made the terminal decision.
        """
        if not self._resolve(Decision.ACKED):
            return False
        try:
            await self._message.ack()
        except Exception:
            logger.exception("Broker ack failed for message %s", self.id)
        logger.info(
            "Message %s acknowledged (ACK) on subscription %s",
            self.id,
            self._subscription_name,
        )
        return True

    async def reject(self) -> bool:
        """Negative-acknowledge: the broker schedules a redelivery.

        Returns True if this call made the terminal decision.
        """
        if not self._resolve(Decision.NACKED):
            return False
        try:
            await self._message.nack()
        except Exception:
            logger.exception("Broker nack failed for message %s", self.id)
        logger.info(
            "Message %s rejected (NACK) on subscription %s; it will be redelivered",
            self.id,
            self._subscription_name,
        )
        return True

    async def wait_resolved(self) -> Decision:
        """Wait until a terminal decision has been recorded."""
        await self._resolved.wait()
        return self._decision

    def _resolve(self, decision: Decision) -> bool:
        with self._lock:
            previous = self._decision
            if previous is Decision.PENDING:
                self._decision = decision
        if previous is not Decision.PENDING:
            warnings.warn(
                f"Delivery {self.id} is already {previous.value}; "
                f"ignoring {decision.value}",
                DoubleResolutionWarning,
                stacklevel=3,
            )
            logger.warning(
                "Ignoring %s for message %s: already %s",
                decision.value,
                self.id,
                previous.value,
            )
            return False
        self._resolved.set()
        return True

    def __repr__(self) -> str:
        return (
            f"DeliveryHandle(id={self.id!r}, size_bytes={self.size_bytes}, "
            f"decision={self._decision.value})"
        )
