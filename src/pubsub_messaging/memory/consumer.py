"""InMemorySubscription — SubscriptionHandle with push delivery for tests."""

from __future__ import annotations

import collections
import dataclasses
from inspect import isawaitable
from typing import TYPE_CHECKING, Any

from ..exceptions import MessagingError

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine
    from datetime import datetime

    from .bus import InMemoryBroker


@dataclasses.dataclass(eq=False)
class InMemoryMessage:
    """One delivery attempt of a published message to one subscription."""

    subscription: InMemorySubscription
    message_id: str
    data: bytes
    attributes: dict[str, str]
    publish_time: datetime | None = None
    delivery_attempt: int = 1

    async def ack(self) -> None:
        self.subscription.record_ack(self)

    async def nack(self) -> None:
        self.subscription.record_nack(self)


class InMemorySubscription:
    """In-memory subscription bound to one topic of an :class:`InMemoryBroker`.

    Messages are pushed to attached listeners immediately (round-robin when
    several are attached) and kept in a backlog while none is attached.
    Nacked messages go back to the backlog and are pushed again on
    :meth:`redeliver` or when a listener attaches.
    """

    def __init__(
        self, broker: InMemoryBroker, name: str, topic: str | None
    ) -> None:
        self._broker = broker
        self._name = name
        self._topic = topic
        self._listeners: list[Callable[[Any], Coroutine[Any, Any, None]]] = []
        self._error_listeners: list[Callable[[BaseException], Any]] = []
        self._backlog: collections.deque[InMemoryMessage] = collections.deque()
        self._next = 0
        self.acked: list[str] = []
        self.nacked: list[str] = []
        self.deliveries = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def topic(self) -> str | None:
        return self._topic

    @property
    def listening(self) -> bool:
        return bool(self._listeners)

    @property
    def backlog(self) -> int:
        return len(self._backlog)

    async def exists(self) -> bool:
        return self._topic is not None and self._broker.has_subscription(self._name)

    async def on_message(
        self, callback: Callable[[Any], Coroutine[Any, Any, None]]
    ) -> None:
        if self._topic is None:
            raise MessagingError(f"Subscription {self._name!r} does not exist")
        self._listeners.append(callback)
        await self._flush()

    async def on_error(self, callback: Callable[[BaseException], Any]) -> None:
        self._error_listeners.append(callback)

    async def detach_listeners(self) -> None:
        self._listeners.clear()
        self._error_listeners.clear()

    async def push(self, message: InMemoryMessage) -> None:
        """Deliver *message* now, or keep it until a listener attaches."""
        if self._listeners:
            await self._deliver(message)
        else:
            self._backlog.append(message)

    async def redeliver(self) -> int:
        """Push every backlogged message to the attached listeners."""
        return await self._flush()

    async def emit_error(self, error: BaseException) -> None:
        """Simulate a transport-level error."""
        for callback in list(self._error_listeners):
            result = callback(error)
            if isawaitable(result):
                await result

    def record_ack(self, message: InMemoryMessage) -> None:
        self.acked.append(message.message_id)

    def record_nack(self, message: InMemoryMessage) -> None:
        self.nacked.append(message.message_id)
        self._backlog.append(
            dataclasses.replace(message, delivery_attempt=message.delivery_attempt + 1)
        )

    async def _deliver(self, message: InMemoryMessage) -> None:
        callback = self._listeners[self._next % len(self._listeners)]
        self._next += 1
        self.deliveries += 1
        await callback(message)

    async def _flush(self) -> int:
        # Messages nacked during the flush wait for the next one.
        count = 0
        for _ in range(len(self._backlog)):
            if not self._backlog or not self._listeners:
                break
            await self._deliver(self._backlog.popleft())
            count += 1
        return count
