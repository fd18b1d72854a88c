"""RabbitMQSubscription — SubscriptionHandle over a durable queue."""

from __future__ import annotations

import asyncio
import logging
from inspect import isawaitable
from typing import TYPE_CHECKING, Any

from ..exceptions import MessagingError

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine
    from datetime import datetime

    from aio_pika.abc import AbstractIncomingMessage, AbstractQueue

    from .connection import RabbitMQConnectionManager

logger = logging.getLogger(__name__)


def _header_value(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


class RabbitMQMessage:
    """IncomingMessage view of an aio_pika delivery.

    ``nack`` requeues the message so the broker redelivers it.
    """

    def __init__(self, raw: AbstractIncomingMessage) -> None:
        self._raw = raw
        self.message_id: str = raw.message_id or str(raw.delivery_tag)
        self.data: bytes = raw.body
        self.publish_time: datetime | None = raw.timestamp
        self.attributes: dict[str, str] = {
            key: _header_value(value) for key, value in (raw.headers or {}).items()
        }

    async def ack(self) -> None:
        await self._raw.ack()

    async def nack(self) -> None:
        await self._raw.nack(requeue=True)


class RabbitMQSubscription:
    """A subscription is a durable queue bound to a topic's fanout exchange.

    Listeners are attached as queue consumers on the shared channel; error
    listeners receive the exception that closed the channel, if any.
    """

    def __init__(self, connection: RabbitMQConnectionManager, name: str) -> None:
        self._connection = connection
        self._name = name
        self._consumers: list[tuple[AbstractQueue, str]] = []
        self._close_callbacks: list[Callable[..., Any]] = []
        self._pending: set[asyncio.Future[Any]] = set()

    @property
    def name(self) -> str:
        return self._name

    async def exists(self) -> bool:
        return await self._connection.queue_exists(self._name)

    async def on_message(
        self, callback: Callable[[Any], Coroutine[Any, Any, None]]
    ) -> None:
        """Start consuming the (already provisioned) queue with manual acks."""
        if not await self.exists():
            raise MessagingError(f"Subscription {self._name!r} does not exist")
        queue = await self._connection.channel.get_queue(self._name, ensure=False)

        async def consume(raw: AbstractIncomingMessage) -> None:
            await callback(RabbitMQMessage(raw))

        consumer_tag = await queue.consume(consume, no_ack=False)
        self._consumers.append((queue, consumer_tag))
        logger.debug("Consuming %s with tag %s", self._name, consumer_tag)

    async def on_error(self, callback: Callable[[BaseException], Any]) -> None:
        await self._connection.connect()

        def on_close(_sender: Any, *args: Any) -> None:
            error = args[0] if args else None
            if not isinstance(error, BaseException):
                return
            result = callback(error)
            if isawaitable(result):
                # Close callbacks are synchronous.
                task = asyncio.ensure_future(result)
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)

        self._connection.channel.close_callbacks.add(on_close)
        self._close_callbacks.append(on_close)

    async def detach_listeners(self) -> None:
        """Cancel every consumer and drop error listeners."""
        consumers, self._consumers = self._consumers, []
        for queue, consumer_tag in consumers:
            await queue.cancel(consumer_tag)
        callbacks, self._close_callbacks = self._close_callbacks, []
        if callbacks:
            close_callbacks = self._connection.channel.close_callbacks
            for cb in callbacks:
                close_callbacks.discard(cb)
