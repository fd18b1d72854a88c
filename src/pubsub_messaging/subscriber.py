"""Subscriber — push-driven delivery through a bounded queue and worker pool."""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
from inspect import isawaitable
from typing import TYPE_CHECKING, Any

from .codec import Codec
from .delivery import DeliveryHandle
from .exceptions import DeserializationError

if TYPE_CHECKING:
    from collections.abc import Callable

    from .ports import IncomingMessage, SubscriptionHandle

logger = logging.getLogger("pubsub.subscriber")


class SubscriberState(str, enum.Enum):
    IDLE = "idle"
    LISTENING = "listening"
    STOPPED = "stopped"


class Subscriber:
    """Receives messages pushed by the broker and hands each to a handler.

    The broker callback only enqueues a :class:`DeliveryHandle` into a bounded
    queue; ``max_concurrent_deliveries`` worker tasks drain the queue and
    invoke the handler. A full queue makes the broker callback wait.

    Handler exceptions are contained: they are logged, the delivery is
    rejected if still pending, and the worker moves on to the next message.

    Usage::

        subscriber = Subscriber(client.subscription("orders-sub"))

        async def handle(delivery: DeliveryHandle) -> None:
            print(delivery.payload())
            await delivery.accept()

        await subscriber.start_listening(handle)
        ...
        await subscriber.stop_listening()
    """

    def __init__(
        self,
        subscription: SubscriptionHandle,
        *,
        codec: Codec | None = None,
        max_concurrent_deliveries: int = 10,
        queue_size: int = 100,
    ) -> None:
        """Take exclusive ownership of *subscription*.

        Args:
            subscription: Broker subscription handle.
            codec: Used by the default handler; default ``Codec()``.
            max_concurrent_deliveries: Number of worker tasks.
            queue_size: Capacity of the delivery queue.
        """
        if max_concurrent_deliveries < 1:
            raise ValueError("max_concurrent_deliveries must be >= 1")
        if queue_size < 1:
            raise ValueError("queue_size must be >= 1")
        self._subscription = subscription
        self._codec = codec or Codec()
        self._max_concurrent = max_concurrent_deliveries
        self._queue_size = queue_size
        self._state = SubscriberState.IDLE
        self._lock = asyncio.Lock()
        self._handler: Callable[[DeliveryHandle], Any] | None = None
        self._queue: asyncio.Queue[DeliveryHandle] | None = None
        self._workers: list[asyncio.Task[None]] = []
        self._busy: set[asyncio.Task[Any]] = set()

    @property
    def subscription_name(self) -> str:
        return self._subscription.name

    @property
    def state(self) -> SubscriberState:
        return self._state

    @property
    def codec(self) -> Codec:
        return self._codec

    # ── Lifecycle ────────────────────────────────────────────────

    async def start_listening(
        self, handler: Callable[[DeliveryHandle], Any] | None = None
    ) -> None:
        """Attach listeners and start the workers (IDLE/STOPPED -> LISTENING).

        Without *handler* the :meth:`default_handler` is used.
        """
        async with self._lock:
            if self._state is SubscriberState.LISTENING:
                logger.warning(
                    "Subscriber %s is already listening", self.subscription_name
                )
                return

            previous = self._state
            self._handler = handler or self.default_handler
            queue: asyncio.Queue[DeliveryHandle] = asyncio.Queue(
                maxsize=self._queue_size
            )
            self._queue = queue
            self._workers = [
                asyncio.create_task(
                    self._worker(queue),
                    name=f"subscriber:{self.subscription_name}:{i}",
                )
                for i in range(self._max_concurrent)
            ]
            self._state = SubscriberState.LISTENING
            try:
                await self._subscription.on_error(self._on_error)
                await self._subscription.on_message(self._on_message)
            except Exception:
                logger.exception(
                    "Failed to attach listeners to subscription %s",
                    self.subscription_name,
                )
                self._state = previous
                self._queue = None
                for task in self._workers:
                    task.cancel()
                self._workers = []
                with contextlib.suppress(Exception):
                    await self._subscription.detach_listeners()
                raise

            logger.info(
                "Listening for messages on subscription %s (workers=%d)",
                self.subscription_name,
                self._max_concurrent,
            )

    async def stop_listening(self) -> None:
        """Detach listeners (LISTENING -> STOPPED). No-op when not listening.

        Handler invocations already running are neither cancelled nor awaited.
        Deliveries still queued are rejected so the broker redelivers them.
        """
        async with self._lock:
            if self._state is not SubscriberState.LISTENING:
                return
            self._state = SubscriberState.STOPPED
            try:
                await self._subscription.detach_listeners()
            except Exception:
                logger.exception(
                    "Failed to detach listeners from subscription %s",
                    self.subscription_name,
                )

            queue, self._queue = self._queue, None
            leftovers = _drain(queue) if queue is not None else []
            for task in self._workers:
                if task not in self._busy:
                    task.cancel()
            self._workers = []

        for handle in leftovers:
            await handle.reject()
        logger.info(
            "Subscriber %s stopped (%d queued deliveries returned to the broker)",
            self.subscription_name,
            len(leftovers),
        )

    async def join(self) -> None:
        """Wait until every queued delivery has been handled.

        Retries scheduled by a :class:`RetryPolicy` run outside the queue and
        are not awaited here; use ``DeliveryHandle.wait_resolved`` for those.
        """
        queue = self._queue
        if queue is not None:
            await queue.join()

    async def health_check(self) -> bool:
        """Return True if the subscription exists and is reachable."""
        try:
            return bool(await self._subscription.exists())
        except Exception:  # noqa: BLE001
            return False

    # ── Default handler ──────────────────────────────────────────

    async def default_handler(self, delivery: DeliveryHandle) -> None:
        """Decode and log the message, then accept it; reject undecodable bytes."""
        try:
            payload = self._codec.decode(delivery.raw_bytes)
        except DeserializationError as e:
            logger.error(
                "Could not decode message %s on subscription %s: %s",
                delivery.id,
                self.subscription_name,
                e,
            )
            await delivery.reject()
            return

        logger.info(
            "Received message %s on subscription %s "
            "(published=%s, size=%d bytes): data=%s attributes=%s",
            delivery.id,
            self.subscription_name,
            delivery.publish_time,
            delivery.size_bytes,
            payload,
            delivery.attributes,
        )
        await delivery.accept()

    # ── Broker callbacks ─────────────────────────────────────────

    async def _on_message(self, message: IncomingMessage) -> None:
        handle = DeliveryHandle(message, subscription_name=self.subscription_name)
        queue = self._queue
        if queue is None or self._state is not SubscriberState.LISTENING:
            logger.debug(
                "Message %s arrived after listeners were detached", handle.id
            )
            await handle.reject()
            return
        await queue.put(handle)
        if queue is not self._queue:
            # Stopped while waiting for queue space.
            for orphan in _drain(queue):
                await orphan.reject()

    def _on_error(self, error: BaseException) -> None:
        logger.error(
            "Transport error on subscription %s: %s", self.subscription_name, error
        )

    # ── Workers ──────────────────────────────────────────────────

    async def _worker(self, queue: asyncio.Queue[DeliveryHandle]) -> None:
        task = asyncio.current_task()
        while True:
            handle = await queue.get()
            if task is not None:
                self._busy.add(task)
            try:
                await self._dispatch(handle)
            finally:
                if task is not None:
                    self._busy.discard(task)
                queue.task_done()
            if queue is not self._queue:
                return

    async def _dispatch(self, handle: DeliveryHandle) -> None:
        handler = self._handler or self.default_handler
        try:
            result = handler(handle)
            if isawaitable(result):
                await result
        except Exception:
            logger.exception(
                "Handler failed for message %s on subscription %s",
                handle.id,
                self.subscription_name,
            )
            if not handle.is_resolved:
                await handle.reject()


def _drain(queue: asyncio.Queue[DeliveryHandle]) -> list[DeliveryHandle]:
    items: list[DeliveryHandle] = []
    while True:
        try:
            items.append(queue.get_nowait())
        except asyncio.QueueEmpty:
            return items
        queue.task_done()
