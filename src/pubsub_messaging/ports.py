from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine, Mapping
    from datetime import datetime


@runtime_checkable
class IncomingMessage(Protocol):
    """
    One message pushed by the broker to a subscription.

    Broker adapters provide concrete implementations; the core wraps them in
    :class:`~pubsub_messaging.delivery.DeliveryHandle`.
    """

    @property
    def message_id(self) -> str: ...

    @property
    def publish_time(self) -> datetime | None: ...

    @property
    def data(self) -> bytes: ...

    @property
    def attributes(self) -> Mapping[str, str]: ...

    async def ack(self) -> None:
        """Tell the broker the message must not be redelivered."""
        ...

    async def nack(self) -> None:
        """Tell the broker to redeliver the message."""
        ...


@runtime_checkable
class TopicHandle(Protocol):
    """
    Port for a broker-side topic that publishers send to.
    """

    @property
    def name(self) -> str: ...

    async def publish(self, data: bytes, attributes: Mapping[str, str]) -> str:
        """
        Submit one message and return the broker-assigned message id.

        Raises whatever the transport raises on failure; the Publisher wraps
        it in :class:`~pubsub_messaging.exceptions.PublishError`.
        """
        ...

    async def exists(self) -> bool: ...


@runtime_checkable
class SubscriptionHandle(Protocol):
    """
    Port for a broker-side subscription that pushes messages to listeners.
    """

    @property
    def name(self) -> str: ...

    async def on_message(
        self,
        callback: Callable[[IncomingMessage], Coroutine[Any, Any, None]],
    ) -> None:
        """Attach *callback*; the broker awaits it once per delivered message."""
        ...

    async def on_error(self, callback: Callable[[BaseException], Any]) -> None:
        """Attach *callback* for transport-level errors."""
        ...

    async def detach_listeners(self) -> None:
        """Remove every message and error callback; no further pushes happen."""
        ...

    async def exists(self) -> bool: ...


@runtime_checkable
class BrokerClient(Protocol):
    """
    Port for the broker client shared by publishers and subscribers.

    Constructed once by the composing component and passed in explicitly.
    """

    def topic(self, name: str) -> TopicHandle: ...

    def subscription(self, name: str) -> SubscriptionHandle: ...

    async def list_topics(self) -> list[str]: ...

    async def list_subscriptions(self, topic: str) -> list[str]: ...
