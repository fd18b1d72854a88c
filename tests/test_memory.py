"""Tests for the in-memory broker, topics and subscriptions."""

from __future__ import annotations

from typing import Any

import pytest

from pubsub_messaging.exceptions import MessagingError
from pubsub_messaging.memory import InMemoryBroker, InMemoryMessage
from pubsub_messaging.ports import IncomingMessage, SubscriptionHandle, TopicHandle


@pytest.mark.asyncio
async def test_publish_get_published() -> None:
    broker = InMemoryBroker()
    topic = broker.create_topic("orders")
    first = await topic.publish(b'{"n": 1}', {"origin": "a"})
    second = await topic.publish(b'{"n": 2}', {"origin": "b"})
    assert (first, second) == ("1", "2")
    published = broker.get_published()
    assert [p[0] for p in published] == ["orders", "orders"]
    assert published[1][1] == b'{"n": 2}'
    assert topic.get_published()[0] == (b'{"n": 1}', {"origin": "a"}, "1")
    broker.clear()
    assert broker.get_published() == []


@pytest.mark.asyncio
async def test_unknown_topic_raises_unless_auto_create() -> None:
    with pytest.raises(MessagingError, match="does not exist"):
        await InMemoryBroker().topic("ghost").publish(b"{}", {})
    broker = InMemoryBroker(auto_create=True)
    assert await broker.topic("ghost").publish(b"{}", {}) == "1"
    assert await broker.list_topics() == ["ghost"]


@pytest.mark.asyncio
async def test_fan_out_to_every_subscription() -> None:
    broker = InMemoryBroker()
    broker.create_subscription("a", "orders")
    broker.create_subscription("b", "orders")
    broker.create_subscription("other", "billing")
    received: dict[str, list[bytes]] = {"a": [], "b": [], "other": []}

    for name in received:

        async def listener(message: Any, name: str = name) -> None:
            received[name].append(message.data)
            await message.ack()

        await broker.subscription(name).on_message(listener)

    await broker.topic("orders").publish(b"x", {})
    assert received == {"a": [b"x"], "b": [b"x"], "other": []}
    assert broker.subscription("a").acked == ["1"]


@pytest.mark.asyncio
async def test_backlog_until_listener_attaches() -> None:
    broker = InMemoryBroker()
    subscription = broker.create_subscription("sub", "orders")
    await broker.topic("orders").publish(b"1", {})
    await broker.topic("orders").publish(b"2", {})
    assert subscription.backlog == 2
    assert not subscription.listening

    seen: list[bytes] = []

    async def listener(message: Any) -> None:
        seen.append(message.data)

    await subscription.on_message(listener)
    assert seen == [b"1", b"2"]
    assert subscription.backlog == 0
    assert subscription.deliveries == 2


@pytest.mark.asyncio
async def test_nack_requeues_for_redelivery() -> None:
    broker = InMemoryBroker()
    subscription = broker.create_subscription("sub", "orders")
    attempts: list[int] = []

    async def listener(message: Any) -> None:
        attempts.append(message.delivery_attempt)
        if message.delivery_attempt < 2:
            await message.nack()
        else:
            await message.ack()

    await subscription.on_message(listener)
    await broker.topic("orders").publish(b"{}", {})
    assert subscription.nacked == ["1"]
    assert subscription.backlog == 1

    assert await subscription.redeliver() == 1
    assert attempts == [1, 2]
    assert subscription.acked == ["1"]
    assert subscription.backlog == 0


@pytest.mark.asyncio
async def test_redeliver_with_persistent_nack_terminates() -> None:
    broker = InMemoryBroker()
    subscription = broker.create_subscription("sub", "orders")

    async def listener(message: Any) -> None:
        await message.nack()

    await subscription.on_message(listener)
    await broker.topic("orders").publish(b"{}", {})
    assert await subscription.redeliver() == 1
    assert subscription.nacked == ["1", "1"]
    assert subscription.backlog == 1


@pytest.mark.asyncio
async def test_round_robin_between_listeners() -> None:
    broker = InMemoryBroker()
    subscription = broker.create_subscription("sub", "orders")
    first: list[bytes] = []
    second: list[bytes] = []

    async def listen_first(message: Any) -> None:
        first.append(message.data)

    async def listen_second(message: Any) -> None:
        second.append(message.data)

    await subscription.on_message(listen_first)
    await subscription.on_message(listen_second)
    for data in (b"a", b"b", b"c"):
        await broker.topic("orders").publish(data, {})
    assert first == [b"a", b"c"]
    assert second == [b"b"]


@pytest.mark.asyncio
async def test_detach_and_emit_error() -> None:
    broker = InMemoryBroker()
    subscription = broker.create_subscription("sub", "orders")
    errors: list[BaseException] = []

    async def listener(message: Any) -> None:
        raise AssertionError("must not be called")

    await subscription.on_message(listener)
    await subscription.on_error(errors.append)
    await subscription.emit_error(ConnectionResetError("reset"))
    assert len(errors) == 1

    await subscription.detach_listeners()
    await subscription.emit_error(ConnectionResetError("again"))
    await broker.topic("orders").publish(b"{}", {})
    assert len(errors) == 1
    assert subscription.backlog == 1


@pytest.mark.asyncio
async def test_unregistered_subscription() -> None:
    broker = InMemoryBroker()
    broker.create_topic("orders")
    subscription = broker.subscription("ghost")
    assert await subscription.exists() is False

    async def listener(message: Any) -> None:
        return None

    with pytest.raises(MessagingError, match="ghost"):
        await subscription.on_message(listener)


@pytest.mark.asyncio
async def test_listings_and_existence() -> None:
    broker = InMemoryBroker()
    broker.create_subscription("a", "orders")
    broker.create_subscription("b", "orders")
    broker.create_subscription("a", "orders")
    assert await broker.list_topics() == ["orders"]
    assert await broker.list_subscriptions("orders") == ["a", "b"]
    assert await broker.list_subscriptions("missing") == []
    assert await broker.topic("orders").exists() is True
    assert await broker.topic("missing").exists() is False
    assert await broker.subscription("a").exists() is True


def test_protocol_compliance() -> None:
    broker = InMemoryBroker()
    subscription = broker.create_subscription("sub", "orders")
    assert isinstance(broker.topic("orders"), TopicHandle)
    assert isinstance(subscription, SubscriptionHandle)
    message = InMemoryMessage(subscription, "1", b"{}", {})
    assert isinstance(message, IncomingMessage)
