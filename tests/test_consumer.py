"""Subscription consumer settlement and the in-memory broker."""

import asyncio

import pytest

from compscout.channels import InMemoryBroker, create_broker
from compscout.channels.consumer import Settlement, StageConsumer
from compscout.core.config import Settings
from compscout.core.exceptions import FetchError, MalformedMessageError, PublishError


async def received_message(broker: InMemoryBroker, body: bytes = b"{}"):
    subscription = broker.subscribe("topic", "sub")
    await broker.publish("topic", body)
    [message] = await subscription.receive(1, 0.1)
    return subscription, message


@pytest.mark.asyncio
async def test_success_acks(broker):
    async def handler(body: bytes) -> None:
        return None

    subscription, message = await received_message(broker)

    assert await StageConsumer(subscription, handler).process_message(message) is Settlement.ACK
    assert subscription.acked == [message]


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [FetchError("https://x.example", "timeout"), PublishError("t", "down"), RuntimeError("bug")])
async def test_transient_and_unexpected_errors_nack(broker, error):
    async def handler(body: bytes) -> None:
        raise error

    subscription, message = await received_message(broker)

    assert await StageConsumer(subscription, handler).process_message(message) is Settlement.NACK
    assert subscription.nacked == [message]
    assert subscription.acked == []
    [redelivered] = await subscription.receive(1, 0.1)
    assert redelivered.delivery_count == 2
    assert redelivered.message_id == message.message_id


@pytest.mark.asyncio
async def test_permanent_error_drops(broker):
    async def handler(body: bytes) -> None:
        raise MalformedMessageError("bad body")

    subscription, message = await received_message(broker)

    assert await StageConsumer(subscription, handler).process_message(message) is Settlement.DROP
    assert subscription.acked == [message]
    assert subscription.pending() == 0


@pytest.mark.asyncio
async def test_run_processes_until_stopped(broker):
    seen: list[bytes] = []

    async def handler(body: bytes) -> None:
        seen.append(body)

    subscription = broker.subscribe("topic", "sub")
    consumer = StageConsumer(subscription, handler, max_concurrency=2, max_wait=0.05)
    task = asyncio.create_task(consumer.run())

    for i in range(5):
        await broker.publish("topic", str(i).encode())
    for _ in range(100):
        if len(subscription.acked) == 5:
            break
        await asyncio.sleep(0.01)

    consumer.stop()
    await asyncio.wait_for(task, timeout=1)

    assert sorted(seen) == [b"0", b"1", b"2", b"3", b"4"]
    assert len(subscription.acked) == 5


@pytest.mark.asyncio
async def test_fan_out_to_each_subscription(broker):
    first = broker.subscribe("topic", "a")
    second = broker.subscribe("topic", "b")

    await broker.publish("topic", b"x")

    assert first.pending() == 1
    assert second.pending() == 1
    assert broker.subscribe("topic", "a") is first


def test_create_broker_selects_backend():
    assert isinstance(create_broker(Settings(_env_file=None, channel_backend="memory")), InMemoryBroker)
    with pytest.raises(ValueError):
        create_broker(Settings(_env_file=None, channel_backend="servicebus", servicebus_connection_string=None))
