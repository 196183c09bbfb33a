"""
In-process asyncio broker.

Used for local single-process runs and for tests. Each subscription has
its own queue; a nack puts the message back with a higher delivery count.
Messages published to a topic before a subscription exists are only
recorded in ``published``.
"""

import asyncio
import uuid
from collections import defaultdict

from compscout.channels.base import InboundMessage, MessageBroker, Subscription


class InMemorySubscription(Subscription):
    def __init__(self, topic: str, name: str) -> None:
        self.topic = topic
        self.name = name
        self._queue: asyncio.Queue[InboundMessage] = asyncio.Queue()
        self.acked: list[InboundMessage] = []
        self.nacked: list[InboundMessage] = []

    def deliver(self, message: InboundMessage) -> None:
        self._queue.put_nowait(message)

    def pending(self) -> int:
        return self._queue.qsize()

    async def receive(self, max_messages: int, max_wait: float) -> list[InboundMessage]:
        try:
            first = await asyncio.wait_for(self._queue.get(), timeout=max_wait)
        except asyncio.TimeoutError:
            return []

        batch = [first]
        while len(batch) < max_messages and not self._queue.empty():
            batch.append(self._queue.get_nowait())
        return batch

    async def ack(self, message: InboundMessage) -> None:
        self.acked.append(message)

    async def nack(self, message: InboundMessage) -> None:
        self.nacked.append(message)
        self._queue.put_nowait(
            InboundMessage(
                body=message.body,
                message_id=message.message_id,
                delivery_count=message.delivery_count + 1,
            )
        )


class InMemoryBroker(MessageBroker):
    """Topic fan-out over asyncio queues."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, dict[str, InMemorySubscription]] = defaultdict(dict)
        self.published: dict[str, list[bytes]] = defaultdict(list)

    async def publish(self, topic: str, body: bytes) -> None:
        self.published[topic].append(body)
        message_id = str(uuid.uuid4())
        for subscription in self._subscriptions[topic].values():
            subscription.deliver(InboundMessage(body=body, message_id=message_id))

    def subscribe(self, topic: str, subscription: str) -> InMemorySubscription:
        existing = self._subscriptions[topic].get(subscription)
        if existing is None:
            existing = InMemorySubscription(topic, subscription)
            self._subscriptions[topic][subscription] = existing
        return existing
