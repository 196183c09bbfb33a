"""
Message channel abstractions.

Stages publish UTF-8 JSON bodies to named topics and consume them
through one named subscription per stage. Delivery is at-least-once:
a message is acknowledged after success or a permanent failure and
returned to the channel (nack) after a transient one.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class InboundMessage:
    """A message received from a subscription."""

    body: bytes
    message_id: str
    delivery_count: int = 1
    raw: Any = field(default=None, repr=False)

    def text(self) -> str:
        return self.body.decode("utf-8")


class Subscription(ABC):
    """A named subscription on one topic."""

    topic: str
    name: str

    @abstractmethod
    async def receive(self, max_messages: int, max_wait: float) -> list[InboundMessage]:
        """Wait up to ``max_wait`` seconds for up to ``max_messages`` messages."""

    @abstractmethod
    async def ack(self, message: InboundMessage) -> None:
        """Settle the message; it will not be delivered again."""

    @abstractmethod
    async def nack(self, message: InboundMessage) -> None:
        """Return the message to the subscription for re-delivery."""

    async def close(self) -> None:
        return None


class MessageBroker(ABC):
    """Publishes to topics and hands out subscriptions."""

    @abstractmethod
    async def publish(self, topic: str, body: bytes) -> None:
        """
        Publish one message body to a topic.

        Raises:
            PublishError: If the broker rejects the message
        """

    @abstractmethod
    def subscribe(self, topic: str, subscription: str) -> Subscription:
        """Get the named subscription on a topic."""

    async def close(self) -> None:
        return None
