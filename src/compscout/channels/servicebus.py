"""
Azure Service Bus broker.

Topics map to Service Bus topics and each stage reads from its own
subscription. Ack completes the message; nack abandons it so the
service re-delivers it and increments the delivery count.
"""

from azure.servicebus import ServiceBusMessage, ServiceBusReceivedMessage
from azure.servicebus.aio import ServiceBusClient, ServiceBusReceiver, ServiceBusSender
from azure.servicebus.exceptions import ServiceBusError

from compscout.channels.base import InboundMessage, MessageBroker, Subscription
from compscout.core.exceptions import PublishError
from compscout.core.logging import get_logger

logger = get_logger(__name__)


class ServiceBusSubscription(Subscription):
    def __init__(self, client: ServiceBusClient, topic: str, name: str) -> None:
        self.topic = topic
        self.name = name
        self._client = client
        self._receiver: ServiceBusReceiver | None = None

    def _get_receiver(self) -> ServiceBusReceiver:
        if self._receiver is None:
            self._receiver = self._client.get_subscription_receiver(
                topic_name=self.topic,
                subscription_name=self.name,
            )
        return self._receiver

    async def receive(self, max_messages: int, max_wait: float) -> list[InboundMessage]:
        received = await self._get_receiver().receive_messages(
            max_message_count=max_messages,
            max_wait_time=max_wait,
        )
        return [self._to_inbound(msg) for msg in received]

    @staticmethod
    def _to_inbound(msg: ServiceBusReceivedMessage) -> InboundMessage:
        return InboundMessage(
            body=b"".join(msg.body),
            message_id=str(msg.message_id),
            delivery_count=msg.delivery_count or 1,
            raw=msg,
        )

    async def ack(self, message: InboundMessage) -> None:
        await self._get_receiver().complete_message(message.raw)

    async def nack(self, message: InboundMessage) -> None:
        await self._get_receiver().abandon_message(message.raw)

    async def close(self) -> None:
        if self._receiver is not None:
            await self._receiver.close()
            self._receiver = None


class ServiceBusBroker(MessageBroker):
    """Message broker backed by Azure Service Bus topics."""

    def __init__(self, connection_string: str) -> None:
        self._client = ServiceBusClient.from_connection_string(connection_string)
        self._senders: dict[str, ServiceBusSender] = {}
        self._subscriptions: list[ServiceBusSubscription] = []

    async def publish(self, topic: str, body: bytes) -> None:
        sender = self._senders.get(topic)
        if sender is None:
            sender = self._client.get_topic_sender(topic_name=topic)
            self._senders[topic] = sender

        try:
            await sender.send_messages(
                ServiceBusMessage(body, content_type="application/json")
            )
        except ServiceBusError as e:
            logger.error("Publish failed", topic=topic, error=str(e))
            raise PublishError(topic, str(e)) from e

    def subscribe(self, topic: str, subscription: str) -> ServiceBusSubscription:
        sub = ServiceBusSubscription(self._client, topic, subscription)
        self._subscriptions.append(sub)
        return sub

    async def close(self) -> None:
        for sub in self._subscriptions:
            await sub.close()
        for sender in self._senders.values():
            await sender.close()
        self._senders.clear()
        await self._client.close()
        logger.info("Service Bus client closed")
