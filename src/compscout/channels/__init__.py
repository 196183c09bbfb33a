"""
Durable message channels between pipeline stages.
"""

from compscout.channels.base import InboundMessage, MessageBroker, Subscription
from compscout.channels.consumer import Settlement, StageConsumer
from compscout.channels.memory import InMemoryBroker
from compscout.channels.servicebus import ServiceBusBroker
from compscout.core.config import Settings, get_settings


def create_broker(settings: Settings | None = None) -> MessageBroker:
    """Build the broker selected by ``channel_backend``."""
    settings = settings or get_settings()
    if settings.channel_backend == "servicebus":
        if not settings.servicebus_connection_string:
            raise ValueError("SERVICEBUS_CONNECTION_STRING is required for the servicebus backend")
        return ServiceBusBroker(settings.servicebus_connection_string)
    return InMemoryBroker()


__all__ = [
    "InMemoryBroker",
    "InboundMessage",
    "MessageBroker",
    "ServiceBusBroker",
    "Settlement",
    "StageConsumer",
    "Subscription",
    "create_broker",
]
