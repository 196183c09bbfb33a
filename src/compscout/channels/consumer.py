"""
Subscription consumer shared by the Converter, Validator and Sink.

Each received message is handled in its own task, bounded by a
semaphore. The outcome decides settlement:

- handler returns: ack
- handler raises a non-retriable error: ack, logged as dropped
- handler raises anything else: nack for re-delivery
"""

import asyncio
import enum
from collections.abc import Awaitable, Callable

from compscout.channels.base import InboundMessage, Subscription
from compscout.core.exceptions import AppException, is_retriable
from compscout.core.logging import LoggerMixin

MessageHandler = Callable[[bytes], Awaitable[None]]


class Settlement(str, enum.Enum):
    ACK = "ack"
    DROP = "drop"
    NACK = "nack"


class StageConsumer(LoggerMixin):
    """Runs a message handler over one subscription."""

    def __init__(
        self,
        subscription: Subscription,
        handler: MessageHandler,
        *,
        max_concurrency: int = 10,
        receive_batch: int = 10,
        max_wait: float = 5.0,
        error_backoff: float = 1.0,
    ) -> None:
        self.subscription = subscription
        self.handler = handler
        self.receive_batch = receive_batch
        self.max_wait = max_wait
        self.error_backoff = error_backoff
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._tasks: set[asyncio.Task] = set()
        self._stopping = asyncio.Event()

    async def process_message(self, message: InboundMessage) -> Settlement:
        """Handle one message and settle it on the subscription."""
        log = self.logger.bind(
            subscription=self.subscription.name,
            message_id=message.message_id,
            delivery_count=message.delivery_count,
        )
        try:
            await self.handler(message.body)
        except Exception as e:
            if is_retriable(e):
                log.warning("Message failed, returning for re-delivery", error=str(e))
                outcome = Settlement.NACK
            else:
                code = e.error_code if isinstance(e, AppException) else None
                log.error("Message dropped after permanent failure", error_code=code, error=str(e))
                outcome = Settlement.DROP
        else:
            outcome = Settlement.ACK

        try:
            if outcome is Settlement.NACK:
                await self.subscription.nack(message)
            else:
                await self.subscription.ack(message)
        except Exception as e:
            # The broker re-delivers unsettled messages once their lock expires
            log.error("Message settlement failed", outcome=outcome.value, error=str(e))
        return outcome

    async def _run_one(self, message: InboundMessage) -> None:
        try:
            await self.process_message(message)
        finally:
            self._semaphore.release()

    async def run(self) -> None:
        """Receive and dispatch messages until stop() is called."""
        self.logger.info(
            "Consumer started",
            topic=self.subscription.topic,
            subscription=self.subscription.name,
        )
        while not self._stopping.is_set():
            try:
                messages = await self.subscription.receive(self.receive_batch, self.max_wait)
            except Exception as e:
                self.logger.error("Receive failed", subscription=self.subscription.name, error=str(e))
                await asyncio.sleep(self.error_backoff)
                continue

            for message in messages:
                await self._semaphore.acquire()
                task = asyncio.create_task(self._run_one(message))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self.logger.info("Consumer stopped", subscription=self.subscription.name)

    def stop(self) -> None:
        self._stopping.set()
