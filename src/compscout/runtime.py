"""
Per-process wiring of a pipeline stage.

A StageRuntime holds the components one stage process needs (broker,
stage service, subscription consumer) and owns their start and
shutdown. The FastAPI app keeps it on ``app.state.runtime``.
"""

import asyncio
from collections.abc import Awaitable, Callable, Coroutine
from dataclasses import dataclass, field
from typing import Any

from compscout.channels import MessageBroker, StageConsumer, create_broker
from compscout.core.config import PipelineStage, Settings, get_settings
from compscout.core.logging import get_logger
from compscout.db.session import close_db, get_session_factory
from compscout.repositories.competition_repository import CompetitionRepository
from compscout.services.converter import Converter
from compscout.services.llm_client import GenerativeTextClient
from compscout.services.scout import Scout
from compscout.services.sink import Sink
from compscout.services.validator import Validator

logger = get_logger(__name__)


@dataclass
class StageRuntime:
    """Components and background tasks of one stage process."""

    stage: PipelineStage
    settings: Settings
    broker: MessageBroker
    scout: Scout | None = None
    converter: Converter | None = None
    validator: Validator | None = None
    sink: Sink | None = None
    consumer: StageConsumer | None = None
    closers: list[Callable[[], Awaitable[None]]] = field(default_factory=list)
    _consumer_task: asyncio.Task | None = field(default=None, init=False, repr=False)
    _background: set[asyncio.Task] = field(default_factory=set, init=False, repr=False)

    async def start(self) -> None:
        if self.consumer is not None and self._consumer_task is None:
            self._consumer_task = asyncio.create_task(self.consumer.run())
        logger.info("Stage started", stage=self.stage)

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task:
        """Run a coroutine detached from the caller; failures are logged only."""

        async def _guarded() -> None:
            try:
                await coro
            except Exception as e:
                logger.exception("Background task failed", task=name, error=str(e))

        task = asyncio.create_task(_guarded(), name=name)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def stop(self) -> None:
        if self.consumer is not None:
            self.consumer.stop()
        if self._consumer_task is not None:
            await self._consumer_task
            self._consumer_task = None
        for task in list(self._background):
            task.cancel()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        for close in reversed(self.closers):
            await close()
        logger.info("Stage stopped", stage=self.stage)


def _consumer(settings: Settings, broker: MessageBroker, topic: str, subscription: str, handler) -> StageConsumer:
    return StageConsumer(
        broker.subscribe(topic, subscription),
        handler,
        max_concurrency=settings.channel_max_concurrency,
        receive_batch=settings.channel_receive_batch,
        max_wait=settings.channel_max_wait,
    )


def build_runtime(stage: PipelineStage | None = None, settings: Settings | None = None) -> StageRuntime:
    """Build the components for ``stage`` from settings."""
    settings = settings or get_settings()
    stage = stage or settings.pipeline_stage
    broker = create_broker(settings)
    runtime = StageRuntime(stage=stage, settings=settings, broker=broker, closers=[broker.close])

    if stage == "scout":
        runtime.scout = Scout(broker, settings=settings)
        runtime.closers.append(runtime.scout.close)

    elif stage in ("converter", "validator"):
        llm = GenerativeTextClient(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model if stage == "converter" else settings.gemini_validator_model,
            base_url=settings.gemini_base_url,
            timeout=settings.llm_summary_timeout if stage == "converter" else settings.llm_validator_timeout,
        )
        runtime.closers.append(llm.close)
        if stage == "converter":
            runtime.converter = Converter(broker, llm, settings=settings)
            runtime.consumer = _consumer(
                settings,
                broker,
                settings.raw_listings_topic,
                settings.converter_subscription,
                runtime.converter.handle_message,
            )
        else:
            runtime.validator = Validator(broker, llm, settings=settings)
            runtime.consumer = _consumer(
                settings,
                broker,
                settings.validated_listings_topic,
                settings.validator_subscription,
                runtime.validator.handle_message,
            )

    elif stage == "sink":
        runtime.sink = Sink(CompetitionRepository(get_session_factory()))
        runtime.consumer = _consumer(
            settings,
            broker,
            settings.final_listings_topic,
            settings.sink_subscription,
            runtime.sink.handle_message,
        )
        runtime.closers.append(close_db)

    else:
        raise ValueError(f"Unknown pipeline stage: {stage}")

    return runtime
