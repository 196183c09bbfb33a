"""Shared fixtures: settings, in-memory broker, SQLite store and fake HTTP."""

from collections.abc import Callable

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

import compscout.models  # noqa: F401  register tables with Base.metadata
from compscout.channels.memory import InMemoryBroker
from compscout.core.config import Settings
from compscout.db.base import Base
from compscout.db.session import get_session_factory
from compscout.services.http_fetcher import PageFetcher
from helpers import Route, route_client


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        gemini_api_key="test-key",
        gemini_model="test-model",
        gemini_validator_model="test-model",
        llm_summary_timeout=0.5,
        llm_validator_timeout=0.5,
        llm_max_attempts=2,
        llm_retry_backoff=0,
        crawler_request_delay=0,
        crawler_aggregator_hosts="agg.example",
        channel_max_wait=0.1,
    )


@pytest.fixture
def broker() -> InMemoryBroker:
    return InMemoryBroker()


@pytest.fixture
def make_fetcher(settings: Settings) -> Callable[..., PageFetcher]:
    def _make(routes: dict[str, Route], calls: list[str] | None = None) -> PageFetcher:
        return PageFetcher(route_client(routes, calls), settings=settings)

    return _make


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite with the competitions table."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return get_session_factory(engine)
