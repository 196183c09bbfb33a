"""Fake HTTP and sample records shared by the test modules."""

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import httpx

from compscout.core.config import Settings
from compscout.schemas.listing import ConvertedListing
from compscout.services.llm_client import GenerativeTextClient

Route = httpx.Response | Callable[[httpx.Request], Any]

LLM_BASE_URL = "https://llm.test/v1beta"


def route_client(routes: dict[str, Route], calls: list[str] | None = None) -> httpx.AsyncClient:
    """
    AsyncClient answering from a URL -> response table.

    Values may be a Response or a (sync or async) handler taking the
    request. Query strings are ignored when matching and unknown URLs
    answer 404. Every requested URL is appended to ``calls``.
    """

    async def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url).split("?", 1)[0]
        if calls is not None:
            calls.append(url)
        route = routes.get(url)
        if route is None:
            return httpx.Response(404, text="not found")
        if isinstance(route, httpx.Response):
            return httpx.Response(route.status_code, headers=route.headers, content=route.content)
        result = route(request)
        if hasattr(result, "__await__"):
            result = await result
        return result

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def html_response(body: str, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, text=body, headers={"content-type": "text/html"})


def redirect_response(location: str) -> httpx.Response:
    return httpx.Response(302, headers={"location": location})


def llm_response(text: str) -> httpx.Response:
    return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": text}]}}]})


def llm_client(
    settings: Settings,
    handler: Route,
    calls: list[str] | None = None,
    *,
    api_key: str | None = "test-key",
    timeout: float = 0.5,
) -> GenerativeTextClient:
    url = f"{LLM_BASE_URL}/models/{settings.gemini_model}:generateContent"
    return GenerativeTextClient(
        api_key=api_key,
        model=settings.gemini_model,
        base_url=LLM_BASE_URL,
        timeout=timeout,
        client=route_client({url: handler}, calls),
    )


def make_listing(**overrides: Any) -> ConvertedListing:
    data: dict[str, Any] = {
        "id": "comp-1",
        "source_url": "https://brand.example/win",
        "source_site": "brand.example",
        "title": "Win a holiday to Spain",
        "prize_summary": "Win a holiday to Spain",
        "entry_time_estimate": "30–60 seconds",
        "hype_score": 8,
        "curated_summary": "A week in the sun for two.",
        "discovered_at": datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        "html_excerpt": "<h1>Win a holiday to Spain</h1>",
    }
    data.update(overrides)
    return ConvertedListing(**data)
