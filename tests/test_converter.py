"""Converter: raw listing to initial competition."""

import asyncio
import json
import time
from datetime import datetime, timezone

import httpx
import pytest

from compscout.core.exceptions import MalformedMessageError
from compscout.schemas.listing import RawListing, SiteType
from compscout.services import heuristics
from compscout.services.converter import Converter, parse_raw_listing, raw_listing_from_payload
from helpers import llm_client, llm_response

HTML = "<h1>Win a holiday to Spain</h1><form>Enter your email</form>"


def raw_listing(**overrides) -> RawListing:
    data = {
        "source_url": "https://www.brand.example/win",
        "source_site": "Brand Co",
        "site_type": SiteType.BRAND,
        "fetched_at": datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc),
        "html_excerpt": HTML,
        "title": "Win a holiday to Spain",
    }
    data.update(overrides)
    return RawListing(**data)


def expected_template(settings) -> str:
    prize = "Win a holiday to Spain"
    template = heuristics.build_template_summary(prize, "brand.example", prize, "30–60 seconds", 9)
    return heuristics.cap_summary(template, settings.curated_summary_max_chars)


@pytest.mark.asyncio
async def test_convert_with_generated_summary(broker, settings):
    requests: list[httpx.Request] = []

    def reply(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return llm_response("  Sun, sea and sangria for two. A quick email form gets you in.  ")

    converter = Converter(broker, llm_client(settings, reply), settings=settings)

    listing = await converter.process(raw_listing())

    assert listing.source_site == "brand.example"
    assert listing.prize_summary == "Win a holiday to Spain"
    assert listing.entry_time_estimate == "30–60 seconds"
    assert listing.hype_score == 9
    assert listing.curated_summary == "Sun, sea and sangria for two. A quick email form gets you in."
    assert listing.verified_at is None
    assert listing.is_free is True
    assert listing.discovered_at == datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)

    body = json.loads(requests[0].content)
    assert body["generationConfig"] == {"temperature": 0.7, "maxOutputTokens": 150}
    assert requests[0].url.params["key"] == "test-key"

    [message] = broker.published[settings.validated_listings_topic]
    wire = json.loads(message)
    assert wire["id"] == listing.id
    assert wire["hypeScore"] == 9
    assert wire["verifiedAt"] is None
    assert wire["htmlExcerpt"] == HTML


@pytest.mark.asyncio
async def test_llm_timeout_falls_back_without_stalling(broker, settings):
    calls: list[str] = []

    async def hang(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(10)
        return llm_response("too late")

    converter = Converter(broker, llm_client(settings, hang, calls, timeout=0.05), settings=settings)

    started = time.monotonic()
    listing = await converter.convert(raw_listing())

    assert time.monotonic() - started < 2
    assert len(calls) == settings.llm_max_attempts
    assert listing.curated_summary == expected_template(settings)
    assert 1 <= listing.hype_score <= 10


@pytest.mark.asyncio
async def test_house_ad_reply_uses_template(broker, settings):
    converter = Converter(broker, llm_client(settings, llm_response("HOUSE_AD")), settings=settings)

    listing = await converter.convert(raw_listing())

    assert listing.curated_summary == expected_template(settings)


@pytest.mark.asyncio
async def test_service_error_uses_template(broker, settings):
    converter = Converter(
        broker,
        llm_client(settings, httpx.Response(500, text="overloaded")),
        settings=settings,
    )

    listing = await converter.convert(raw_listing())

    assert listing.curated_summary == expected_template(settings)


@pytest.mark.asyncio
async def test_no_api_key_skips_the_call(broker, settings):
    calls: list[str] = []
    converter = Converter(
        broker,
        llm_client(settings, llm_response("unused"), calls, api_key=None),
        settings=settings,
    )

    listing = await converter.convert(raw_listing())

    assert calls == []
    assert listing.curated_summary == expected_template(settings)


@pytest.mark.asyncio
async def test_holiday_brand_page_with_bare_email_form(broker, settings):
    converter = Converter(broker, llm_client(settings, llm_response("unused"), api_key=None), settings=settings)
    html = "<h1>Win a holiday to Spain</h1><form>...email...</form>"

    listing = await converter.convert(raw_listing(html_excerpt=html))

    assert listing.prize_summary == "Win a holiday to Spain"
    assert listing.entry_time_estimate == "30–60 seconds"
    assert listing.hype_score == 9
    assert listing.curated_summary.strip()


@pytest.mark.asyncio
async def test_long_summary_is_capped(broker, settings):
    converter = Converter(broker, llm_client(settings, llm_response("word " * 300)), settings=settings)

    listing = await converter.convert(raw_listing())

    assert len(listing.curated_summary) <= settings.curated_summary_max_chars
    assert listing.curated_summary.endswith("…")


@pytest.mark.asyncio
async def test_missing_title_uses_site_name(broker, settings):
    converter = Converter(broker, llm_client(settings, llm_response("Nice."), api_key=None), settings=settings)

    listing = await converter.convert(raw_listing(title="", html_excerpt=""))

    assert listing.title == "Brand Co"
    assert listing.prize_summary == "Brand Co"
    assert listing.hype_score == heuristics.DEFAULT_HYPE_SCORE


def test_legacy_payload_accepted():
    raw = raw_listing_from_payload(
        {
            "url": "https://www.brand.example/win",
            "scrapedAt": "2024-05-01T09:30:00Z",
            "title": "Win a TV",
            "html": "<h1>TV</h1>",
        }
    )

    assert raw.source_url == "https://www.brand.example/win"
    assert raw.source_site == "brand.example"
    assert raw.fetched_at == datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)
    assert raw.html_excerpt == "<h1>TV</h1>"


@pytest.mark.parametrize("body", [b"not json", b"[1, 2]", b'{"title": "no url"}'])
def test_malformed_raw_listing(body):
    with pytest.raises(MalformedMessageError):
        parse_raw_listing(body)
