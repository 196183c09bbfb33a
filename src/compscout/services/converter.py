"""
Converter service - turns raw listings into initial competitions.

Handles:
- Source site, prize summary, entry time, hype score and skill
  question features from the page excerpt
- A generated curated summary, retried a bounded number of times and
  replaced by a template summary on failure
- Publishing the result to the validated-listings topic
"""

import json
import uuid
from typing import Any

from pydantic import ValidationError
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from compscout.channels.base import MessageBroker
from compscout.core.config import Settings, get_settings
from compscout.core.exceptions import LLMServiceError, LLMUnavailableError, MalformedMessageError
from compscout.core.logging import LoggerMixin
from compscout.schemas.listing import ConvertedListing, ExemptionType, RawListing, hostname_of
from compscout.services import heuristics
from compscout.services.llm_client import GenerativeTextClient

HOUSE_AD_SENTINEL = "HOUSE_AD"

SUMMARY_PROMPT = """You are helping write short, human-sounding descriptions of online prize competitions for a UK competition listing site.

Input:
- Proposed Title: {title}
- Found on: {source_site} (This is the aggregator or forum, NOT necessarily the prize provider)
- HTML snippet: {html_excerpt}

Task:
Write 2-3 natural sentences that:
- Identify the REAL prize being offered.
- Identify the ACTUAL brand running the competition if mentioned (e.g. "Lidl", "Tesco", "Magic Radio").
- Briefly describe the entry method (e.g. "simple form", "social media share", "trivia question").
- Sound like a real human "comper" recommending it to a friend.

Constraints:
- Do NOT describe {source_site} itself (we know it's a listing site).
- If the HTML appears to be just an advertisement for {source_site}, return "HOUSE_AD".
- Do NOT copy text verbatim; always paraphrase.
- Return only the description text, no JSON or quotes."""


def _is_retriable_summary_error(exc: BaseException) -> bool:
    return isinstance(exc, LLMServiceError) and not isinstance(exc, LLMUnavailableError)


def parse_raw_listing(body: bytes) -> RawListing:
    """
    Decode a raw-listing message body.

    Raises:
        MalformedMessageError: If the body is not a valid raw listing
    """
    try:
        data = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedMessageError(f"Raw listing is not valid JSON: {e}") from e
    return raw_listing_from_payload(data)


def raw_listing_from_payload(data: Any) -> RawListing:
    """Validate a decoded raw listing payload."""
    if not isinstance(data, dict):
        raise MalformedMessageError("Raw listing is not a JSON object")
    try:
        return RawListing.model_validate(data)
    except ValidationError as e:
        raise MalformedMessageError(
            "Raw listing failed validation",
            {"errors": e.errors(include_url=False, include_context=False, include_input=False)},
        ) from e


class Converter(LoggerMixin):
    """Builds a ConvertedListing from each RawListing and publishes it."""

    def __init__(
        self,
        broker: MessageBroker,
        llm: GenerativeTextClient,
        *,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.broker = broker
        self.llm = llm
        self.output_topic = self.settings.validated_listings_topic

    async def handle_message(self, body: bytes) -> None:
        """Channel handler: convert and publish one raw listing."""
        await self.process(parse_raw_listing(body))

    async def process(self, raw: RawListing) -> ConvertedListing:
        listing = await self.convert(raw)
        await self.broker.publish(self.output_topic, listing.to_message())
        self.logger.info(
            "Listing converted",
            competition_id=listing.id,
            hype_score=listing.hype_score,
            source_url=listing.source_url,
            topic=self.output_topic,
        )
        return listing

    async def convert(self, raw: RawListing) -> ConvertedListing:
        """Derive an unverified competition from a raw listing."""
        html = raw.html_excerpt
        title = raw.title or raw.source_site or "Unknown Competition"
        source_site = hostname_of(raw.source_url) or raw.source_site

        prize_summary = heuristics.infer_prize_summary(html, title)
        entry_time = heuristics.estimate_entry_time(html)
        hype_score = heuristics.score_hype(title, prize_summary)
        fallback = heuristics.build_template_summary(
            title, source_site, prize_summary, entry_time, hype_score
        )
        curated_summary = await self.generate_curated_summary(title, source_site, html, fallback)

        return ConvertedListing(
            id=str(uuid.uuid4()),
            source_url=raw.source_url,
            source_site=source_site,
            title=title,
            prize_summary=prize_summary,
            prize_value_estimate=None,
            closes_at=None,
            is_free=True,
            has_skill_question=heuristics.has_skill_question(html),
            entry_time_estimate=entry_time,
            hype_score=hype_score,
            curated_summary=curated_summary,
            discovered_at=raw.fetched_at,
            verified_at=None,
            exemption_type=ExemptionType.UNKNOWN,
            html_excerpt=html[: self.settings.html_excerpt_chars],
        )

    async def generate_curated_summary(
        self,
        title: str,
        source_site: str,
        html: str,
        fallback: str,
    ) -> str:
        """
        Generate the curated summary, falling back to ``fallback``.

        The result is never empty and never longer than the configured cap.
        """
        max_chars = self.settings.curated_summary_max_chars
        if not self.llm.configured:
            return heuristics.cap_summary(fallback, max_chars)

        prompt = SUMMARY_PROMPT.format(
            title=title,
            source_site=source_site,
            html_excerpt=html[: self.settings.html_excerpt_chars],
        )
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.settings.llm_max_attempts),
                wait=wait_exponential(multiplier=self.settings.llm_retry_backoff, max=10),
                retry=retry_if_exception(_is_retriable_summary_error),
                reraise=True,
            ):
                with attempt:
                    text = await self._request_summary(prompt)
        except LLMServiceError as e:
            self.logger.warning(
                "Summary generation failed, using template",
                attempts=self.settings.llm_max_attempts,
                error=e.message,
            )
            return heuristics.cap_summary(fallback, max_chars)

        return heuristics.cap_summary(text, max_chars)

    async def _request_summary(self, prompt: str) -> str:
        text = await self.llm.generate(
            prompt,
            generation_config={
                "temperature": self.settings.llm_summary_temperature,
                "maxOutputTokens": self.settings.llm_summary_max_tokens,
            },
        )
        if HOUSE_AD_SENTINEL in text.upper():
            raise LLMServiceError("model flagged the page as a house advert")
        return text
