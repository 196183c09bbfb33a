"""
Validator service - schema gate, compliance enrichment and score fusion.

A listing is checked against the competition schema before any
external call. It is then enriched by the generative text service
(falling back to a neutral enrichment on any failure), dropped if the
enrichment says it is no longer live, re-scored and stamped as verified.
"""

import json
import math
from typing import Any
from urllib.parse import urlparse

from pydantic import ValidationError

from compscout.channels.base import MessageBroker
from compscout.core.config import Settings, get_settings
from compscout.core.exceptions import (
    LLMServiceError,
    LLMUnavailableError,
    MalformedMessageError,
    NotLiveError,
    SchemaValidationError,
)
from compscout.core.logging import LoggerMixin
from compscout.core.timeutil import parse_instant, utc_now
from compscout.schemas.enrichment import (
    FALLBACK_ENRICHMENT,
    Enrichment,
    normalize_enrichment,
    parse_enrichment_text,
)
from compscout.schemas.listing import Competition, ConvertedListing
from compscout.services.heuristics import clamp_hype
from compscout.services.llm_client import GenerativeTextClient

REQUIRED_FIELDS = ("id", "sourceUrl", "sourceSite", "title", "discoveredAt")
DATETIME_FIELDS = ("discoveredAt", "closesAt", "verifiedAt")

VALIDATION_PROMPT = """You are validating online prize competitions for a UK competition listing website.

Your job:
- Decide if the competition is still LIVE.
- Decide if there is a FREE ENTRY route (no payment required to enter).
- Decide if a SKILL QUESTION is required (e.g. quiz question, 'spot the ball', tie-breaker answer).
- Determine UK Gambling Act compliance metrics: exemption_type, free_route_verified, skill_test_required, subscription_risk, and premium_rate_detected.
- Estimate TIME TO ENTER based on how complex the entry is.
- Optionally adjust a hype score.

You MUST respond with VALID JSON ONLY, no extra text, no comments.

JSON schema:
{{
  "live": boolean,
  "free_entry": boolean,
  "has_skill_question": boolean,
  "exemption_type": string,
  "free_route_verified": boolean,
  "skill_test_required": boolean,
  "subscription_risk": boolean,
  "premium_rate_detected": boolean,
  "entry_time_estimate": string,
  "hype_score_adjustment": number
}}

Guidelines:
- live: false if the page clearly says closed/ended or has a past closing date.
- free_entry: true only if the main way to enter does NOT require payment (ignore optional extra-pay entries).
- has_skill_question: true if there is any question that requires knowledge/creativity beyond just filling a form.
- exemption_type: "free_draw" if entry is purely chance with no payment or via a free route (e.g. postal). "prize_competition" if a significant skill test prevents a large proportion of people from entering or winning. "unknown" if unclear.
- free_route_verified: true if a free entry route (like postal or free web entry) is explicitly mentioned in the text.
- skill_test_required: true if a non-trivial skill, judgment, or knowledge test is required.
- subscription_risk: true if entry clearly requires signing up to a recurring paid subscription.
- premium_rate_detected: true if the text mentions premium rate phone numbers (e.g. starting with 09) or text messages that cost significant money.
- entry_time_estimate: "30–60 seconds" for just name/email/postcode, "2–3 minutes" for social follows, shares or multiple steps, "5+ minutes" for long forms, uploads, essays or multiple tasks.
- hype_score_adjustment: between -3 and 3. +2 to +3 for very high-value prizes (cars, flagship phones, big holidays), +1 for attractive mid-range prizes, 0 for average, -1 to -3 for low-value or spammy/unclear prizes.

Now analyse this competition:

TITLE:
{title}

URL:
{url}

HTML_SNIPPET (may be truncated):
{html_excerpt}

Return ONLY JSON, exactly matching the schema above."""


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def check_schema(data: dict[str, Any]) -> dict[str, list[str]]:
    """
    Check a competition payload against the schema gate.

    Returns:
        Field errors keyed by wire field name; empty when the payload passes
    """
    errors: dict[str, list[str]] = {}

    def add(field: str, message: str) -> None:
        errors.setdefault(field, []).append(message)

    for field in REQUIRED_FIELDS:
        if _is_blank(data.get(field)):
            add(field, f"{field} is missing or empty")

    source_url = data.get("sourceUrl")
    if not _is_blank(source_url):
        parsed = urlparse(source_url.strip())
        if not parsed.scheme or not parsed.netloc:
            add("sourceUrl", f"sourceUrl is not a valid URL: {source_url!r}")

    for field in DATETIME_FIELDS:
        value = data.get(field)
        if value is None or (field == "discoveredAt" and _is_blank(value)):
            continue
        try:
            parse_instant(value)
        except (TypeError, ValueError, AttributeError):
            add(field, f"{field} is not a valid ISO datetime: {value!r}")

    hype = data.get("hypeScore")
    if isinstance(hype, bool) or not isinstance(hype, (int, float)) or not math.isfinite(hype) or not 1 <= hype <= 10:
        add("hypeScore", f"hypeScore must be 1-10, got: {hype!r}")

    prize_value = data.get("prizeValueEstimate")
    if prize_value is not None:
        if isinstance(prize_value, bool) or not isinstance(prize_value, (int, float)) or prize_value < 0:
            add("prizeValueEstimate", f"prizeValueEstimate must be >= 0, got: {prize_value!r}")

    return errors


def parse_converted_listing(body: bytes) -> ConvertedListing:
    """
    Decode a validated-listing message and run the schema gate.

    Raises:
        MalformedMessageError: If the body is not a JSON object
        SchemaValidationError: If the payload fails the schema gate
    """
    try:
        data = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedMessageError(f"Competition is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedMessageError("Competition is not a JSON object")
    return validate_payload(data)


def validate_payload(data: dict[str, Any]) -> ConvertedListing:
    """Run the schema gate and build the typed listing."""
    field_errors = check_schema(data)
    if field_errors:
        raise SchemaValidationError("Competition failed schema validation", field_errors)
    try:
        return ConvertedListing.model_validate(data)
    except ValidationError as e:
        model_errors: dict[str, list[str]] = {}
        for error in e.errors(include_url=False):
            field = ".".join(str(part) for part in error["loc"]) or "__root__"
            model_errors.setdefault(field, []).append(error["msg"])
        raise SchemaValidationError("Competition failed schema validation", model_errors) from e


def apply_enrichment(listing: Competition, enrichment: Enrichment) -> Competition:
    """Merge an enrichment into a listing and stamp it verified."""
    base = listing.to_competition() if isinstance(listing, ConvertedListing) else listing
    return base.model_copy(
        update={
            "is_free": enrichment.free_entry,
            "has_skill_question": enrichment.has_skill_question,
            "entry_time_estimate": enrichment.entry_time_estimate,
            "hype_score": clamp_hype(listing.hype_score + enrichment.hype_score_adjustment),
            "exemption_type": enrichment.exemption_type,
            "free_route_verified": enrichment.free_route_verified,
            "skill_test_required": enrichment.skill_test_required,
            "subscription_risk": enrichment.subscription_risk,
            "premium_rate_detected": enrichment.premium_rate_detected,
            "verified_at": utc_now(),
        }
    )


class Validator(LoggerMixin):
    """Approves converted listings and publishes them to the final topic."""

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
        self.output_topic = self.settings.final_listings_topic

    async def handle_message(self, body: bytes) -> None:
        """Channel handler: validate and publish one converted listing."""
        await self.process(parse_converted_listing(body))

    async def process(self, listing: ConvertedListing) -> Competition:
        """
        Enrich, gate on liveness, re-score and publish a listing.

        Raises:
            NotLiveError: If the enrichment reports the listing has ended
            PublishError: If the final topic rejects the message
        """
        enrichment = await self.enrich(listing)
        if not enrichment.live:
            self.logger.warning(
                "Listing not live, dropping",
                competition_id=listing.id,
                source_url=listing.source_url,
            )
            raise NotLiveError(listing.id, listing.source_url)

        approved = apply_enrichment(listing, enrichment)
        await self.broker.publish(self.output_topic, approved.to_message())
        self.logger.info(
            "Listing approved",
            competition_id=approved.id,
            hype_before=listing.hype_score,
            hype_after=approved.hype_score,
            is_free=approved.is_free,
            source_url=approved.source_url,
            topic=self.output_topic,
        )
        return approved

    async def enrich(self, listing: ConvertedListing) -> Enrichment:
        """Ask the model for compliance fields; fall back on any failure."""
        if not self.llm.configured:
            self.logger.warning("LLM not configured, using fallback enrichment", competition_id=listing.id)
            return FALLBACK_ENRICHMENT

        prompt = VALIDATION_PROMPT.format(
            title=listing.title,
            url=listing.source_url,
            html_excerpt=listing.html_excerpt[: self.settings.html_excerpt_chars],
        )
        try:
            text = await self.llm.generate(
                prompt,
                generation_config={"responseMimeType": "application/json"},
            )
            enrichment = normalize_enrichment(parse_enrichment_text(text))
        except LLMUnavailableError:
            return FALLBACK_ENRICHMENT
        except (LLMServiceError, ValueError) as e:
            self.logger.error(
                "Enrichment failed, using fallback",
                competition_id=listing.id,
                error=getattr(e, "message", str(e)),
            )
            return FALLBACK_ENRICHMENT

        self.logger.info(
            "Listing enriched",
            competition_id=listing.id,
            live=enrichment.live,
            free_entry=enrichment.free_entry,
            adjustment=enrichment.hype_score_adjustment,
        )
        return enrichment
