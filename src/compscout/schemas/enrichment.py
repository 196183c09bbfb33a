"""
Compliance enrichment returned by the generative text service.

The model's JSON reply is first read into ``PartialEnrichment``, where
every field is optional and untyped. ``normalize_enrichment`` then turns
it into a strict ``Enrichment`` one field at a time, so a reply that is
only partly correct is still usable.
"""

import json
import math
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from compscout.schemas.listing import ExemptionType


MIN_HYPE_ADJUSTMENT = -3
MAX_HYPE_ADJUSTMENT = 3
DEFAULT_ENTRY_TIME = "1–2 minutes"
UNKNOWN_ENTRY_TIME = "unknown"

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]+?)```", re.IGNORECASE)


class PartialEnrichment(BaseModel):
    """Raw enrichment fields exactly as the model returned them."""

    model_config = ConfigDict(extra="ignore")

    live: Any = None
    free_entry: Any = None
    has_skill_question: Any = None
    exemption_type: Any = None
    free_route_verified: Any = None
    skill_test_required: Any = None
    subscription_risk: Any = None
    premium_rate_detected: Any = None
    entry_time_estimate: Any = None
    hype_score_adjustment: Any = None


class Enrichment(BaseModel):
    """Normalised enrichment applied to a competition by the Validator."""

    model_config = ConfigDict(frozen=True)

    live: bool
    free_entry: bool
    has_skill_question: bool
    exemption_type: ExemptionType
    free_route_verified: bool
    skill_test_required: bool
    subscription_risk: bool
    premium_rate_detected: bool
    entry_time_estimate: str = Field(..., min_length=1)
    hype_score_adjustment: int = Field(..., ge=MIN_HYPE_ADJUSTMENT, le=MAX_HYPE_ADJUSTMENT)


# Used whenever the enrichment call or its parsing fails. Listings stay
# live so an outage does not drop every message.
FALLBACK_ENRICHMENT = Enrichment(
    live=True,
    free_entry=True,
    has_skill_question=False,
    exemption_type=ExemptionType.UNKNOWN,
    free_route_verified=False,
    skill_test_required=False,
    subscription_risk=False,
    premium_rate_detected=False,
    entry_time_estimate=DEFAULT_ENTRY_TIME,
    hype_score_adjustment=0,
)


def coerce_bool(value: Any) -> bool:
    """Truthiness, with the strings "false", "0", "no" and "" read as False."""
    if isinstance(value, str):
        return value.strip().lower() not in ("", "false", "0", "no", "null", "none")
    return bool(value)


def coerce_exemption_type(value: Any) -> ExemptionType:
    """Keep only the two recognised exemption types; anything else is unknown."""
    if value in (ExemptionType.FREE_DRAW.value, ExemptionType.PRIZE_COMPETITION.value):
        return ExemptionType(value)
    return ExemptionType.UNKNOWN


def coerce_entry_time(value: Any) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return UNKNOWN_ENTRY_TIME


def coerce_hype_adjustment(value: Any) -> int:
    """
    Read the hype score adjustment as a number clamped to [-3, 3].

    Booleans, non-numeric and non-finite values count as no adjustment.
    """
    if isinstance(value, bool) or value is None:
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    return int(max(MIN_HYPE_ADJUSTMENT, min(MAX_HYPE_ADJUSTMENT, round(number))))


def normalize_enrichment(partial: PartialEnrichment) -> Enrichment:
    """Convert a partial enrichment into a fully typed one."""
    return Enrichment(
        live=coerce_bool(partial.live),
        free_entry=coerce_bool(partial.free_entry),
        has_skill_question=coerce_bool(partial.has_skill_question),
        exemption_type=coerce_exemption_type(partial.exemption_type),
        free_route_verified=coerce_bool(partial.free_route_verified),
        skill_test_required=coerce_bool(partial.skill_test_required),
        subscription_risk=coerce_bool(partial.subscription_risk),
        premium_rate_detected=coerce_bool(partial.premium_rate_detected),
        entry_time_estimate=coerce_entry_time(partial.entry_time_estimate),
        hype_score_adjustment=coerce_hype_adjustment(partial.hype_score_adjustment),
    )


def parse_enrichment_text(text: str) -> PartialEnrichment:
    """
    Parse the model's reply into a PartialEnrichment.

    Tries the text as JSON first, then the first fenced code block.

    Raises:
        ValueError: If no JSON object can be read from the text
    """
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        match = _FENCE_PATTERN.search(text)
        if not match:
            raise ValueError(f"Enrichment reply is not valid JSON: {text[:200]}")
        parsed = json.loads(match.group(1))

    if not isinstance(parsed, dict):
        raise ValueError("Enrichment reply is not a JSON object")
    return PartialEnrichment.model_validate(parsed)
