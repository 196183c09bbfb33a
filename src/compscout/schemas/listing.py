"""
Wire models for the messages exchanged between pipeline stages.

Attributes are snake_case in Python and camelCase on the wire. Every
model accepts either spelling on input so the Python side can build
instances by field name.
"""

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from compscout.core.timeutil import utc_now


class SiteType(str, Enum):
    """Kind of seed site being crawled."""
    AGGREGATOR = "aggregator"
    BRAND = "brand"
    FORUM = "forum"


class ExemptionType(str, Enum):
    """UK promotional-law classification of a competition."""
    FREE_DRAW = "free_draw"
    PRIZE_COMPETITION = "prize_competition"
    UNKNOWN = "unknown"


class WireModel(BaseModel):
    """Base schema with camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    def to_wire(self, **kwargs: Any) -> dict[str, Any]:
        """Dump to a JSON-compatible dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True, **kwargs)

    def to_message(self, **kwargs: Any) -> bytes:
        """Encode as a UTF-8 JSON channel message body."""
        return self.model_dump_json(by_alias=True, **kwargs).encode("utf-8")


def hostname_of(url: str) -> str | None:
    """Return the URL hostname without a leading ``www.``, or None."""
    try:
        host = urlparse(url).hostname
    except ValueError:
        return None
    if not host:
        return None
    return host[4:] if host.startswith("www.") else host


class SeedSite(WireModel):
    """A configured starting point for crawling."""

    name: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    type: SiteType

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("url must be an absolute http(s) URL")
        return v


class RawListing(WireModel):
    """A candidate listing as published by the Scout."""

    source_url: str
    source_site: str
    site_type: SiteType = SiteType.BRAND
    fetched_at: datetime = Field(default_factory=utc_now)
    html_excerpt: str = ""
    title: str = ""

    @model_validator(mode="before")
    @classmethod
    def accept_legacy_shape(cls, data: Any) -> Any:
        """Map the older ``{url, scrapedAt, title, html}`` payload onto this model."""
        if not isinstance(data, dict):
            return data
        if "url" in data and "sourceUrl" not in data and "source_url" not in data:
            data = dict(data)
            url = data.pop("url")
            data["sourceUrl"] = url
            data.setdefault("sourceSite", hostname_of(url) or "unknown")
            if "scrapedAt" in data:
                data["fetchedAt"] = data.pop("scrapedAt")
            if "html" in data:
                data["htmlExcerpt"] = data.pop("html")
        return data

    @field_validator("fetched_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        return v if v.tzinfo else v.replace(tzinfo=timezone.utc)


class Competition(WireModel):
    """
    A listing after conversion, optionally approved by the Validator.

    ``verified_at`` is null until the Validator approves the record.
    ``hype_score`` is always an integer in [1, 10].
    """

    id: str = Field(..., min_length=1)
    source_url: str = Field(..., min_length=1)
    source_site: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    prize_summary: str | None = None
    prize_value_estimate: float | None = Field(default=None, ge=0)
    closes_at: datetime | None = None
    is_free: bool = True
    has_skill_question: bool = False
    entry_time_estimate: str = "1–2 minutes"
    hype_score: int = Field(..., ge=1, le=10)
    curated_summary: str
    discovered_at: datetime
    verified_at: datetime | None = None

    # Compliance flags
    exemption_type: ExemptionType = ExemptionType.UNKNOWN
    skill_test_required: bool = False
    free_route_verified: bool = False
    subscription_risk: bool = False
    premium_rate_detected: bool = False

    @field_validator("hype_score", mode="before")
    @classmethod
    def round_hype_score(cls, v: Any) -> Any:
        if isinstance(v, float) and math.isfinite(v):
            return round(v)
        return v

    @field_validator("closes_at", "discovered_at", "verified_at")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def is_verified(self) -> bool:
        return self.verified_at is not None


class ConvertedListing(Competition):
    """
    Converter output: a Competition plus the page excerpt.

    The excerpt is only carried so the Validator can show it to the
    enrichment model; it is dropped before persistence.
    """

    html_excerpt: str = ""

    def to_competition(self) -> Competition:
        return Competition.model_validate(self.model_dump(exclude={"html_excerpt"}))
