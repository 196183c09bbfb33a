"""
Competition model - the persisted giveaway listing.

Rows are written only through the Sink's upsert. The review and
analytics columns at the bottom are owned by the admin tooling and the
click tracker; the pipeline never overwrites them.
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, Integer, String, Text, false
from sqlalchemy.orm import Mapped, mapped_column

from compscout.db.base import Base, TimestampMixin
from compscout.schemas.listing import ExemptionType


# Columns the pipeline writes on every upsert
PIPELINE_COLUMNS = (
    "id",
    "source_url",
    "source_site",
    "title",
    "prize_summary",
    "prize_value_estimate",
    "closes_at",
    "is_free",
    "has_skill_question",
    "entry_time_estimate",
    "hype_score",
    "curated_summary",
    "discovered_at",
    "verified_at",
    "exemption_type",
    "skill_test_required",
    "free_route_verified",
    "subscription_risk",
    "premium_rate_detected",
)


class Competition(Base, TimestampMixin):
    """A giveaway listing after conversion and validation."""

    __tablename__ = "competitions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    # Provenance
    source_url: Mapped[str] = mapped_column(String(2000), nullable=False)
    source_site: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    discovered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Content
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    prize_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    prize_value_estimate: Mapped[float | None] = mapped_column(Float, nullable=True)
    curated_summary: Mapped[str] = mapped_column(Text, nullable=False)

    # Entry characteristics
    is_free: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    has_skill_question: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    entry_time_estimate: Mapped[str] = mapped_column(String(100), nullable=False)
    closes_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Scoring
    hype_score: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    # Compliance
    exemption_type: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=ExemptionType.UNKNOWN.value,
    )
    skill_test_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    free_route_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    subscription_risk: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    premium_rate_detected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Lifecycle
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Review and analytics (externally owned)
    manual_verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )
    flagged: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )
    flag_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    click_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )

    def __repr__(self) -> str:
        return f"<Competition(id={self.id}, hype={self.hype_score}, site={self.source_site})>"
