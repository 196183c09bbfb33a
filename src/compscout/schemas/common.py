"""
Common schemas used by the operator endpoints.
"""

from typing import Any

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="OK, or DEGRADED when a dependency is down")
    stage: str
    version: str
    details: dict[str, Any] = Field(default_factory=dict)


class TriggerResponse(BaseModel):
    """Response for the crawl trigger."""

    status: str = "accepted"


class ErrorResponse(BaseModel):
    """Error response schema."""

    error: dict[str, Any]
