"""
Converter endpoints.
"""

from typing import Any

from fastapi import APIRouter, Body

from compscout.api.deps import Runtime
from compscout.schemas.common import HealthResponse
from compscout.services.converter import raw_listing_from_payload

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(runtime: Runtime) -> HealthResponse:
    settings = runtime.settings
    return HealthResponse(
        status="OK",
        stage=runtime.stage,
        version=settings.app_version,
        details={
            "inputTopic": settings.raw_listings_topic,
            "outputTopic": runtime.converter.output_topic,
            "subscription": settings.converter_subscription,
            "llmModel": runtime.converter.llm.model,
            "llmConfigured": runtime.converter.llm.configured,
        },
    )


@router.post("/test")
async def convert_listing(runtime: Runtime, payload: Any = Body(...)) -> dict[str, Any]:
    """Convert one raw listing (new or legacy shape) and publish it."""
    listing = await runtime.converter.process(raw_listing_from_payload(payload))
    return listing.to_wire(exclude={"html_excerpt"})
