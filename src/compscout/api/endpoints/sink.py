"""
Sink endpoints.
"""

from fastapi import APIRouter, Response, status

from compscout.api.deps import Runtime
from compscout.schemas.common import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(runtime: Runtime, response: Response) -> HealthResponse:
    """Readiness: 200 OK when the store answers, 503 DEGRADED otherwise."""
    settings = runtime.settings
    healthy = await runtime.sink.healthy()
    if not healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return HealthResponse(
        status="OK" if healthy else "DEGRADED",
        stage=runtime.stage,
        version=settings.app_version,
        details={
            "inputTopic": settings.final_listings_topic,
            "subscription": settings.sink_subscription,
        },
    )
