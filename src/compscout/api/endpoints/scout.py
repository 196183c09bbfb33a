"""
Scout endpoints.

POST /trigger starts a crawl and returns immediately; the crawl runs
as a detached task and the caller never sees its outcome.
"""

from fastapi import APIRouter, status

from compscout.api.deps import Runtime
from compscout.core.logging import get_logger
from compscout.schemas.common import HealthResponse, TriggerResponse

logger = get_logger(__name__)
router = APIRouter()


@router.post("/trigger", response_model=TriggerResponse, status_code=status.HTTP_202_ACCEPTED)
async def trigger_crawl(runtime: Runtime) -> TriggerResponse:
    """Accept a crawl request and run it in the background."""
    runtime.spawn(runtime.scout.run_crawl(), name="crawl")
    logger.info("Crawl triggered", sites=len(runtime.scout.sites))
    return TriggerResponse(status="accepted")


@router.get("/health", response_model=HealthResponse)
async def health(runtime: Runtime) -> HealthResponse:
    settings = runtime.settings
    return HealthResponse(
        status="OK",
        stage=runtime.stage,
        version=settings.app_version,
        details={
            "topic": runtime.scout.topic,
            "sites": len(runtime.scout.sites),
            "seedConfigSource": runtime.scout.seed_config.source,
            "crawlIntervalSeconds": settings.crawl_interval_seconds,
            "maxPagesPerSite": settings.max_pages_per_site,
        },
    )
