"""
Validator endpoints.
"""

from typing import Any

from fastapi import APIRouter, Body
from fastapi.responses import JSONResponse

from compscout.api.deps import Runtime
from compscout.core.exceptions import AppException, MalformedMessageError
from compscout.core.logging import get_logger
from compscout.schemas.common import HealthResponse
from compscout.services.validator import validate_payload

logger = get_logger(__name__)
router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(runtime: Runtime) -> HealthResponse:
    settings = runtime.settings
    return HealthResponse(
        status="OK",
        stage=runtime.stage,
        version=settings.app_version,
        details={
            "inputTopic": settings.validated_listings_topic,
            "outputTopic": runtime.validator.output_topic,
            "subscription": settings.validator_subscription,
            "llmModel": runtime.validator.llm.model,
            "llmConfigured": runtime.validator.llm.configured,
        },
    )


@router.post("/test", response_model=None)
async def validate_listing(runtime: Runtime, payload: Any = Body(...)) -> dict[str, Any] | JSONResponse:
    """
    Validate one competition and publish it if approved.

    Permanent rejections (schema, not live) return 422; any other
    failure returns 500.
    """
    try:
        if not isinstance(payload, dict):
            raise MalformedMessageError("Competition is not a JSON object")
        approved = await runtime.validator.process(validate_payload(payload))
    except AppException as e:
        status_code = 500 if e.retriable else 422
        logger.warning("Test validation rejected", error_code=e.error_code, status=status_code)
        return JSONResponse(status_code=status_code, content=e.to_dict())
    return approved.to_wire()
