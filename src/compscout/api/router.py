"""
Per-stage API routers.
"""

from fastapi import APIRouter

from compscout.api.endpoints import converter, scout, sink, validator
from compscout.core.config import PipelineStage

STAGE_ROUTERS: dict[str, APIRouter] = {
    "scout": scout.router,
    "converter": converter.router,
    "validator": validator.router,
    "sink": sink.router,
}


def get_stage_router(stage: PipelineStage) -> APIRouter:
    """Router exposing the operator endpoints of one stage."""
    api_router = APIRouter()
    api_router.include_router(STAGE_ROUTERS[stage], tags=[stage.capitalize()])
    return api_router
