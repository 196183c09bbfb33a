from contextlib import asynccontextmanager
from typing import AsyncGenerator

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from compscout.api.router import get_stage_router
from compscout.core.config import PipelineStage, get_settings
from compscout.core.exceptions import AppException
from compscout.core.logging import get_logger, setup_logging
from compscout.runtime import StageRuntime, build_runtime

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.

    Manages startup and shutdown operations including:
    - Logging configuration
    - Building the stage runtime (unless one was injected)
    - Starting and stopping the subscription consumer
    """
    # Startup
    setup_logging(app.state.stage)
    settings = get_settings()

    if app.state.runtime is None:
        app.state.runtime = build_runtime(app.state.stage, settings)
    runtime: StageRuntime = app.state.runtime

    logger.info(
        "Application starting",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        stage=runtime.stage,
    )
    await runtime.start()

    yield

    # Shutdown
    logger.info("Application shutting down", stage=runtime.stage)
    await runtime.stop()


def create_application(
    stage: PipelineStage | None = None,
    runtime: StageRuntime | None = None,
) -> FastAPI:
    """
    Application factory.

    Args:
        stage: Pipeline stage to serve; defaults to PIPELINE_STAGE
        runtime: Prebuilt stage runtime, built at startup when omitted

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    settings = get_settings()
    stage = runtime.stage if runtime is not None else (stage or settings.pipeline_stage)

    app = FastAPI(
        title=f"{settings.app_name} {stage.capitalize()}",
        version=settings.app_version,
        description="Giveaway listing pipeline stage",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.stage = stage
    app.state.runtime = runtime

    app.include_router(get_stage_router(stage))

    # Exception handlers
    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        """Handle custom application exceptions."""
        logger.warning(
            "Application exception",
            error_code=exc.error_code,
            message=exc.message,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception(
            "Unhandled exception",
            error=str(exc),
            path=request.url.path,
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred",
                    "details": {} if not settings.debug else {"error": str(exc)},
                }
            },
        )

    return app


def run() -> None:
    """Serve the configured stage with uvicorn."""
    settings = get_settings()
    uvicorn.run(
        "compscout.main:create_application",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
