"""
Structured logging configuration using structlog.

Every stage process calls setup_logging() once at startup. The stage
name is bound as context so lines from the four stages can be told
apart once they land in the same log store.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import Processor

from compscout.core.config import get_settings

# Third-party loggers that are only interesting when they fail
NOISY_LOGGERS = ("httpx", "httpcore", "asyncio", "azure", "uamqp", "sqlalchemy.engine")


def setup_logging(stage: str | None = None) -> None:
    """
    Configure structured logging for one stage process.

    Args:
        stage: Pipeline stage bound to every log line; defaults to
            the configured PIPELINE_STAGE
    """
    settings = get_settings()
    level = getattr(logging, settings.log_level)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]
    if settings.log_format == "json":
        renderer: list[Processor] = [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderer = [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]

    structlog.configure(
        processors=[*shared_processors, *renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        service=settings.app_name,
        stage=stage or settings.pipeline_stage,
        environment=settings.environment,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger, optionally with context already bound.

    Example:
        >>> logger = get_logger(__name__, subscription="validator-sub")
        >>> logger.info("Listing approved", competition_id="abc123")
    """
    logger = structlog.get_logger(name)
    if initial_context:
        logger = logger.bind(**initial_context)
    return logger


class LoggerMixin:
    """Gives a class a ``logger`` bound with ``component=<class name>``."""

    @property
    def logger(self) -> structlog.stdlib.BoundLogger:
        return get_logger(self.__class__.__module__, component=self.__class__.__name__)
