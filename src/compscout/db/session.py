"""
Database session management with async support.

Provides the bounded connection pool and session factory used by the Sink.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from compscout.core.config import get_settings
from compscout.core.logging import get_logger

logger = get_logger(__name__)

# Global engine instance
_engine: AsyncEngine | None = None


def get_engine() -> AsyncEngine:
    """
    Get or create the async database engine.

    The pool is bounded by ``database_pool_size + database_max_overflow``
    and waits at most ``database_pool_timeout`` seconds for a connection.

    Returns:
        AsyncEngine: SQLAlchemy async engine
    """
    global _engine

    if _engine is None:
        settings = get_settings()

        # asyncpg takes ssl as a connect argument, not a URL parameter
        db_url = str(settings.database_url).replace("?sslmode=require", "")

        _engine = create_async_engine(
            db_url,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_timeout=settings.database_pool_timeout,
            pool_pre_ping=True,
            pool_recycle=300,
            echo=settings.database_echo,
            connect_args={
                "ssl": settings.database_ssl,
                "timeout": settings.database_pool_timeout,
                "command_timeout": settings.database_statement_timeout,
                "server_settings": {
                    "application_name": f"{settings.app_name}-{settings.pipeline_stage}",
                },
            },
        )

        logger.info(
            "Database engine created",
            pool_size=settings.database_pool_size,
            environment=settings.environment,
        )

    return _engine


def get_session_factory(engine: AsyncEngine | None = None) -> async_sessionmaker[AsyncSession]:
    """
    Get async session factory.

    Args:
        engine: Engine to bind; defaults to the process-wide engine

    Returns:
        async_sessionmaker: Factory for creating async sessions
    """
    return async_sessionmaker(
        engine or get_engine(),
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@asynccontextmanager
async def session_scope(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """
    Transactional session scope: commit on success, roll back on error.

    Example:
        async with session_scope(factory) as db:
            await db.execute(stmt)
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def close_db() -> None:
    """Close the database engine and all connections."""
    global _engine

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        logger.info("Database engine closed")
