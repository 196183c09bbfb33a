"""
Competition persistence.

Writes go through a single INSERT ... ON CONFLICT (id) DO UPDATE that
overwrites every pipeline-owned column, so re-delivered messages are
idempotent and the latest write wins. Store errors are classified here:
connectivity problems are retriable, everything else is permanent.
"""

import asyncio
from typing import Any

from sqlalchemy import func, select, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from compscout.core.exceptions import StoreUnavailableError, StoreWriteError
from compscout.db.session import session_scope
from compscout.models.competition import PIPELINE_COLUMNS, Competition as CompetitionRow
from compscout.schemas.listing import Competition

_CONNECTIVITY_ERRORS = (
    OperationalError,
    InterfaceError,
    PoolTimeoutError,
    OSError,
    asyncio.TimeoutError,
)


def classify_store_error(error: BaseException, competition_id: str | None = None) -> Exception:
    """Wrap a store exception in a retriable or permanent pipeline error."""
    details = {"competition_id": competition_id, "error_type": type(error).__name__}
    if isinstance(error, _CONNECTIVITY_ERRORS):
        return StoreUnavailableError(f"Store unavailable: {error}", details)
    if isinstance(error, DBAPIError) and error.connection_invalidated:
        return StoreUnavailableError(f"Store connection lost: {error}", details)
    return StoreWriteError(f"Store write failed: {error}", details)


def competition_values(competition: Competition) -> dict[str, Any]:
    """Column values for the pipeline-owned columns of a competition."""
    data = competition.model_dump()
    values = {column: data[column] for column in PIPELINE_COLUMNS}
    values["exemption_type"] = competition.exemption_type.value
    return values


class CompetitionRepository:
    """Upserts and reads competitions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    def _insert(self, dialect_name: str):
        if dialect_name == "postgresql":
            return postgresql.insert(CompetitionRow)
        if dialect_name == "sqlite":
            return sqlite.insert(CompetitionRow)
        raise StoreWriteError(f"Unsupported database dialect: {dialect_name}")

    async def upsert(self, competition: Competition) -> None:
        """
        Insert or fully overwrite a competition by id.

        Raises:
            StoreUnavailableError: On connectivity failures (retriable)
            StoreWriteError: On any other store failure (permanent)
        """
        try:
            async with session_scope(self._session_factory) as session:
                stmt = self._insert(session.get_bind().dialect.name).values(**competition_values(competition))
                stmt = stmt.on_conflict_do_update(
                    index_elements=[CompetitionRow.id],
                    set_={
                        **{column: stmt.excluded[column] for column in PIPELINE_COLUMNS if column != "id"},
                        "updated_at": func.now(),
                    },
                )
                await session.execute(stmt)
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            raise classify_store_error(e, competition.id) from e

    async def get(self, competition_id: str) -> CompetitionRow | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(CompetitionRow).where(CompetitionRow.id == competition_id)
            )
            return result.scalar_one_or_none()

    async def count(self) -> int:
        async with self._session_factory() as session:
            result = await session.execute(select(func.count()).select_from(CompetitionRow))
            return result.scalar_one()

    async def ping(self) -> None:
        """Run ``SELECT 1``; raises StoreUnavailableError on failure."""
        try:
            async with self._session_factory() as session:
                await session.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            raise StoreUnavailableError(f"Store health check failed: {e}") from e
