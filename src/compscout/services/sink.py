"""
Sink service - persists approved competitions.
"""

import json

from pydantic import ValidationError

from compscout.core.exceptions import MalformedMessageError, StoreUnavailableError
from compscout.core.logging import LoggerMixin
from compscout.repositories.competition_repository import CompetitionRepository
from compscout.schemas.listing import Competition


def parse_final_listing(body: bytes) -> Competition:
    """
    Decode a final-listing message.

    Raises:
        MalformedMessageError: If the body is not JSON, lacks ``id`` or
            ``sourceUrl``, or does not validate as a competition
    """
    try:
        data = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedMessageError(f"Competition is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedMessageError("Competition is not a JSON object")
    if not data.get("id") or not data.get("sourceUrl"):
        raise MalformedMessageError(
            "Competition is missing id or sourceUrl",
            {"id": data.get("id")},
        )
    try:
        return Competition.model_validate(data)
    except ValidationError as e:
        raise MalformedMessageError(
            "Competition failed validation",
            {"id": data.get("id"), "errors": e.errors(include_url=False, include_context=False, include_input=False)},
        ) from e


class Sink(LoggerMixin):
    """Writes each final listing to the store with an idempotent upsert."""

    def __init__(self, repository: CompetitionRepository) -> None:
        self.repository = repository

    async def handle_message(self, body: bytes) -> None:
        """Channel handler: upsert one competition."""
        await self.persist(parse_final_listing(body))

    async def persist(self, competition: Competition) -> None:
        await self.repository.upsert(competition)
        self.logger.info(
            "Competition upserted",
            competition_id=competition.id,
            hype_score=competition.hype_score,
            is_free=competition.is_free,
            source_url=competition.source_url,
        )

    async def healthy(self) -> bool:
        """Readiness check: True when the store answers ``SELECT 1``."""
        try:
            await self.repository.ping()
        except StoreUnavailableError as e:
            self.logger.warning("Store health check failed", error=e.message)
            return False
        return True
