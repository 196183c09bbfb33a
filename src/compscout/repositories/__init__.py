"""
Data access for persisted competitions.
"""

from compscout.repositories.competition_repository import CompetitionRepository

__all__ = ["CompetitionRepository"]
