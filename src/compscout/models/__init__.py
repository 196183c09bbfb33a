"""
SQLAlchemy ORM models.
"""

from compscout.models.competition import Competition

__all__ = ["Competition"]
