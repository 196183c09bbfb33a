"""
Database module for SQLAlchemy models and session management.
"""

from compscout.db.base import Base
from compscout.db.session import close_db, get_engine, get_session_factory, session_scope

__all__ = ["Base", "close_db", "get_engine", "get_session_factory", "session_scope"]
