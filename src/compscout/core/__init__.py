"""
Core module containing configuration, settings, and foundational utilities.
"""

from compscout.core.config import get_settings, Settings
from compscout.core.logging import get_logger, setup_logging

__all__ = ["get_settings", "Settings", "get_logger", "setup_logging"]
