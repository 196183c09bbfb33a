"""
Pipeline stage services.
"""

from compscout.services.converter import Converter
from compscout.services.scout import Scout
from compscout.services.sink import Sink
from compscout.services.validator import Validator

__all__ = ["Converter", "Scout", "Sink", "Validator"]
