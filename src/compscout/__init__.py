"""
CompScout giveaway listing pipeline.
"""

__version__ = "1.0.0"
