"""
Selection Services

Select-and-load workflow for case records.
"""

from .coordinator import LOAD_STEPS, LegajoSelector

__all__ = ["LegajoSelector", "LOAD_STEPS"]
