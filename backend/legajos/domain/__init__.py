"""
Legajo Domain Module

Case records, loaded sub-resources and selection state.
"""

from .entities import (
    Legajo,
    LegajoData,
    LegajoExtendido,
    SelectionState,
    ensure_list,
)

__all__ = [
    "Legajo",
    "LegajoData",
    "LegajoExtendido",
    "SelectionState",
    "ensure_list",
]
