"""
Legajo Domain Entities

Case records and the sub-resources loaded for a selected record.
Sub-resource payloads are kept as the JSON objects the API returns.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..constants import LEGAJO_CACHE_PREFIX

JsonObject = Dict[str, Any]


def ensure_list(data: Any) -> List[JsonObject]:
    """Return ``data`` if it is a list, otherwise an empty list."""
    return data if isinstance(data, list) else []


class Legajo(BaseModel):
    """
    A case record as listed in the dashboard table.

    Only the id is required here; the remaining row fields pass through.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    legajo: Optional[int] = None
    cuit: Optional[str] = None
    razon: Optional[str] = None
    estado: Optional[str] = None

    @property
    def cache_key(self) -> str:
        return f"{LEGAJO_CACHE_PREFIX}{self.id}"


class LegajoData(BaseModel):
    """Combined sub-resources for one record. This is what gets cached."""

    actas: List[JsonObject] = Field(default_factory=list)
    articulos: List[JsonObject] = Field(default_factory=list)
    historial_estados: List[JsonObject] = Field(default_factory=list)
    historial_giros: List[JsonObject] = Field(default_factory=list)

    def counts(self) -> Dict[str, int]:
        return {
            "actas": len(self.actas),
            "articulos": len(self.articulos),
            "historial_estados": len(self.historial_estados),
            "historial_giros": len(self.historial_giros),
        }

    def summary(self) -> str:
        counts = self.counts()
        return (
            f"{counts['actas']} actas, {counts['articulos']} articulos, "
            f"{counts['historial_estados']} estado changes, "
            f"{counts['historial_giros']} giro changes"
        )


class LegajoExtendido(Legajo):
    """A record merged with its loaded sub-resources."""

    nro_acta: Optional[str] = None
    articulo: Optional[JsonObject] = None
    actas: List[JsonObject] = Field(default_factory=list)
    legajo_articulos: List[JsonObject] = Field(default_factory=list)
    historial_estados: List[JsonObject] = Field(default_factory=list)
    historial_giros: List[JsonObject] = Field(default_factory=list)

    @field_validator("nro_acta", mode="before")
    @classmethod
    def coerce_nro_acta(cls, v: Any) -> Optional[str]:
        # Some acta payloads carry the number as an int
        return None if v is None else str(v)

    @classmethod
    def from_data(cls, legajo: Legajo, data: LegajoData) -> "LegajoExtendido":
        first_acta = data.actas[0] if data.actas else {}
        fields = legajo.model_dump()
        fields.update(
            nro_acta=first_acta.get("nroActa"),
            articulo=data.articulos[0] if data.articulos else None,
            actas=data.actas,
            legajo_articulos=data.articulos,
            historial_estados=data.historial_estados,
            historial_giros=data.historial_giros,
        )
        return cls(**fields)

    @classmethod
    def fallback(cls, legajo: Legajo) -> "LegajoExtendido":
        """The bare record, used when its sub-resources could not be loaded."""
        return cls(**legajo.model_dump())


class SelectionState(BaseModel):
    """What the UI renders for the current selection."""

    legajo_seleccionado: Optional[LegajoExtendido] = None
    is_loading: bool = False
    error: Optional[str] = None
    from_cache: bool = False
