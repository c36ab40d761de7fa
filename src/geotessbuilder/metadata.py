"""Model metadata — layers, attributes and provenance of a 3-D model."""

from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .errors import InvariantError

SOFTWARE_VERSION = "geotessbuilder 1.0.0"

# Data types a model may declare.  Values are always held as floats; the
# declared type is carried through persistence unchanged.
DATA_TYPES = ("double", "float", "long", "int", "short", "byte")


def _now() -> str:
    return _dt.datetime.now(_dt.timezone.utc).replace(microsecond=0).isoformat()


@dataclass
class ModelMetaData:
    """Names, units and layer layout of a model.

    *layer_tess_ids* maps each layer to the grid tessellation that
    supports it; it defaults to tessellation 0 for every layer.
    """

    layer_names: Sequence[str]
    attribute_names: Sequence[str]
    attribute_units: Sequence[str]
    data_type: str = "float"
    layer_tess_ids: Optional[Sequence[int]] = None
    description: str = ""
    software_version: str = SOFTWARE_VERSION
    generation_date: str = field(default_factory=_now)

    def __post_init__(self) -> None:
        self.layer_names = tuple(str(n) for n in self.layer_names)
        self.attribute_names = tuple(str(n) for n in self.attribute_names)
        self.attribute_units = tuple(str(u) for u in self.attribute_units)
        if self.layer_tess_ids is None:
            self.layer_tess_ids = (0,) * len(self.layer_names)
        else:
            self.layer_tess_ids = tuple(int(t) for t in self.layer_tess_ids)
        self.data_type = self.data_type.strip().lower()

        errors = self.validate()
        if errors:
            raise InvariantError("; ".join(errors))

    def validate(self) -> List[str]:
        errors: List[str] = []
        if not self.layer_names:
            errors.append("model needs at least one layer")
        if len(self.attribute_units) != len(self.attribute_names):
            errors.append(
                f"{len(self.attribute_names)} attribute names but "
                f"{len(self.attribute_units)} attribute units"
            )
        if len(set(self.attribute_names)) != len(self.attribute_names):
            errors.append(f"duplicate attribute names in {list(self.attribute_names)}")
        if len(self.layer_tess_ids) != len(self.layer_names):
            errors.append(
                f"{len(self.layer_names)} layers but {len(self.layer_tess_ids)} layer tessellation ids"
            )
        if any(t < 0 for t in self.layer_tess_ids):
            errors.append("layer tessellation ids must be >= 0")
        if list(self.layer_tess_ids) != sorted(self.layer_tess_ids):
            errors.append("layer tessellation ids must not decrease from the bottom layer upwards")
        if self.data_type not in DATA_TYPES:
            errors.append(f"unsupported data type {self.data_type!r}; expected one of {', '.join(DATA_TYPES)}")
        return errors

    # ── Queries ─────────────────────────────────────────────────────

    @property
    def n_layers(self) -> int:
        return len(self.layer_names)

    @property
    def n_attributes(self) -> int:
        return len(self.attribute_names)

    def attribute_index(self, name: str) -> int:
        """Index of an attribute by name (case-insensitive); ``KeyError`` if absent."""
        lowered = [n.lower() for n in self.attribute_names]
        try:
            return lowered.index(name.strip().lower())
        except ValueError:
            raise KeyError(name) from None

    def layer_index(self, name: str) -> int:
        lowered = [n.lower() for n in self.layer_names]
        try:
            return lowered.index(name.strip().lower())
        except ValueError:
            raise KeyError(name) from None

    def layers_of(self, tess_id: int) -> Tuple[int, ...]:
        """Layers supported by one tessellation."""
        return tuple(i for i, t in enumerate(self.layer_tess_ids) if t == tess_id)

    def identity(self) -> Tuple[Any, ...]:
        """Fields that take part in model equality."""
        return (
            tuple(self.layer_names),
            tuple(self.layer_tess_ids),
            tuple(self.attribute_names),
            tuple(self.attribute_units),
            self.data_type,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ModelMetaData):
            return NotImplemented
        return self.identity() == other.identity()

    def copy(self) -> "ModelMetaData":
        return ModelMetaData.from_dict(self.to_dict())

    # ── Serialisation ───────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "description": self.description,
            "layer_names": list(self.layer_names),
            "layer_tess_ids": list(self.layer_tess_ids),
            "attribute_names": list(self.attribute_names),
            "attribute_units": list(self.attribute_units),
            "data_type": self.data_type,
            "software_version": self.software_version,
            "generation_date": self.generation_date,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ModelMetaData":
        return cls(
            layer_names=payload["layer_names"],
            attribute_names=payload.get("attribute_names", ()),
            attribute_units=payload.get("attribute_units", ()),
            data_type=payload.get("data_type", "float"),
            layer_tess_ids=payload.get("layer_tess_ids"),
            description=payload.get("description", ""),
            software_version=payload.get("software_version", SOFTWARE_VERSION),
            generation_date=payload.get("generation_date") or _now(),
        )
