"""3-D model: profiles attached to the vertices of a grid, one per layer.

Topology (the :class:`~geotessbuilder.grid.GeoTessGrid`) and data (the
profiles) are kept apart: the grid is immutable and shared, the model owns
a ``vertex x layer`` table of :class:`~geotessbuilder.profiles.Profile`.

Each layer is bound to one tessellation of the grid
(:attr:`ModelMetaData.layer_tess_ids`).  Only the vertices on the top
level of that tessellation contribute points to the :class:`PointMap`.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from .errors import ConfigurationError, InvariantError
from .grid import GeoTessGrid
from .metadata import ModelMetaData
from .pointmap import PointMap
from .polygons import ActiveRegion, Polygon3D, region_from_dict, region_to_dict
from .profiles import EMPTY, Profile

logger = logging.getLogger(__name__)


class GeoTessModel:
    """Profiles on a grid, plus an active region and its point map."""

    def __init__(self, grid: GeoTessGrid, metadata: ModelMetaData) -> None:
        bad = [t for t in metadata.layer_tess_ids if t >= grid.n_tessellations]
        if bad:
            raise InvariantError(
                f"layer tessellation ids {bad} out of range; grid has "
                f"{grid.n_tessellations} tessellations"
            )
        self._grid = grid
        self._metadata = metadata
        self._profiles: List[List[Profile]] = [
            [EMPTY] * metadata.n_layers for _ in range(grid.n_vertices)
        ]
        self._active_region: Optional[ActiveRegion] = None
        self._point_map: Optional[PointMap] = None

    # ── Accessors ───────────────────────────────────────────────────

    @property
    def grid(self) -> GeoTessGrid:
        return self._grid

    @property
    def metadata(self) -> ModelMetaData:
        return self._metadata

    @property
    def n_vertices(self) -> int:
        return self._grid.n_vertices

    @property
    def n_layers(self) -> int:
        return self._metadata.n_layers

    @property
    def n_attributes(self) -> int:
        return self._metadata.n_attributes

    def tessellation(self, layer: int) -> int:
        """Tessellation id that supports *layer*."""
        return self._metadata.layer_tess_ids[layer]

    def _check_cell(self, vertex: int, layer: int) -> None:
        if not 0 <= vertex < self.n_vertices:
            raise IndexError(f"vertex {vertex} out of range [0, {self.n_vertices})")
        if not 0 <= layer < self.n_layers:
            raise IndexError(f"layer {layer} out of range [0, {self.n_layers})")

    def profile(self, vertex: int, layer: int) -> Profile:
        self._check_cell(vertex, layer)
        return self._profiles[vertex][layer]

    def profiles(self, vertex: int) -> List[Profile]:
        """Profiles of every layer at one vertex, bottom layer first."""
        return list(self._profiles[vertex])

    # ── Mutation ────────────────────────────────────────────────────

    def set_profile(
        self,
        vertex: int,
        layer: int,
        radii: Sequence[float] = (),
        data: Any = None,
    ) -> Profile:
        """Replace the profile at ``(vertex, layer)``.

        The profile kind is inferred from the radii and data (see
        :meth:`Profile.from_arrays`).  Returns the stored profile.
        """
        return self.put_profile(vertex, layer, Profile.from_arrays(radii, data))

    def put_profile(self, vertex: int, layer: int, profile: Profile) -> Profile:
        self._check_cell(vertex, layer)
        if profile.has_data and profile.n_attributes != self.n_attributes:
            raise InvariantError(
                f"profile at vertex {vertex} layer {layer} has {profile.n_attributes} "
                f"attributes, model defines {self.n_attributes}"
            )
        self._profiles[vertex][layer] = profile
        self._point_map = None
        return profile

    def set_active_region(self, region: Optional[ActiveRegion] = None) -> PointMap:
        """Restrict the point map to *region*; ``None`` selects the whole model."""
        self._check_region(region)
        self._active_region = region
        self._point_map = PointMap(self)
        logger.debug("active region %s: %d points", type(region).__name__, len(self._point_map))
        return self._point_map

    def _check_region(self, region: Optional[ActiveRegion]) -> None:
        if not isinstance(region, Polygon3D):
            return
        for horizon in (region.bottom, region.top):
            if horizon.layer is not None and horizon.layer >= self.n_layers:
                raise ConfigurationError(
                    f"horizon layer {horizon.layer} out of range for a model with {self.n_layers} layers"
                )

    @property
    def active_region(self) -> Optional[ActiveRegion]:
        return self._active_region

    @property
    def point_map(self) -> PointMap:
        if self._point_map is None:
            self._point_map = PointMap(self)
        return self._point_map

    # ── Identity ────────────────────────────────────────────────────

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GeoTessModel):
            return NotImplemented
        return (
            self._grid.grid_id == other._grid.grid_id
            and self._metadata == other._metadata
            and self._profiles == other._profiles
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return (
            f"GeoTessModel(grid={self._grid.grid_id}, layers={list(self._metadata.layer_names)}, "
            f"attributes={list(self._metadata.attribute_names)})"
        )

    def copy(self) -> "GeoTessModel":
        """Independent model sharing this model's (immutable) grid."""
        clone = GeoTessModel(self._grid, self._metadata.copy())
        clone._profiles = [list(row) for row in self._profiles]
        clone._active_region = self._active_region
        return clone

    def data_bearing_vertices(self, layer: int) -> List[int]:
        """Vertices whose profile in *layer* carries data."""
        return [v for v in range(self.n_vertices) if self._profiles[v][layer].has_data]

    # ── Serialisation ───────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "grid": self._grid.to_dict(),
            "metadata": self._metadata.to_dict(),
            "active_region": region_to_dict(self._active_region),
            "profiles": [[p.to_dict() for p in row] for row in self._profiles],
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "GeoTessModel":
        grid = GeoTessGrid.from_dict(payload["grid"])
        model = cls(grid, ModelMetaData.from_dict(payload["metadata"]))
        rows = payload.get("profiles", [])
        if len(rows) != grid.n_vertices:
            raise InvariantError(
                f"model file holds profiles for {len(rows)} vertices, grid has {grid.n_vertices}"
            )
        for vertex, row in enumerate(rows):
            if len(row) != model.n_layers:
                raise InvariantError(f"vertex {vertex} has {len(row)} profiles, model has {model.n_layers} layers")
            for layer, item in enumerate(row):
                model.put_profile(vertex, layer, Profile.from_dict(item))
        region = region_from_dict(payload.get("active_region"))
        model._check_region(region)
        model._active_region = region
        return model

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, json_data: str) -> "GeoTessModel":
        return cls.from_dict(json.loads(json_data))
