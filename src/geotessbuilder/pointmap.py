"""Enumeration of a model's active data-bearing nodes.

A point is one data-bearing node ``(vertex, layer, node)`` of the model.
Points are numbered in vertex, then layer, then node order.  Only the
vertices on the top level of a layer's tessellation carry points, and
only those inside the model's active region.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, Iterator, List, Tuple, Union

import numpy as np

from .polygons import Polygon, Polygon3D

if TYPE_CHECKING:
    from .model import GeoTessModel

logger = logging.getLogger(__name__)

Point = Tuple[int, int, int]


def _vertex_inside(region: Union[Polygon, Polygon3D], v: np.ndarray) -> bool:
    if isinstance(region, Polygon3D):
        return region.contains_vertex(v)
    return region.contains(v)


class PointMap:
    """Bijection between point indices and ``(vertex, layer, node)`` triples."""

    def __init__(self, model: "GeoTessModel") -> None:
        self._model = model
        points: List[Point] = []

        region = model.active_region
        grid = model.grid
        top_sets = [
            grid.vertex_indices_top_level(model.tessellation(layer))
            for layer in range(model.n_layers)
        ]

        for vertex in range(model.n_vertices):
            layers = [layer for layer in range(model.n_layers) if vertex in top_sets[layer]]
            if not layers:
                continue
            v = grid.vertices[vertex]
            if region is not None and not _vertex_inside(region, v):
                continue
            profiles = model.profiles(vertex)
            for layer in layers:
                profile = profiles[layer]
                for node in range(profile.n_nodes):
                    if isinstance(region, Polygon3D) and not region.within_horizons(
                        v, profile.node_radius(node), layer, profiles
                    ):
                        continue
                    points.append((vertex, layer, node))

        self._points = np.array(points, dtype=np.int64).reshape(-1, 3)
        self._index: Dict[Point, int] = {p: i for i, p in enumerate(points)}
        logger.debug("point map: %d points over %d vertices", len(points), model.n_vertices)

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[Point]:
        for row in self._points:
            yield (int(row[0]), int(row[1]), int(row[2]))

    def __contains__(self, point: object) -> bool:
        return point in self._index

    # ── Lookups ─────────────────────────────────────────────────────

    def point_index(self, vertex: int, layer: int, node: int) -> int:
        """Index of a point; ``KeyError`` if the node is not an active point."""
        return self._index[(int(vertex), int(layer), int(node))]

    def point(self, index: int) -> Point:
        if not 0 <= index < len(self._points):
            raise IndexError(f"point index {index} out of range [0, {len(self._points)})")
        row = self._points[index]
        return (int(row[0]), int(row[1]), int(row[2]))

    def vertex_index(self, index: int) -> int:
        return self.point(index)[0]

    def layer_index(self, index: int) -> int:
        return self.point(index)[1]

    def node_index(self, index: int) -> int:
        return self.point(index)[2]

    def unit_vector(self, index: int) -> np.ndarray:
        return self._model.grid.vertex(self.vertex_index(index))

    def radius(self, index: int) -> float:
        vertex, layer, node = self.point(index)
        return self._model.profile(vertex, layer).node_radius(node)

    def value(self, index: int, attribute: int) -> float:
        vertex, layer, node = self.point(index)
        return self._model.profile(vertex, layer).value(node, attribute)

    def as_array(self) -> np.ndarray:
        """``(n, 3)`` array of ``(vertex, layer, node)`` rows."""
        return self._points.copy()
