"""Adaptive refinement of an existing model.

Pipeline
--------
1. **Seeds.** Explicit point indices, or every active point whose value
   passes a :class:`Threshold`, become ``(vertex, layer, node)`` seeds.
2. **Work split.** A seed asks for spatial refinement of the top-level
   triangles of ``tess(layer)`` incident to its vertex, and, when its
   profile is n-point, for radial refinement around its node.
3. **Subdivision.** One conforming pass per affected tessellation,
   appended as a new top level.  Midpoints that already exist in the grid
   are reused.
4. **Profiles.** Vertices joining a refined top level get profiles
   interpolated from their edge parents; radial intervals next to each
   seed node are split at the seed vertex and its refined ring.

The input model is never modified.
"""

from __future__ import annotations

import logging
import operator
import re
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple, Union

import numpy as np

from .algorithms import incident_triangles
from .errors import ConfigurationError, RefinementTargetError
from .model import GeoTessModel
from .profiles import Profile, ProfileType, interpolate, intervals_around, mean_span, split_intervals
from .subdivision import MidpointIndex, subdivide_level

logger = logging.getLogger(__name__)

Seed = Tuple[int, int, int]


# ═══════════════════════════════════════════════════════════════════
# Threshold predicate
# ═══════════════════════════════════════════════════════════════════

_OPERATORS: Dict[str, Callable[[float, float], bool]] = {
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
    "==": operator.eq,
    "!=": operator.ne,
}

_THRESHOLD = re.compile(r"^\s*(\S+?)\s*(>=|<=|==|!=|>|<)\s*(\S+)\s*$")


@dataclass(frozen=True)
class Threshold:
    """``<attribute> <op> <value>`` evaluated against each active point."""

    attribute: str
    op: str
    value: float

    def __post_init__(self) -> None:
        if self.op not in _OPERATORS:
            raise RefinementTargetError(
                f"unknown threshold operator {self.op!r}; expected one of {' '.join(_OPERATORS)}"
            )

    @classmethod
    def parse(cls, text: str) -> "Threshold":
        match = _THRESHOLD.match(text)
        if match is None:
            raise RefinementTargetError(f"malformed threshold {text!r}; expected '<attribute> <op> <value>'")
        name, op, raw = match.groups()
        try:
            value = float(raw)
        except ValueError:
            raise RefinementTargetError(f"threshold value must be a number, got {raw!r}") from None
        return cls(name, op, value)

    def select(self, model: GeoTessModel) -> List[int]:
        """Point indices of *model* whose value satisfies the predicate."""
        try:
            attribute = model.metadata.attribute_index(self.attribute)
        except KeyError:
            raise RefinementTargetError(
                f"threshold refers to unknown attribute {self.attribute!r}; "
                f"model has {list(model.metadata.attribute_names)}"
            ) from None
        compare = _OPERATORS[self.op]
        point_map = model.point_map
        return [i for i in range(len(point_map)) if compare(point_map.value(i, attribute), self.value)]

    def __str__(self) -> str:
        return f"{self.attribute} {self.op} {self.value:g}"


# ═══════════════════════════════════════════════════════════════════
# Seeds
# ═══════════════════════════════════════════════════════════════════

def collect_seeds(
    model: GeoTessModel,
    points_to_refine: Optional[Iterable[int]] = None,
    threshold: Optional[Union[Threshold, str]] = None,
) -> List[Seed]:
    """Translate point indices or a threshold into sorted seed triples."""
    if points_to_refine is not None and threshold is not None:
        raise ConfigurationError("pointsToRefine and threshold cannot both be specified")
    point_map = model.point_map

    if threshold is not None:
        if isinstance(threshold, str):
            threshold = Threshold.parse(threshold)
        indices = threshold.select(model)
        logger.info("threshold %s selected %d of %d points", threshold, len(indices), len(point_map))
    elif points_to_refine is not None:
        indices = []
        for index in points_to_refine:
            index = int(index)
            if not 0 <= index < len(point_map):
                raise RefinementTargetError(
                    f"point index {index} out of range; model has {len(point_map)} points"
                )
            indices.append(index)
    else:
        indices = []
    return sorted({point_map.point(i) for i in indices})


# ═══════════════════════════════════════════════════════════════════
# Refinement
# ═══════════════════════════════════════════════════════════════════

@dataclass
class RefinementReport:
    n_seeds: int
    refined_tessellations: Dict[int, Tuple[int, int]]
    n_new_vertices: int
    radial_cells: int


def _rebuild_profiles(
    source: GeoTessModel,
    target: GeoTessModel,
    midpoints: MidpointIndex,
    refined: Iterable[int],
) -> None:
    old_grid, new_grid = source.grid, target.grid
    n_old = old_grid.n_vertices

    for vertex in range(n_old):
        for layer in range(source.n_layers):
            target.put_profile(vertex, layer, source.profile(vertex, layer))

    for vertex in range(n_old, new_grid.n_vertices):
        a, b = midpoints.parents[vertex]
        for layer in range(source.n_layers):
            span = mean_span(source.profile(a, layer), source.profile(b, layer))
            target.put_profile(vertex, layer, Profile.empty(span))

    for tess_id in refined:
        joined = new_grid.vertex_indices_top_level(tess_id) - old_grid.vertex_indices_top_level(tess_id)
        layers = source.metadata.layers_of(tess_id)
        for vertex in sorted(joined):
            a, b = midpoints.parents[vertex]
            for layer in layers:
                target.put_profile(
                    vertex, layer, interpolate(source.profile(a, layer), source.profile(b, layer))
                )


def _radial_requests(target: GeoTessModel, seeds: Iterable[Seed]) -> Dict[Tuple[int, int], Set[int]]:
    requests: Dict[Tuple[int, int], Set[int]] = defaultdict(set)
    for vertex, layer, node in seeds:
        tess_id = target.tessellation(layer)
        for u in [vertex] + target.grid.vertex_neighbors(tess_id, vertex):
            intervals = intervals_around(target.profile(u, layer), node)
            if intervals:
                requests[(u, layer)].update(intervals)
    return requests


def refine_model(
    model: GeoTessModel,
    points_to_refine: Optional[Iterable[int]] = None,
    threshold: Optional[Union[Threshold, str]] = None,
) -> GeoTessModel:
    """Return a refined copy of *model*.

    Exactly one of *points_to_refine* (point map indices) and *threshold*
    may be given.  With no seeds the result is a copy equal to *model*.
    """
    seeds = collect_seeds(model, points_to_refine, threshold)
    if not seeds:
        logger.info("no points to refine; model unchanged")
        return model.copy()

    grid = model.grid
    spatial: Dict[int, Set[int]] = defaultdict(set)
    radial: List[Seed] = []
    for vertex, layer, node in seeds:
        spatial[model.tessellation(layer)].add(vertex)
        if model.profile(vertex, layer).type is ProfileType.NPOINT:
            radial.append((vertex, layer, node))

    midpoints = MidpointIndex(grid.vertices, reuse_existing=True)
    new_levels: Dict[int, np.ndarray] = {}
    for tess_id in sorted(spatial):
        triangles = grid.triangles(tess_id)
        scheduled = incident_triangles(triangles, spatial[tess_id])
        new_levels[tess_id], stats = subdivide_level(triangles, scheduled, midpoints)
        logger.debug(
            "tessellation %d: %d seed vertices, %d red and %d green triangles",
            tess_id, len(spatial[tess_id]), stats.red, stats.green,
        )

    new_grid = grid.with_new_levels(midpoints.vertex_array(), new_levels)
    refined = GeoTessModel(new_grid, model.metadata.copy())
    _rebuild_profiles(model, refined, midpoints, new_levels)

    requests = _radial_requests(refined, radial)
    for (vertex, layer), intervals in sorted(requests.items()):
        refined.put_profile(vertex, layer, split_intervals(refined.profile(vertex, layer), intervals))

    refined.set_active_region(model.active_region)

    report = RefinementReport(
        n_seeds=len(seeds),
        refined_tessellations={
            t: (len(grid.vertex_indices_top_level(t)), len(new_grid.vertex_indices_top_level(t)))
            for t in new_levels
        },
        n_new_vertices=new_grid.n_vertices - grid.n_vertices,
        radial_cells=len(requests),
    )
    for tess_id, (before, after) in report.refined_tessellations.items():
        logger.info("tessellation %d: %d -> %d top-level vertices", tess_id, before, after)
    logger.info(
        "refined %d seed points: %d new vertices, %d profiles split radially",
        report.n_seeds, report.n_new_vertices, report.radial_cells,
    )
    return refined
