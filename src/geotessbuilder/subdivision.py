"""One conforming subdivision pass over a level of triangles.

A pass splits every scheduled triangle 1-to-4 by inserting the
great-circle midpoints of its edges ("red" triangles).  Before anything
is split the schedule is closed: a triangle with two or more split edges
is scheduled too, until nothing changes.  Triangles left with exactly one
split edge are bisected ("green" triangles), so the new level never
contains a T-junction.

Midpoints are deduplicated through a :class:`MidpointIndex` keyed on
``(min vertex id, max vertex id)``.  The index lives for one builder or
refinement run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set

import numpy as np
from scipy.spatial import cKDTree

from .algorithms import Edge, build_edge_map, edge_key, triangle_edges
from .geometry import midpoint

logger = logging.getLogger(__name__)


class MidpointIndex:
    """Growing vertex array with deduplicated edge midpoints.

    When *reuse_existing* is set, a new midpoint that coincides (within
    *tolerance*, chord distance) with a vertex already in *vertices* is
    mapped onto that vertex instead of being appended.  Refinement relies
    on this so that a coarse tessellation picks up the vertices a finer
    tessellation of the same grid already created.
    """

    def __init__(
        self,
        vertices: np.ndarray,
        *,
        reuse_existing: bool = False,
        tolerance: float = 1e-9,
    ) -> None:
        self._base = np.asarray(vertices, dtype=float)
        self._added: List[np.ndarray] = []
        self._cache: Dict[Edge, int] = {}
        self.parents: Dict[int, Edge] = {}
        self._tolerance = tolerance
        self._tree: Optional[cKDTree] = cKDTree(self._base) if reuse_existing and len(self._base) else None

    def __len__(self) -> int:
        return len(self._base) + len(self._added)

    def position(self, index: int) -> np.ndarray:
        if index < len(self._base):
            return self._base[index]
        return self._added[index - len(self._base)]

    def midpoint(self, a: int, b: int) -> int:
        """Vertex id of the midpoint of edge *ab*, creating it if needed."""
        key = edge_key(a, b)
        found = self._cache.get(key)
        if found is not None:
            return found

        point = midpoint(self.position(key[0]), self.position(key[1]))
        index = -1
        if self._tree is not None:
            distance, nearest = self._tree.query(point)
            if distance <= self._tolerance:
                index = int(nearest)
        if index < 0:
            index = len(self)
            self._added.append(point)

        self._cache[key] = index
        self.parents.setdefault(index, key)
        return index

    def vertex_array(self) -> np.ndarray:
        if not self._added:
            return self._base.copy()
        return np.vstack([self._base, np.array(self._added)])


@dataclass(frozen=True)
class PassStats:
    scheduled: int
    red: int
    green: int
    n_triangles: int


def close_schedule(triangles: np.ndarray, scheduled: Iterable[int]) -> Set[int]:
    """Grow *scheduled* until no unscheduled triangle has two split edges."""
    closed = {int(i) for i in scheduled}
    split: Set[Edge] = set()
    for index in closed:
        split.update(triangle_edges(triangles[index]))

    edge_map = build_edge_map(triangles)
    pending = list(closed)
    while pending:
        index = pending.pop()
        for edge in triangle_edges(triangles[index]):
            for other in edge_map.get(edge, []):
                if other in closed:
                    continue
                n_split = sum(1 for e in triangle_edges(triangles[other]) if e in split)
                if n_split >= 2:
                    closed.add(other)
                    split.update(triangle_edges(triangles[other]))
                    pending.append(other)
    return closed


def subdivide_level(
    triangles: np.ndarray,
    scheduled: Iterable[int],
    midpoints: MidpointIndex,
) -> tuple[np.ndarray, PassStats]:
    """Return the next level of *triangles* and statistics for the pass.

    Triangle order follows the parent order: each parent is replaced in
    place by its four (red), two (green) or one (unchanged) children, which
    keeps vertex numbering deterministic.
    """
    requested = {int(i) for i in scheduled}
    red = close_schedule(triangles, requested)
    split: Set[Edge] = set()
    for index in red:
        split.update(triangle_edges(triangles[index]))

    children: List[tuple] = []
    n_green = 0
    for index, tri in enumerate(triangles):
        a, b, c = (int(v) for v in tri)
        if index in red:
            # midpoints are numbered opposite a, then b, then c
            bc = midpoints.midpoint(b, c)
            ca = midpoints.midpoint(c, a)
            ab = midpoints.midpoint(a, b)
            children.extend([(a, ab, ca), (ab, b, bc), (ca, bc, c), (ab, bc, ca)])
            continue

        if edge_key(a, b) in split:
            m = midpoints.midpoint(a, b)
            children.extend([(c, a, m), (c, m, b)])
            n_green += 1
        elif edge_key(b, c) in split:
            m = midpoints.midpoint(b, c)
            children.extend([(a, b, m), (a, m, c)])
            n_green += 1
        elif edge_key(c, a) in split:
            m = midpoints.midpoint(c, a)
            children.extend([(b, c, m), (b, m, a)])
            n_green += 1
        else:
            children.append((a, b, c))

    stats = PassStats(
        scheduled=len(requested),
        red=len(red),
        green=n_green,
        n_triangles=len(children),
    )
    logger.debug(
        "subdivision pass: %d scheduled, %d red, %d green, %d triangles",
        stats.scheduled, stats.red, stats.green, stats.n_triangles,
    )
    return np.array(children, dtype=np.int64).reshape(-1, 3), stats
