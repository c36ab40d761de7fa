from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, List, Sequence, Set, Tuple

Edge = Tuple[int, int]


def edge_key(a: int, b: int) -> Edge:
    """Canonical ``(min, max)`` key for the edge between two vertices."""
    a, b = int(a), int(b)
    return (a, b) if a < b else (b, a)


def triangle_edges(tri: Sequence[int]) -> List[Edge]:
    """The three edges of a triangle, in ``ab, bc, ca`` order."""
    a, b, c = tri
    return [edge_key(a, b), edge_key(b, c), edge_key(c, a)]


def build_edge_map(triangles: Iterable[Sequence[int]]) -> Dict[Edge, List[int]]:
    """Return ``{edge: [triangle indices]}`` for a triangle list."""
    edge_map: Dict[Edge, List[int]] = defaultdict(list)
    for index, tri in enumerate(triangles):
        for edge in triangle_edges(tri):
            edge_map[edge].append(index)
    return dict(edge_map)


def build_vertex_neighbors(triangles: Iterable[Sequence[int]]) -> Dict[int, List[int]]:
    """Return ``{vertex: sorted edge-connected vertices}``."""
    neighbors: Dict[int, Set[int]] = defaultdict(set)
    for tri in triangles:
        for a, b in triangle_edges(tri):
            neighbors[a].add(b)
            neighbors[b].add(a)
    return {v: sorted(neigh) for v, neigh in neighbors.items()}


def incident_triangles(triangles: Sequence[Sequence[int]], vertices: Iterable[int]) -> List[int]:
    """Indices of the triangles that touch any of *vertices*."""
    wanted = {int(v) for v in vertices}
    return [i for i, tri in enumerate(triangles) if wanted.intersection(int(v) for v in tri)]


def find_nonconforming_edges(triangles: Iterable[Sequence[int]]) -> List[Edge]:
    """Edges not shared by exactly two triangles.

    On a closed triangulation of the sphere any T-junction leaves at least
    one such edge behind, so an empty result means the level is conforming.
    """
    return sorted(edge for edge, tri_ids in build_edge_map(triangles).items() if len(tri_ids) != 2)
