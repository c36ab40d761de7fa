"""Platonic seed solids.

Every solid puts vertex 0 on the north pole and winds its triangles
counter-clockwise as seen from outside the sphere.  Level 0 of every
tessellation is one of these.
"""

from __future__ import annotations

import math
from typing import Dict, List, Tuple

import numpy as np

from .errors import ConfigurationError
from .geometry import normalize, unit_vector

PLATONIC_SOLIDS = ("tetrahedron", "octahedron", "icosahedron", "tetrahexahedron")


def _orient_outward(vertices: np.ndarray, triangles: List[Tuple[int, int, int]]) -> np.ndarray:
    oriented = []
    for i, j, k in triangles:
        a, b, c = vertices[i], vertices[j], vertices[k]
        if float(np.dot(np.cross(b - a, c - a), a + b + c)) < 0.0:
            oriented.append((i, k, j))
        else:
            oriented.append((i, j, k))
    return np.array(oriented, dtype=np.int64)


def _tetrahedron() -> Tuple[np.ndarray, List[Tuple[int, int, int]]]:
    lat = math.degrees(math.asin(-1.0 / 3.0))
    vertices = [unit_vector(90.0, 0.0)]
    vertices += [unit_vector(lat, lon) for lon in (0.0, 120.0, 240.0)]
    triangles = [(0, 1, 2), (0, 2, 3), (0, 3, 1), (1, 3, 2)]
    return np.array(vertices), triangles


def _octahedron() -> Tuple[np.ndarray, List[Tuple[int, int, int]]]:
    vertices = np.array([
        [0.0, 0.0, 1.0],
        [1.0, 0.0, 0.0],
        [0.0, 1.0, 0.0],
        [-1.0, 0.0, 0.0],
        [0.0, -1.0, 0.0],
        [0.0, 0.0, -1.0],
    ])
    triangles = [
        (0, 1, 2), (0, 2, 3), (0, 3, 4), (0, 4, 1),
        (5, 2, 1), (5, 3, 2), (5, 4, 3), (5, 1, 4),
    ]
    return vertices, triangles


def _icosahedron() -> Tuple[np.ndarray, List[Tuple[int, int, int]]]:
    ring_lat = math.degrees(math.atan(0.5))
    vertices = [unit_vector(90.0, 0.0)]
    vertices += [unit_vector(ring_lat, 72.0 * i) for i in range(5)]
    vertices += [unit_vector(-ring_lat, 36.0 + 72.0 * i) for i in range(5)]
    vertices.append(unit_vector(-90.0, 0.0))

    # north cap, upper band, lower band, south cap
    upper = [(1 + i, 1 + (i + 1) % 5) for i in range(5)]
    lower = [(6 + i, 6 + (i + 1) % 5) for i in range(5)]
    triangles: List[Tuple[int, int, int]] = [(0, u, un) for u, un in upper]
    triangles += [(u, l, un) for (u, un), (l, _) in zip(upper, lower)]
    triangles += [(un, l, ln) for (_, un), (l, ln) in zip(upper, lower)]
    triangles += [(11, ln, l) for l, ln in lower]
    return np.array(vertices), triangles


def _tetrahexahedron() -> Tuple[np.ndarray, List[Tuple[int, int, int]]]:
    """Cube with a pyramid raised on every face: 14 vertices, 24 triangles."""
    axes, _ = _octahedron()
    corners = [
        normalize([sx, sy, sz])
        for sz in (1.0, -1.0)
        for sy in (1.0, -1.0)
        for sx in (1.0, -1.0)
    ]
    vertices = np.vstack([axes, np.array(corners)])

    triangles: List[Tuple[int, int, int]] = []
    for axis_index in range(6):
        axis = vertices[axis_index]
        ring = [6 + i for i, corner in enumerate(corners) if float(np.dot(corner, axis)) > 0.0]
        # order the four corners around the axis
        ref = vertices[ring[0]] - float(np.dot(vertices[ring[0]], axis)) * axis
        side = np.cross(axis, ref)

        def azimuth(index: int) -> float:
            v = vertices[index]
            return math.atan2(float(np.dot(v, side)), float(np.dot(v, ref)))

        ring.sort(key=azimuth)
        for i in range(4):
            triangles.append((axis_index, ring[i], ring[(i + 1) % 4]))
    return vertices, triangles


_BUILDERS = {
    "tetrahedron": _tetrahedron,
    "octahedron": _octahedron,
    "icosahedron": _icosahedron,
    "tetrahexahedron": _tetrahexahedron,
}


def platonic_solid(name: str) -> Tuple[np.ndarray, np.ndarray]:
    """Return ``(vertices, triangles)`` of the named seed solid.

    *vertices* is a ``float64`` array of shape ``(n, 3)``; *triangles* an
    ``int64`` array of shape ``(m, 3)``.
    """
    key = name.strip().lower()
    if key not in _BUILDERS:
        raise ConfigurationError(
            f"unknown initialSolid {name!r}; expected one of {', '.join(PLATONIC_SOLIDS)}"
        )
    vertices, triangles = _BUILDERS[key]()
    return np.asarray(vertices, dtype=float), _orient_outward(vertices, triangles)


def solid_counts(name: str) -> Dict[str, int]:
    vertices, triangles = platonic_solid(name)
    return {"vertices": len(vertices), "triangles": len(triangles)}
