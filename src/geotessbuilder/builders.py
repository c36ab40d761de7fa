"""Grid construction from a Platonic seed.

Each tessellation starts from the same seed triangles (level 0).  Level
``k + 1`` is one conforming subdivision pass over level ``k``:

* while ``k`` is below the tessellation's global level count every
  triangle is subdivided;
* afterwards only the triangles that touch a polygon bound to the
  tessellation whose target level is above ``k`` are subdivided.

Edge lengths are nominal: level ``k`` has edge length ``64 / 2**k``
degrees whatever the seed, so a target edge length ``e`` needs the
smallest ``k`` with ``64 / 2**k <= e``.
"""

from __future__ import annotations

import logging
import math
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .errors import ConfigurationError
from .geometry import euler_angles_for, euler_rotation, rotate
from .grid import GeoTessGrid
from .metadata import SOFTWARE_VERSION
from .polygons import Polygon, PolygonSpec
from .solids import platonic_solid
from .subdivision import MidpointIndex, subdivide_level

logger = logging.getLogger(__name__)

NOMINAL_EDGE_LENGTH = 64.0


def levels_for(edge_length_deg: float) -> int:
    """Number of global subdivision passes needed to reach *edge_length_deg*."""
    if not math.isfinite(edge_length_deg) or edge_length_deg <= 0.0:
        raise ConfigurationError(f"edge length must be a positive number, got {edge_length_deg!r}")
    level = 0
    while NOMINAL_EDGE_LENGTH / 2**level > edge_length_deg * (1.0 + 1e-12):
        level += 1
    return level


def nominal_edge_length(level: int) -> float:
    return NOMINAL_EDGE_LENGTH / 2**level


def _scheduled_triangles(
    triangles: np.ndarray,
    midpoints: MidpointIndex,
    polygons: Sequence[Polygon],
) -> List[int]:
    scheduled = []
    for index, (a, b, c) in enumerate(triangles):
        pa, pb, pc = midpoints.position(a), midpoints.position(b), midpoints.position(c)
        if any(polygon.intersects_triangle(pa, pb, pc) for polygon in polygons):
            scheduled.append(index)
    return scheduled


def build_grid(
    base_edge_lengths: Sequence[float],
    *,
    initial_solid: str = "icosahedron",
    polygons: Sequence[PolygonSpec] = (),
    rotate_to: Optional[Tuple[float, float]] = None,
    euler_angles: Optional[Tuple[float, float, float]] = None,
) -> GeoTessGrid:
    """Build a multi-tessellation grid.

    Parameters
    ----------
    base_edge_lengths : sequence of float
        Global edge length (degrees) of each tessellation.
    initial_solid : str
        Platonic seed: ``tetrahedron``, ``octahedron``, ``icosahedron``
        or ``tetrahexahedron``.
    polygons : sequence of PolygonSpec
        Regions refined beyond the global level of their tessellation.
    rotate_to : (lat, lon), optional
        Geodetic location vertex 0 is rotated to.
    euler_angles : (alpha, beta, gamma), optional
        Explicit Z-X-Z Euler angles in degrees.  Exclusive with
        *rotate_to*.
    """
    n_tess = len(base_edge_lengths)
    if n_tess == 0:
        raise ConfigurationError("at least one tessellation is required")
    if rotate_to is not None and euler_angles is not None:
        raise ConfigurationError("rotateGrid and eulerRotationAngles cannot both be specified")
    global_levels = [levels_for(float(e)) for e in base_edge_lengths]
    for spec in polygons:
        if not 0 <= spec.tess_id < n_tess:
            raise ConfigurationError(
                f"polygon refers to tessellation {spec.tess_id}; grid has {n_tess} tessellations"
            )
    targets = [(spec.polygon, spec.tess_id, levels_for(spec.target_edge_deg)) for spec in polygons]

    vertices, seed = platonic_solid(initial_solid)
    if rotate_to is not None:
        euler_angles = euler_angles_for(*rotate_to)
    if euler_angles is not None:
        euler_angles = tuple(float(a) for a in euler_angles)
        vertices = rotate(vertices, euler_rotation(*euler_angles))

    midpoints = MidpointIndex(vertices)
    tessellations: List[List[np.ndarray]] = []
    for tess_id in range(n_tess):
        levels = [seed.copy()]
        level = 0
        while True:
            triangles = levels[-1]
            if level < global_levels[tess_id]:
                scheduled = list(range(len(triangles)))
            else:
                active = [p for p, t, target in targets if t == tess_id and target > level]
                if not active:
                    break
                scheduled = _scheduled_triangles(triangles, midpoints, active)
                if not scheduled:
                    break
            triangles, _ = subdivide_level(triangles, scheduled, midpoints)
            levels.append(triangles)
            level += 1
        tessellations.append(levels)
        logger.info(
            "tessellation %d: %d levels, %d top-level triangles, nominal edge %.4g deg",
            tess_id, len(levels), len(levels[-1]), nominal_edge_length(global_levels[tess_id]),
        )

    metadata = {
        "platonic_solid": initial_solid.strip().lower(),
        "euler_rotation_angles": list(euler_angles) if euler_angles is not None else None,
        "base_edge_lengths": [float(e) for e in base_edge_lengths],
        "generator": SOFTWARE_VERSION,
    }
    grid = GeoTessGrid(midpoints.vertex_array(), tessellations, metadata)
    logger.info("grid %s: %d vertices, %d tessellations", grid.grid_id, grid.n_vertices, n_tess)
    return grid
