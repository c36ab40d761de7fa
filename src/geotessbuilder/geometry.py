"""Geometry helper functions used across the package.

Everything here works on unit vectors (``numpy`` arrays of shape ``(3,)``)
on the unit sphere.  Latitudes and longitudes are in degrees.  Plain
``lat``/``lon`` helpers are geocentric; the ``*_geodetic`` helpers convert
through the WGS84 ellipsoid.
"""

from __future__ import annotations

import math
from typing import Sequence, Tuple

import numpy as np
from scipy.spatial.transform import Rotation

from .errors import GeometryError

# WGS84 ellipsoid, kilometres.
EARTH_A = 6378.137
EARTH_F = 1.0 / 298.257223563
EARTH_B = EARTH_A * (1.0 - EARTH_F)
EARTH_E2 = EARTH_F * (2.0 - EARTH_F)

NORTH_POLE = np.array([0.0, 0.0, 1.0])


def normalize(v: Sequence[float]) -> np.ndarray:
    """Return *v* scaled to unit length."""
    arr = np.asarray(v, dtype=float)
    if not np.all(np.isfinite(arr)):
        raise GeometryError(f"non-finite vector {arr.tolist()}")
    norm = float(np.linalg.norm(arr))
    if norm < 1e-300:
        raise GeometryError("cannot normalise a zero-length vector")
    return arr / norm


def _check_finite(*values: float) -> None:
    for value in values:
        if not math.isfinite(value):
            raise GeometryError(f"non-finite coordinate {value!r}")


# ═══════════════════════════════════════════════════════════════════
# Latitude / longitude
# ═══════════════════════════════════════════════════════════════════

def unit_vector(lat: float, lon: float) -> np.ndarray:
    """Unit vector for a geocentric ``(lat, lon)`` in degrees."""
    _check_finite(lat, lon)
    phi = math.radians(lat)
    lam = math.radians(lon)
    return np.array([
        math.cos(phi) * math.cos(lam),
        math.cos(phi) * math.sin(lam),
        math.sin(phi),
    ])


def lat_lon(v: Sequence[float]) -> Tuple[float, float]:
    """Geocentric ``(lat, lon)`` in degrees of a unit vector."""
    x, y, z = (float(c) for c in v)
    lat = math.degrees(math.atan2(z, math.hypot(x, y)))
    lon = math.degrees(math.atan2(y, x))
    return lat, lon


def geocentric_lat(geodetic_lat_deg: float) -> float:
    """Convert a geodetic latitude to geocentric, degrees."""
    _check_finite(geodetic_lat_deg)
    phi = math.radians(geodetic_lat_deg)
    return math.degrees(math.atan2((1.0 - EARTH_E2) * math.sin(phi), math.cos(phi)))


def geodetic_lat(geocentric_lat_deg: float) -> float:
    """Convert a geocentric latitude to geodetic, degrees."""
    _check_finite(geocentric_lat_deg)
    phi = math.radians(geocentric_lat_deg)
    return math.degrees(math.atan2(math.sin(phi), (1.0 - EARTH_E2) * math.cos(phi)))


def unit_vector_geodetic(lat: float, lon: float) -> np.ndarray:
    """Unit vector for a geodetic ``(lat, lon)`` in degrees."""
    return unit_vector(geocentric_lat(lat), lon)


def geodetic_lat_lon(v: Sequence[float]) -> Tuple[float, float]:
    """Geodetic ``(lat, lon)`` in degrees of a unit vector."""
    lat, lon = lat_lon(v)
    return geodetic_lat(lat), lon


def earth_radius(v: Sequence[float]) -> float:
    """Radius of the WGS84 ellipsoid (km) below unit vector *v*."""
    z = float(v[2])
    cos2 = max(0.0, 1.0 - z * z)
    return EARTH_B / math.sqrt(1.0 - EARTH_E2 * cos2)


# ═══════════════════════════════════════════════════════════════════
# Distances
# ═══════════════════════════════════════════════════════════════════

def angle(a: Sequence[float], b: Sequence[float]) -> float:
    """Angular distance between two unit vectors, radians.

    Uses ``atan2(|a x b|, a . b)`` so it stays accurate for nearly
    coincident and nearly antipodal vectors.
    """
    cross = np.cross(a, b)
    return math.atan2(float(np.linalg.norm(cross)), float(np.dot(a, b)))


def angle_degrees(a: Sequence[float], b: Sequence[float]) -> float:
    return math.degrees(angle(a, b))


def midpoint(a: Sequence[float], b: Sequence[float]) -> np.ndarray:
    """Great-circle midpoint of two unit vectors."""
    total = np.asarray(a, dtype=float) + np.asarray(b, dtype=float)
    if float(np.linalg.norm(total)) < 1e-12:
        raise GeometryError("midpoint of antipodal vectors is undefined")
    return normalize(total)


# ═══════════════════════════════════════════════════════════════════
# Rotation
# ═══════════════════════════════════════════════════════════════════

def euler_rotation(alpha: float, beta: float, gamma: float) -> Rotation:
    """Intrinsic Z-X-Z Euler rotation, angles in degrees.

    The north pole is carried to colatitude *beta* and longitude
    ``alpha - 90``.
    """
    for value in (alpha, beta, gamma):
        if not math.isfinite(value):
            raise GeometryError(f"non-finite Euler rotation angle {value!r}")
    return Rotation.from_euler("ZXZ", [alpha, beta, gamma], degrees=True)


def euler_angles_for(lat: float, lon: float) -> Tuple[float, float, float]:
    """Euler angles that carry the north pole to geodetic ``(lat, lon)``.

    The second angle is the geocentric colatitude.
    """
    _check_finite(lat, lon)
    return (lon + 90.0, 90.0 - geocentric_lat(lat), 0.0)


def rotate(vectors: np.ndarray, rotation: Rotation) -> np.ndarray:
    """Apply *rotation* to one vector or an ``(n, 3)`` array, renormalised."""
    rotated = rotation.apply(np.asarray(vectors, dtype=float))
    if rotated.ndim == 1:
        return normalize(rotated)
    return rotated / np.linalg.norm(rotated, axis=1)[:, None]


# ═══════════════════════════════════════════════════════════════════
# Spherical triangle and arc predicates
# ═══════════════════════════════════════════════════════════════════

def triangle_contains(
    a: np.ndarray, b: np.ndarray, c: np.ndarray, p: np.ndarray, tol: float = 1e-12,
) -> bool:
    """True if *p* lies inside or on the spherical triangle *abc*.

    Works for either winding.
    """
    orientation = 1.0 if float(np.dot(np.cross(a, b), c)) >= 0.0 else -1.0
    for u, w in ((a, b), (b, c), (c, a)):
        if orientation * float(np.dot(np.cross(u, w), p)) < -tol:
            return False
    return float(np.dot(a + b + c, p)) > 0.0


def _on_arc(x: np.ndarray, a: np.ndarray, b: np.ndarray, tol: float) -> bool:
    return angle(a, x) + angle(x, b) <= angle(a, b) + tol


def arc_distance(p: np.ndarray, a: np.ndarray, b: np.ndarray) -> float:
    """Smallest angular distance (radians) from *p* to the minor arc *ab*."""
    normal = np.cross(a, b)
    length = float(np.linalg.norm(normal))
    if length < 1e-15:
        return angle(p, a)
    normal = normal / length
    # projection of p onto the great circle through a and b
    projected = p - float(np.dot(p, normal)) * normal
    if float(np.linalg.norm(projected)) > 1e-15:
        projected = projected / float(np.linalg.norm(projected))
        if _on_arc(projected, a, b, 1e-12):
            return abs(math.asin(max(-1.0, min(1.0, float(np.dot(p, normal))))))
    return min(angle(p, a), angle(p, b))


def arcs_intersect(
    a: np.ndarray, b: np.ndarray, c: np.ndarray, d: np.ndarray, tol: float = 1e-12,
) -> bool:
    """True if minor arcs *ab* and *cd* share a point."""
    n1 = np.cross(a, b)
    n2 = np.cross(c, d)
    line = np.cross(n1, n2)
    norm = float(np.linalg.norm(line))
    if norm < 1e-15:
        # same great circle (or a degenerate arc): overlap test
        return any(_on_arc(p, a, b, tol) for p in (c, d)) or any(
            _on_arc(p, c, d, tol) for p in (a, b)
        )
    x = line / norm
    for candidate in (x, -x):
        if _on_arc(candidate, a, b, tol) and _on_arc(candidate, c, d, tol):
            return True
    return False

