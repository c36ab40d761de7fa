"""Polygons, horizons and 3-D active regions on the unit sphere.

Polygons serve two purposes:

* refinement targets for the grid builder — a triangle is refined while
  :meth:`Polygon.intersects_triangle` is true and the polygon's target
  edge length has not been reached;
* the horizontal part of a model's active region
  (:meth:`Polygon.contains`).

Shapes
------
- :class:`SphericalCap` — small circle around a centre.
- :class:`VertexPolygon` — closed polygon with great-circle edges.
- :class:`GlobalPolygon` — the whole sphere.
- :class:`PointSet` / :class:`Path` — refinement targets that enclose no
  area.

A :class:`Polygon3D` adds a bottom and a top :class:`Horizon` to a polygon.

Polygon specifications (the ``polygons`` property) are parsed by
:func:`parse_polygon_specs`; polygon files by :func:`load_polygon_file`.
"""

from __future__ import annotations

import math
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path as FilePath
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import ConfigurationError, GeometryError
from .geometry import (
    angle,
    arc_distance,
    arcs_intersect,
    earth_radius,
    normalize,
    triangle_contains,
    unit_vector_geodetic,
)
from .profiles import Profile

Vector = Tuple[float, float, float]

_EPS = 1e-12


def _as_vector(v: Sequence[float]) -> Vector:
    n = np.asarray(v, dtype=float)
    if n.shape != (3,) or abs(float(np.linalg.norm(n)) - 1.0) > 1e-12:
        n = normalize(v)
    return (float(n[0]), float(n[1]), float(n[2]))


# ═══════════════════════════════════════════════════════════════════
# 2-D polygons
# ═══════════════════════════════════════════════════════════════════

class Polygon:
    """Base class for shapes on the unit sphere."""

    kind = "polygon"

    def contains(self, v: Sequence[float]) -> bool:
        raise NotImplementedError

    def intersects_triangle(self, a: np.ndarray, b: np.ndarray, c: np.ndarray) -> bool:
        raise NotImplementedError

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError

    @staticmethod
    def from_dict(payload: Dict[str, Any]) -> "Polygon":
        kind = payload.get("kind")
        if kind == SphericalCap.kind:
            return SphericalCap(tuple(payload["center"]), float(payload["radius"]))
        if kind == VertexPolygon.kind:
            return VertexPolygon(tuple(tuple(p) for p in payload["points"]))
        if kind == GlobalPolygon.kind:
            return GlobalPolygon()
        if kind == PointSet.kind:
            return PointSet(tuple(tuple(p) for p in payload["points"]))
        if kind == Path.kind:
            return Path(tuple(tuple(p) for p in payload["points"]))
        raise ConfigurationError(f"unknown polygon kind {kind!r}")


@dataclass(frozen=True)
class SphericalCap(Polygon):
    """All points within *radius* (radians) of *center*."""

    center: Vector
    radius: float

    kind = "spherical_cap"

    def __post_init__(self) -> None:
        if not math.isfinite(self.radius) or self.radius <= 0.0:
            raise GeometryError(f"spherical cap radius must be positive, got {self.radius!r}")
        object.__setattr__(self, "center", _as_vector(self.center))

    @classmethod
    def from_degrees(cls, lat: float, lon: float, radius_deg: float) -> "SphericalCap":
        """Cap centred on geodetic ``(lat, lon)`` with a radius in degrees."""
        return cls(tuple(unit_vector_geodetic(lat, lon)), math.radians(radius_deg))

    def contains(self, v: Sequence[float]) -> bool:
        return angle(np.asarray(self.center), np.asarray(v, dtype=float)) <= self.radius + _EPS

    def intersects_triangle(self, a: np.ndarray, b: np.ndarray, c: np.ndarray) -> bool:
        center = np.asarray(self.center)
        if any(self.contains(p) for p in (a, b, c)):
            return True
        if triangle_contains(a, b, c, center):
            return True
        return any(arc_distance(center, u, w) <= self.radius + _EPS for u, w in ((a, b), (b, c), (c, a)))

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "center": list(self.center), "radius": self.radius}


@dataclass(frozen=True)
class VertexPolygon(Polygon):
    """Closed polygon whose edges are great-circle arcs.

    The interior is the side that does not contain the antipode of the
    vertex centroid.  Crossings of the arc from a query point to that
    reference point decide containment.
    """

    points: Tuple[Vector, ...]
    reference: Vector = field(init=False, compare=False)

    kind = "polygon"

    def __post_init__(self) -> None:
        points = [_as_vector(p) for p in self.points]
        if len(points) > 1 and angle(np.asarray(points[0]), np.asarray(points[-1])) < 1e-10:
            points.pop()
        if len(points) < 3:
            raise GeometryError(f"polygon needs at least 3 distinct vertices, got {len(points)}")
        arr = np.array(points)
        for i in range(len(arr)):
            if angle(arr[i], arr[(i + 1) % len(arr)]) > math.pi - 1e-9:
                raise GeometryError("polygon edge between antipodal vertices is undefined")
        centroid = arr.sum(axis=0)
        if float(np.linalg.norm(centroid)) < 1e-9:
            raise GeometryError("degenerate polygon: vertices have no well-defined centroid")
        object.__setattr__(self, "points", tuple(points))
        object.__setattr__(self, "reference", _as_vector(-centroid))

    @property
    def edges(self) -> List[Tuple[np.ndarray, np.ndarray]]:
        arr = [np.asarray(p) for p in self.points]
        return [(arr[i], arr[(i + 1) % len(arr)]) for i in range(len(arr))]

    def on_boundary(self, v: np.ndarray) -> bool:
        return any(arc_distance(v, a, b) < 1e-12 for a, b in self.edges)

    def contains(self, v: Sequence[float]) -> bool:
        p = np.asarray(v, dtype=float)
        ref = np.asarray(self.reference)
        if self.on_boundary(p):
            return True
        if angle(p, ref) > math.pi - 1e-9:
            # p is the centroid direction itself
            return True
        if angle(p, ref) < 1e-12:
            return False
        return self._crossings(p, ref) % 2 == 1

    def _crossings(self, p: np.ndarray, ref: np.ndarray) -> int:
        """Edges crossed by the minor arc from *p* to *ref*.

        Half-open rule: a vertex lying on the great circle through *p* and
        *ref* counts as being on its negative side, so an arc passing
        through a polygon vertex is counted once (or not at all when both
        edges at that vertex stay on one side).
        """
        normal = np.cross(p, ref)
        normal = normal / float(np.linalg.norm(normal))
        limit = angle(p, ref) + 1e-12
        count = 0
        for a, b in self.edges:
            da = float(np.dot(normal, a))
            db = float(np.dot(normal, b))
            if (da > 0.0) == (db > 0.0):
                continue
            # the point of arc ab on the test great circle
            x = abs(db) * a + abs(da) * b
            x = x / float(np.linalg.norm(x))
            if angle(p, x) + angle(x, ref) <= limit:
                count += 1
        return count

    def intersects_triangle(self, a: np.ndarray, b: np.ndarray, c: np.ndarray) -> bool:
        if any(self.contains(p) for p in (a, b, c)):
            return True
        if any(triangle_contains(a, b, c, np.asarray(p)) for p in self.points):
            return True
        return any(
            arcs_intersect(u, w, e0, e1)
            for u, w in ((a, b), (b, c), (c, a))
            for e0, e1 in self.edges
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "points": [list(p) for p in self.points]}


@dataclass(frozen=True)
class GlobalPolygon(Polygon):
    """The whole sphere."""

    kind = "global"

    def contains(self, v: Sequence[float]) -> bool:
        return True

    def intersects_triangle(self, a: np.ndarray, b: np.ndarray, c: np.ndarray) -> bool:
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind}


@dataclass(frozen=True)
class PointSet(Polygon):
    """Isolated points; refines the triangles that contain them."""

    points: Tuple[Vector, ...]

    kind = "points"

    def __post_init__(self) -> None:
        if not self.points:
            raise GeometryError("point set is empty")
        object.__setattr__(self, "points", tuple(_as_vector(p) for p in self.points))

    def contains(self, v: Sequence[float]) -> bool:
        return False

    def intersects_triangle(self, a: np.ndarray, b: np.ndarray, c: np.ndarray) -> bool:
        return any(triangle_contains(a, b, c, np.asarray(p)) for p in self.points)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "points": [list(p) for p in self.points]}


@dataclass(frozen=True)
class Path(Polygon):
    """Open great-circle polyline; refines the triangles it passes through."""

    points: Tuple[Vector, ...]

    kind = "path"

    def __post_init__(self) -> None:
        if len(self.points) < 2:
            raise GeometryError("path needs at least 2 points")
        object.__setattr__(self, "points", tuple(_as_vector(p) for p in self.points))

    def contains(self, v: Sequence[float]) -> bool:
        return False

    def intersects_triangle(self, a: np.ndarray, b: np.ndarray, c: np.ndarray) -> bool:
        arr = [np.asarray(p) for p in self.points]
        if any(triangle_contains(a, b, c, p) for p in arr):
            return True
        return any(
            arcs_intersect(u, w, arr[i], arr[i + 1])
            for u, w in ((a, b), (b, c), (c, a))
            for i in range(len(arr) - 1)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "points": [list(p) for p in self.points]}


# ═══════════════════════════════════════════════════════════════════
# Horizons
# ═══════════════════════════════════════════════════════════════════

class Horizon:
    """A surface bounding an active region radially.

    ``layer`` (optional) ties the horizon to a model layer: points in layers
    on the far side of that layer are rejected outright, points in layers
    on the near side are accepted without a radius comparison.
    """

    kind = "horizon"
    layer: Optional[int] = None

    def radius(self, v: np.ndarray, profiles: Sequence[Profile]) -> float:
        raise NotImplementedError

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError

    @staticmethod
    def from_dict(payload: Dict[str, Any]) -> "Horizon":
        kind = payload.get("kind")
        if kind == HorizonLayer.kind:
            return HorizonLayer(float(payload["fraction"]), int(payload["layer"]))
        if kind == HorizonDepth.kind:
            return HorizonDepth(float(payload["depth"]), payload.get("layer"))
        if kind == HorizonRadius.kind:
            return HorizonRadius(float(payload["radius_km"]), payload.get("layer"))
        raise ConfigurationError(f"unknown horizon kind {kind!r}")


def _check_layer(layer: Optional[int], required: bool) -> None:
    if layer is None:
        if required:
            raise ConfigurationError("horizon layer index is required")
        return
    if layer < 0:
        raise ConfigurationError(f"horizon layer index must be >= 0, got {layer!r}")


@dataclass(frozen=True)
class HorizonLayer(Horizon):
    """A fixed fraction of a layer's radial span at each vertex."""

    fraction: float
    layer: int

    kind = "layer"

    def __post_init__(self) -> None:
        if not 0.0 <= self.fraction <= 1.0:
            raise ConfigurationError(
                f"horizon layer fraction must be in [0, 1], got {self.fraction!r}"
            )
        _check_layer(self.layer, required=True)

    def radius(self, v: np.ndarray, profiles: Sequence[Profile]) -> float:
        profile = profiles[self.layer]
        if not profile.radii:
            return math.nan
        bottom, top = profile.radius_bottom, profile.radius_top
        return bottom + self.fraction * (top - bottom)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "fraction": self.fraction, "layer": self.layer}


@dataclass(frozen=True)
class HorizonDepth(Horizon):
    """Constant depth (km) below the WGS84 ellipsoid."""

    depth: float
    layer: Optional[int] = None

    kind = "depth"

    def __post_init__(self) -> None:
        if not math.isfinite(self.depth):
            raise ConfigurationError(f"horizon depth must be finite, got {self.depth!r}")
        _check_layer(self.layer, required=False)

    def radius(self, v: np.ndarray, profiles: Sequence[Profile]) -> float:
        return earth_radius(v) - self.depth

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "depth": self.depth, "layer": self.layer}


@dataclass(frozen=True)
class HorizonRadius(Horizon):
    """Constant radius (km)."""

    radius_km: float
    layer: Optional[int] = None

    kind = "radius"

    def __post_init__(self) -> None:
        if not math.isfinite(self.radius_km):
            raise ConfigurationError(f"horizon radius must be finite, got {self.radius_km!r}")
        _check_layer(self.layer, required=False)

    def radius(self, v: np.ndarray, profiles: Sequence[Profile]) -> float:
        return self.radius_km

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "radius_km": self.radius_km, "layer": self.layer}


# ═══════════════════════════════════════════════════════════════════
# 3-D polygon
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Polygon3D:
    """A 2-D polygon bounded below and above by horizons."""

    polygon: Polygon
    bottom: Horizon
    top: Horizon

    def contains_vertex(self, v: Sequence[float]) -> bool:
        return self.polygon.contains(v)

    def within_horizons(
        self,
        v: np.ndarray,
        radius: float,
        layer: int,
        profiles: Sequence[Profile],
    ) -> bool:
        """Radial half of :meth:`contains`; the vertex is not tested."""
        if math.isnan(radius):
            return True

        if self.bottom.layer is not None and layer != self.bottom.layer:
            if layer < self.bottom.layer:
                return False
        else:
            bottom = self.bottom.radius(v, profiles)
            if not math.isnan(bottom) and radius < bottom - 1e-9:
                return False

        if self.top.layer is not None and layer != self.top.layer:
            if layer > self.top.layer:
                return False
        else:
            top = self.top.radius(v, profiles)
            if not math.isnan(top) and radius > top + 1e-9:
                return False
        return True

    def contains(
        self,
        v: np.ndarray,
        radius: float,
        layer: int,
        profiles: Sequence[Profile],
    ) -> bool:
        """True if the point at *radius* in *layer* above vertex *v* is inside.

        *profiles* are the profiles of every layer at that vertex.  Points
        without a radius (surface models) are tested on the polygon only.
        """
        return self.polygon.contains(v) and self.within_horizons(v, radius, layer, profiles)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "polygon": self.polygon.to_dict(),
            "bottom": self.bottom.to_dict(),
            "top": self.top.to_dict(),
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Polygon3D":
        return cls(
            Polygon.from_dict(payload["polygon"]),
            Horizon.from_dict(payload["bottom"]),
            Horizon.from_dict(payload["top"]),
        )


ActiveRegion = Union[Polygon, Polygon3D]


def region_to_dict(region: Optional[ActiveRegion]) -> Optional[Dict[str, Any]]:
    if region is None:
        return None
    if isinstance(region, Polygon3D):
        return {"polygon3d": region.to_dict()}
    return {"polygon": region.to_dict()}


def region_from_dict(payload: Optional[Dict[str, Any]]) -> Optional[ActiveRegion]:
    if payload is None:
        return None
    if "polygon3d" in payload:
        return Polygon3D.from_dict(payload["polygon3d"])
    return Polygon.from_dict(payload["polygon"])


# ═══════════════════════════════════════════════════════════════════
# Refinement specifications
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PolygonSpec:
    """A refinement target bound to one tessellation."""

    polygon: Polygon
    tess_id: int
    target_edge_deg: float


def _float(token: str, what: str) -> float:
    try:
        value = float(token)
    except ValueError:
        raise ConfigurationError(f"{what} must be a number, got {token!r}") from None
    if not math.isfinite(value):
        raise ConfigurationError(f"{what} must be finite, got {token!r}")
    return value


def _tess_and_target(tokens: Sequence[str], n_tessellations: int, entry: str) -> Tuple[int, float]:
    tess_token, target_token = tokens
    try:
        tess_id = int(tess_token)
    except ValueError:
        raise ConfigurationError(f"tessellation id must be an integer in {entry!r}") from None
    if not 0 <= tess_id < n_tessellations:
        raise ConfigurationError(
            f"polygon {entry!r} refers to tessellation {tess_id}, "
            f"but only {n_tessellations} tessellations exist"
        )
    target = _float(target_token, "target edge length")
    if target <= 0.0:
        raise ConfigurationError(f"target edge length must be > 0 in {entry!r}")
    return tess_id, target


def parse_polygon_specs(
    text: str,
    n_tessellations: int,
    base_dir: Optional[Union[str, FilePath]] = None,
) -> List[PolygonSpec]:
    """Parse a ``;``-separated list of polygon specifications.

    Grammar of one entry::

        spherical_cap, lat, lon, radiusDeg, tessId, targetEdgeDeg
        point, lat, lon, tessId, targetEdgeDeg
        <polygon file>, tessId, targetEdgeDeg

    Relative file names are resolved against *base_dir* when given.
    """
    specs: List[PolygonSpec] = []
    for entry in (e.strip() for e in text.split(";")):
        if not entry:
            continue
        tokens = [t.strip() for t in entry.split(",")]
        shape = tokens[0].lower()
        if shape == "spherical_cap":
            if len(tokens) != 6:
                raise ConfigurationError(
                    f"spherical_cap needs lat, lon, radius, tessId, targetEdge: {entry!r}"
                )
            lat = _float(tokens[1], "latitude")
            lon = _float(tokens[2], "longitude")
            radius = _float(tokens[3], "cap radius")
            tess_id, target = _tess_and_target(tokens[4:], n_tessellations, entry)
            polygon: Polygon = SphericalCap.from_degrees(lat, lon, radius)
            specs.append(PolygonSpec(polygon, tess_id, target))
        elif shape == "point":
            if len(tokens) != 5:
                raise ConfigurationError(f"point needs lat, lon, tessId, targetEdge: {entry!r}")
            lat = _float(tokens[1], "latitude")
            lon = _float(tokens[2], "longitude")
            tess_id, target = _tess_and_target(tokens[3:], n_tessellations, entry)
            polygon = PointSet((tuple(unit_vector_geodetic(lat, lon)),))
            specs.append(PolygonSpec(polygon, tess_id, target))
        else:
            if len(tokens) != 3:
                raise ConfigurationError(f"polygon file entry needs file, tessId, targetEdge: {entry!r}")
            path = FilePath(tokens[0])
            if base_dir is not None and not path.is_absolute():
                path = FilePath(base_dir) / path
            tess_id, target = _tess_and_target(tokens[1:], n_tessellations, entry)
            for polygon in load_polygon_file(path):
                specs.append(PolygonSpec(polygon, tess_id, target))
    return specs


# ═══════════════════════════════════════════════════════════════════
# Polygon files
# ═══════════════════════════════════════════════════════════════════

def load_polygon_file(path: Union[str, FilePath]) -> List[Polygon]:
    """Read polygons from a ``.kml`` file or a plain-text coordinate file."""
    path = FilePath(path)
    if not path.exists():
        raise ConfigurationError(f"polygon file not found: {path}")
    if path.suffix.lower() == ".kml":
        return _read_kml(path)
    return [_read_ascii(path)]


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _kml_coordinates(element: ET.Element) -> List[Vector]:
    for child in element.iter():
        if _local_name(child.tag) == "coordinates" and child.text:
            points = []
            for token in child.text.split():
                parts = token.split(",")
                if len(parts) < 2:
                    raise ConfigurationError(f"malformed KML coordinate {token!r}")
                lon = _float(parts[0], "KML longitude")
                lat = _float(parts[1], "KML latitude")
                points.append(tuple(unit_vector_geodetic(lat, lon)))
            return points
    return []


def _read_kml(path: FilePath) -> List[Polygon]:
    try:
        root = ET.parse(path).getroot()
    except ET.ParseError as exc:
        raise ConfigurationError(f"cannot parse KML file {path}: {exc}") from None

    polygons: List[Polygon] = []
    for element in root.iter():
        name = _local_name(element.tag)
        if name == "Polygon":
            outer = next(
                (c for c in element.iter() if _local_name(c.tag) == "outerBoundaryIs"),
                element,
            )
            points = _kml_coordinates(outer)
            if points:
                polygons.append(VertexPolygon(tuple(points)))
        elif name == "LineString":
            points = _kml_coordinates(element)
            if points:
                polygons.append(Path(tuple(points)))
        elif name == "Point":
            points = _kml_coordinates(element)
            if points:
                polygons.append(PointSet(tuple(points)))
    if not polygons:
        raise ConfigurationError(f"no polygons found in KML file {path}")
    return polygons


_SPLIT = re.compile(r"[,\s]+")


def _read_ascii(path: FilePath) -> Polygon:
    shape = "polygon"
    lat_first = True
    pairs: List[Tuple[float, float]] = []
    for raw in path.read_text(encoding="utf-8").splitlines():
        line = raw.split("#", 1)[0].strip()
        if not line:
            continue
        keyword = line.upper()
        if keyword in ("POLYGON", "POINTS", "PATH", "GLOBAL"):
            shape = keyword.lower()
            continue
        if keyword in ("LAT-LON", "LAT_LON", "LATLON"):
            lat_first = True
            continue
        if keyword in ("LON-LAT", "LON_LAT", "LONLAT"):
            lat_first = False
            continue
        tokens = [t for t in _SPLIT.split(line) if t]
        if len(tokens) < 2:
            raise ConfigurationError(f"malformed coordinate line {raw!r} in {path}")
        a = _float(tokens[0], "coordinate")
        b = _float(tokens[1], "coordinate")
        pairs.append((a, b) if lat_first else (b, a))

    if shape == "global":
        return GlobalPolygon()
    points = tuple(tuple(unit_vector_geodetic(lat, lon)) for lat, lon in pairs)
    if shape == "points":
        return PointSet(points)
    if shape == "path":
        return Path(points)
    return VertexPolygon(points)
