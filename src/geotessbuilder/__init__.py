"""GeoTessBuilder — multi-resolution geodesic grids and adaptive 3-D models.

Public API is organised into layers:

- **Core** — geometry, seed solids, grid container, errors
- **Building** — grid builder, polygons, property-driven runs
- **Models** — profiles, metadata, point map, model container
- **Refinement** — spatial and radial model refinement
- **I/O** — JSON persistence, VTK export, logging setup
"""

# ── Core ────────────────────────────────────────────────────────────
from .errors import (
    GeoTessBuilderError,
    ConfigurationError,
    GeometryError,
    RefinementTargetError,
    InvariantError,
)
from .geometry import (
    unit_vector,
    lat_lon,
    unit_vector_geodetic,
    geodetic_lat_lon,
    geocentric_lat,
    geodetic_lat,
    angle,
    angle_degrees,
    euler_rotation,
    euler_angles_for,
)
from .solids import PLATONIC_SOLIDS, platonic_solid
from .grid import GeoTessGrid, top_level_counts

# ── Building ────────────────────────────────────────────────────────
from .polygons import (
    Polygon,
    SphericalCap,
    VertexPolygon,
    GlobalPolygon,
    PointSet,
    Path,
    Horizon,
    HorizonLayer,
    HorizonDepth,
    HorizonRadius,
    Polygon3D,
    PolygonSpec,
    parse_polygon_specs,
    load_polygon_file,
)
from .builders import build_grid, levels_for
from .properties import Properties
from .main import run, grid_from_properties

# ── Models ──────────────────────────────────────────────────────────
from .profiles import Profile, ProfileType
from .metadata import ModelMetaData
from .pointmap import PointMap
from .model import GeoTessModel

# ── Refinement ──────────────────────────────────────────────────────
from .refinement import Threshold, collect_seeds, refine_model

# ── I/O ─────────────────────────────────────────────────────────────
from .io import load_grid_json, save_grid_json, load_model_json, save_model_json
from .vtk import write_grid_vtk, write_refinement_vtk, write_model_vtk
from .logging_config import setup_logging

__all__ = [
    # Core
    "GeoTessBuilderError",
    "ConfigurationError",
    "GeometryError",
    "RefinementTargetError",
    "InvariantError",
    "unit_vector",
    "lat_lon",
    "unit_vector_geodetic",
    "geodetic_lat_lon",
    "geocentric_lat",
    "geodetic_lat",
    "angle",
    "angle_degrees",
    "euler_rotation",
    "euler_angles_for",
    "PLATONIC_SOLIDS",
    "platonic_solid",
    "GeoTessGrid",
    "top_level_counts",
    # Building
    "Polygon",
    "SphericalCap",
    "VertexPolygon",
    "GlobalPolygon",
    "PointSet",
    "Path",
    "Horizon",
    "HorizonLayer",
    "HorizonDepth",
    "HorizonRadius",
    "Polygon3D",
    "PolygonSpec",
    "parse_polygon_specs",
    "load_polygon_file",
    "build_grid",
    "levels_for",
    "Properties",
    "run",
    "grid_from_properties",
    # Models
    "Profile",
    "ProfileType",
    "ModelMetaData",
    "PointMap",
    "GeoTessModel",
    # Refinement
    "Threshold",
    "collect_seeds",
    "refine_model",
    # I/O
    "load_grid_json",
    "save_grid_json",
    "load_model_json",
    "save_model_json",
    "write_grid_vtk",
    "write_refinement_vtk",
    "write_model_vtk",
    "setup_logging",
]
