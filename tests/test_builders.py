"""Grid builder scenarios."""

import math

import numpy as np
import pytest

from geotessbuilder.builders import build_grid, levels_for, nominal_edge_length
from geotessbuilder.errors import ConfigurationError, GeometryError
from geotessbuilder.geometry import angle_degrees, geodetic_lat_lon, unit_vector, unit_vector_geodetic
from geotessbuilder.grid import top_level_counts
from geotessbuilder.polygons import PointSet, PolygonSpec, SphericalCap, VertexPolygon, parse_polygon_specs
from geotessbuilder.solids import PLATONIC_SOLIDS


# ═══════════════════════════════════════════════════════════════════
# Level arithmetic
# ═══════════════════════════════════════════════════════════════════

class TestLevels:

    @pytest.mark.parametrize(
        "edge, expected",
        [(100.0, 0), (64.0, 0), (63.0, 1), (32.0, 1), (16.0, 2), (4.0, 4), (1.0, 6), (0.9, 7)],
    )
    def test_levels_for(self, edge, expected):
        assert levels_for(edge) == expected

    def test_nominal_edge_length(self):
        assert nominal_edge_length(0) == 64.0
        assert nominal_edge_length(3) == 8.0

    @pytest.mark.parametrize("edge", [0.0, -1.0, math.nan, math.inf])
    def test_invalid_edge(self, edge):
        with pytest.raises(ConfigurationError):
            levels_for(edge)


# ═══════════════════════════════════════════════════════════════════
# Seed solids
# ═══════════════════════════════════════════════════════════════════

class TestSeeds:

    @pytest.mark.parametrize("name", PLATONIC_SOLIDS)
    def test_declared_seed(self, name):
        grid = build_grid([32.0, 16.0], initial_solid=name)
        assert grid.platonic_solid == name
        assert grid.n_tessellations == 2
        assert grid.validate() == []

    def test_icosahedron_counts(self):
        grid = build_grid([32.0, 16.0])
        assert top_level_counts(grid) == [42, 162]

    def test_octahedron_counts(self):
        grid = build_grid([64.0, 32.0, 16.0], initial_solid="octahedron")
        assert top_level_counts(grid) == [6, 18, 66]

    def test_tessellations_share_vertices(self):
        grid = build_grid([32.0, 16.0])
        assert grid.vertex_indices_top_level(0) <= grid.vertex_indices_top_level(1)

    def test_deterministic(self):
        assert build_grid([32.0, 16.0]).grid_id == build_grid([32.0, 16.0]).grid_id


# ═══════════════════════════════════════════════════════════════════
# Rotation
# ═══════════════════════════════════════════════════════════════════

class TestRotation:

    def test_rotate_to_recovers_geodetic_location(self):
        grid = build_grid([16.0], rotate_to=(-30.0, 55.0))
        lat, lon = geodetic_lat_lon(grid.vertex(0))
        assert lat == pytest.approx(-30.0, abs=1e-6)
        assert lon == pytest.approx(55.0, abs=1e-6)
        assert grid.euler_rotation_angles is not None

    def test_rotate_to_dot_product(self):
        grid = build_grid([64.0, 32.0], rotate_to=(20.0, 20.0))
        target = unit_vector_geodetic(20.0, 20.0)
        assert abs(float(np.dot(grid.vertex(0), target)) - 1.0) <= 1e-7

    def test_explicit_euler_angles(self):
        grid = build_grid([16.0], euler_angles=(145.0, 120.0, 0.0))
        assert grid.euler_rotation_angles == (145.0, 120.0, 0.0)
        assert grid.validate() == []

    def test_rotation_preserves_shape(self):
        plain = build_grid([16.0])
        rotated = build_grid([16.0], rotate_to=(45.0, -100.0))
        assert top_level_counts(plain) == top_level_counts(rotated)
        assert angle_degrees(plain.vertex(0), plain.vertex(12)) == pytest.approx(
            angle_degrees(rotated.vertex(0), rotated.vertex(12))
        )

    def test_both_rotations_raise(self):
        with pytest.raises(ConfigurationError):
            build_grid([16.0], rotate_to=(0.0, 0.0), euler_angles=(0.0, 0.0, 0.0))

    def test_non_finite_euler_raises(self):
        with pytest.raises(GeometryError):
            build_grid([16.0], euler_angles=(0.0, math.inf, 0.0))


# ═══════════════════════════════════════════════════════════════════
# Polygon refinement
# ═══════════════════════════════════════════════════════════════════

class TestPolygons:

    def test_concentric_caps(self):
        specs = parse_polygon_specs(
            "spherical_cap, 10, 20, 18, 0, 2; spherical_cap, 10, 20, 2, 0, 1", 1
        )
        grid = build_grid([4.0], polygons=specs)
        again = build_grid([4.0], polygons=specs)

        assert grid.grid_id == again.grid_id
        assert grid.n_levels(0) == 7
        assert grid.validate() == []

        center = unit_vector_geodetic(10.0, 20.0)
        vertices = grid.vertices
        top = sorted(grid.vertex_indices_top_level(0))
        near = [v for v in top if angle_degrees(vertices[v], center) < 2.0]
        # 1 degree spacing inside the small cap; 4 degree spacing would leave it nearly empty
        assert len(near) >= 8
        assert grid.n_vertices > 2562

    def test_crustal_cap_on_octahedron(self):
        specs = parse_polygon_specs("spherical_cap, 20, 20, 20, 0, 16", 1)
        grid = build_grid([64.0], initial_solid="octahedron", polygons=specs, rotate_to=(20.0, 20.0))
        assert len(grid.vertex_indices_top_level(0)) == 22
        assert grid.n_levels(0) == 3
        assert grid.validate() == []

    def test_polygon_on_other_tessellation_only(self):
        cap = SphericalCap.from_degrees(0.0, 0.0, 10.0)
        grid = build_grid([32.0, 32.0], polygons=[PolygonSpec(cap, 1, 8.0)])
        counts = top_level_counts(grid)
        assert counts[0] == 42
        assert counts[1] > 42

    def test_concave_polygon_target(self):
        corners = [
            (0.0, 0.0), (0.0, 30.0), (30.0, 30.0), (30.0, 20.0),
            (10.0, 20.0), (10.0, 10.0), (30.0, 10.0), (30.0, 0.0),
        ]
        u = VertexPolygon(tuple(tuple(unit_vector(lat, lon)) for lat, lon in corners))
        grid = build_grid([32.0], polygons=[PolygonSpec(u, 0, 4.0)])
        assert grid.n_levels(0) == 5
        assert grid.validate() == []

        vertices = grid.vertices
        top = sorted(grid.vertex_indices_top_level(0))
        # every part of the U, arms included, reaches the target spacing
        for lat, lon in ((22.0, 4.0), (22.0, 26.0), (5.0, 15.0)):
            target = unit_vector(lat, lon)
            assert min(angle_degrees(vertices[v], target) for v in top) < 3.0, (lat, lon)

    def test_point_target(self):
        point = PointSet((tuple(unit_vector_geodetic(0.0, 0.0)),))
        grid = build_grid([64.0], polygons=[PolygonSpec(point, 0, 16.0)])
        assert grid.n_levels(0) == 3
        assert len(grid.vertex_indices_top_level(0)) > 12
        assert grid.validate() == []

    def test_target_coarser_than_global_is_ignored(self):
        cap = SphericalCap.from_degrees(0.0, 0.0, 10.0)
        plain = build_grid([16.0])
        with_cap = build_grid([16.0], polygons=[PolygonSpec(cap, 0, 32.0)])
        assert plain.grid_id == with_cap.grid_id

    def test_out_of_range_tessellation(self):
        cap = SphericalCap.from_degrees(0.0, 0.0, 10.0)
        with pytest.raises(ConfigurationError):
            build_grid([16.0], polygons=[PolygonSpec(cap, 1, 8.0)])

    def test_bad_target(self):
        cap = SphericalCap.from_degrees(0.0, 0.0, 10.0)
        with pytest.raises(ConfigurationError):
            build_grid([16.0], polygons=[PolygonSpec(cap, 0, 0.0)])

    def test_no_tessellations(self):
        with pytest.raises(ConfigurationError):
            build_grid([])
