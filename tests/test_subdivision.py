import numpy as np
import pytest

from geotessbuilder.algorithms import build_vertex_neighbors, find_nonconforming_edges, incident_triangles
from geotessbuilder.errors import ConfigurationError
from geotessbuilder.solids import PLATONIC_SOLIDS, platonic_solid, solid_counts
from geotessbuilder.subdivision import MidpointIndex, close_schedule, subdivide_level


# ═══════════════════════════════════════════════════════════════════
# Seed solids
# ═══════════════════════════════════════════════════════════════════

class TestSolids:

    @pytest.mark.parametrize(
        "name, n_vertices, n_triangles",
        [
            ("tetrahedron", 4, 4),
            ("octahedron", 6, 8),
            ("icosahedron", 12, 20),
            ("tetrahexahedron", 14, 24),
        ],
    )
    def test_counts(self, name, n_vertices, n_triangles):
        assert solid_counts(name) == {"vertices": n_vertices, "triangles": n_triangles}

    @pytest.mark.parametrize("name", PLATONIC_SOLIDS)
    def test_vertex_zero_is_north_pole(self, name):
        vertices, _ = platonic_solid(name)
        assert np.allclose(vertices[0], [0.0, 0.0, 1.0])

    @pytest.mark.parametrize("name", PLATONIC_SOLIDS)
    def test_unit_vertices_and_outward_winding(self, name):
        vertices, triangles = platonic_solid(name)
        assert np.allclose(np.linalg.norm(vertices, axis=1), 1.0)
        for i, j, k in triangles:
            a, b, c = vertices[i], vertices[j], vertices[k]
            assert float(np.dot(np.cross(b - a, c - a), a + b + c)) > 0.0

    @pytest.mark.parametrize("name", PLATONIC_SOLIDS)
    def test_closed_surface(self, name):
        _, triangles = platonic_solid(name)
        assert find_nonconforming_edges(triangles) == []

    def test_name_is_case_insensitive(self):
        vertices, _ = platonic_solid("  Icosahedron ")
        assert len(vertices) == 12

    def test_unknown_solid_raises(self):
        with pytest.raises(ConfigurationError):
            platonic_solid("dodecahedron")


# ═══════════════════════════════════════════════════════════════════
# Adjacency helpers
# ═══════════════════════════════════════════════════════════════════

class TestAdjacency:

    def test_icosahedron_vertex_degree(self):
        _, triangles = platonic_solid("icosahedron")
        neighbors = build_vertex_neighbors(triangles)
        assert all(len(n) == 5 for n in neighbors.values())

    def test_incident_triangles(self):
        _, triangles = platonic_solid("icosahedron")
        assert len(incident_triangles(triangles, [0])) == 5
        assert len(incident_triangles(triangles, [0, 11])) == 10

    def test_polar_cap_comes_first(self):
        _, triangles = platonic_solid("icosahedron")
        assert [list(t) for t in triangles[:5]] == [[0, 1, 2], [0, 2, 3], [0, 3, 4], [0, 4, 5], [0, 5, 1]]


# ═══════════════════════════════════════════════════════════════════
# Subdivision
# ═══════════════════════════════════════════════════════════════════

class TestSubdivision:

    def test_global_pass(self):
        vertices, triangles = platonic_solid("icosahedron")
        midpoints = MidpointIndex(vertices)
        level, stats = subdivide_level(triangles, range(len(triangles)), midpoints)
        assert len(level) == 80
        assert len(midpoints) == 42
        assert stats.red == 20
        assert stats.green == 0
        assert find_nonconforming_edges(level) == []

    def test_midpoints_are_deduplicated(self):
        vertices, triangles = platonic_solid("octahedron")
        midpoints = MidpointIndex(vertices)
        first = midpoints.midpoint(0, 1)
        assert midpoints.midpoint(1, 0) == first
        assert midpoints.parents[first] == (0, 1)
        assert len(midpoints) == 7

    def test_local_pass_is_conforming(self):
        vertices, triangles = platonic_solid("icosahedron")
        midpoints = MidpointIndex(vertices)
        scheduled = incident_triangles(triangles, [0])
        level, stats = subdivide_level(triangles, scheduled, midpoints)
        # five spokes and five ring edges
        assert len(midpoints) == 22
        assert stats.red == 5
        assert stats.green == 5
        assert len(level) == 5 * 4 + 5 * 2 + 10
        assert find_nonconforming_edges(level) == []

    def test_single_triangle_closure(self):
        _, triangles = platonic_solid("octahedron")
        assert close_schedule(triangles, [0]) == {0}

    def test_closure_adds_triangle_with_two_split_edges(self):
        _, triangles = platonic_solid("octahedron")
        # triangles 0 and 1 share vertex 0 and edge (0, 2); scheduling 0 and 2
        # leaves 1 with split edges (0, 2) and (0, 3)
        closed = close_schedule(triangles, [0, 2])
        assert {0, 1, 2} <= closed
        vertices, _ = platonic_solid("octahedron")
        level, _ = subdivide_level(triangles, [0, 2], MidpointIndex(vertices))
        assert find_nonconforming_edges(level) == []

    def test_reuse_existing_vertices(self):
        vertices, triangles = platonic_solid("icosahedron")
        fine = MidpointIndex(vertices)
        subdivide_level(triangles, range(len(triangles)), fine)
        all_vertices = fine.vertex_array()

        coarse = MidpointIndex(all_vertices, reuse_existing=True)
        subdivide_level(triangles, incident_triangles(triangles, [0]), coarse)
        assert len(coarse) == len(all_vertices)
        assert all(v < 42 for v in coarse.parents)
