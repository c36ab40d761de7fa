from __future__ import annotations

import hashlib
import json
from typing import Dict, FrozenSet, List, Mapping, Optional, Sequence

import numpy as np

from .algorithms import build_vertex_neighbors, find_nonconforming_edges
from .errors import GeometryError, InvariantError


class GeoTessGrid:
    """A stack of tessellations of the unit sphere over one vertex array.

    *vertices* is an ``(n, 3)`` array of unit vectors.  *tessellations* is a
    list, one entry per tessellation, of levels; each level is an ``(m, 3)``
    integer array of vertex indices.  Level 0 is the seed solid and the last
    level is the *top level*.

    Vertex 0 is the anchor: it is the north pole of every seed solid and is
    carried by the grid's Euler rotation to the requested location.

    The grid is immutable once built; refinement produces a new grid via
    :meth:`with_new_levels`.
    """

    VERSION = "1.0"

    def __init__(
        self,
        vertices: np.ndarray,
        tessellations: Sequence[Sequence[np.ndarray]],
        metadata: Optional[dict] = None,
    ) -> None:
        verts = np.array(vertices, dtype=float)
        if verts.ndim != 2 or verts.shape[1] != 3:
            raise GeometryError(f"vertices must have shape (n, 3), got {verts.shape}")
        if not np.all(np.isfinite(verts)):
            raise GeometryError("grid vertices contain non-finite coordinates")
        verts.setflags(write=False)
        self._vertices = verts

        self._tessellations: List[List[np.ndarray]] = []
        for tess_id, levels in enumerate(tessellations):
            frozen_levels = []
            for level in levels:
                tris = np.array(level, dtype=np.int64).reshape(-1, 3)
                tris.setflags(write=False)
                frozen_levels.append(tris)
            if not frozen_levels:
                raise InvariantError(f"tessellation {tess_id} has no levels")
            self._tessellations.append(frozen_levels)

        self.metadata: dict = dict(metadata or {})
        self._top_vertices: Dict[int, FrozenSet[int]] = {}
        self._neighbors: Dict[int, Dict[int, List[int]]] = {}
        self._grid_id: Optional[str] = None

    # ── Basic accessors ─────────────────────────────────────────────

    @property
    def vertices(self) -> np.ndarray:
        """Read-only ``(n, 3)`` vertex array."""
        return self._vertices

    @property
    def n_vertices(self) -> int:
        return len(self._vertices)

    @property
    def n_tessellations(self) -> int:
        return len(self._tessellations)

    def vertex(self, index: int) -> np.ndarray:
        return self._vertices[index].copy()

    def n_levels(self, tess_id: int) -> int:
        return len(self._tessellations[tess_id])

    def levels(self, tess_id: int) -> List[np.ndarray]:
        return list(self._tessellations[tess_id])

    def triangles(self, tess_id: int, level: int = -1) -> np.ndarray:
        """Triangles of *level* (default: top level) of a tessellation."""
        return self._tessellations[tess_id][level]

    def top_level(self, tess_id: int) -> int:
        return len(self._tessellations[tess_id]) - 1

    @property
    def platonic_solid(self) -> str:
        return self.metadata.get("platonic_solid", "icosahedron")

    @property
    def euler_rotation_angles(self) -> Optional[tuple]:
        angles = self.metadata.get("euler_rotation_angles")
        return tuple(angles) if angles is not None else None

    # ── Topology ────────────────────────────────────────────────────

    def vertex_indices_top_level(self, tess_id: int) -> FrozenSet[int]:
        """Vertices referenced by the top level of a tessellation."""
        cached = self._top_vertices.get(tess_id)
        if cached is None:
            cached = frozenset(int(v) for v in np.unique(self.triangles(tess_id)))
            self._top_vertices[tess_id] = cached
        return cached

    def vertex_neighbors(self, tess_id: int, vertex: int) -> List[int]:
        """Edge-connected neighbours of *vertex* on the top level of *tess_id*."""
        neighbors = self._neighbors.get(tess_id)
        if neighbors is None:
            neighbors = build_vertex_neighbors(self.triangles(tess_id))
            self._neighbors[tess_id] = neighbors
        return list(neighbors.get(int(vertex), []))

    def validate(self) -> list[str]:
        """Return a list of problems; empty when the grid is consistent."""
        errors: list[str] = []

        norms = np.linalg.norm(self._vertices, axis=1)
        bad = np.nonzero(np.abs(norms - 1.0) > 1e-9)[0]
        for index in bad[:10]:
            errors.append(f"Vertex {int(index)} is not a unit vector (norm {norms[index]:.12f})")

        for tess_id, levels in enumerate(self._tessellations):
            for level_index, tris in enumerate(levels):
                label = f"Tessellation {tess_id} level {level_index}"
                if len(tris) == 0:
                    errors.append(f"{label} has no triangles")
                    continue
                if tris.min() < 0 or tris.max() >= self.n_vertices:
                    errors.append(f"{label} references a missing vertex")
                    continue
                repeated = [i for i, t in enumerate(tris) if len(set(t.tolist())) != 3]
                if repeated:
                    errors.append(f"{label} has {len(repeated)} degenerate triangles")
                loose = find_nonconforming_edges(tris)
                if loose:
                    errors.append(
                        f"{label} is not conforming: {len(loose)} edges not shared by two triangles"
                    )
        return errors

    # ── Identity ────────────────────────────────────────────────────

    @property
    def grid_id(self) -> str:
        """32 hex character MD5 digest of vertices and triangles."""
        if self._grid_id is None:
            digest = hashlib.md5()
            digest.update(self._vertices.astype(">f8").tobytes())
            digest.update(np.array([self.n_tessellations], dtype=">i4").tobytes())
            for levels in self._tessellations:
                digest.update(np.array([len(levels)], dtype=">i4").tobytes())
                for tris in levels:
                    digest.update(np.array([len(tris)], dtype=">i4").tobytes())
                    digest.update(np.sort(tris, axis=1).astype(">i4").tobytes())
            self._grid_id = digest.hexdigest().upper()
        return self._grid_id

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GeoTessGrid):
            return NotImplemented
        return self.grid_id == other.grid_id

    def __hash__(self) -> int:
        return hash(self.grid_id)

    def __repr__(self) -> str:
        counts = ", ".join(str(len(self.vertex_indices_top_level(t))) for t in range(self.n_tessellations))
        return f"GeoTessGrid(id={self.grid_id}, vertices={self.n_vertices}, top_level_vertices=[{counts}])"

    # ── Derivation ──────────────────────────────────────────────────

    def with_new_levels(
        self,
        vertices: np.ndarray,
        new_levels: Mapping[int, np.ndarray],
    ) -> "GeoTessGrid":
        """Return a grid with *vertices* and one extra level per refined tessellation.

        *vertices* must start with this grid's vertices unchanged.
        """
        vertices = np.asarray(vertices, dtype=float)
        if len(vertices) < self.n_vertices or not np.array_equal(
            vertices[: self.n_vertices], self._vertices
        ):
            raise InvariantError("refined vertex array must extend the original vertex array")
        tessellations = []
        for tess_id, levels in enumerate(self._tessellations):
            levels = list(levels)
            if tess_id in new_levels:
                levels.append(np.asarray(new_levels[tess_id]))
            tessellations.append(levels)
        metadata = dict(self.metadata)
        metadata["refinements"] = int(metadata.get("refinements", 0)) + 1
        return GeoTessGrid(vertices, tessellations, metadata)

    # ── Serialisation ───────────────────────────────────────────────

    def to_dict(self) -> dict:
        return {
            "version": self.VERSION,
            "grid_id": self.grid_id,
            "metadata": self.metadata,
            "vertices": self._vertices.tolist(),
            "tessellations": [[tris.tolist() for tris in levels] for levels in self._tessellations],
        }

    @classmethod
    def from_dict(cls, payload: dict) -> "GeoTessGrid":
        grid = cls(
            np.array(payload.get("vertices", []), dtype=float).reshape(-1, 3),
            [
                [np.array(level, dtype=np.int64).reshape(-1, 3) for level in levels]
                for levels in payload.get("tessellations", [])
            ],
            payload.get("metadata", {}),
        )
        expected = payload.get("grid_id")
        if expected is not None and expected != grid.grid_id:
            raise InvariantError(f"grid id mismatch: file says {expected}, content hashes to {grid.grid_id}")
        return grid

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)

    @classmethod
    def from_json(cls, json_data: str) -> "GeoTessGrid":
        return cls.from_dict(json.loads(json_data))


def top_level_counts(grid: GeoTessGrid) -> List[int]:
    """Number of top-level vertices in each tessellation."""
    return [len(grid.vertex_indices_top_level(t)) for t in range(grid.n_tessellations)]

