"""VTK export of tessellations and model layers through ``meshio``."""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Iterable, List, Optional, Union

import meshio
import numpy as np

from .grid import GeoTessGrid
from .model import GeoTessModel

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def tessellation_mesh(grid: GeoTessGrid, tess_id: int, level: int = -1) -> meshio.Mesh:
    """Triangle mesh of one level of a tessellation on the unit sphere."""
    return meshio.Mesh(
        np.array(grid.vertices),
        [("triangle", np.asarray(grid.triangles(tess_id, level), dtype=np.int64))],
        point_data={"vertex_id": np.arange(grid.n_vertices, dtype=np.int64)},
    )


def write_tessellation_vtk(grid: GeoTessGrid, tess_id: int, path: PathLike, level: int = -1) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    meshio.write(str(path), tessellation_mesh(grid, tess_id, level), file_format="vtk")
    logger.info("wrote tessellation %d to %s", tess_id, path)
    return path


def write_grid_vtk(grid: GeoTessGrid, path: PathLike) -> List[Path]:
    """Write the top level of every tessellation.

    With more than one tessellation the files get a ``_<tessId>`` suffix
    before the extension.
    """
    path = Path(path)
    if grid.n_tessellations == 1:
        return [write_tessellation_vtk(grid, 0, path)]
    return [
        write_tessellation_vtk(grid, t, path.with_name(f"{path.stem}_{t}{path.suffix or '.vtk'}"))
        for t in range(grid.n_tessellations)
    ]


def write_refinement_vtk(
    original: GeoTessGrid,
    refined: GeoTessGrid,
    directory: PathLike,
    tessellations: Optional[Iterable[int]] = None,
) -> List[Path]:
    """Write ``original_grid.vtk`` and ``refined_grid.vtk`` for refined tessellations.

    Tessellations default to those whose level count grew.  With more than
    one, file names get a ``_<tessId>`` suffix.
    """
    directory = Path(directory)
    if tessellations is None:
        tessellations = [
            t for t in range(refined.n_tessellations) if refined.n_levels(t) > original.n_levels(t)
        ]
    tessellations = list(tessellations)
    suffix = len(tessellations) > 1
    written = []
    for t in tessellations:
        tag = f"_{t}" if suffix else ""
        written.append(write_tessellation_vtk(original, t, directory / f"original_grid{tag}.vtk"))
        written.append(write_tessellation_vtk(refined, t, directory / f"refined_grid{tag}.vtk"))
    return written


def write_model_vtk(model: GeoTessModel, path: PathLike, layer: int = 0, attribute: int = 0) -> Path:
    """Top level of *layer*'s tessellation with the value of its first node per vertex."""
    values = np.full(model.n_vertices, math.nan)
    for vertex in range(model.n_vertices):
        profile = model.profile(vertex, layer)
        if profile.has_data:
            values[vertex] = profile.value(0, attribute)
    mesh = tessellation_mesh(model.grid, model.tessellation(layer))
    mesh.point_data[model.metadata.attribute_names[attribute]] = values

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    meshio.write(str(path), mesh, file_format="vtk")
    logger.info("wrote layer %d of model to %s", layer, path)
    return path
