"""Run the builder from a property bag.

``gridConstructionMode = scratch`` builds a grid; ``gridConstructionMode =
model refinement`` refines a model passed in (or read from
``inputModelFile``).
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional, Union

from .builders import build_grid
from .errors import ConfigurationError
from .grid import GeoTessGrid
from .io import load_model_json, save_grid_json, save_model_json
from .model import GeoTessModel
from .polygons import parse_polygon_specs
from .properties import Properties
from .refinement import refine_model
from .vtk import write_grid_vtk, write_refinement_vtk

logger = logging.getLogger(__name__)

SCRATCH = "scratch"
MODEL_REFINEMENT = "model refinement"


def _mode(props: Properties) -> str:
    raw = props.get_str("gridConstructionMode")
    mode = " ".join(raw.replace("_", " ").lower().split())
    if mode not in (SCRATCH, MODEL_REFINEMENT):
        raise ConfigurationError(
            f"gridConstructionMode must be '{SCRATCH}' or '{MODEL_REFINEMENT}', got {raw!r}"
        )
    return mode


def grid_from_properties(props: Properties) -> GeoTessGrid:
    """Build a grid from the scratch-mode keys."""
    base = props.get_floats("baseEdgeLengths")
    n_tess = props.get_int("nTessellations", None)
    if n_tess is None:
        n_tess = len(base)
    if n_tess <= 0:
        raise ConfigurationError(f"nTessellations must be positive, got {n_tess}")
    if len(base) != n_tess:
        raise ConfigurationError(
            f"nTessellations = {n_tess} but {len(base)} baseEdgeLengths were given"
        )

    polygons = parse_polygon_specs(props.get_str("polygons", ""), n_tess, props.base_dir)

    rotate_to = None
    if props.has("rotateGrid"):
        values = props.get_floats("rotateGrid")
        if len(values) != 2:
            raise ConfigurationError(f"rotateGrid needs 'lat lon', got {props['rotateGrid']!r}")
        rotate_to = (values[0], values[1])

    euler_angles = None
    if props.has("eulerRotationAngles"):
        values = props.get_floats("eulerRotationAngles")
        if len(values) != 3:
            raise ConfigurationError(
                f"eulerRotationAngles needs 3 angles, got {props['eulerRotationAngles']!r}"
            )
        euler_angles = (values[0], values[1], values[2])

    return build_grid(
        base,
        initial_solid=props.get_str("initialSolid", "icosahedron"),
        polygons=polygons,
        rotate_to=rotate_to,
        euler_angles=euler_angles,
    )


def _refine(props: Properties, model: Optional[GeoTessModel]) -> GeoTessModel:
    if model is None:
        path = props.get_str("inputModelFile", None)
        if path is None:
            raise ConfigurationError("model refinement needs a model or the inputModelFile property")
        model = load_model_json(path)

    points = props.get_ints("pointsToRefine", None)
    threshold = props.get_str("threshold", None)
    refined = refine_model(model, points_to_refine=points, threshold=threshold)

    vtk_dir = props.get_str("vtkDir", None)
    if vtk_dir is not None:
        write_refinement_vtk(model.grid, refined.grid, vtk_dir)
    return refined


def run(
    properties: Union[Properties, Mapping[str, object]],
    model: Optional[GeoTessModel] = None,
) -> Union[GeoTessGrid, GeoTessModel]:
    """Build a grid or refine a model as the properties direct."""
    props = properties if isinstance(properties, Properties) else Properties(properties)
    mode = _mode(props)
    logger.info("gridConstructionMode = %s", mode)

    if mode == SCRATCH:
        result: Union[GeoTessGrid, GeoTessModel] = grid_from_properties(props)
        vtk_file = props.get_str("vtkFile", None)
        if vtk_file is not None:
            write_grid_vtk(result, vtk_file)
    else:
        result = _refine(props, model)

    output = props.get_str("outputModelFile", None)
    if output is not None:
        if isinstance(result, GeoTessModel):
            save_model_json(result, output)
        else:
            save_grid_json(result, output)
        logger.info("wrote %s", output)
    return result
