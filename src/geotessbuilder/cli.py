"""GeoTessBuilder command-line interface."""

from __future__ import annotations

import argparse
import logging
from typing import List, Optional

from .errors import GeoTessBuilderError
from .grid import top_level_counts
from .io import load_model_json
from .logging_config import level_for_verbosity, setup_logging
from .main import run
from .model import GeoTessModel
from .properties import Properties

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="geotessbuilder",
        description="Build multi-resolution geodesic grids and refine 3-D models",
    )
    parser.add_argument("properties", help="Properties file (key = value lines)")
    parser.add_argument(
        "-D", dest="overrides", action="append", default=[], metavar="KEY=VALUE",
        help="Override or add a property; may be repeated",
    )
    parser.add_argument("--model", dest="model_path", help="JSON model to refine")
    parser.add_argument("--log-file", dest="log_file", help="Also write log output to this file")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        props = Properties.from_file(args.properties)
        for override in args.overrides:
            props.set(override)
        setup_logging(level_for_verbosity(props.get_int("verbosity", 0)), args.log_file)

        model = load_model_json(args.model_path) if args.model_path else None
        result = run(props, model)
    except GeoTessBuilderError as exc:
        logger.error("%s", exc)
        raise SystemExit(1)

    if isinstance(result, GeoTessModel):
        grid = result.grid
        print(f"Refined model: {len(result.point_map)} points")
    else:
        grid = result
    counts = ", ".join(str(c) for c in top_level_counts(grid))
    print(f"Grid {grid.grid_id}: {grid.n_vertices} vertices, top-level vertices [{counts}]")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
