#!/usr/bin/env python3
"""Demo: build a crustal model around a cap and refine it where data is large.

Writes the coarse and refined tessellations as VTK files, plus the refined
model as JSON.

Usage:
    python scripts/demo_refinement.py                          # default output
    python scripts/demo_refinement.py --lat 45 --lon -110      # move the cap
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from geotessbuilder import (
    GeoTessModel,
    ModelMetaData,
    SphericalCap,
    build_grid,
    parse_polygon_specs,
    refine_model,
    save_model_json,
    setup_logging,
    top_level_counts,
    write_refinement_vtk,
)


def main() -> None:
    parser = argparse.ArgumentParser(description="Grid construction and model refinement demo")
    parser.add_argument("--lat", type=float, default=20.0, help="Cap centre latitude (default: 20)")
    parser.add_argument("--lon", type=float, default=20.0, help="Cap centre longitude (default: 20)")
    parser.add_argument("--radius", type=float, default=20.0, help="Cap radius in degrees (default: 20)")
    parser.add_argument("--out", type=str, default="exports/refinement", help="Output directory")
    args = parser.parse_args()
    setup_logging()

    spec = f"spherical_cap, {args.lat}, {args.lon}, {args.radius}, 0, 4"
    print(f"Building grid refined inside {spec!r} …")
    grid = build_grid([16.0], polygons=parse_polygon_specs(spec, 1), rotate_to=(args.lat, args.lon))
    errors = grid.validate()
    if errors:
        raise SystemExit("\n".join(errors))
    print(f"  {grid.n_vertices} vertices, top level {top_level_counts(grid)}")

    cap = SphericalCap.from_degrees(args.lat, args.lon, args.radius / 2.0)
    model = GeoTessModel(grid, ModelMetaData(["CRUST"], ["VP"], ["km/s"], description="demo crust"))
    for vertex in range(model.n_vertices):
        vp = 7.0 if cap.contains(grid.vertices[vertex]) else 6.0
        model.set_profile(vertex, 0, [6336.0, 6356.0, 6371.0], [[vp + 0.5], [vp], [vp - 0.5]])

    print("Refining points with VP > 7 …")
    refined = refine_model(model, threshold="VP > 7")
    print(f"  {refined.n_vertices} vertices, top level {top_level_counts(refined.grid)}")

    out = Path(args.out)
    for path in write_refinement_vtk(grid, refined.grid, out):
        print(f"  wrote {path}")
    save_model_json(refined, out / "refined_model.json")
    print("Done ✓")


if __name__ == "__main__":
    main()
