"""End-to-end runs through properties, the command line and file output."""

import logging

import meshio
import pytest

from geotessbuilder import builders, cli, refinement
from geotessbuilder.builders import build_grid
from geotessbuilder.cli import main
from geotessbuilder.errors import ConfigurationError
from geotessbuilder.grid import GeoTessGrid, top_level_counts
from geotessbuilder.io import load_grid_json, load_model_json, save_model_json
from geotessbuilder.logging_config import LOGGER_NAME, level_for_verbosity, setup_logging
from geotessbuilder.main import run
from geotessbuilder.metadata import ModelMetaData
from geotessbuilder.model import GeoTessModel
from geotessbuilder.properties import Properties
from geotessbuilder.vtk import write_model_vtk


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


def _model():
    grid = build_grid([32.0])
    model = GeoTessModel(grid, ModelMetaData(["CRUST"], ["DATA"], ["km/s"]))
    for vertex in range(model.n_vertices):
        model.set_profile(vertex, 0, [6341.0, 6351.0, 6371.0], [[1.0], [2.0], [3.0]])
    return model


# ═══════════════════════════════════════════════════════════════════
# Scratch mode
# ═══════════════════════════════════════════════════════════════════

class TestScratch:

    def test_build(self):
        grid = run({"gridConstructionMode": "scratch", "baseEdgeLengths": "64 32"})
        assert isinstance(grid, GeoTessGrid)
        assert top_level_counts(grid) == [12, 42]

    def test_mode_spelling(self):
        grid = run({"gridConstructionMode": "SCRATCH", "nTessellations": "1", "baseEdgeLengths": "64"})
        assert top_level_counts(grid) == [12]

    def test_rotation_and_solid(self):
        grid = run({
            "gridConstructionMode": "scratch",
            "baseEdgeLengths": "64",
            "initialSolid": "octahedron",
            "eulerRotationAngles": "145, 120, 0",
        })
        assert grid.platonic_solid == "octahedron"
        assert grid.euler_rotation_angles == (145.0, 120.0, 0.0)

    @pytest.mark.parametrize(
        "extra",
        [
            {"gridConstructionMode": "from file"},
            {"nTessellations": "3"},
            {"rotateGrid": "20"},
            {"eulerRotationAngles": "1 2"},
            {"polygons": "spherical_cap, 10, 20, 5, 4, 8"},
            {"initialSolid": "cube"},
        ],
    )
    def test_invalid(self, extra):
        values = {"gridConstructionMode": "scratch", "baseEdgeLengths": "64 32"}
        values.update(extra)
        with pytest.raises(ConfigurationError):
            run(values)

    def test_missing_edge_lengths(self):
        with pytest.raises(ConfigurationError):
            run({"gridConstructionMode": "scratch"})

    def test_polygon_file_relative_to_properties(self, tmp_path):
        (tmp_path / "region.txt").write_text("POLYGON\nLAT-LON\n0 0\n0 20\n20 10\n")
        path = tmp_path / "grid.properties"
        path.write_text(
            "gridConstructionMode = scratch\n"
            "baseEdgeLengths = 32\n"
            "polygons = region.txt, 0, 8\n"
        )
        grid = run(Properties.from_file(path))
        assert top_level_counts(grid)[0] > 42
        assert grid.validate() == []

    def test_outputs(self, tmp_path):
        out = tmp_path / "out" / "grid.json"
        vtk = tmp_path / "vtk" / "grid.vtk"
        grid = run({
            "gridConstructionMode": "scratch",
            "baseEdgeLengths": "64 32",
            "outputModelFile": str(out),
            "vtkFile": str(vtk),
        })
        assert load_grid_json(out).grid_id == grid.grid_id

        coarse = meshio.read(tmp_path / "vtk" / "grid_0.vtk")
        fine = meshio.read(tmp_path / "vtk" / "grid_1.vtk")
        assert len(coarse.cells_dict["triangle"]) == 20
        assert len(fine.cells_dict["triangle"]) == 80
        assert len(fine.points) == 42


# ═══════════════════════════════════════════════════════════════════
# Model refinement mode
# ═══════════════════════════════════════════════════════════════════

class TestModelRefinement:

    def test_refine_passed_model(self, tmp_path):
        model = _model()
        refined = run(
            {
                "gridConstructionMode": "model refinement",
                "pointsToRefine": "[0, 1]",
                "vtkDir": str(tmp_path),
            },
            model,
        )
        assert isinstance(refined, GeoTessModel)
        assert top_level_counts(refined.grid)[0] > 42
        assert refined.profile(0, 0).n_nodes == 5

        before = meshio.read(tmp_path / "original_grid.vtk")
        after = meshio.read(tmp_path / "refined_grid.vtk")
        assert len(after.cells_dict["triangle"]) > len(before.cells_dict["triangle"])

    def test_refine_model_file(self, tmp_path):
        source = tmp_path / "model.json"
        target = tmp_path / "refined.json"
        save_model_json(_model(), source)
        run({
            "gridConstructionMode": "model_refinement",
            "inputModelFile": str(source),
            "threshold": "DATA >= 3",
            "outputModelFile": str(target),
        })
        refined = load_model_json(target)
        assert refined.n_vertices > 42
        assert refined.grid.validate() == []

    def test_needs_a_model(self):
        with pytest.raises(ConfigurationError):
            run({"gridConstructionMode": "model refinement", "pointsToRefine": "0"})

    def test_missing_model_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            run({"gridConstructionMode": "model refinement", "inputModelFile": str(tmp_path / "none.json")})


# ═══════════════════════════════════════════════════════════════════
# Command line
# ═══════════════════════════════════════════════════════════════════

class TestCommandLine:

    def test_scratch(self, tmp_path, capsys):
        path = tmp_path / "grid.properties"
        path.write_text("gridConstructionMode = scratch\nbaseEdgeLengths = 64 32\n")
        assert main([str(path)]) == 0
        assert "top-level vertices [12, 42]" in capsys.readouterr().out

    def test_overrides(self, tmp_path, capsys):
        path = tmp_path / "grid.properties"
        path.write_text("gridConstructionMode = scratch\nbaseEdgeLengths = 64 32\n")
        assert main([str(path), "-D", "baseEdgeLengths = 64", "-D", "initialSolid=octahedron"]) == 0
        assert "top-level vertices [6]" in capsys.readouterr().out

    def test_refine_model_argument(self, tmp_path, capsys):
        model_path = tmp_path / "model.json"
        save_model_json(_model(), model_path)
        path = tmp_path / "refine.properties"
        path.write_text("gridConstructionMode = model refinement\npointsToRefine = 0\nverbosity = 1\n")
        log_file = tmp_path / "run.log"
        assert main([str(path), "--model", str(model_path), "--log-file", str(log_file)]) == 0
        assert "Refined model" in capsys.readouterr().out
        assert "top-level vertices" in log_file.read_text()

    def test_configuration_error_exits(self, tmp_path):
        path = tmp_path / "bad.properties"
        path.write_text("gridConstructionMode = scratch\n")
        with pytest.raises(SystemExit) as excinfo:
            main([str(path)])
        assert excinfo.value.code == 1

    def test_missing_properties_file(self, tmp_path):
        with pytest.raises(SystemExit) as excinfo:
            main([str(tmp_path / "missing.properties")])
        assert excinfo.value.code == 1


# ═══════════════════════════════════════════════════════════════════
# Logging and file helpers
# ═══════════════════════════════════════════════════════════════════

class TestSupport:

    @pytest.mark.parametrize(
        "verbosity, level",
        [(0, logging.WARNING), (1, logging.INFO), (2, logging.DEBUG), (5, logging.DEBUG)],
    )
    def test_verbosity(self, verbosity, level):
        assert level_for_verbosity(verbosity) == level

    def test_setup_logging_is_idempotent(self, tmp_path):
        setup_logging(logging.INFO)
        logger = setup_logging(logging.DEBUG, str(tmp_path / "debug.log"))
        assert logger.name == LOGGER_NAME
        assert len(logger.handlers) == 2
        logging.getLogger("geotessbuilder.refinement").debug("hello")
        for handler in logger.handlers:
            handler.flush()
        assert "hello" in (tmp_path / "debug.log").read_text()

    def test_module_loggers_follow_module_names(self):
        for module in (cli, refinement, builders):
            assert module.logger.name == module.__name__
            assert module.logger.name.startswith(LOGGER_NAME + ".")

    def test_model_vtk(self, tmp_path):
        path = write_model_vtk(_model(), tmp_path / "model.vtk")
        mesh = meshio.read(path)
        assert "DATA" in mesh.point_data
        assert mesh.point_data["DATA"][0] == pytest.approx(1.0)
