import pytest

from geotessbuilder.errors import ConfigurationError
from geotessbuilder.properties import Properties

TEXT = """
# scratch grid
gridConstructionMode = scratch
nTessellations = 2
baseEdgeLengths = 8, 4
rotateGrid: 20 30
! another comment style
verbose = yes
pointsToRefine = [1, 5, 9]
polygons =
"""


@pytest.fixture
def props():
    return Properties.from_text(TEXT)


class TestLoading:

    def test_keys(self, props):
        assert props["gridConstructionMode"] == "scratch"
        assert props["rotateGrid"] == "20 30"
        assert len(props) == 7

    def test_set_assignment(self, props):
        props.set("vtkDir = /tmp/out")
        props.set("threshold", "DATA > 1")
        assert props.get_str("vtkDir") == "/tmp/out"
        assert props.get_str("threshold") == "DATA > 1"

    def test_set_malformed(self, props):
        with pytest.raises(ConfigurationError):
            props.set("no assignment here")

    def test_malformed_line(self):
        with pytest.raises(ConfigurationError):
            Properties.from_text("good = 1\nbad line\n")

    def test_from_file(self, tmp_path):
        path = tmp_path / "build.properties"
        path.write_text(TEXT)
        props = Properties.from_file(path)
        assert props.base_dir == tmp_path.resolve()
        assert props.get_int("nTessellations") == 2

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            Properties.from_file(tmp_path / "missing.properties")

    def test_mapping_constructor(self):
        props = Properties({"nTessellations": 3, " verbosity ": " 1 "})
        assert props.get_int("nTessellations") == 3
        assert props.get_int("verbosity") == 1


class TestGetters:

    def test_typed(self, props):
        assert props.get_floats("baseEdgeLengths") == [8.0, 4.0]
        assert props.get_floats("rotateGrid") == [20.0, 30.0]
        assert props.get_ints("pointsToRefine") == [1, 5, 9]
        assert props.get_bool("verbose") is True

    def test_blank_counts_as_missing(self, props):
        assert not props.has("polygons")
        assert props.get_str("polygons", "") == ""
        with pytest.raises(ConfigurationError):
            props.get_str("polygons")

    def test_defaults(self, props):
        assert props.get_int("verbosity", 0) == 0
        assert props.get_float("missing", None) is None
        assert props.get_ints("missing", None) is None
        assert props.get_bool("missing", False) is False

    def test_required(self, props):
        with pytest.raises(ConfigurationError):
            props.get_int("verbosity")

    @pytest.mark.parametrize(
        "getter, key",
        [
            ("get_int", "gridConstructionMode"),
            ("get_float", "gridConstructionMode"),
            ("get_bool", "nTessellations"),
            ("get_ints", "baseEdgeLengths"),
            ("get_floats", "gridConstructionMode"),
        ],
    )
    def test_bad_values(self, props, getter, key):
        if getter == "get_bool":
            props["nTessellations"] = "maybe"
        if getter == "get_ints":
            props["baseEdgeLengths"] = "8.5, 4"
        with pytest.raises(ConfigurationError):
            getattr(props, getter)(key)
