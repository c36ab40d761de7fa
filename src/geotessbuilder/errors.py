"""Error kinds raised by the grid builder and the refinement engine.

Every error is fatal to the current run.  Each class carries a short
``tag`` so command-line output and logs identify the kind of failure
without parsing the message.
"""

from __future__ import annotations


class GeoTessBuilderError(ValueError):
    """Base class for every error raised by this package."""

    tag = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"[{self.tag}] {self.message}"


class ConfigurationError(GeoTessBuilderError):
    """Bad, missing or contradictory configuration keys and values."""

    tag = "configuration"


class GeometryError(GeoTessBuilderError):
    """Degenerate polygons, non-finite coordinates or rotation angles."""

    tag = "geometry"


class RefinementTargetError(GeoTessBuilderError):
    """Invalid point index or a threshold on a missing attribute."""

    tag = "refinement-target"


class InvariantError(GeoTessBuilderError):
    """Profile radii not increasing, data count mismatch and the like."""

    tag = "invariant"
