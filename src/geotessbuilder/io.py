from __future__ import annotations

from pathlib import Path
from typing import Union

from .errors import ConfigurationError
from .grid import GeoTessGrid
from .model import GeoTessModel


PathLike = Union[str, Path]


def _read(path: PathLike, what: str) -> str:
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"{what} file not found: {path}")
    return path.read_text(encoding="utf-8")


def _write(path: PathLike, text: str) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def load_grid_json(path: PathLike) -> GeoTessGrid:
    return GeoTessGrid.from_json(_read(path, "grid"))


def save_grid_json(grid: GeoTessGrid, path: PathLike) -> None:
    _write(path, grid.to_json())


def load_model_json(path: PathLike) -> GeoTessModel:
    return GeoTessModel.from_json(_read(path, "model"))


def save_model_json(model: GeoTessModel, path: PathLike) -> None:
    _write(path, model.to_json())
