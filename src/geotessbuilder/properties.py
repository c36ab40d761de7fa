"""Flat ``key = value`` property bag used to configure a run.

Files hold one property per line as ``key = value`` or ``key: value``.
Lines starting with ``#`` or ``!`` are comments.  Keys are
case-sensitive; unknown keys are kept but never consulted.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, Iterator, List, Mapping, MutableMapping, Optional, Union

from .errors import ConfigurationError

PathLike = Union[str, Path]

_LIST_SPLIT = re.compile(r"[,\s]+")
_TRUE = {"true", "yes", "on", "1"}
_FALSE = {"false", "no", "off", "0"}

# Sentinel so ``None`` can be a real default.
_REQUIRED = object()


def _split_assignment(line: str) -> Optional[tuple]:
    match = re.match(r"\s*([^=:\s]+)\s*[=:]\s*(.*)$", line)
    if match is None:
        return None
    return match.group(1), match.group(2).strip()


class Properties(MutableMapping):
    """String-valued mapping with typed getters.

    Every getter takes an optional *default*; a missing key without a
    default raises :class:`ConfigurationError`.  Blank values count as
    missing.
    """

    def __init__(self, values: Optional[Mapping[str, object]] = None) -> None:
        self._values: Dict[str, str] = {}
        self.base_dir: Optional[Path] = None
        for key, value in (values or {}).items():
            self[key] = value

    # ── Mapping protocol ────────────────────────────────────────────

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __setitem__(self, key: str, value: object) -> None:
        self._values[str(key).strip()] = str(value).strip()

    def __delitem__(self, key: str) -> None:
        del self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"Properties({self._values!r})"

    # ── Loading ─────────────────────────────────────────────────────

    def set(self, assignment: str, value: Optional[object] = None) -> None:
        """``set("key = value")`` or ``set("key", value)``."""
        if value is not None:
            self[assignment] = value
            return
        parsed = _split_assignment(assignment)
        if parsed is None:
            raise ConfigurationError(f"expected 'key = value', got {assignment!r}")
        self[parsed[0]] = parsed[1]

    def update_from_text(self, text: str) -> None:
        for number, raw in enumerate(text.splitlines(), start=1):
            line = raw.strip()
            if not line or line[0] in "#!":
                continue
            parsed = _split_assignment(line)
            if parsed is None:
                raise ConfigurationError(f"line {number}: expected 'key = value', got {raw!r}")
            self[parsed[0]] = parsed[1]

    @classmethod
    def from_text(cls, text: str) -> "Properties":
        props = cls()
        props.update_from_text(text)
        return props

    @classmethod
    def from_file(cls, path: PathLike) -> "Properties":
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"properties file not found: {path}")
        props = cls.from_text(path.read_text(encoding="utf-8"))
        props.base_dir = path.resolve().parent
        return props

    # ── Typed getters ───────────────────────────────────────────────

    def has(self, key: str) -> bool:
        return bool(self._values.get(key, ""))

    def get_str(self, key: str, default: object = _REQUIRED) -> Optional[str]:
        value = self._values.get(key, "")
        if value:
            return value
        if default is _REQUIRED:
            raise ConfigurationError(f"required property {key!r} is missing")
        return default  # type: ignore[return-value]

    def get_int(self, key: str, default: object = _REQUIRED) -> Optional[int]:
        value = self.get_str(key, None)
        if value is None:
            return self.get_str(key, default)  # type: ignore[return-value]
        try:
            return int(value)
        except ValueError:
            raise ConfigurationError(f"property {key!r} must be an integer, got {value!r}") from None

    def get_float(self, key: str, default: object = _REQUIRED) -> Optional[float]:
        value = self.get_str(key, None)
        if value is None:
            return self.get_str(key, default)  # type: ignore[return-value]
        try:
            return float(value)
        except ValueError:
            raise ConfigurationError(f"property {key!r} must be a number, got {value!r}") from None

    def get_bool(self, key: str, default: object = _REQUIRED) -> Optional[bool]:
        value = self.get_str(key, None)
        if value is None:
            return self.get_str(key, default)  # type: ignore[return-value]
        lowered = value.lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
        raise ConfigurationError(f"property {key!r} must be true or false, got {value!r}")

    def _tokens(self, key: str) -> List[str]:
        value = self.get_str(key, "") or ""
        return [t for t in _LIST_SPLIT.split(value.strip().strip("[]()")) if t]

    def get_floats(self, key: str, default: object = _REQUIRED) -> Optional[List[float]]:
        """Numbers separated by commas and/or whitespace."""
        if not self.has(key):
            return self.get_str(key, default)  # type: ignore[return-value]
        try:
            return [float(t) for t in self._tokens(key)]
        except ValueError:
            raise ConfigurationError(
                f"property {key!r} must be a list of numbers, got {self._values[key]!r}"
            ) from None

    def get_ints(self, key: str, default: object = _REQUIRED) -> Optional[List[int]]:
        """Integers separated by commas and/or whitespace; brackets are ignored."""
        if not self.has(key):
            return self.get_str(key, default)  # type: ignore[return-value]
        try:
            return [int(t) for t in self._tokens(key)]
        except ValueError:
            raise ConfigurationError(
                f"property {key!r} must be a list of integers, got {self._values[key]!r}"
            ) from None
