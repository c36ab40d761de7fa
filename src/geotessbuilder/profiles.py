"""Radial profiles: what a model stores above one vertex in one layer.

A :class:`Profile` is immutable.  Its kind follows from the number of
radii and data vectors it carries:

============  =====  ============
kind          radii  data vectors
============  =====  ============
``EMPTY``     0 or 2 0
``THIN``      1      1
``CONSTANT``  2      1
``NPOINT``    n >= 2 n
``SURFACE``   0      1
============  =====  ============

The module also holds the profile arithmetic used by refinement:
:func:`interpolate` builds the profile of a new vertex from its two edge
parents and :func:`split_intervals` inserts radial nodes.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

import numpy as np

from .errors import InvariantError

Span = Tuple[float, float]


class ProfileType(enum.Enum):
    EMPTY = "empty"
    THIN = "thin"
    CONSTANT = "constant"
    NPOINT = "npoint"
    SURFACE = "surface"


def _data_matrix(data: Any) -> Tuple[Tuple[float, ...], ...]:
    if data is None:
        return ()
    arr = np.asarray(data, dtype=float)
    if arr.size == 0:
        return ()
    if arr.ndim == 1:
        arr = arr[None, :]
    if arr.ndim != 2:
        raise InvariantError(f"profile data must be a vector or a list of vectors, got shape {arr.shape}")
    return tuple(tuple(float(x) for x in row) for row in arr)


@dataclass(frozen=True)
class Profile:
    """Radii (km, strictly increasing) and one data vector per data-bearing node."""

    type: ProfileType
    radii: Tuple[float, ...] = ()
    data: Tuple[Tuple[float, ...], ...] = ()

    def __post_init__(self) -> None:
        radii = tuple(float(r) for r in self.radii)
        object.__setattr__(self, "radii", radii)
        for r in radii:
            if not math.isfinite(r):
                raise InvariantError(f"profile radius {r!r} is not finite")
        for lower, upper in zip(radii, radii[1:]):
            if not upper > lower:
                raise InvariantError(f"profile radii must be strictly increasing, got {list(radii)}")

        expected = {
            ProfileType.EMPTY: ((0, 2), 0),
            ProfileType.THIN: ((1,), 1),
            ProfileType.CONSTANT: ((2,), 1),
            ProfileType.SURFACE: ((0,), 1),
        }
        if self.type is ProfileType.NPOINT:
            if len(radii) < 2 or len(self.data) != len(radii):
                raise InvariantError(
                    f"n-point profile needs n >= 2 radii and n data vectors, "
                    f"got {len(radii)} radii and {len(self.data)} data vectors"
                )
        else:
            n_radii, n_data = expected[self.type]
            if len(radii) not in n_radii or len(self.data) != n_data:
                raise InvariantError(
                    f"{self.type.value} profile cannot hold {len(radii)} radii "
                    f"and {len(self.data)} data vectors"
                )
        widths = {len(row) for row in self.data}
        if len(widths) > 1:
            raise InvariantError("profile data vectors differ in length")

    # ── Construction ────────────────────────────────────────────────

    @classmethod
    def from_arrays(cls, radii: Sequence[float] = (), data: Any = None) -> "Profile":
        """Infer the profile kind from the number of radii and data vectors.

        *data* is either a single data vector or one vector per node.
        """
        radii = tuple(float(r) for r in radii)
        rows = _data_matrix(data)
        if not rows:
            kind = ProfileType.EMPTY
        elif not radii:
            kind = ProfileType.SURFACE
        elif len(radii) == 1:
            kind = ProfileType.THIN
        elif len(rows) == 1:
            kind = ProfileType.CONSTANT
        else:
            kind = ProfileType.NPOINT
        return cls(kind, radii, rows)

    @classmethod
    def empty(cls, span: Optional[Span] = None) -> "Profile":
        if span is None or not span[1] > span[0]:
            return cls(ProfileType.EMPTY)
        return cls(ProfileType.EMPTY, (span[0], span[1]))

    # ── Queries ─────────────────────────────────────────────────────

    @property
    def has_data(self) -> bool:
        return bool(self.data)

    @property
    def n_nodes(self) -> int:
        """Number of data-bearing nodes."""
        return len(self.data)

    @property
    def n_attributes(self) -> int:
        return len(self.data[0]) if self.data else 0

    @property
    def radius_bottom(self) -> float:
        return self.radii[0] if self.radii else math.nan

    @property
    def radius_top(self) -> float:
        return self.radii[-1] if self.radii else math.nan

    @property
    def span(self) -> Optional[Span]:
        if not self.radii:
            return None
        return (self.radii[0], self.radii[-1])

    def node_radius(self, node: int) -> float:
        if self.type is ProfileType.SURFACE:
            return math.nan
        if self.type is ProfileType.NPOINT:
            return self.radii[node]
        # THIN and CONSTANT both report their bottom radius
        return self.radii[0]

    def value(self, node: int, attribute: int) -> float:
        return self.data[node][attribute]

    def fractions(self) -> Tuple[float, ...]:
        """Relative position in ``[0, 1]`` of each data-bearing node within the span."""
        if self.type is ProfileType.NPOINT:
            bottom, top = self.radii[0], self.radii[-1]
            return tuple((r - bottom) / (top - bottom) for r in self.radii)
        return (0.0,) * len(self.data)

    def sample(self, fraction: float) -> np.ndarray:
        """Data vector at a relative position, linear between nodes."""
        if not self.data:
            raise InvariantError("cannot sample a profile without data")
        if self.type is not ProfileType.NPOINT:
            return np.array(self.data[0])
        values = np.array(self.data)
        positions = np.array(self.fractions())
        return np.array([
            np.interp(fraction, positions, values[:, k]) for k in range(values.shape[1])
        ])

    # ── Serialisation ───────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "radii": list(self.radii),
            "data": [list(row) for row in self.data],
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Profile":
        return cls(
            ProfileType(payload["type"]),
            tuple(payload.get("radii", ())),
            tuple(tuple(row) for row in payload.get("data", ())),
        )


EMPTY = Profile(ProfileType.EMPTY)


# ═══════════════════════════════════════════════════════════════════
# Profile arithmetic
# ═══════════════════════════════════════════════════════════════════

def mean_span(a: Profile, b: Profile) -> Optional[Span]:
    """Average of the radial spans of two profiles; the one that has a span wins."""
    sa, sb = a.span, b.span
    if sa is None:
        return sb
    if sb is None:
        return sa
    return ((sa[0] + sb[0]) / 2.0, (sa[1] + sb[1]) / 2.0)


def _same_structure(a: Profile, b: Profile) -> bool:
    return a.type is b.type and len(a.radii) == len(b.radii) and a.n_attributes == b.n_attributes


def _place(template: Profile, span: Optional[Span], data: Sequence[Sequence[float]]) -> Profile:
    """A profile shaped like *template*, stretched onto *span*, carrying *data*."""
    if template.type is ProfileType.SURFACE or span is None:
        return Profile(template.type, template.radii, tuple(tuple(row) for row in data))
    bottom, top = span
    if template.type is ProfileType.THIN:
        radii: Tuple[float, ...] = (bottom,)
    elif template.type is ProfileType.CONSTANT:
        radii = (bottom, top) if top > bottom else template.radii
    else:
        if not top > bottom:
            return Profile(template.type, template.radii, tuple(tuple(row) for row in data))
        radii = tuple(bottom + f * (top - bottom) for f in template.fractions())
    return Profile(template.type, radii, tuple(tuple(float(x) for x in row) for row in data))


def interpolate(a: Profile, b: Profile) -> Profile:
    """Profile of a vertex inserted halfway between vertices carrying *a* and *b*.

    - equal structure: elementwise mean of radii and data;
    - different structure: the finer parent's node layout on the mean span,
      data averaged from both parents sampled at those positions;
    - one data-bearing parent: its data on the mean span;
    - no data-bearing parent: EMPTY with the mean span.
    """
    span = mean_span(a, b)
    if not a.has_data and not b.has_data:
        return Profile.empty(span)
    if not a.has_data or not b.has_data:
        donor = a if a.has_data else b
        return _place(donor, span, donor.data)

    if _same_structure(a, b):
        radii = tuple((x + y) / 2.0 for x, y in zip(a.radii, b.radii))
        data = tuple(
            tuple((x + y) / 2.0 for x, y in zip(ra, rb)) for ra, rb in zip(a.data, b.data)
        )
        return Profile(a.type, radii, data)

    finer = a if a.n_nodes >= b.n_nodes else b
    data = [
        (a.sample(f) + b.sample(f)) / 2.0 for f in finer.fractions()
    ]
    return _place(finer, span, data)


def split_intervals(profile: Profile, intervals: Iterable[int]) -> Profile:
    """Insert a node at the middle of each listed radial interval.

    Interval ``i`` runs from node ``i`` to node ``i + 1``.  New data is the
    mean of the two bracketing nodes.  Only n-point profiles have intervals;
    any other kind is returned unchanged.
    """
    if profile.type is not ProfileType.NPOINT:
        return profile
    wanted = {i for i in intervals if 0 <= i < len(profile.radii) - 1}
    if not wanted:
        return profile

    radii = []
    data = []
    for i, (r, row) in enumerate(zip(profile.radii, profile.data)):
        radii.append(r)
        data.append(row)
        if i in wanted:
            upper_r, upper_row = profile.radii[i + 1], profile.data[i + 1]
            radii.append((r + upper_r) / 2.0)
            data.append(tuple((x + y) / 2.0 for x, y in zip(row, upper_row)))
    return Profile(ProfileType.NPOINT, tuple(radii), tuple(data))


def intervals_around(profile: Profile, node: int) -> Tuple[int, ...]:
    """The radial intervals adjacent to *node*, clamped to the profile."""
    if profile.type is not ProfileType.NPOINT:
        return ()
    last = len(profile.radii) - 1
    node = max(0, min(node, last))
    return tuple(i for i in (node - 1, node) if 0 <= i < last)
