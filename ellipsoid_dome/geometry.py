"""Lines, segments, planes and patches, with their intersection tests.

All primitives are immutable. Intersection queries return the hit point or
``None``; a miss (parallel line, hit outside a segment or patch) is an
ordinary outcome, not an error.

Boundary policy matters to the plane cutter and is deliberately asymmetric:

* segments are *open* at both ends, so a plane passing exactly through an
  endpoint does not count as a hit;
* triangle tests are *closed*, so a point exactly on a triangle edge is
  inside.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple

from . import vec3 as v3
from .vec3 import Vector3

__all__ = [
    "PARALLEL_EPS",
    "Line",
    "Segment",
    "Plane",
    "Patch",
    "DebugLine",
    "DebugCollector",
    "same_side",
    "in_triangle",
]

# Below this |cos| between a line and a plane normal the two are parallel.
PARALLEL_EPS = 1e-12

Color = Tuple[float, float, float]


@dataclass(frozen=True, slots=True)
class Line:
    """Infinite line: every point ``point_on + d * along`` (``along`` is unit)."""

    point_on: Vector3
    along: Vector3

    def __post_init__(self) -> None:
        object.__setattr__(self, "along", v3.normalize(self.along))

    @classmethod
    def from_points(cls, p0: Vector3, p1: Vector3) -> "Line":
        return cls(p0, v3.sub(p1, p0))

    def at(self, d: float) -> Vector3:
        return v3.add(self.point_on, v3.scale(self.along, d))

    def parameter_of(self, point: Vector3) -> float:
        """Signed distance along the line from ``point_on`` to *point*'s foot."""
        return v3.dot(v3.sub(point, self.point_on), self.along)


@dataclass(frozen=True, slots=True)
class Segment:
    """Finite part of a line, ``min_d < d < max_d`` (exclusive at both ends)."""

    line: Line
    min_d: float
    max_d: float

    @classmethod
    def from_ends(cls, p0: Vector3, p1: Vector3) -> "Segment":
        return cls(Line.from_points(p0, p1), 0.0, v3.distance(p0, p1))

    @property
    def start(self) -> Vector3:
        return self.line.at(self.min_d)

    @property
    def end(self) -> Vector3:
        return self.line.at(self.max_d)

    @property
    def length(self) -> float:
        return self.max_d - self.min_d


@dataclass(frozen=True, slots=True)
class Plane:
    """Infinite plane: every point P with ``(P - point_on) . normal == 0``."""

    point_on: Vector3
    normal: Vector3

    def __post_init__(self) -> None:
        object.__setattr__(self, "normal", v3.normalize(self.normal))

    @classmethod
    def from_points(cls, p0: Vector3, p1: Vector3, p2: Vector3) -> "Plane":
        """Plane through three points; the normal follows ``(p1-p0) x (p2-p0)``."""
        return cls(p0, v3.cross(v3.sub(p1, p0), v3.sub(p2, p0)))

    @classmethod
    def horizontal(cls, z: float) -> "Plane":
        return cls((0.0, 0.0, z), v3.Z_AXIS)

    def intersect_line(self, line: Line) -> Optional[Vector3]:
        ldotn = v3.dot(line.along, self.normal)
        if abs(ldotn) < PARALLEL_EPS:
            return None
        d = v3.dot(v3.sub(self.point_on, line.point_on), self.normal) / ldotn
        return line.at(d)

    def intersect_segment(self, segment: Segment) -> Optional[Vector3]:
        where = self.intersect_line(segment.line)
        if where is None:
            return None
        how_far = segment.line.parameter_of(where)
        if how_far <= segment.min_d or how_far >= segment.max_d:
            return None
        return where

    def signed_distance(self, point: Vector3) -> float:
        return v3.dot(v3.sub(point, self.point_on), self.normal)

    def normal_side(self, point: Vector3) -> bool:
        """True if *point* is on the side the normal points to (or in the plane)."""
        return self.signed_distance(point) >= 0

    def translated(self, by: Vector3) -> "Plane":
        return replace(self, point_on=v3.add(self.point_on, by))

    def rotated_z(self, angle_rad: float) -> "Plane":
        """Rotate the normal about Z through the contained point."""
        return replace(self, normal=v3.rotate_z(self.normal, angle_rad))


def same_side(p1: Vector3, p2: Vector3, a: Vector3, b: Vector3) -> bool:
    """True if *p1* and *p2* lie on the same side of line *ab* (inclusive)."""
    b_sub_a = v3.sub(b, a)
    cp1 = v3.cross(b_sub_a, v3.sub(p1, a))
    cp2 = v3.cross(b_sub_a, v3.sub(p2, a))
    return v3.dot(cp1, cp2) >= 0


def in_triangle(p: Vector3, a: Vector3, b: Vector3, c: Vector3) -> bool:
    return same_side(p, a, b, c) and same_side(p, b, a, c) and same_side(p, c, a, b)


@dataclass(frozen=True, slots=True)
class Patch:
    """Parallelogram on a plane spanned by two sides from one corner."""

    plane: Plane
    corner: Vector3
    side0: Vector3
    side1: Vector3

    @classmethod
    def create(
        cls, corner: Vector3, normal: Vector3, side0: Vector3, side1: Vector3
    ) -> "Patch":
        return cls(Plane(corner, normal), corner, side0, side1)

    @property
    def corners(self) -> Tuple[Vector3, Vector3, Vector3, Vector3]:
        b = v3.add(self.corner, self.side0)
        c = v3.add(self.corner, self.side1)
        return (self.corner, b, v3.add(b, self.side1), c)

    def tri_intersect_segment(self, segment: Segment) -> Optional[Vector3]:
        """Hit point inside the triangle ``(corner, corner+side0, corner+side1)``."""
        where = self.plane.intersect_segment(segment)
        if where is None:
            return None
        b = v3.add(self.corner, self.side0)
        c = v3.add(self.corner, self.side1)
        if not in_triangle(where, self.corner, b, c):
            return None
        return where

    def para_intersect_segment(self, segment: Segment) -> Optional[Vector3]:
        """Hit point inside the full parallelogram."""
        where = self.plane.intersect_segment(segment)
        if where is None:
            return None
        b = v3.add(self.corner, self.side0)
        c = v3.add(self.corner, self.side1)
        if in_triangle(where, self.corner, b, c):
            return where
        if in_triangle(where, b, v3.add(b, self.side1), c):
            return where
        return None

    def translated(self, by: Vector3) -> "Patch":
        return replace(
            self, plane=self.plane.translated(by), corner=v3.add(self.corner, by)
        )

    def rotated_z(self, angle_rad: float) -> "Patch":
        """Rotate about the Z axis through the origin."""
        return Patch(
            plane=Plane(
                v3.rotate_z(self.plane.point_on, angle_rad),
                v3.rotate_z(self.plane.normal, angle_rad),
            ),
            corner=v3.rotate_z(self.corner, angle_rad),
            side0=v3.rotate_z(self.side0, angle_rad),
            side1=v3.rotate_z(self.side1, angle_rad),
        )


# ---------------------------------------------------------------------------
# Debug geometry
# ---------------------------------------------------------------------------

DEBUG_PURPLE: Color = (0.9, 0.0, 0.9)
DEBUG_RED: Color = (1.0, 0.0, 0.0)
DEBUG_CYAN: Color = (0.0, 1.0, 1.0)


@dataclass(frozen=True, slots=True)
class DebugLine:
    start: Vector3
    end: Vector3
    colour: Color = DEBUG_RED


@dataclass
class DebugCollector:
    """Lines a query wants shown, scoped to one generation or interaction pass.

    Pass an instance to the queries that accept one and hand it to whatever
    displays the shell afterwards.
    """

    lines: List[DebugLine] = field(default_factory=list)
    segments: List[Segment] = field(default_factory=list)
    patches: List[Patch] = field(default_factory=list)

    def line(self, start: Vector3, end: Vector3, colour: Color = DEBUG_RED) -> None:
        self.lines.append(DebugLine(start, end, colour))

    def segment(self, segment: Segment) -> None:
        self.segments.append(segment)

    def patch(self, patch: Patch) -> None:
        self.patches.append(patch)

    def clear(self) -> None:
        self.lines.clear()
        self.segments.clear()
        self.patches.clear()

    def __len__(self) -> int:
        return len(self.lines) + len(self.segments) + len(self.patches)
