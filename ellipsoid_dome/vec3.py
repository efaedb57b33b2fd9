"""Vector helpers on plain ``(x, y, z)`` tuples.

Shared by the geometry primitives, the ellipsoid model and the mesh graph.
"""

from __future__ import annotations

import math
from typing import Tuple

__all__ = [
    "Vector3",
    "ZERO",
    "Z_AXIS",
    "norm",
    "normalize",
    "dot",
    "cross",
    "sub",
    "add",
    "scale",
    "neg",
    "angle_between",
    "rotate_z",
    "distance",
]

Vector3 = Tuple[float, float, float]

ZERO: Vector3 = (0.0, 0.0, 0.0)
Z_AXIS: Vector3 = (0.0, 0.0, 1.0)


def norm(v: Vector3) -> float:
    return math.hypot(*v)


def normalize(v: Vector3) -> Vector3:
    """Unit vector along *v*; a zero vector has no direction and raises ``ValueError``."""
    length = norm(v)
    if length == 0:
        raise ValueError("Cannot normalize zero-length vector")
    x, y, z = v
    return (x / length, y / length, z / length)


def dot(a: Vector3, b: Vector3) -> float:
    ax, ay, az = a
    bx, by, bz = b
    return ax * bx + ay * by + az * bz


def cross(a: Vector3, b: Vector3) -> Vector3:
    ax, ay, az = a
    bx, by, bz = b
    return (ay * bz - az * by, az * bx - ax * bz, ax * by - ay * bx)


def sub(a: Vector3, b: Vector3) -> Vector3:
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def add(a: Vector3, b: Vector3) -> Vector3:
    return (a[0] + b[0], a[1] + b[1], a[2] + b[2])


def scale(v: Vector3, s: float) -> Vector3:
    x, y, z = v
    return (x * s, y * s, z * s)


def neg(v: Vector3) -> Vector3:
    return scale(v, -1.0)


def angle_between(a: Vector3, b: Vector3) -> float:
    """Angle in radians; 0 when either vector is (nearly) zero."""
    denom = norm(a) * norm(b)
    if denom < 1e-24:
        return 0.0
    return math.acos(max(-1.0, min(1.0, dot(a, b) / denom)))


def rotate_z(v: Vector3, angle_rad: float) -> Vector3:
    """Counter-clockwise rotation about the vertical axis."""
    c, s = math.cos(angle_rad), math.sin(angle_rad)
    x, y, z = v
    return (x * c - y * s, x * s + y * c, z)


def distance(a: Vector3, b: Vector3) -> float:
    return math.dist(a, b)
