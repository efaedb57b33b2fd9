"""Axis-aligned ellipsoid surface model.

The ellipsoid is centred at the origin with semi axes ``length`` (X),
``width`` (Y) and ``height`` (Z). Besides the closed-form ray projection it
provides the iterative chord-distance solver the tessellator uses to place new
vertices roughly one panel edge away from an existing one.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Tuple

from . import vec3 as v3
from .vec3 import Vector3

__all__ = ["Ellipsoid", "DEFAULT_MAX_ITERATIONS"]

log = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 10


@dataclass(frozen=True, slots=True)
class Ellipsoid:
    """Surface ``(x/L)^2 + (y/W)^2 + (z/H)^2 = 1``. Sizes are radial, not diametral."""

    length: float  # L, along X
    width: float  # W, along Y
    height: float  # H, along Z

    def __post_init__(self) -> None:
        if min(self.length, self.width, self.height) <= 0:
            raise ValueError("Ellipsoid semi axes must be positive")

    @property
    def semi_axes(self) -> Tuple[float, float, float]:
        return (self.length, self.width, self.height)

    def residual(self, p: Vector3) -> float:
        """Zero on the surface, negative inside, positive outside."""
        return (
            (p[0] / self.length) ** 2
            + (p[1] / self.width) ** 2
            + (p[2] / self.height) ** 2
            - 1.0
        )

    def surface(self, direction: Vector3) -> Vector3:
        """Point where the ray from the origin along *direction* meets the surface."""
        vx, vy, vz = v3.normalize(direction)
        k = math.sqrt(
            1.0
            / (
                vx * vx / (self.length * self.length)
                + vy * vy / (self.width * self.width)
                + vz * vz / (self.height * self.height)
            )
        )
        return (vx * k, vy * k, vz * k)

    def x_given_yz(self, y: float, z: float) -> float:
        """Positive X of the surface point with the given Y and Z."""
        return math.sqrt(
            self.length ** 2 * (1 - (y * y / self.width ** 2 + z * z / self.height ** 2))
        )

    def y_given_xz(self, x: float, z: float) -> float:
        return math.sqrt(
            self.width ** 2 * (1 - (x * x / self.length ** 2 + z * z / self.height ** 2))
        )

    def z_given_xy(self, x: float, y: float) -> float:
        return math.sqrt(
            self.height ** 2 * (1 - (x * x / self.length ** 2 + y * y / self.width ** 2))
        )

    def floor_semi_axes(self, z: float) -> Tuple[float, float]:
        """Semi axes (X, Y) of the ellipse cut from the surface by the plane ``Z = z``."""
        if abs(z) >= self.height:
            raise ValueError(f"Plane Z={z:g} does not cut the ellipsoid (H={self.height:g})")
        return (self.x_given_yz(0.0, z), self.y_given_xz(0.0, z))

    def rim_point(self, p: Vector3, z: float) -> Vector3:
        """Horizontal projection of *p* onto the ellipse where ``Z = z`` meets the surface.

        The result lies on the surface *and* in the plane, in the same
        azimuthal direction as *p*.
        """
        a, b = self.floor_semi_axes(z)
        x, y = p[0], p[1]
        q = (x / a) ** 2 + (y / b) ** 2
        if q == 0:
            raise ValueError("Cannot project a point on the Z axis onto the rim")
        k = 1.0 / math.sqrt(q)
        return (x * k, y * k, z)

    def point_distant(
        self,
        start: Vector3,
        hint: Vector3,
        length: float,
        tolerance: float,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
    ) -> Vector3:
        """Surface point about *length* (chord) from *start*, heading towards *hint*.

        Locally the ellipsoid is treated as a sphere of radius ``P = |start|``:
        a chord of length ``L`` drops ``K = L^2 / 2P`` towards the centre and
        moves ``M = sqrt(L^2 (1 - L^2 / 4P^2))`` sideways, in the plane of
        *start* and *hint*. That first guess is projected onto the surface and
        then repeatedly rescaled to the wanted chord length and re-projected
        until it is within *tolerance*, or *max_iterations* run out. The best
        estimate is returned either way; callers treat *tolerance* as best
        effort.
        """
        p_len = v3.norm(start)
        p_hat = v3.normalize(start)
        g_hat = v3.normalize(hint)

        ll = length * length
        k_drop = ll / (2.0 * p_len)
        m_side = math.sqrt(max(0.0, ll * (1.0 - ll / (4.0 * p_len * p_len))))

        w = v3.cross(g_hat, p_hat)
        if v3.norm(w) < 1e-12:
            raise ValueError("Direction hint is parallel to the start position")
        sideways = v3.normalize(v3.cross(p_hat, w))

        guess = v3.add(v3.sub(start, v3.scale(p_hat, k_drop)), v3.scale(sideways, m_side))
        estimate = self.surface(guess)
        delta = abs(v3.distance(estimate, start) - length)

        tries = 0
        while delta >= tolerance and tries < max_iterations:
            diff = v3.sub(estimate, start)
            actual = v3.norm(diff)
            estimate = self.surface(v3.add(start, v3.scale(diff, length / actual)))
            delta = abs(v3.distance(estimate, start) - length)
            tries += 1

        if delta >= tolerance:
            log.debug(
                "point_distant stopped after %d iterations, chord error %.3g > %.3g",
                tries,
                delta,
                tolerance,
            )
        return estimate
