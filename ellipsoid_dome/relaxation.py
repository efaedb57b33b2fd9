"""Spring relaxation of vertex positions.

Edges act as springs with a strongly non-linear response: a tension of
``k * (length - desired) ** 5`` barely disturbs edges near the target length
but pulls hard on the outliers. Vertices move under the summed edge forces
with a damped velocity and are re-projected through their constraints, so
rim vertices slide along the rim and everything else stays on the surface.
"""

from __future__ import annotations

import logging
from typing import List

from . import vec3 as v3
from .mesh import Mesh

__all__ = ["calc_tensions", "move_vertices", "relax", "short_edges", "max_deviation"]

log = logging.getLogger(__name__)


def calc_tensions(mesh: Mesh, desired: float, k: float = 1.0) -> None:
    """Positive tension means the edge is longer than *desired*."""
    for edge in mesh.alive_edges():
        a, b = edge.vertices
        edge.along = v3.sub(mesh.position(b), mesh.position(a))
        edge.length = v3.norm(edge.along)
        edge.tension = k * (edge.length - desired) ** 5


def move_vertices(mesh: Mesh, move_factor: float, damping: float) -> None:
    """One step of every alive vertex under the tensions from :func:`calc_tensions`."""
    for vertex in mesh.alive_vertices():
        force = v3.ZERO
        for ei in vertex.edges:
            edge = mesh.edges[ei]
            if edge.length == 0:
                continue
            pull = v3.scale(edge.along, edge.tension / edge.length)
            if vertex.index == edge.vertices[0]:
                force = v3.add(force, pull)
            else:
                force = v3.sub(force, pull)
        vertex.velocity = v3.scale(v3.add(vertex.velocity, v3.scale(force, move_factor)), damping)
        mesh.move_vertex(vertex.index, v3.add(vertex.position, vertex.velocity), refresh=False)
    mesh.update_derived()


def max_deviation(mesh: Mesh, desired: float) -> float:
    return max((abs(e.length - desired) for e in mesh.alive_edges()), default=0.0)


def relax(
    mesh: Mesh,
    desired: float,
    *,
    iterations: int,
    k: float = 1.0,
    move_factor: float = 0.1,
    damping: float = 0.5,
) -> float:
    """Run *iterations* tension/move steps; returns the worst edge-length deviation."""
    before = max_deviation(mesh, desired)
    for _ in range(iterations):
        calc_tensions(mesh, desired, k)
        move_vertices(mesh, move_factor, damping)
    after = max_deviation(mesh, desired)
    log.info(
        "Relaxed %d iterations: max edge deviation %.4f -> %.4f m", iterations, before, after
    )
    return after


def short_edges(mesh: Mesh, limit: float) -> List[int]:
    """Alive edges shorter than *limit*, shortest first."""
    found = [e for e in mesh.alive_edges() if e.length < limit]
    found.sort(key=lambda e: e.length)
    return [e.index for e in found]
