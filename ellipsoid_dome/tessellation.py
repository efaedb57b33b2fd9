"""Incremental shell tessellation.

Starting from a hexagonal cap around the apex, three local rules grow the
mesh down the ellipsoid until none of them fires:

* ``spike`` puts a new triangle outside every boundary edge,
* ``fill_in`` closes the wedge at a valence-5 boundary vertex,
* ``anti_spike`` closes the single gap left at a valence-6 boundary vertex.

The grown shell is then truncated at the base plane by :mod:`.cutter`.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from . import vec3 as v3
from .cutter import CutReport, cut_floor
from .mesh import Mesh

__all__ = [
    "DEFAULT_MAX_PASSES",
    "DEFAULT_MAX_VERTICES",
    "TessellationLimitError",
    "TessellationCancelled",
    "TessellationReport",
    "seed_cap",
    "spike",
    "fill_in",
    "anti_spike",
    "make_mesh",
]

log = logging.getLogger(__name__)

DEFAULT_MAX_PASSES = 500
# Vertex slots (alive or not) a single tessellation may allocate.
DEFAULT_MAX_VERTICES = 200_000

# Valence at which a boundary vertex gets its wedge filled / its gap closed.
FILL_IN_VALENCE = 5
ANTI_SPIKE_VALENCE = 6


class TessellationLimitError(RuntimeError):
    """The rules were still firing when the pass or vertex cap was reached."""


class TessellationCancelled(RuntimeError):
    """The caller's cancel callback asked the driver to stop."""


@dataclass(slots=True)
class TessellationReport:
    passes: int = 0
    firings: Dict[str, int] = field(
        default_factory=lambda: {"anti_spike": 0, "fill_in": 0, "spike": 0}
    )
    cut: Optional[CutReport] = None

    def summary(self) -> str:
        rules = ", ".join(f"{name}={count}" for name, count in self.firings.items())
        return f"{self.passes} passes ({rules})"


# ---------------------------------------------------------------------------
# Seed
# ---------------------------------------------------------------------------


def seed_cap(mesh: Mesh, length: float, tolerance: float) -> None:
    """Six triangles around the apex, ring edges first, then the spokes."""
    if not mesh.is_empty():
        raise ValueError("seed_cap needs an empty mesh")
    zenith = mesh.ellipsoid.surface(v3.Z_AXIS)
    pole = mesh.add_vertex(zenith)
    ring: List[int] = []
    for i in range(6):
        angle = i * math.pi / 3
        hint = (math.cos(angle), math.sin(angle), 0.0)
        ring.append(mesh.add_vertex(mesh.ellipsoid.point_distant(zenith, hint, length, tolerance)))

    ring_edges = [mesh.add_edge(ring[i], ring[(i + 1) % 6]) for i in range(6)]
    spokes = [mesh.add_edge(pole, ring[i]) for i in range(6)]
    for i in range(6):
        mesh.add_panel(spokes[i], ring_edges[i], spokes[(i + 1) % 6])
    log.debug("Seeded cap: %s", mesh.summary())


# ---------------------------------------------------------------------------
# Growth rules
# ---------------------------------------------------------------------------


def spike(mesh: Mesh, length: float, tolerance: float) -> int:
    """Add a triangle outside each boundary edge that still reaches above the base.

    Edges lying on the base rim are final and never spiked.
    """
    added = 0
    for ei in mesh.boundary_edges():
        edge = mesh.edges[ei]
        if not edge.alive or len(edge.panels) != 1:
            continue
        v0, v1 = edge.vertices
        if mesh.vertices[v0].on_rim and mesh.vertices[v1].on_rim:
            continue
        panel = mesh.panels[edge.panels[0]]
        opposite = next(e for e in panel.edges if not mesh.edges[e].has_vertex(v0))
        # Heading of the panel's far corner towards v1, mirrored across the edge.
        direction = v3.neg(mesh.edge_from(opposite, v1))
        start = mesh.position(v0)
        point = mesh.ellipsoid.point_distant(start, direction, length, tolerance)
        if not (
            point[2] > mesh.base
            or start[2] > mesh.base
            or mesh.position(v1)[2] > mesh.base
        ):
            continue
        new = mesh.add_vertex(point)
        mesh.add_panel(ei, mesh.add_edge(v0, new), mesh.add_edge(new, v1))
        added += 1
    return added


def fill_in(mesh: Mesh, length: float, tolerance: float) -> int:
    """Fill the open wedge at valence-5 vertices with one or two triangles."""
    filled = 0
    for vi in [v.index for v in mesh.alive_vertices()]:
        vertex = mesh.vertices[vi]
        if vertex.position[2] <= mesh.base or mesh.valence(vi) != FILL_IN_VALENCE:
            continue
        boundary = mesh.boundary_edges_at(vi)
        if len(boundary) != 2:
            continue
        e1, e2 = boundary
        d1 = mesh.edge_from(e1, vi)
        d2 = mesh.edge_from(e2, vi)
        o1 = mesh.other_end(e1, vi)
        o2 = mesh.other_end(e2, vi)

        if v3.angle_between(d1, d2) < math.pi / 2:
            if _close_gap(mesh, e1, e2, o1, o2):
                filled += 1
            continue

        heading = v3.add(d1, d2)
        if v3.norm(heading) < 1e-12 * mesh.scale:
            # Straight boundary: head away from the interior edges instead.
            heading = v3.ZERO
            for ei in vertex.edges:
                if ei not in boundary:
                    heading = v3.sub(heading, mesh.edge_from(ei, vi))
        point = mesh.ellipsoid.point_distant(vertex.position, heading, length, tolerance)
        new = mesh.add_vertex(point)
        ne1 = mesh.add_edge(o1, new)
        ne2 = mesh.add_edge(new, vi)
        ne3 = mesh.add_edge(o2, new)
        mesh.add_panel(e1, ne1, ne2)
        mesh.add_panel(ne2, ne3, e2)
        filled += 1
    return filled


def anti_spike(mesh: Mesh) -> int:
    """Close single-triangle gaps at valence-6 boundary vertices.

    The scan restarts after every heal because each one changes which edges
    are on the boundary.
    """
    healed = 0
    while True:
        if not _anti_spike_once(mesh):
            return healed
        healed += 1


def _anti_spike_once(mesh: Mesh) -> bool:
    for ei in mesh.boundary_edges():
        for vi in mesh.edges[ei].vertices:
            if mesh.valence(vi) != ANTI_SPIKE_VALENCE:
                continue
            if mesh.position(vi)[2] <= mesh.base:
                continue
            others = [e for e in mesh.boundary_edges_at(vi) if e != ei]
            if not others:
                continue
            e2 = others[0]
            if _close_gap(mesh, ei, e2, mesh.other_end(ei, vi), mesh.other_end(e2, vi)):
                return True
    return False


def _close_gap(mesh: Mesh, e1: int, e2: int, far1: int, far2: int) -> bool:
    """Triangle over boundary edges *e1*, *e2* bridged between their far ends."""
    if far1 == far2:
        return False
    bridge = mesh.find_edge(far1, far2)
    if bridge is None:
        bridge = mesh.add_edge(far1, far2)
    elif len(mesh.edges[bridge].panels) >= 2:
        log.debug("Edge %d already joins %d-%d on both sides; gap left open", bridge, far1, far2)
        return False
    mesh.add_panel(e1, bridge, e2)
    return True


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------


def make_mesh(
    mesh: Mesh,
    length: float,
    tolerance: float,
    *,
    max_passes: int = DEFAULT_MAX_PASSES,
    max_vertices: int = DEFAULT_MAX_VERTICES,
    cancel: Callable[[], bool] | None = None,
) -> TessellationReport:
    """Seed (if empty), grow to a fixpoint, then cut at the base plane.

    ``cancel`` is polled before every rule application. Growth past
    *max_vertices* vertex slots or *max_passes* passes raises
    :class:`TessellationLimitError`.
    """
    if length <= 0:
        raise ValueError("Panel edge length must be positive")
    if tolerance <= 0:
        raise ValueError("Tolerance must be positive")

    report = TessellationReport()
    if mesh.is_empty():
        seed_cap(mesh, length, tolerance)

    rules: List[tuple[str, Callable[[], int]]] = [
        ("anti_spike", lambda: anti_spike(mesh)),
        ("fill_in", lambda: fill_in(mesh, length, tolerance)),
        ("spike", lambda: spike(mesh, length, tolerance)),
    ]
    while True:
        if report.passes >= max_passes:
            raise TessellationLimitError(
                f"Tessellation still changing after {max_passes} passes ({mesh.summary()})"
            )
        report.passes += 1
        fired = 0
        for name, rule in rules:
            if cancel is not None and cancel():
                raise TessellationCancelled(
                    f"Tessellation cancelled in pass {report.passes} before {name}"
                )
            count = rule()
            report.firings[name] += count
            fired += count
            if len(mesh.vertices) > max_vertices:
                raise TessellationLimitError(
                    f"Tessellation exceeded {max_vertices} vertices in pass "
                    f"{report.passes} ({mesh.summary()})"
                )
        log.debug("Pass %d: %s -> %s", report.passes, report.summary(), mesh.summary())
        if fired == 0:
            break

    report.cut = cut_floor(mesh)
    log.info("Tessellation done in %s; %s", report.summary(), mesh.summary())
    return report
