"""Cutting the shell with planes and patches.

``cut_floor`` truncates the grown shell at the base plane and re-triangulates
every panel the plane crosses; the other two helpers are read-only queries
for collaborators such as a door-cutting tool.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from . import vec3 as v3
from .geometry import (
    DEBUG_CYAN,
    DEBUG_PURPLE,
    DEBUG_RED,
    DebugCollector,
    Patch,
    Plane,
    Segment,
)
from .mesh import GeometryError, GeometryFault, Mesh, RIM_CONSTRAINTS
from .vec3 import Vector3

__all__ = [
    "NUDGE_FACTOR",
    "MAX_NUDGES",
    "CutReport",
    "CutLine",
    "cut_floor",
    "patch_cut_lines",
    "intersect_panels",
]

log = logging.getLogger(__name__)

# Vertices closer than NUDGE_FACTOR * mesh.scale to the cutting plane push the
# plane down by that much, at most MAX_NUDGES times.
NUDGE_FACTOR = 1e-9
MAX_NUDGES = 16


@dataclass(frozen=True, slots=True)
class CutReport:
    plane_z: float
    panels_cut: int = 0
    panels_removed: int = 0
    triangles_added: int = 0
    vertices_added: int = 0
    edges_dropped: int = 0
    vertices_dropped: int = 0


@dataclass(frozen=True, slots=True)
class CutLine:
    panel: int
    start: Vector3
    end: Vector3


def _edge_segment(mesh: Mesh, edge: int) -> Segment:
    a, b = mesh.edges[edge].vertices
    return Segment.from_ends(mesh.position(a), mesh.position(b))


def _cutting_height(mesh: Mesh) -> float:
    eps = NUDGE_FACTOR * mesh.scale
    plane_z = mesh.base
    for _ in range(MAX_NUDGES):
        if all(abs(v.position[2] - plane_z) > eps for v in mesh.alive_vertices()):
            return plane_z
        plane_z -= eps
    raise GeometryError(
        [
            GeometryFault(
                "mesh",
                -1,
                "cut plane clear of vertices",
                f"still touching after {MAX_NUDGES} nudges below Z={mesh.base:g}",
            )
        ]
    )


def cut_floor(mesh: Mesh, debug: DebugCollector | None = None) -> CutReport:
    """Remove everything below the base plane, re-triangulating crossed panels.

    Each crossed edge is split once: its cut vertex (pinned to the base rim)
    and its upper half are cached so both panels on the edge share them.
    """
    plane_z = _cutting_height(mesh)
    if plane_z != mesh.base:
        log.info("Cut plane nudged from Z=%.9f to Z=%.9f", mesh.base, plane_z)
    plane = Plane.horizontal(plane_z)

    split_cache: Dict[int, Tuple[int, int]] = {}  # crossed edge -> (cut vertex, upper edge)
    cut = removed = added_panels = 0
    first_new_vertex = len(mesh.vertices)

    def above(vertex: int) -> bool:
        return mesh.position(vertex)[2] > plane_z

    def split(edge: int, hit: Vector3) -> Tuple[int, int]:
        cached = split_cache.get(edge)
        if cached is not None:
            return cached
        a, b = mesh.edges[edge].vertices
        upper = a if above(a) else b
        new_vertex = mesh.add_vertex(hit, RIM_CONSTRAINTS)
        result = (new_vertex, mesh.add_edge(upper, new_vertex))
        split_cache[edge] = result
        if debug is not None:
            debug.line(v3.ZERO, mesh.position(new_vertex), DEBUG_PURPLE)
        return result

    def edge_between(a: int, b: int) -> int:
        existing = mesh.find_edge(a, b)
        return existing if existing is not None else mesh.add_edge(a, b)

    for pi in [p.index for p in mesh.alive_panels()]:
        panel = mesh.panels[pi]
        hits: List[Tuple[int, Vector3]] = []
        for ei in panel.edges:
            where = plane.intersect_segment(_edge_segment(mesh, ei))
            if where is not None:
                hits.append((ei, where))

        if not hits:
            if not any(above(c) for c in panel.corners):
                mesh.remove_panel(pi)
                removed += 1
            continue
        if len(hits) != 2:
            raise GeometryError(
                [GeometryFault("panel", pi, "zero or two cut ends", f"{len(hits)} cut ends")]
            )

        corners = panel.corners
        aboves = [c for c in corners if above(c)]
        (ea, hit_a), (eb, hit_b) = hits
        mesh.remove_panel(pi)
        ca, upper_a = split(ea, hit_a)
        cb, upper_b = split(eb, hit_b)
        cut_edge = edge_between(ca, cb)

        if len(aboves) == 1:
            mesh.add_panel(upper_a, cut_edge, upper_b)
            added_panels += 1
        elif len(aboves) == 2:
            # Quad (top, other, cut on other's edge, cut on top's edge): split
            # along the diagonal from top.
            top = mesh.other_end(upper_a, ca)
            other = mesh.other_end(upper_b, cb)
            kept = mesh.find_edge(top, other)
            if kept is None:
                raise GeometryError(
                    [GeometryFault("panel", pi, "uncut edge kept", f"{top}-{other} missing")]
                )
            diagonal = edge_between(top, cb)
            mesh.add_panel(kept, upper_b, diagonal)
            mesh.add_panel(diagonal, cut_edge, upper_a)
            added_panels += 2
        else:
            raise GeometryError(
                [
                    GeometryFault(
                        "panel", pi, "corners on both sides of a cut", f"{len(aboves)} above"
                    )
                ]
            )
        cut += 1

    edges_dropped = 0
    for edge in list(mesh.alive_edges()):
        if not edge.panels:
            mesh.remove_edge(edge.index)
            edges_dropped += 1
    vertices_dropped = 0
    for vertex in list(mesh.alive_vertices()):
        if not vertex.edges:
            mesh.remove_vertex(vertex.index)
            vertices_dropped += 1

    report = CutReport(
        plane_z=plane_z,
        panels_cut=cut,
        panels_removed=removed,
        triangles_added=added_panels,
        vertices_added=len(mesh.vertices) - first_new_vertex,
        edges_dropped=edges_dropped,
        vertices_dropped=vertices_dropped,
    )
    log.info(
        "Floor cut at Z=%.4f: %d panels cut, %d removed, %d triangles and %d vertices added",
        plane_z,
        report.panels_cut,
        report.panels_removed,
        report.triangles_added,
        report.vertices_added,
    )
    return report


def patch_cut_lines(
    mesh: Mesh, patch: Patch, debug: DebugCollector | None = None
) -> List[CutLine]:
    """Where *patch* slices across alive panels (panels cut on exactly two edges)."""
    lines: List[CutLine] = []
    for panel in mesh.alive_panels():
        hits: List[Vector3] = []
        for ei in panel.edges:
            where = patch.para_intersect_segment(_edge_segment(mesh, ei))
            if where is not None:
                hits.append(where)
        if len(hits) == 2:
            lines.append(CutLine(panel.index, hits[0], hits[1]))
            if debug is not None:
                debug.line(hits[0], hits[1], DEBUG_RED)
    return lines


def intersect_panels(
    mesh: Mesh, segment: Segment, debug: DebugCollector | None = None
) -> List[Tuple[int, Vector3]]:
    """Alive panels *segment* passes through, with the hit point in each."""
    if debug is not None:
        debug.segment(segment)
    found: List[Tuple[int, Vector3]] = []
    for panel in mesh.alive_panels():
        first = panel.edges[0]
        corner = mesh.edges[first].vertices[0]
        second: Optional[int] = next(
            (e for e in panel.edges[1:] if mesh.edges[e].has_vertex(corner)), None
        )
        if second is None:
            continue
        tri = Patch.create(
            mesh.position(corner),
            panel.normal,
            mesh.edge_from(first, corner),
            mesh.edge_from(second, corner),
        )
        where = tri.tri_intersect_segment(segment)
        if where is None:
            continue
        found.append((panel.index, where))
        if debug is not None:
            origin = mesh.position(corner)
            debug.line(origin, where, DEBUG_PURPLE)
            debug.line(origin, v3.add(origin, panel.normal), DEBUG_RED)
            debug.patch(tri)
            for ei in (first, second):
                a, b = mesh.edges[ei].vertices
                debug.line(mesh.position(a), mesh.position(b), DEBUG_CYAN)
    return found
