"""Vertex / edge / panel graph of the shell.

The mesh is an append-only arena: elements reference each other by list
index, deleted elements are only flagged dead and their slots are never
reused. Adjacency lists of alive elements only ever hold alive indices.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from . import vec3 as v3
from .ellipsoid import Ellipsoid
from .geometry import Plane
from .vec3 import Vector3

__all__ = [
    "Constraint",
    "DEFAULT_CONSTRAINTS",
    "RIM_CONSTRAINTS",
    "Vertex",
    "Edge",
    "Panel",
    "GeometryFault",
    "GeometryError",
    "Mesh",
    "combine_constraints",
    "check_geometry",
    "assert_consistent",
]

log = logging.getLogger(__name__)

# Residual / distance allowed before a constraint counts as violated.
CONSTRAINT_TOL = 1e-9


class Constraint(enum.Enum):
    """Positional constraints, applied to a vertex in the order listed."""

    ON_BASE = "on_base"
    ON_ELLIPSOID = "on_ellipsoid"


DEFAULT_CONSTRAINTS: Tuple[Constraint, ...] = (Constraint.ON_ELLIPSOID,)
RIM_CONSTRAINTS: Tuple[Constraint, ...] = (Constraint.ON_BASE, Constraint.ON_ELLIPSOID)


def combine_constraints(*groups: Iterable[Constraint]) -> Tuple[Constraint, ...]:
    """Concatenate constraint groups, dropping repeats of the same tag."""
    combined: List[Constraint] = []
    for group in groups:
        for constraint in group:
            if constraint not in combined:
                combined.append(constraint)
    return tuple(combined)


@dataclass(slots=True)
class Vertex:
    index: int
    position: Vector3
    constraints: Tuple[Constraint, ...] = DEFAULT_CONSTRAINTS
    edges: List[int] = field(default_factory=list)
    panels: List[int] = field(default_factory=list)
    velocity: Vector3 = v3.ZERO
    alive: bool = True

    @property
    def on_rim(self) -> bool:
        return Constraint.ON_BASE in self.constraints


@dataclass(slots=True)
class Edge:
    index: int
    vertices: Tuple[int, int]
    panels: List[int] = field(default_factory=list)
    along: Vector3 = v3.ZERO  # position(vertices[1]) - position(vertices[0])
    length: float = 0.0
    tension: float = 0.0
    alive: bool = True

    def has_vertex(self, vertex: int) -> bool:
        return vertex == self.vertices[0] or vertex == self.vertices[1]


@dataclass(slots=True)
class Panel:
    index: int
    edges: Tuple[int, int, int]
    corners: Tuple[int, int, int]
    normal: Vector3 = v3.Z_AXIS
    area: float = 0.0
    centre: Vector3 = v3.ZERO
    alive: bool = True


# ---------------------------------------------------------------------------
# Consistency faults
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class GeometryFault:
    """One broken invariant: which element, which rule and what was found."""

    element: str  # "vertex" | "edge" | "panel"
    index: int
    invariant: str
    detail: str = ""

    def __str__(self) -> str:
        text = f"{self.element} {self.index}: {self.invariant}"
        return f"{text} ({self.detail})" if self.detail else text


class GeometryError(ValueError):
    """The mesh (or a requested change to it) breaks a structural invariant."""

    def __init__(self, faults: Sequence[GeometryFault]) -> None:
        self.faults: List[GeometryFault] = list(faults)
        if len(self.faults) == 1:
            message = f"Geometry error: {self.faults[0]}"
        else:
            shown = "; ".join(str(f) for f in self.faults[:5])
            message = f"Geometry error: {len(self.faults)} faults: {shown}"
        super().__init__(message)


def _fault(element: str, index: int, invariant: str, detail: str = "") -> GeometryError:
    return GeometryError([GeometryFault(element, index, invariant, detail)])


# ---------------------------------------------------------------------------
# Mesh arena
# ---------------------------------------------------------------------------


class Mesh:
    """Shell under construction: the arena plus the surface it lives on."""

    def __init__(self, ellipsoid: Ellipsoid, base: float) -> None:
        if not -ellipsoid.height < base < ellipsoid.height:
            raise ValueError(
                f"Base plane Z={base:g} must lie strictly inside (-{ellipsoid.height:g}, "
                f"{ellipsoid.height:g})"
            )
        self.ellipsoid = ellipsoid
        self.base = base
        self.vertices: List[Vertex] = []
        self.edges: List[Edge] = []
        self.panels: List[Panel] = []

    def __repr__(self) -> str:
        return f"Mesh({self.summary()})"

    @property
    def base_plane(self) -> Plane:
        return Plane.horizontal(self.base)

    @property
    def scale(self) -> float:
        """Largest semi axis, the length scale for geometric tolerances."""
        return max(self.ellipsoid.semi_axes)

    def summary(self) -> str:
        return (
            f"{sum(1 for _ in self.alive_vertices())} vertices / "
            f"{sum(1 for _ in self.alive_edges())} edges / "
            f"{sum(1 for _ in self.alive_panels())} panels"
        )

    def is_empty(self) -> bool:
        return not self.vertices

    # ------------------------------------------------------------------
    # Read-only iteration
    # ------------------------------------------------------------------

    def alive_vertices(self) -> Iterator[Vertex]:
        return (v for v in self.vertices if v.alive)

    def alive_edges(self) -> Iterator[Edge]:
        return (e for e in self.edges if e.alive)

    def alive_panels(self) -> Iterator[Panel]:
        return (p for p in self.panels if p.alive)

    def position(self, vertex: int) -> Vector3:
        return self.vertices[vertex].position

    def panel_positions(self, panel: int) -> Tuple[Vector3, Vector3, Vector3]:
        a, b, c = self.panels[panel].corners
        return (self.position(a), self.position(b), self.position(c))

    def boundary_edges(self) -> List[int]:
        return [e.index for e in self.alive_edges() if len(e.panels) == 1]

    # ------------------------------------------------------------------
    # Constraints
    # ------------------------------------------------------------------

    def constrain(self, position: Vector3, constraints: Sequence[Constraint]) -> Vector3:
        """Apply *constraints* to *position* in order and return the result."""
        pinned = False
        for constraint in constraints:
            if constraint is Constraint.ON_BASE:
                position = (position[0], position[1], self.base)
                pinned = True
            elif constraint is Constraint.ON_ELLIPSOID:
                if pinned:
                    position = self.ellipsoid.rim_point(position, self.base)
                else:
                    position = self.ellipsoid.surface(position)
        return position

    def satisfies(self, vertex: int) -> bool:
        v = self.vertices[vertex]
        for constraint in v.constraints:
            if constraint is Constraint.ON_BASE:
                if abs(v.position[2] - self.base) > CONSTRAINT_TOL * self.scale:
                    return False
            elif constraint is Constraint.ON_ELLIPSOID:
                if abs(self.ellipsoid.residual(v.position)) > CONSTRAINT_TOL:
                    return False
        return True

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def add_vertex(
        self,
        position: Vector3,
        constraints: Sequence[Constraint] = DEFAULT_CONSTRAINTS,
    ) -> int:
        constraints = combine_constraints(constraints)
        index = len(self.vertices)
        self.vertices.append(
            Vertex(
                index=index,
                position=self.constrain(position, constraints),
                constraints=constraints,
            )
        )
        return index

    def add_edge(self, a: int, b: int) -> int:
        """Connect two alive vertices; the edge runs from *a* to *b*."""
        index = len(self.edges)
        if a == b:
            raise _fault("edge", index, "two distinct vertices", f"both ends are vertex {a}")
        for vertex in (a, b):
            if not self.vertices[vertex].alive:
                raise _fault("edge", index, "alive vertices", f"vertex {vertex} is dead")
        existing = self.find_edge(a, b)
        if existing is not None:
            raise _fault("edge", index, "no duplicate edges", f"edge {existing} joins {a}-{b}")
        if v3.distance(self.position(a), self.position(b)) == 0:
            raise _fault("edge", index, "non-zero length", f"vertices {a} and {b} coincide")

        edge = Edge(index=index, vertices=(a, b))
        self.edges.append(edge)
        for vertex in (a, b):
            _append_unique(self.vertices[vertex].edges, index)
        self._update_edge(edge)
        return index

    def add_panel(self, e0: int, e1: int, e2: int) -> int:
        """Close a triangle over three alive edges that share three corners."""
        index = len(self.panels)
        edge_ids = (e0, e1, e2)
        if len(set(edge_ids)) != 3:
            raise _fault("panel", index, "three distinct edges", f"edges {edge_ids}")
        corners: List[int] = []
        for ei in edge_ids:
            edge = self.edges[ei]
            if not edge.alive:
                raise _fault("panel", index, "alive edges", f"edge {ei} is dead")
            if len(edge.panels) >= 2:
                raise _fault(
                    "panel", index, "edge on at most two panels", f"edge {ei} is already a seam"
                )
            for vertex in edge.vertices:
                _append_unique(corners, vertex)
        if len(corners) != 3:
            raise _fault(
                "panel", index, "three distinct corners", f"edges {edge_ids} span {corners}"
            )

        panel = Panel(index=index, edges=edge_ids, corners=(corners[0], corners[1], corners[2]))
        self._update_panel(panel)
        self.panels.append(panel)
        for ei in edge_ids:
            _append_unique(self.edges[ei].panels, index)
        for vertex in panel.corners:
            _append_unique(self.vertices[vertex].panels, index)
        return index

    def move_vertex(self, vertex: int, position: Vector3, refresh: bool = True) -> Vector3:
        """Move *vertex* to *position* subject to its constraints; returns where it landed."""
        v = self.vertices[vertex]
        v.position = self.constrain(position, v.constraints)
        if refresh:
            for ei in v.edges:
                self._update_edge(self.edges[ei])
            for pi in v.panels:
                self._update_panel(self.panels[pi])
        return v.position

    # ------------------------------------------------------------------
    # Soft deletion
    # ------------------------------------------------------------------

    def remove_panel(self, panel: int) -> None:
        p = self.panels[panel]
        if not p.alive:
            return
        p.alive = False
        for ei in p.edges:
            _discard(self.edges[ei].panels, panel)
        for vertex in p.corners:
            _discard(self.vertices[vertex].panels, panel)

    def remove_edge(self, edge: int) -> None:
        """Deactivate *edge* and every panel still built on it."""
        e = self.edges[edge]
        if not e.alive:
            return
        for pi in list(e.panels):
            self.remove_panel(pi)
        e.alive = False
        for vertex in e.vertices:
            _discard(self.vertices[vertex].edges, edge)

    def remove_vertex(self, vertex: int) -> None:
        v = self.vertices[vertex]
        if not v.alive:
            return
        for ei in list(v.edges):
            self.remove_edge(ei)
        v.alive = False

    # ------------------------------------------------------------------
    # Topology queries
    # ------------------------------------------------------------------

    def find_edge(self, a: int, b: int) -> Optional[int]:
        for ei in self.vertices[a].edges:
            if self.edges[ei].has_vertex(b):
                return ei
        return None

    def other_end(self, edge: int, vertex: int) -> int:
        v0, v1 = self.edges[edge].vertices
        if vertex == v0:
            return v1
        if vertex == v1:
            return v0
        raise _fault("edge", edge, "vertex on edge", f"vertex {vertex} is not an endpoint")

    def edge_from(self, edge: int, vertex: int) -> Vector3:
        """Along vector of *edge* pointing away from *vertex*."""
        e = self.edges[edge]
        if vertex == e.vertices[0]:
            return e.along
        if vertex == e.vertices[1]:
            return v3.neg(e.along)
        raise _fault("edge", edge, "vertex on edge", f"vertex {vertex} is not an endpoint")

    def valence(self, vertex: int) -> int:
        return len(self.vertices[vertex].edges)

    def boundary_edges_at(self, vertex: int) -> List[int]:
        return [ei for ei in self.vertices[vertex].edges if len(self.edges[ei].panels) == 1]

    def vertex_normal(self, vertex: int) -> Vector3:
        """Mean of the normals of the panels meeting at *vertex*."""
        v = self.vertices[vertex]
        total = v3.ZERO
        for pi in v.panels:
            total = v3.add(total, self.panels[pi].normal)
        if v3.norm(total) < 1e-12:
            return v3.normalize(v.position)
        return v3.normalize(total)

    # ------------------------------------------------------------------
    # Derived fields
    # ------------------------------------------------------------------

    def update_derived(self) -> None:
        """Refresh every alive edge, then every alive panel."""
        for edge in self.alive_edges():
            self._update_edge(edge)
        for panel in self.alive_panels():
            self._update_panel(panel)

    def _update_edge(self, edge: Edge) -> None:
        a, b = edge.vertices
        edge.along = v3.sub(self.position(b), self.position(a))
        edge.length = v3.norm(edge.along)

    def _update_panel(self, panel: Panel) -> None:
        first = self.edges[panel.edges[0]]
        second = self.edges[panel.edges[1]]
        crx = v3.cross(first.along, second.along)
        size = v3.norm(crx)
        if size == 0:
            raise _fault("panel", panel.index, "non-zero area", f"corners {panel.corners}")
        normal = v3.scale(crx, 1.0 / size)
        points = [self.position(c) for c in panel.corners]
        centre = v3.scale(v3.add(v3.add(points[0], points[1]), points[2]), 1.0 / 3.0)
        if v3.dot(normal, centre) < 0:
            normal = v3.neg(normal)
        panel.normal = normal
        panel.area = size / 2.0
        panel.centre = centre


def _append_unique(items: List[int], value: int) -> None:
    if value not in items:
        items.append(value)


def _discard(items: List[int], value: int) -> None:
    if value in items:
        items.remove(value)


# ---------------------------------------------------------------------------
# Whole-mesh checks
# ---------------------------------------------------------------------------


def check_geometry(mesh: Mesh) -> List[GeometryFault]:
    """Return every broken invariant among the alive elements (empty when consistent)."""
    faults: List[GeometryFault] = []

    for edge in mesh.alive_edges():
        a, b = edge.vertices
        if a == b:
            faults.append(GeometryFault("edge", edge.index, "two distinct vertices", f"{a}-{b}"))
        for vertex in (a, b):
            v = mesh.vertices[vertex]
            if not v.alive:
                faults.append(
                    GeometryFault("edge", edge.index, "alive vertices", f"vertex {vertex} is dead")
                )
            elif edge.index not in v.edges:
                faults.append(
                    GeometryFault(
                        "vertex", vertex, "adjacent to its edges", f"edge {edge.index} missing"
                    )
                )
        if not 1 <= len(edge.panels) <= 2:
            faults.append(
                GeometryFault(
                    "edge", edge.index, "on one or two panels", f"on {len(edge.panels)}"
                )
            )
        for pi in edge.panels:
            panel = mesh.panels[pi]
            if not panel.alive:
                faults.append(
                    GeometryFault("edge", edge.index, "alive panels", f"panel {pi} is dead")
                )
            elif edge.index not in panel.edges:
                faults.append(
                    GeometryFault("edge", edge.index, "panel lists its edges", f"panel {pi}")
                )

    for panel in mesh.alive_panels():
        if len(set(panel.edges)) != 3:
            faults.append(
                GeometryFault("panel", panel.index, "three distinct edges", f"{panel.edges}")
            )
        if len(set(panel.corners)) != 3:
            faults.append(
                GeometryFault("panel", panel.index, "three distinct corners", f"{panel.corners}")
            )
        spanned: List[int] = []
        for ei in panel.edges:
            edge = mesh.edges[ei]
            if not edge.alive:
                faults.append(
                    GeometryFault("panel", panel.index, "alive edges", f"edge {ei} is dead")
                )
            for vertex in edge.vertices:
                _append_unique(spanned, vertex)
        if sorted(spanned) != sorted(panel.corners):
            faults.append(
                GeometryFault(
                    "panel", panel.index, "edges span the corners", f"{spanned} vs {panel.corners}"
                )
            )
        for vertex in panel.corners:
            v = mesh.vertices[vertex]
            if not v.alive:
                faults.append(
                    GeometryFault("panel", panel.index, "alive corners", f"vertex {vertex} is dead")
                )
            elif panel.index not in v.panels:
                faults.append(
                    GeometryFault(
                        "vertex", vertex, "adjacent to its panels", f"panel {panel.index} missing"
                    )
                )
        if v3.dot(panel.normal, panel.centre) < 0:
            faults.append(GeometryFault("panel", panel.index, "outward normal"))

    for vertex in mesh.alive_vertices():
        if not vertex.edges:
            faults.append(GeometryFault("vertex", vertex.index, "not isolated"))
        for ei in vertex.edges:
            if not mesh.edges[ei].alive:
                faults.append(
                    GeometryFault("vertex", vertex.index, "alive edges", f"edge {ei} is dead")
                )
        for pi in vertex.panels:
            if not mesh.panels[pi].alive:
                faults.append(
                    GeometryFault("vertex", vertex.index, "alive panels", f"panel {pi} is dead")
                )
        if not mesh.satisfies(vertex.index):
            faults.append(
                GeometryFault(
                    "vertex",
                    vertex.index,
                    "constraints satisfied",
                    ", ".join(c.value for c in vertex.constraints),
                )
            )

    return faults


def assert_consistent(mesh: Mesh) -> None:
    faults = check_geometry(mesh)
    if faults:
        for fault in faults[:10]:
            log.error("Geometry fault: %s", fault)
        raise GeometryError(faults)
