import math

import pytest

from ellipsoid_dome.ellipsoid import Ellipsoid
from ellipsoid_dome.mesh import (
    Constraint,
    GeometryError,
    GeometryFault,
    Mesh,
    RIM_CONSTRAINTS,
    assert_consistent,
    check_geometry,
    combine_constraints,
)


def test_mesh_rejects_base_outside_ellipsoid(unit_sphere):
    with pytest.raises(ValueError):
        Mesh(unit_sphere, 1.0)
    with pytest.raises(ValueError):
        Mesh(unit_sphere, -1.5)


def test_octant_panel_derived_fields(octant_mesh):
    panel = octant_mesh.panels[0]
    assert panel.corners == (0, 1, 2)
    s = 1 / math.sqrt(3)
    assert panel.normal == pytest.approx((s, s, s))
    assert panel.area == pytest.approx(math.sqrt(3) / 2)
    assert panel.centre == pytest.approx((1 / 3, 1 / 3, 1 / 3))
    assert octant_mesh.edges[0].length == pytest.approx(math.sqrt(2))
    assert check_geometry(octant_mesh) == []


def test_normal_is_flipped_outwards(unit_sphere):
    mesh = Mesh(unit_sphere, -0.5)
    a = mesh.add_vertex((1.0, 0.0, 0.0))
    b = mesh.add_vertex((0.0, 1.0, 0.0))
    c = mesh.add_vertex((0.0, 0.0, 1.0))
    # Edge order that winds the triangle the other way.
    p = mesh.add_panel(mesh.add_edge(a, c), mesh.add_edge(c, b), mesh.add_edge(b, a))
    assert all(n > 0 for n in mesh.panels[p].normal)


def test_vertices_are_projected_onto_the_surface(unit_sphere):
    mesh = Mesh(unit_sphere, -0.5)
    v = mesh.add_vertex((3.0, 0.0, 4.0))
    assert mesh.position(v) == pytest.approx((0.6, 0.0, 0.8))


def test_rim_constraints_pin_to_base_and_surface(unit_sphere):
    mesh = Mesh(unit_sphere, -0.6)
    v = mesh.add_vertex((2.0, 0.0, 0.3), RIM_CONSTRAINTS)
    assert mesh.position(v) == pytest.approx((0.8, 0.0, -0.6))
    assert mesh.vertices[v].on_rim
    assert mesh.satisfies(v)
    moved = mesh.move_vertex(v, (0.0, 5.0, 1.0))
    assert moved == pytest.approx((0.0, 0.8, -0.6))


def test_combine_constraints_drops_repeats():
    combined = combine_constraints(
        (Constraint.ON_BASE,), (Constraint.ON_ELLIPSOID, Constraint.ON_BASE)
    )
    assert combined == (Constraint.ON_BASE, Constraint.ON_ELLIPSOID)


class TestConstructionChecks:
    def test_edge_needs_two_vertices(self, octant_mesh):
        with pytest.raises(GeometryError) as err:
            octant_mesh.add_edge(0, 0)
        assert err.value.faults[0].element == "edge"

    def test_duplicate_edge_rejected(self, octant_mesh):
        with pytest.raises(GeometryError):
            octant_mesh.add_edge(1, 0)

    def test_coincident_vertices_rejected(self, octant_mesh):
        twin = octant_mesh.add_vertex((1.0, 0.0, 0.0))
        with pytest.raises(GeometryError):
            octant_mesh.add_edge(0, twin)

    def test_open_triangle_rejected(self, octant_mesh):
        d = octant_mesh.add_vertex((0.0, -1.0, 0.0))
        ad = octant_mesh.add_edge(0, d)
        with pytest.raises(GeometryError) as err:
            octant_mesh.add_panel(0, 1, ad)
        assert "three distinct corners" in str(err.value)

    def test_repeated_edge_rejected(self, octant_mesh):
        with pytest.raises(GeometryError):
            octant_mesh.add_panel(0, 0, 1)

    def test_third_panel_on_edge_rejected(self, octant_mesh):
        mesh = octant_mesh
        d = mesh.add_vertex((1.0, 1.0, 1.0))
        ad = mesh.add_edge(0, d)
        bd = mesh.add_edge(1, d)
        mesh.add_panel(0, ad, bd)  # edge 0 is now a seam
        e = mesh.add_vertex((1.0, 1.0, -0.2))
        ae = mesh.add_edge(0, e)
        be = mesh.add_edge(1, e)
        with pytest.raises(GeometryError):
            mesh.add_panel(0, ae, be)
        assert len(mesh.edges[0].panels) == 2


class TestTopologyQueries:
    def test_find_edge_and_other_end(self, octant_mesh):
        assert octant_mesh.find_edge(1, 0) == 0
        assert octant_mesh.find_edge(0, 1) == 0
        assert octant_mesh.other_end(0, 0) == 1
        with pytest.raises(GeometryError):
            octant_mesh.other_end(0, 2)

    def test_edge_from_points_away(self, octant_mesh):
        assert octant_mesh.edge_from(0, 0) == pytest.approx((-1.0, 1.0, 0.0))
        assert octant_mesh.edge_from(0, 1) == pytest.approx((1.0, -1.0, 0.0))
        with pytest.raises(GeometryError):
            octant_mesh.edge_from(0, 2)

    def test_valence_and_boundary(self, octant_mesh):
        assert octant_mesh.valence(0) == 2
        assert sorted(octant_mesh.boundary_edges_at(0)) == [0, 2]
        assert octant_mesh.boundary_edges() == [0, 1, 2]

    def test_vertex_normal_is_panel_mean(self, octant_mesh):
        s = 1 / math.sqrt(3)
        assert octant_mesh.vertex_normal(1) == pytest.approx((s, s, s))


class TestSoftDeletion:
    def test_remove_panel_prunes_adjacency(self, octant_mesh):
        octant_mesh.remove_panel(0)
        assert not octant_mesh.panels[0].alive
        assert all(not e.panels for e in octant_mesh.edges)
        assert all(not v.panels for v in octant_mesh.vertices)
        # Slot retained.
        assert len(octant_mesh.panels) == 1
        assert octant_mesh.panels[0].edges == (0, 1, 2)

    def test_remove_vertex_cascades(self, octant_mesh):
        octant_mesh.remove_vertex(2)
        assert not octant_mesh.vertices[2].alive
        assert not octant_mesh.panels[0].alive
        assert [e.index for e in octant_mesh.alive_edges()] == [0]
        assert octant_mesh.vertices[0].edges == [0]
        assert octant_mesh.summary() == "2 vertices / 1 edges / 0 panels"

    def test_dead_elements_are_not_iterated(self, octant_mesh):
        octant_mesh.remove_edge(1)
        assert [p.index for p in octant_mesh.alive_panels()] == []
        assert [e.index for e in octant_mesh.alive_edges()] == [0, 2]


class TestCheckGeometry:
    def test_boundary_edges_without_panels_are_faults(self, octant_mesh):
        octant_mesh.remove_panel(0)
        faults = check_geometry(octant_mesh)
        assert {f.invariant for f in faults} == {"on one or two panels"}
        assert len(faults) == 3

    def test_isolated_vertex_is_a_fault(self, octant_mesh):
        lonely = octant_mesh.add_vertex((0.0, -1.0, 0.0))
        faults = check_geometry(octant_mesh)
        assert GeometryFault("vertex", lonely, "not isolated") in faults

    def test_constraint_violation_is_a_fault(self, octant_mesh):
        octant_mesh.vertices[2].position = (0.0, 0.0, 2.0)
        faults = check_geometry(octant_mesh)
        assert any(
            f.index == 2 and f.invariant == "constraints satisfied" for f in faults
        )

    def test_inward_normal_is_a_fault(self, octant_mesh):
        panel = octant_mesh.panels[0]
        panel.normal = tuple(-n for n in panel.normal)
        faults = check_geometry(octant_mesh)
        assert [f.invariant for f in faults] == ["outward normal"]

    def test_assert_consistent_raises_with_all_faults(self, octant_mesh):
        octant_mesh.remove_panel(0)
        with pytest.raises(GeometryError) as err:
            assert_consistent(octant_mesh)
        assert len(err.value.faults) == 3
        assert isinstance(err.value, ValueError)


def test_update_derived_refreshes_after_moves():
    mesh = Mesh(Ellipsoid(2.0, 2.0, 2.0), 0.0)
    a = mesh.add_vertex((1.0, 0.0, 0.0))
    b = mesh.add_vertex((0.0, 1.0, 0.0))
    c = mesh.add_vertex((0.0, 0.0, 1.0))
    mesh.add_panel(mesh.add_edge(a, b), mesh.add_edge(b, c), mesh.add_edge(c, a))
    mesh.move_vertex(c, (0.0, 1.0, 1.0), refresh=False)
    stale = mesh.edges[1].length
    mesh.update_derived()
    assert mesh.edges[1].length != stale
    assert mesh.edges[1].length == pytest.approx(
        math.dist(mesh.position(b), mesh.position(c))
    )
