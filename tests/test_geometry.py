import math

import pytest

from ellipsoid_dome import vec3 as v3
from ellipsoid_dome.geometry import (
    DebugCollector,
    Line,
    Patch,
    Plane,
    Segment,
    in_triangle,
    same_side,
)


def test_z_axis_segment_hits_xy_plane_at_origin():
    plane = Plane((0.0, 0.0, 0.0), (0.0, 0.0, 1.0))
    segment = Segment.from_ends((0.0, 0.0, -1.0), (0.0, 0.0, 1.0))
    hit = plane.intersect_segment(segment)
    assert hit is not None
    assert all(abs(c) < 1e-12 for c in hit)


def test_segment_range_is_exclusive():
    # Line along X from the origin; the plane X=5 crosses it at d=5.
    line = Line((0.0, 0.0, 0.0), (1.0, 0.0, 0.0))
    plane = Plane((5.0, 0.0, 0.0), (1.0, 0.0, 0.0))
    assert plane.intersect_segment(Segment(line, 0.0, 4.0)) is None
    hit = plane.intersect_segment(Segment(line, 0.0, 6.0))
    assert hit == pytest.approx((5.0, 0.0, 0.0))
    # The endpoint itself never counts.
    assert plane.intersect_segment(Segment(line, 0.0, 5.0)) is None
    assert plane.intersect_segment(Segment(line, 5.0, 6.0)) is None


def test_parallel_line_misses():
    plane = Plane.horizontal(1.0)
    line = Line((0.0, 0.0, 0.0), (1.0, 1.0, 0.0))
    assert plane.intersect_line(line) is None


def test_line_direction_is_normalized():
    line = Line.from_points((1.0, 1.0, 1.0), (1.0, 1.0, 4.0))
    assert line.along == pytest.approx((0.0, 0.0, 1.0))
    assert line.at(2.0) == pytest.approx((1.0, 1.0, 3.0))
    assert line.parameter_of((7.0, 1.0, 2.5)) == pytest.approx(1.5)


def test_segment_from_ends_spans_its_length():
    seg = Segment.from_ends((0.0, 0.0, 0.0), (3.0, 4.0, 0.0))
    assert seg.length == pytest.approx(5.0)
    assert seg.start == pytest.approx((0.0, 0.0, 0.0))
    assert seg.end == pytest.approx((3.0, 4.0, 0.0))


def test_plane_from_points_and_sides():
    plane = Plane.from_points((0.0, 0.0, 2.0), (1.0, 0.0, 2.0), (0.0, 1.0, 2.0))
    assert plane.normal == pytest.approx((0.0, 0.0, 1.0))
    assert plane.normal_side((5.0, 5.0, 3.0))
    assert plane.normal_side((5.0, 5.0, 2.0))
    assert not plane.normal_side((0.0, 0.0, 1.0))
    assert plane.signed_distance((0.0, 0.0, -1.0)) == pytest.approx(-3.0)


def test_triangle_test_is_inclusive_of_edges():
    a, b, c = (0.0, 0.0, 0.0), (2.0, 0.0, 0.0), (0.0, 2.0, 0.0)
    assert in_triangle((0.5, 0.5, 0.0), a, b, c)
    assert in_triangle((1.0, 0.0, 0.0), a, b, c)
    assert in_triangle((1.0, 1.0, 0.0), a, b, c)
    assert not in_triangle((1.5, 1.5, 0.0), a, b, c)
    assert same_side((0.1, 0.1, 0.0), (0.2, 0.3, 0.0), b, c)


def _unit_patch() -> Patch:
    return Patch.create((0.0, 0.0, 0.0), (0.0, 0.0, 1.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0))


def _vertical(x: float, y: float) -> Segment:
    return Segment.from_ends((x, y, -1.0), (x, y, 1.0))


def test_tri_patch_only_covers_first_triangle():
    patch = _unit_patch()
    assert patch.tri_intersect_segment(_vertical(0.2, 0.2)) == pytest.approx((0.2, 0.2, 0.0))
    assert patch.tri_intersect_segment(_vertical(0.8, 0.8)) is None


def test_para_patch_covers_both_triangles():
    patch = _unit_patch()
    assert patch.para_intersect_segment(_vertical(0.2, 0.2)) is not None
    assert patch.para_intersect_segment(_vertical(0.8, 0.8)) == pytest.approx((0.8, 0.8, 0.0))
    assert patch.para_intersect_segment(_vertical(1.2, 0.5)) is None


def test_skewed_patch_uses_its_own_sides():
    patch = Patch.create((0.0, 0.0, 0.0), (0.0, 0.0, 1.0), (2.0, 0.0, 0.0), (1.0, 1.0, 0.0))
    assert patch.para_intersect_segment(_vertical(2.2, 0.5)) is not None
    assert patch.para_intersect_segment(_vertical(0.2, 0.5)) is None


def test_patch_copies_move_the_whole_patch():
    patch = _unit_patch()
    moved = patch.translated((0.0, 0.0, 2.0))
    assert moved.corner == (0.0, 0.0, 2.0)
    assert moved.plane.point_on == (0.0, 0.0, 2.0)
    assert patch.corner == (0.0, 0.0, 0.0)

    turned = patch.rotated_z(math.pi / 2)
    assert turned.side0 == pytest.approx((0.0, 1.0, 0.0))
    assert turned.side1 == pytest.approx((-1.0, 0.0, 0.0))
    assert turned.corners[2] == pytest.approx((-1.0, 1.0, 0.0))


def test_plane_rotation_turns_the_normal():
    plane = Plane((1.0, 0.0, 0.0), (1.0, 0.0, 0.0)).rotated_z(math.pi / 2)
    assert plane.normal == pytest.approx((0.0, 1.0, 0.0))
    assert plane.point_on == (1.0, 0.0, 0.0)


def test_debug_collector_is_explicit_state():
    debug = DebugCollector()
    debug.line((0.0, 0.0, 0.0), (1.0, 0.0, 0.0))
    debug.segment(_vertical(0.0, 0.0))
    debug.patch(_unit_patch())
    assert len(debug) == 3
    assert DebugCollector().lines == []
    debug.clear()
    assert len(debug) == 0


def test_normalize_rejects_zero_vector():
    with pytest.raises(ValueError):
        v3.normalize((0.0, 0.0, 0.0))
    assert v3.rotate_z((1.0, 0.0, 3.0), math.pi) == pytest.approx((-1.0, 0.0, 3.0))
