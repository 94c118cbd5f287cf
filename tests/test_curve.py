import pytest

from core import curve as curves
from core.models import AxisCurve, CurveType


def test_linear_is_identity():
    c = AxisCurve()
    for i in range(11):
        x = i / 10.0
        assert curves.evaluate(c, x) == pytest.approx(x)


def test_scurve_fixed_points():
    c = AxisCurve(type=CurveType.SCURVE)
    assert curves.evaluate(c, 0.0) == pytest.approx(0.0)
    assert curves.evaluate(c, 0.5) == pytest.approx(0.5)
    assert curves.evaluate(c, 1.0) == pytest.approx(1.0)
    assert curves.evaluate(c, 0.25) < 0.25


def test_exponential_squares():
    c = AxisCurve(type=CurveType.EXPONENTIAL)
    assert curves.evaluate(c, 0.5) == pytest.approx(0.25)


def test_custom_passes_through_control_points():
    points = ((0.0, 0.0), (0.2, 0.05), (0.5, 0.4), (0.8, 0.9), (1.0, 1.0))
    c = AxisCurve(type=CurveType.CUSTOM, control_points=points)
    for x, y in points:
        assert curves.evaluate(c, x) == pytest.approx(y)


def test_inversion_is_one_minus():
    points = ((0.0, 0.0), (0.3, 0.1), (1.0, 1.0))
    for t in CurveType:
        plain = AxisCurve(type=t, control_points=points)
        inverted = AxisCurve(type=t, control_points=points, inverted=True)
        for i in range(11):
            x = i / 10.0
            assert curves.evaluate(inverted, x) == pytest.approx(1.0 - curves.evaluate(plain, x))


def test_shape_keeps_sign_and_inverts_signed_value():
    c = AxisCurve(type=CurveType.EXPONENTIAL)
    assert curves.shape(c, -0.5) == pytest.approx(-0.25)
    assert curves.shape(c, 0.5) == pytest.approx(0.25)
    inv = AxisCurve(type=CurveType.LINEAR, inverted=True)
    assert curves.shape(inv, 0.7) == pytest.approx(-0.7)
    assert curves.shape(inv, -1.0) == pytest.approx(1.0)


def test_select_custom_seeds_center_point():
    c = curves.select_curve_type(AxisCurve(), CurveType.CUSTOM)
    assert c.type == CurveType.CUSTOM
    assert c.control_points == ((0.0, 0.0), (0.5, 0.5), (1.0, 1.0))


def test_add_point_makes_curve_custom_and_sorted():
    c = curves.add_point(AxisCurve(), 0.3, 0.2)
    assert c.type == CurveType.CUSTOM
    assert c.control_points == ((0.0, 0.0), (0.3, 0.2), (1.0, 1.0))


def test_add_point_rejects_near_edges_and_neighbours():
    c = curves.add_point(AxisCurve(), 0.3, 0.2)
    assert curves.add_point(c, 0.005, 0.1) is c
    assert curves.add_point(c, 0.995, 0.1) is c
    assert curves.add_point(c, 0.31, 0.5) is c


def test_symmetry_holds_after_edits():
    c = curves.select_curve_type(AxisCurve(), CurveType.CUSTOM)
    c = curves.set_symmetrical(c, True)
    c = curves.add_point(c, 0.2, 0.1)
    c = curves.move_point(c, 1, 0.15, 0.05)

    for x, y in c.control_points:
        assert any(abs(mx - (1.0 - x)) < 0.02 and abs(my - (1.0 - y)) < 0.02 for mx, my in c.control_points)


def test_symmetric_add_skips_mirror_near_existing_point():
    c = AxisCurve(type=CurveType.CUSTOM, control_points=((0.0, 0.0), (0.5, 0.5), (1.0, 1.0)), symmetrical=True)
    c = curves.add_point(c, 0.48, 0.45)
    # mirror at 0.52 would sit on top of the centre point
    assert len(c.control_points) == 4


def test_center_point_cannot_move_or_be_removed():
    c = curves.select_curve_type(AxisCurve(), CurveType.CUSTOM)
    assert curves.move_point(c, 1, 0.3, 0.9) is c
    assert curves.remove_point(c, 1) is c


def test_endpoints_only_move_vertically():
    c = curves.select_curve_type(AxisCurve(), CurveType.CUSTOM)
    moved = curves.move_point(c, 0, 0.4, 0.2)
    assert moved.control_points[0] == (0.0, 0.2)


def test_move_point_clamped_between_neighbours():
    c = AxisCurve(type=CurveType.CUSTOM, control_points=((0.0, 0.0), (0.3, 0.2), (0.6, 0.7), (1.0, 1.0)))
    moved = curves.move_point(c, 1, 0.9, 1.5)
    assert moved.control_points[1] == (pytest.approx(0.58), 1.0)


def test_remove_point_removes_mirror_when_symmetrical():
    c = curves.set_symmetrical(curves.select_curve_type(AxisCurve(), CurveType.CUSTOM), True)
    c = curves.add_point(c, 0.2, 0.1)
    assert len(c.control_points) == 5
    c = curves.remove_point(c, 1)
    assert c.control_points == ((0.0, 0.0), (0.5, 0.5), (1.0, 1.0))


def test_endpoints_cannot_be_removed():
    c = curves.add_point(AxisCurve(), 0.3, 0.2)
    assert curves.remove_point(c, 0) is c
    assert curves.remove_point(c, 2) is c


def test_find_mirror_index():
    points = ((0.0, 0.0), (0.2, 0.1), (0.5, 0.5), (0.8, 0.9), (1.0, 1.0))
    assert curves.find_mirror_index(points, 0) == 4
    assert curves.find_mirror_index(points, 4) == 0
    assert curves.find_mirror_index(points, 1) == 3


def test_sanitize_points_adds_endpoints_and_drops_crowded_points():
    points = curves.sanitize_points([(0.7, 0.9), (0.3, 0.6), (0.305, 0.1)])
    assert points == ((0.0, 0.0), (0.3, 0.6), (0.7, 0.9), (1.0, 1.0))
    c = AxisCurve(type=CurveType.CUSTOM, control_points=points)
    assert curves.evaluate(c, 0.0) == 0.0


def test_sanitize_points_snaps_near_endpoints():
    points = curves.sanitize_points([(0.005, 0.1), (0.5, 1.4), (0.995, 0.8)])
    assert points == ((0.0, 0.1), (0.5, 1.0), (1.0, 0.8))
    assert curves.sanitize_points([(0.5, 0.5)]) == ((0.0, 0.0), (1.0, 1.0))
    assert curves.sanitize_points([(0.0, 0.0), (0.99, 0.5), (1.0, 1.0)]) == ((0.0, 0.0), (1.0, 1.0))


def test_saturate():
    assert curves.saturate(0.3, 1.0) == 0.3
    assert curves.saturate(0.3, 0.6) == pytest.approx(0.5)
    assert curves.saturate(-0.9, 0.6) == -1.0
    assert curves.saturate(0.0, 0.0) == 0.0
