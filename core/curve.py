"""Axis response curves

Curves work on normalized magnitudes (0..1). `evaluate` is the raw curve,
`shape` applies it to a signed axis sample. The editing helpers return new
`AxisCurve` values; a rejected edit returns the curve unchanged.
"""
import logging
from dataclasses import replace
from typing import Sequence, Tuple

from core.models import AxisCurve, CurveType, clamp

LOG = logging.getLogger("hotasbridge.curve")

Point = Tuple[float, float]

EDGE_MARGIN = 0.01  # no user points this close to x=0 / x=1
MIN_GAP = 0.02  # minimum x distance between neighbouring points
MIRROR_GAP = 0.04  # a mirror point is not added this close to another point
CENTER_TOLERANCE = 0.01

DEFAULT_POINTS = {
    CurveType.LINEAR: ((0.0, 0.0), (1.0, 1.0)),
    CurveType.SCURVE: ((0.0, 0.0), (0.25, 0.1), (0.75, 0.9), (1.0, 1.0)),
    CurveType.EXPONENTIAL: ((0.0, 0.0), (0.5, 0.25), (1.0, 1.0)),
}


def _catmull_rom(p0: float, p1: float, p2: float, p3: float, t: float) -> float:
    t2 = t * t
    t3 = t2 * t
    return 0.5 * (
        2.0 * p1
        + (-p0 + p2) * t
        + (2.0 * p0 - 5.0 * p1 + 4.0 * p2 - p3) * t2
        + (-p0 + 3.0 * p1 - 3.0 * p2 + p3) * t3
    )


def _evaluate_custom(points: Sequence[Point], x: float) -> float:
    if len(points) < 2:
        return x
    if x <= points[0][0]:
        return points[0][1]
    if x >= points[-1][0]:
        return points[-1][1]
    last = len(points) - 2
    for i in range(len(points) - 1):
        x1, y1 = points[i]
        x2, y2 = points[i + 1]
        if x1 <= x <= x2:
            if abs(x2 - x1) < 0.001:
                return y1
            t = (x - x1) / (x2 - x1)
            y0 = points[i - 1][1] if i > 0 else y1 - (y2 - y1)
            y3 = points[i + 2][1] if i < last else y2 + (y2 - y1)
            return _catmull_rom(y0, y1, y2, y3, t)
    return x


def evaluate(curve: AxisCurve, x: float) -> float:
    """Evaluate the curve at x in [0, 1]; the result is in [0, 1]."""
    x = clamp(float(x), 0.0, 1.0)
    if curve.type == CurveType.SCURVE:
        y = x * x * (3.0 - 2.0 * x)
    elif curve.type == CurveType.EXPONENTIAL:
        y = x * x
    elif curve.type == CurveType.CUSTOM:
        y = _evaluate_custom(curve.control_points, x)
    else:
        y = x
    y = clamp(y, 0.0, 1.0)
    if curve.inverted:
        y = 1.0 - y
    return y


def saturate(value: float, saturation: float) -> float:
    """Scale so that |value| == saturation already gives full output."""
    if saturation >= 1.0:
        return value
    if saturation <= 0.0:
        return 0.0 if value == 0 else (-1.0 if value < 0 else 1.0)
    sign = -1.0 if value < 0 else 1.0
    magnitude = abs(value)
    if magnitude >= saturation:
        return sign
    return sign * magnitude / saturation


def shape(curve: AxisCurve, value: float) -> float:
    """Apply saturation and the curve to a signed axis sample in [-1, 1].

    The curve shapes the magnitude and the sign is restored. Inversion flips the
    signed result, which is what `1 - y` means on the 0..1 normalized axis.
    """
    value = saturate(clamp(float(value), -1.0, 1.0), curve.saturation)
    sign = -1.0 if value < 0 else 1.0
    shaped = sign * evaluate(replace(curve, inverted=False), abs(value))
    return -shaped if curve.inverted else shaped


def sanitize_points(points: Sequence[Point]) -> Tuple[Point, ...]:
    """Sorted points with endpoints at x=0 and x=1 and interior gaps of at least MIN_GAP.

    Endpoints within EDGE_MARGIN are snapped; missing ones become (0, 0) and
    (1, 1). Fewer than two points give the linear default.
    """
    pts = sorted((clamp(float(x), 0.0, 1.0), clamp(float(y), 0.0, 1.0)) for x, y in points)
    if len(pts) < 2:
        return DEFAULT_POINTS[CurveType.LINEAR]
    start = (0.0, pts[0][1]) if pts[0][0] <= EDGE_MARGIN else (0.0, 0.0)
    end = (1.0, pts[-1][1]) if pts[-1][0] >= 1.0 - EDGE_MARGIN else (1.0, 1.0)
    result = [start]
    for x, y in pts:
        if not EDGE_MARGIN < x < 1.0 - EDGE_MARGIN:
            continue
        if x - result[-1][0] < MIN_GAP or end[0] - x < MIN_GAP:
            LOG.debug("dropping curve point at x=%.3f: too close to its neighbour", x)
            continue
        result.append((x, y))
    result.append(end)
    return tuple(result)


def default_points(curve_type: CurveType) -> Tuple[Point, ...]:
    """Display points for a preset curve; CUSTOM starts from a straight line through the centre."""
    if curve_type == CurveType.CUSTOM:
        return ((0.0, 0.0), (0.5, 0.5), (1.0, 1.0))
    return DEFAULT_POINTS[curve_type]


def select_curve_type(curve: AxisCurve, curve_type: CurveType) -> AxisCurve:
    if curve_type != CurveType.CUSTOM:
        return replace(curve, type=curve_type)
    points = curve.control_points
    if len(points) <= 2:
        points = default_points(CurveType.CUSTOM)
    return replace(curve, type=CurveType.CUSTOM, control_points=tuple(points))


def is_center_point(point: Point) -> bool:
    return abs(point[0] - 0.5) < CENTER_TOLERANCE and abs(point[1] - 0.5) < CENTER_TOLERANCE


def _insert_sorted(points, point):
    idx = 0
    for i, p in enumerate(points):
        if p[0] < point[0]:
            idx = i + 1
    points.insert(idx, point)


def make_symmetrical(points: Sequence[Point]) -> Tuple[Point, ...]:
    """Rebuild a point-symmetric set around (0.5, 0.5) from the left half."""
    if len(points) < 2:
        return tuple(points)
    left = sorted((p for p in points if 0.0 < p[0] < 0.5), key=lambda p: p[0])
    has_center = any(abs(p[0] - 0.5) < MIN_GAP for p in points)
    result = [(0.0, 0.0)]
    result.extend(left)
    if has_center or left:
        result.append((0.5, 0.5))
    result.extend((1.0 - x, 1.0 - y) for x, y in reversed(left))
    result.append((1.0, 1.0))
    return tuple(result)


def set_symmetrical(curve: AxisCurve, enabled: bool) -> AxisCurve:
    if not enabled:
        return replace(curve, symmetrical=False)
    return replace(curve, symmetrical=True, control_points=make_symmetrical(curve.control_points))


def find_mirror_index(points: Sequence[Point], index: int) -> int:
    """Index of the point mirroring points[index], or -1.

    Endpoints mirror each other; interior points pair with whichever other point
    lies closest to the mirrored x.
    """
    last = len(points) - 1
    if index == 0:
        return last
    if index == last:
        return 0
    target = 1.0 - points[index][0]
    best, best_dist = -1, None
    for i, (x, _) in enumerate(points):
        if i == index:
            continue
        dist = abs(x - target)
        if best_dist is None or dist < best_dist:
            best, best_dist = i, dist
    return best


def add_point(curve: AxisCurve, x: float, y: float) -> AxisCurve:
    """Insert a control point (and its mirror when symmetrical). Adding a point makes the curve CUSTOM."""
    if x <= EDGE_MARGIN or x >= 1.0 - EDGE_MARGIN:
        LOG.debug("rejecting curve point at x=%.3f: too close to an endpoint", x)
        return curve
    if any(abs(px - x) < MIN_GAP for px, _ in curve.control_points):
        LOG.debug("rejecting curve point at x=%.3f: too close to an existing point", x)
        return curve
    y = clamp(y, 0.0, 1.0)
    points = list(curve.control_points)
    _insert_sorted(points, (x, y))

    if curve.symmetrical:
        mx, my = 1.0 - x, 1.0 - y
        too_close = any(abs(px - mx) < MIRROR_GAP for px, _ in points)
        if not too_close and EDGE_MARGIN < mx < 1.0 - EDGE_MARGIN:
            _insert_sorted(points, (mx, my))

    return replace(curve, type=CurveType.CUSTOM, control_points=tuple(points))


def _clamp_between_neighbours(points, index, x):
    last = len(points) - 1
    if index == 0:
        return 0.0
    if index == last:
        return 1.0
    lo = points[index - 1][0] + MIN_GAP
    hi = points[index + 1][0] - MIN_GAP
    if lo > hi:
        return (points[index - 1][0] + points[index + 1][0]) / 2.0
    return clamp(x, lo, hi)


def move_point(curve: AxisCurve, index: int, x: float, y: float) -> AxisCurve:
    """Drag a control point, keeping x ordering and the mirror point in sync."""
    points = list(curve.control_points)
    if not 0 <= index < len(points) or is_center_point(points[index]):
        return curve
    x = _clamp_between_neighbours(points, index, x)
    y = clamp(y, 0.0, 1.0)
    points[index] = (x, y)

    if curve.symmetrical:
        mirror = find_mirror_index(points, index)
        if mirror >= 0 and mirror != index and not is_center_point(points[mirror]):
            mx = _clamp_between_neighbours(points, mirror, 1.0 - x)
            points[mirror] = (mx, 1.0 - y)

    return replace(curve, control_points=tuple(points))


def remove_point(curve: AxisCurve, index: int) -> AxisCurve:
    """Remove an interior control point (and its mirror when symmetrical)."""
    points = list(curve.control_points)
    if not 0 < index < len(points) - 1:
        return curve
    removed = points[index]
    if is_center_point(removed):
        return curve
    del points[index]

    if curve.symmetrical:
        mx = 1.0 - removed[0]
        for i in range(len(points) - 2, 0, -1):
            if is_center_point(points[i]):
                continue
            if abs(points[i][0] - mx) < MIN_GAP:
                del points[i]
                break

    return replace(curve, control_points=tuple(points))
