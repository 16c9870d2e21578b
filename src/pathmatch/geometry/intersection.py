"""
Path intersection testing.

Two paths intersect when any segment of one crosses any segment of the other. Each
segment is written as `a*x + b*y = c` (x = longitude, y = latitude) and the pair of
equations is solved directly; the crossing point must lie in both segments' bounding
boxes.

Known limitation: parallel and collinear segments (zero determinant) are reported as
non-intersecting, including collinear segments that overlap. Zero-length segments have a
zero determinant as well and never intersect anything.
"""

from __future__ import annotations

from collections.abc import Sequence

from pathmatch.domain.models import Point
from pathmatch.geometry import wkt

# Slack for the inclusive bounding-box test (degrees, well below a millimetre).
_BBOX_TOLERANCE = 1e-9


def _line_coefficients(p: Point, q: Point) -> tuple[float, float, float]:
    a = q.lat - p.lat
    b = p.lng - q.lng
    c = a * p.lng + b * p.lat
    return a, b, c


def _within_bbox(x: float, y: float, p: Point, q: Point) -> bool:
    return (
        min(p.lng, q.lng) - _BBOX_TOLERANCE <= x <= max(p.lng, q.lng) + _BBOX_TOLERANCE
        and min(p.lat, q.lat) - _BBOX_TOLERANCE <= y <= max(p.lat, q.lat) + _BBOX_TOLERANCE
    )


def segments_intersect(p1: Point, p2: Point, q1: Point, q2: Point) -> bool:
    """Return True if segment p1-p2 crosses segment q1-q2."""
    a1, b1, c1 = _line_coefficients(p1, p2)
    a2, b2, c2 = _line_coefficients(q1, q2)

    det = a1 * b2 - a2 * b1
    if det == 0:
        return False

    x = (b2 * c1 - b1 * c2) / det
    y = (a1 * c2 - a2 * c1) / det
    return _within_bbox(x, y, p1, p2) and _within_bbox(x, y, q1, q2)


def points_intersect(a: Sequence[Point], b: Sequence[Point]) -> bool:
    """Pairwise O(|a|*|b|) scan over consecutive segments; stops at the first crossing."""
    if len(a) < 2 or len(b) < 2:
        return False
    for i in range(len(a) - 1):
        for j in range(len(b) - 1):
            if segments_intersect(a[i], a[i + 1], b[j], b[j + 1]):
                return True
    return False


def intersects(path_a: str, path_b: str) -> bool:
    """Return True if two WKT LINESTRING paths cross anywhere.

    Raises:
        MalformedGeometry: If either text cannot be decoded.
    """
    return points_intersect(wkt.decode(path_a), wkt.decode(path_b))
