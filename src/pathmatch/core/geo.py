from __future__ import annotations

from collections.abc import Sequence
from math import asin, cos, radians, sin, sqrt

from pathmatch.domain.models import Point

"""
Geospatial helpers.

We keep a tiny geometry layer here so the proximity matcher can measure
point-to-path distances without a spatial database or heavier GIS dependencies.
"""

EARTH_RADIUS_M = 6_371_000
# Metres per degree of latitude on the same sphere used by `haversine_m`.
_M_PER_DEG = radians(1) * EARTH_RADIUS_M


def haversine_m(a: Point, b: Point) -> float:
    """Compute great-circle distance in meters between two points."""
    lat1 = radians(a.lat)
    lon1 = radians(a.lng)
    lat2 = radians(b.lat)
    lon2 = radians(b.lng)

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_M * asin(min(1.0, sqrt(h)))


def _to_xy_m(p: Point, origin: Point) -> tuple[float, float]:
    # Equirectangular projection around `origin`; accurate at commute distances.
    x = (p.lng - origin.lng) * _M_PER_DEG * cos(radians(origin.lat))
    y = (p.lat - origin.lat) * _M_PER_DEG
    return x, y


def closest_point_on_segment(p: Point, a: Point, b: Point) -> Point:
    """Project `p` onto segment a-b (clamped to its endpoints)."""
    ax, ay = _to_xy_m(a, p)
    bx, by = _to_xy_m(b, p)
    dx = bx - ax
    dy = by - ay
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return a

    # p sits at the projection origin (0, 0).
    t = -(ax * dx + ay * dy) / length_sq
    t = max(0.0, min(1.0, t))
    if t == 0.0:
        return a
    if t == 1.0:
        return b
    return Point(lat=a.lat + t * (b.lat - a.lat), lng=a.lng + t * (b.lng - a.lng))


def distance_to_segment_m(p: Point, a: Point, b: Point) -> float:
    """Great-circle distance from `p` to the nearest point of segment a-b."""
    return haversine_m(p, closest_point_on_segment(p, a, b))


def distance_to_path_m(p: Point, geometry: Sequence[Point]) -> float | None:
    """Distance from `p` to the nearest point on the polyline, or None without segments."""
    if len(geometry) < 2:
        return None
    return min(distance_to_segment_m(p, geometry[i], geometry[i + 1]) for i in range(len(geometry) - 1))
