"""
WKT LINESTRING encoding/decoding.

The persisted and transmitted representation of a path is

    LINESTRING(lng1 lat1, lng2 lat2, ...)

Longitude precedes latitude inside each pair, while every other API in this project
orders `{lat, lng}`. Keep all swapping inside this module.
"""

from __future__ import annotations

import math
from collections.abc import Iterable

from pydantic import ValidationError

from pathmatch.core.errors import MalformedGeometry
from pathmatch.domain.models import Point

PREFIX = "LINESTRING("
SUFFIX = ")"


def format_coordinate(value: float) -> str:
    """Shortest text that parses back to `value` (`77.209`, `10`, never `10.0`)."""
    v = float(value)
    if not math.isfinite(v):
        raise ValueError(f"Coordinate must be finite, got {value!r}")
    if v == 0:
        return "0"
    if v.is_integer() and abs(v) < 1e15:
        return str(int(v))
    return repr(v)


def encode(points: Iterable[Point]) -> str:
    """Encode points as `LINESTRING(lng lat, ...)`."""
    pairs = ", ".join(f"{format_coordinate(p.lng)} {format_coordinate(p.lat)}" for p in points)
    return f"{PREFIX}{pairs}{SUFFIX}"


def _parse_pair(raw: str, index: int) -> Point:
    parts = raw.split()
    if len(parts) != 2:
        raise MalformedGeometry(f"Coordinate pair #{index} must have exactly two values, got {raw.strip()!r}")
    try:
        lng = float(parts[0])
        lat = float(parts[1])
    except ValueError as exc:
        raise MalformedGeometry(f"Coordinate pair #{index} is not numeric: {raw.strip()!r}") from exc
    try:
        return Point(lat=lat, lng=lng)
    except ValidationError as exc:
        raise MalformedGeometry(f"Coordinate pair #{index} is out of range: {raw.strip()!r}") from exc


def decode(text: str) -> list[Point]:
    """Decode a `LINESTRING(...)` text into points.

    Returns an empty list for an empty or single-point geometry ("no usable route").

    Raises:
        MalformedGeometry: If the text is not a LINESTRING or a pair cannot be parsed.
    """
    if not isinstance(text, str):
        raise MalformedGeometry(f"Geometry must be text, got {type(text).__name__}")
    body = text.strip()
    if not (body.startswith(PREFIX) and body.endswith(SUFFIX)):
        raise MalformedGeometry(f"Geometry must look like {PREFIX}...{SUFFIX}: {body[:40]!r}")

    inner = body[len(PREFIX) : -len(SUFFIX)].strip()
    if not inner:
        return []

    points = [_parse_pair(raw, i) for i, raw in enumerate(inner.split(","))]
    if len(points) < 2:
        return []
    return points
