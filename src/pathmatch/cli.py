"""
PathMatch CLI entrypoint.

This CLI is intended for quick local checks of the engine without the API:
- `route`: ask the routing service for a path (straight-line fallback when it is down)
- `intersects`: test whether two WKT paths cross
- `distance`: measure a point's distance to a WKT path
"""

from __future__ import annotations

import argparse
import asyncio

from pathmatch.config.settings import get_settings
from pathmatch.core.errors import MalformedGeometry
from pathmatch.core.geo import distance_to_path_m
from pathmatch.core.logging import configure_logging
from pathmatch.domain.models import Point
from pathmatch.geometry import wkt
from pathmatch.geometry.intersection import intersects
from pathmatch.routing.route_provider import RouteProvider


def _parse_point(value: str) -> Point:
    """Parse `LAT,LNG` into a Point."""
    if "," not in value:
        raise argparse.ArgumentTypeError(f"Invalid point '{value}', expected LAT,LNG")
    lat, lng = value.split(",", 1)
    try:
        return Point(lat=float(lat), lng=float(lng))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid point '{value}': {exc}") from exc


def _cmd_route(args: argparse.Namespace) -> int:
    provider = RouteProvider(get_settings().routing)
    print(asyncio.run(provider.get_route(args.source, args.destination)))
    return 0


def _cmd_intersects(args: argparse.Namespace) -> int:
    try:
        result = intersects(args.path_a, args.path_b)
    except MalformedGeometry as exc:
        print(f"error: {exc}")
        return 2
    print("true" if result else "false")
    return 0


def _cmd_distance(args: argparse.Namespace) -> int:
    try:
        geometry = wkt.decode(args.path)
    except MalformedGeometry as exc:
        print(f"error: {exc}")
        return 2
    distance = distance_to_path_m(args.point, geometry)
    if distance is None:
        print("error: path has fewer than two points")
        return 2
    print(f"{distance:.2f}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pathmatch", description="Geospatial path-matching tools.")
    sub = parser.add_subparsers(dest="command", required=True)

    route = sub.add_parser("route", help="Fetch a route as WKT LINESTRING.")
    route.add_argument("--source", type=_parse_point, required=True, help="LAT,LNG")
    route.add_argument("--destination", type=_parse_point, required=True, help="LAT,LNG")
    route.set_defaults(func=_cmd_route)

    inter = sub.add_parser("intersects", help="Check whether two WKT paths cross.")
    inter.add_argument("path_a")
    inter.add_argument("path_b")
    inter.set_defaults(func=_cmd_intersects)

    dist = sub.add_parser("distance", help="Distance in meters from a point to a WKT path.")
    dist.add_argument("path")
    dist.add_argument("--point", type=_parse_point, required=True, help="LAT,LNG")
    dist.set_defaults(func=_cmd_distance)

    return parser


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    args = build_parser().parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
