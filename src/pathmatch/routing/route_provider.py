"""
Route acquisition (OSRM-compatible routing service).

`RouteProvider.get_route` asks the routing service for a road-following route and
returns it as a WKT LINESTRING. Any failure (transport, timeout, HTTP status, invalid
JSON, a `code` other than "Ok", an empty route list, unreadable coordinates) degrades
to the two-point straight line. There are no retries: a single failure falls back so
the caller is never blocked beyond the timeout.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from pathmatch.config.settings import RoutingSettings
from pathmatch.core.errors import RoutingServiceUnavailable
from pathmatch.core.http import HttpFailure, fetch_json
from pathmatch.domain.models import Point
from pathmatch.geometry import wkt

logger = logging.getLogger(__name__)

OK_CODE = "Ok"


def straight_line(source: Point, destination: Point) -> str:
    """The fallback geometry: `LINESTRING(src_lng src_lat, dst_lng dst_lat)`."""
    return wkt.encode([source, destination])


def parse_route_response(payload: Any) -> list[Point]:
    """Extract the first route's `[lng, lat]` coordinate list.

    Raises:
        RoutingServiceUnavailable: If the payload is not a usable route response.
    """
    if not isinstance(payload, dict):
        raise RoutingServiceUnavailable("Routing response is not a JSON object")
    if payload.get("code") != OK_CODE:
        raise RoutingServiceUnavailable(
            f"Routing service returned code={payload.get('code')!r}: {payload.get('message', 'no message')}"
        )
    routes = payload.get("routes")
    if not isinstance(routes, list) or not routes:
        raise RoutingServiceUnavailable("Routing response has no routes")

    try:
        coordinates = routes[0]["geometry"]["coordinates"]
        points = [Point(lat=float(c[1]), lng=float(c[0])) for c in coordinates]
    except (KeyError, IndexError, TypeError, ValueError) as exc:
        raise RoutingServiceUnavailable(f"Routing response has unreadable coordinates: {exc}") from exc

    if len(points) < 2:
        raise RoutingServiceUnavailable(f"Routing response has {len(points)} coordinate(s); need at least 2")
    return points


class RouteProvider:
    """Turns a source/destination pair into an encoded path geometry."""

    def __init__(self, settings: RoutingSettings, *, transport: httpx.AsyncBaseTransport | None = None):
        self._settings = settings
        self._transport = transport

    def route_url(self, source: Point, destination: Point) -> str:
        coords = (
            f"{wkt.format_coordinate(source.lng)},{wkt.format_coordinate(source.lat)};"
            f"{wkt.format_coordinate(destination.lng)},{wkt.format_coordinate(destination.lat)}"
        )
        return f"{self._settings.base_url.rstrip('/')}/route/v1/{self._settings.profile}/{coords}"

    async def _fetch_points(self, source: Point, destination: Point) -> list[Point]:
        result = await fetch_json(
            self.route_url(source, destination),
            params={"overview": "full", "geometries": "geojson"},
            timeout_seconds=self._settings.timeout_seconds,
            transport=self._transport,
        )
        if isinstance(result, HttpFailure):
            raise RoutingServiceUnavailable(result.reason)
        return parse_route_response(result.payload)

    async def get_route(self, source: Point, destination: Point) -> str:
        """Return the route as WKT; never raises for routing-service problems."""
        try:
            points = await self._fetch_points(source, destination)
        except RoutingServiceUnavailable as exc:
            logger.warning("Routing failed (%s); using straight line", exc)
            return straight_line(source, destination)
        logger.info("Routing service returned %d points", len(points))
        return wkt.encode(points)
