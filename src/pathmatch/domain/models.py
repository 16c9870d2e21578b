"""
Domain models (Pydantic).

These types represent the stable "contract" between layers:
- value types (`Point`)
- stored entities (`Path`, `TrackedUser`)
- proximity output (`NearbyUser`, `NearbyUsersResult`)
- API payloads (`PathCreateRequest`, `LocationUpdateRequest`, `LiveViewResult`)

User-facing coordinates are always `{lat, lng}`; only the WKT text format puts
longitude first.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Point(BaseModel):
    """A geographic point in decimal degrees."""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class Caller(BaseModel):
    """The identity a request acts on behalf of (authenticated upstream)."""

    id: str = Field(..., min_length=1)
    display_name: str = Field(..., min_length=1)


class Path(BaseModel):
    """A user's stored route between a source and a destination.

    A path is replaced, never mutated.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    owner_id: str
    source: Point
    destination: Point
    geometry: tuple[Point, ...] = Field(..., min_length=2)
    created_at: datetime

    @model_validator(mode="after")
    def _validate_endpoints(self) -> "Path":
        if self.source != self.geometry[0]:
            raise ValueError("path.source must equal the first geometry point")
        if self.destination != self.geometry[-1]:
            raise ValueError("path.destination must equal the last geometry point")
        return self


class TrackedUser(BaseModel):
    """A user's last reported position."""

    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str
    position: Point
    last_seen_at: datetime

    def is_live(self, now: datetime, freshness: timedelta) -> bool:
        return now - self.last_seen_at <= freshness


class NearbyUser(BaseModel):
    """A tracked user together with its distance to a path."""

    model_config = ConfigDict(frozen=True)

    user: TrackedUser
    distance_m: float = Field(..., ge=0)

    def as_response(self) -> dict:
        return {
            "user_id": self.user.id,
            "display_name": self.user.display_name,
            "latitude": self.user.position.lat,
            "longitude": self.user.position.lng,
            "distance_meters": self.distance_m,
        }


class NearbyUsersResult(BaseModel):
    """Result of a "users near this path" query."""

    path_id: str
    users: tuple[NearbyUser, ...] = ()
    radius_m: float
    cached: bool = False


class PathCreateRequest(BaseModel):
    """Payload for creating (superseding) the caller's current path."""

    source: Point
    destination: Point


class LocationUpdateRequest(BaseModel):
    """Payload for reporting the caller's live position."""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

    def to_point(self) -> Point:
        return Point(lat=self.latitude, lng=self.longitude)


class LivePath(BaseModel):
    """Another user's current path as seen from the caller's live view."""

    path: Path
    intersects_with_user: bool


class LiveViewResult(BaseModel):
    """The caller's path, the users along it, and the other users' paths."""

    status: Literal["success", "no_path", "no_route"] = "success"
    path: Path | None = None
    users_along_path: tuple[NearbyUser, ...] = ()
    paths: tuple[LivePath, ...] = ()
    radius_m: float
    cached: bool = False
