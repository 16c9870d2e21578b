"""
API routes.

Endpoints:
- POST `/api/path/set`: route source -> destination and store it as the caller's path.
- GET  `/api/path/live`: the caller's path, users along it, and other users' paths.
- GET  `/api/path/{path_id}/users`: live users within a radius of a stored path.
- POST `/api/location/update`: report the caller's position.
- GET  `/api/location/live`: users seen within the freshness window.
- GET  `/api/health`: liveness + configured repository backend.

Identity comes from `X-User-Id` / `X-User-Name` headers set by the authenticating proxy.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Query

from pathmatch.config.settings import get_settings
from pathmatch.core.errors import MalformedGeometry, PathNotFound, RepositoryError
from pathmatch.core.time import utc_now
from pathmatch.domain.models import (
    Caller,
    LocationUpdateRequest,
    NearbyUser,
    Path,
    PathCreateRequest,
    TrackedUser,
)
from pathmatch.geometry import wkt
from pathmatch.service import PathService

logger = logging.getLogger(__name__)

router = APIRouter()


@lru_cache
def _service() -> PathService:
    return PathService.from_settings(get_settings())


def get_service() -> PathService:
    return _service()


def get_caller(
    x_user_id: str = Header(..., min_length=1),
    x_user_name: str | None = Header(default=None),
) -> Caller:
    return Caller(id=x_user_id, display_name=x_user_name or "User")


def _path_payload(path: Path) -> dict[str, Any]:
    return {
        "id": path.id,
        "user_id": path.owner_id,
        "created_at": path.created_at.isoformat(),
        "route": wkt.encode(path.geometry),
        "source": path.source.model_dump(),
        "destination": path.destination.model_dump(),
    }


def _user_payload(user: TrackedUser) -> dict[str, Any]:
    return {
        "user_id": user.id,
        "display_name": user.display_name,
        "latitude": user.position.lat,
        "longitude": user.position.lng,
        "last_seen_at": user.last_seen_at.isoformat(),
    }


def _nearby_payload(users: tuple[NearbyUser, ...]) -> list[dict[str, Any]]:
    return [u.as_response() for u in users]


def _repository_failure(exc: RepositoryError) -> HTTPException:
    return HTTPException(status_code=502, detail=exc.as_dict())


@router.get("/api/health")
def get_health() -> dict:
    settings = get_settings()
    return {"status": "ok", "repository": settings.repository.backend}


@router.post("/api/path/set")
async def post_path(
    body: PathCreateRequest,
    caller: Caller = Depends(get_caller),
    service: PathService = Depends(get_service),
) -> dict:
    """Create (and supersede) the caller's current path."""
    try:
        path = await service.create_path(caller, body.source, body.destination)
    except MalformedGeometry as e:
        return {"success": False, "status": "no_route", "message": str(e)}
    except RepositoryError as e:
        raise _repository_failure(e) from e

    return {
        "success": True,
        "status": "success",
        "path_id": path.id,
        "route": wkt.encode(path.geometry),
        "points": len(path.geometry),
    }


@router.get("/api/path/live")
async def get_live_paths(
    proximity_radius: float | None = Query(default=None, gt=0),
    intersect_only: bool = False,
    caller: Caller = Depends(get_caller),
    service: PathService = Depends(get_service),
) -> dict:
    """Return the caller's path plus the users along it and other users' paths."""
    radius = service.default_radius_m if proximity_radius is None else proximity_radius
    base = {"proximity_radius": radius, "timestamp": utc_now().isoformat()}
    try:
        view = await service.live_view(caller, radius, intersecting_only=intersect_only)
    except PathNotFound:
        return {
            **base,
            "success": True,
            "status": "no_path",
            "message": "No path found for current user. Create a route first.",
            "data": [],
            "users_along_path": [],
            "paths": [],
            "cached": False,
        }
    except MalformedGeometry as e:
        logger.warning("Live view for %s has unreadable geometry: %s", caller.id, e)
        return {
            **base,
            "success": True,
            "status": "no_route",
            "message": str(e),
            "data": [],
            "users_along_path": [],
            "paths": [],
            "cached": False,
        }
    except RepositoryError as e:
        raise _repository_failure(e) from e

    return {
        **base,
        "success": True,
        "status": view.status,
        "data": [_path_payload(view.path)] if view.path else [],
        "users_along_path": _nearby_payload(view.users_along_path),
        "paths": [{**_path_payload(p.path), "intersects_with_user": p.intersects_with_user} for p in view.paths],
        "cached": view.cached,
    }


@router.get("/api/path/{path_id}/users")
async def get_users_along_path(
    path_id: str,
    radius: float | None = Query(default=None, gt=0),
    caller: Caller = Depends(get_caller),
    service: PathService = Depends(get_service),
) -> dict:
    """Return live users within `radius` meters of a stored path, nearest first."""
    try:
        result = await service.users_near_path(path_id, radius, exclude_user_id=caller.id)
    except PathNotFound as e:
        raise HTTPException(status_code=404, detail={"code": e.code, "message": str(e)}) from e
    except MalformedGeometry as e:
        logger.warning("Path %s has unreadable geometry: %s", path_id, e)
        return {
            "success": True,
            "status": "no_route",
            "data": [],
            "radius": service.default_radius_m if radius is None else radius,
            "cached": False,
        }
    except RepositoryError as e:
        raise _repository_failure(e) from e

    return {
        "success": True,
        "status": "success",
        "data": _nearby_payload(result.users),
        "radius": result.radius_m,
        "cached": result.cached,
    }


@router.post("/api/location/update")
async def post_location(
    body: LocationUpdateRequest,
    caller: Caller = Depends(get_caller),
    service: PathService = Depends(get_service),
) -> dict:
    """Report the caller's live position (clears cached proximity results)."""
    try:
        user = await service.update_location(caller, body.to_point())
    except RepositoryError as e:
        raise _repository_failure(e) from e
    return {"success": True, "data": _user_payload(user)}


@router.get("/api/location/live")
async def get_live_users(service: PathService = Depends(get_service)) -> dict:
    """Return every user seen within the freshness window."""
    try:
        users = await service.live_users()
    except RepositoryError as e:
        raise _repository_failure(e) from e
    return {"success": True, "data": [_user_payload(u) for u in users]}
