"""
Hosted repository (Supabase / PostgREST).

Tables:
- paths (`commute_routes`): id, user_id, created_at, source_lat, source_lng, dest_lat,
  dest_lng, route_wkt
- users (`profiles`): id, username, latitude, longitude, last_active, status

Every transport failure or non-2xx response is raised as `RepositoryError` with the
upstream status and body attached so callers can decide whether to retry.
A row that cannot be read (bad coordinates, bad timestamp) is skipped with a warning in
list queries and raised as `RepositoryError` for single-row reads. Timestamps stored
without an offset are read in the configured timezone.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any

import httpx

from pathmatch.config.settings import HostedRepositorySettings
from pathmatch.core.errors import MalformedGeometry, PathNotFound, RepositoryError
from pathmatch.core.http import DEFAULT_USER_AGENT
from pathmatch.core.time import parse_datetime
from pathmatch.domain.models import Path, Point, TrackedUser
from pathmatch.geometry import wkt

logger = logging.getLogger(__name__)

_PATH_COLUMNS = "id,user_id,created_at,source_lat,source_lng,dest_lat,dest_lng,route_wkt"
_USER_COLUMNS = "id,username,latitude,longitude,last_active"


def _row_to_path(row: dict[str, Any], tz: str = "UTC") -> Path:
    geometry = wkt.decode(str(row.get("route_wkt") or ""))
    if not geometry:
        raise MalformedGeometry(f"Stored path {row.get('id')!r} has no usable geometry")
    return Path(
        id=str(row["id"]),
        owner_id=str(row["user_id"]),
        source=geometry[0],
        destination=geometry[-1],
        geometry=tuple(geometry),
        created_at=parse_datetime(str(row["created_at"]), tz),
    )


def _row_to_user(row: dict[str, Any], tz: str = "UTC") -> TrackedUser | None:
    lat = row.get("latitude")
    lng = row.get("longitude")
    last_active = row.get("last_active")
    if lat is None or lng is None or not last_active:
        return None
    return TrackedUser(
        id=str(row["id"]),
        display_name=str(row.get("username") or "User"),
        position=Point(lat=float(lat), lng=float(lng)),
        last_seen_at=parse_datetime(str(last_active), tz),
    )


class HostedRepository:
    """Talks to a PostgREST endpoint (`{url}/rest/v1/{table}`) with an API key."""

    name = "hosted"

    def __init__(
        self,
        settings: HostedRepositorySettings,
        *,
        timezone: str = "UTC",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not settings.url or not settings.api_key:
            raise RuntimeError(
                "Hosted repository requires repository.hosted.url and api_key "
                "(set SUPABASE_URL and SUPABASE_KEY)."
            )
        self._settings = settings
        self._timezone = timezone
        self._client = httpx.AsyncClient(
            base_url=f"{settings.url.rstrip('/')}/rest/v1",
            timeout=settings.timeout_seconds,
            transport=transport,
            headers={
                "User-Agent": DEFAULT_USER_AGENT,
                "apikey": settings.api_key,
                "Authorization": f"Bearer {settings.api_key}",
            },
        )

    async def _request(
        self,
        method: str,
        table: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        prefer: str | None = None,
    ) -> Any:
        headers = {"Prefer": prefer} if prefer else None
        try:
            resp = await self._client.request(method, f"/{table}", params=params, json=json, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Hosted store %s %s failed: %s", method, table, exc)
            raise RepositoryError(f"{method} {table} failed: {exc}") from exc

        if resp.is_error:
            try:
                detail: Any = resp.json()
            except ValueError:
                detail = resp.text
            logger.warning("Hosted store %s %s returned HTTP %s: %s", method, table, resp.status_code, detail)
            raise RepositoryError(
                f"{method} {table} returned HTTP {resp.status_code}",
                status_code=resp.status_code,
                detail=detail,
            )

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise RepositoryError(f"{method} {table} returned invalid JSON", status_code=resp.status_code) from exc

    def _read_path(self, row: dict[str, Any]) -> Path:
        try:
            return _row_to_path(row, self._timezone)
        except MalformedGeometry:
            raise
        except (KeyError, TypeError, ValueError) as exc:
            raise RepositoryError(f"Unreadable path row {row.get('id')!r}: {exc}", detail=row) from exc

    def _read_user(self, row: dict[str, Any]) -> TrackedUser | None:
        try:
            return _row_to_user(row, self._timezone)
        except (KeyError, TypeError, ValueError) as exc:
            raise RepositoryError(f"Unreadable user row {row.get('id')!r}: {exc}", detail=row) from exc

    async def _select_paths(self, params: dict[str, str]) -> list[Path]:
        rows = await self._request("GET", self._settings.paths_table, params={"select": _PATH_COLUMNS, **params})
        return [self._read_path(row) for row in rows or []]

    async def replace_path(
        self, owner_id: str, source: Point, destination: Point, geometry: Sequence[Point]
    ) -> Path:
        table = self._settings.paths_table
        await self._request("DELETE", table, params={"user_id": f"eq.{owner_id}"})
        rows = await self._request(
            "POST",
            table,
            params={"select": _PATH_COLUMNS},
            json={
                "user_id": owner_id,
                "source_lat": source.lat,
                "source_lng": source.lng,
                "dest_lat": destination.lat,
                "dest_lng": destination.lng,
                "route_wkt": wkt.encode(geometry),
            },
            prefer="return=representation",
        )
        if not rows:
            raise RepositoryError(f"Insert into {table} returned no row")
        path = self._read_path(rows[0])
        logger.info("Stored path %s for user %s (%d points)", path.id, owner_id, len(path.geometry))
        return path

    async def get_current_path(self, owner_id: str) -> Path:
        paths = await self._select_paths({"user_id": f"eq.{owner_id}", "order": "created_at.desc", "limit": "1"})
        if not paths:
            raise PathNotFound(owner_id=owner_id)
        return paths[0]

    async def get_path(self, path_id: str) -> Path:
        paths = await self._select_paths({"id": f"eq.{path_id}", "limit": "1"})
        if not paths:
            raise PathNotFound(path_id=path_id)
        return paths[0]

    async def list_paths(self) -> list[Path]:
        rows = await self._request(
            "GET", self._settings.paths_table, params={"select": _PATH_COLUMNS, "order": "created_at.desc"}
        )
        paths: list[Path] = []
        for row in rows or []:
            try:
                paths.append(self._read_path(row))
            except (MalformedGeometry, RepositoryError) as exc:
                logger.warning("Skipping unreadable path row: %s", exc)
        return paths

    async def upsert_user_location(
        self, user_id: str, display_name: str, position: Point, seen_at: datetime
    ) -> TrackedUser:
        rows = await self._request(
            "POST",
            self._settings.users_table,
            params={"on_conflict": "id", "select": _USER_COLUMNS},
            json={
                "id": user_id,
                "username": display_name,
                "latitude": position.lat,
                "longitude": position.lng,
                "last_active": seen_at.isoformat(),
                "status": "online",
            },
            prefer="resolution=merge-duplicates,return=representation",
        )
        user = self._read_user(rows[0]) if rows else None
        if user is None:
            return TrackedUser(id=user_id, display_name=display_name, position=position, last_seen_at=seen_at)
        return user

    async def list_users(self, active_since: datetime) -> list[TrackedUser]:
        rows = await self._request(
            "GET",
            self._settings.users_table,
            params={"select": _USER_COLUMNS, "last_active": f"gte.{active_since.isoformat()}"},
        )
        users: list[TrackedUser] = []
        for row in rows or []:
            try:
                user = self._read_user(row)
            except RepositoryError as exc:
                logger.warning("Skipping unreadable user row: %s", exc)
                continue
            if user is not None:
                users.append(user)
        return users

    async def aclose(self) -> None:
        await self._client.aclose()
