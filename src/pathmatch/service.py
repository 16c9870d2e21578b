"""
Path service (composition root).

`PathService` wires the engine together for the API and CLI:
- `RouteProvider` turns source/destination into geometry,
- the repository persists paths and user positions,
- `ProximityMatcher` answers "who is near this path", behind `PathResultCache`,
- `intersection.points_intersect` answers "which paths cross mine" (never cached).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from pathmatch.config.settings import Settings
from pathmatch.core.cache import PathResultCache
from pathmatch.core.errors import MalformedGeometry
from pathmatch.core.time import utc_now
from pathmatch.domain.models import (
    Caller,
    LivePath,
    LiveViewResult,
    NearbyUser,
    NearbyUsersResult,
    Path,
    Point,
    TrackedUser,
)
from pathmatch.geometry import wkt
from pathmatch.geometry.intersection import points_intersect
from pathmatch.proximity.matcher import ProximityMatcher
from pathmatch.repository import Repository, build_repository
from pathmatch.routing.route_provider import RouteProvider

logger = logging.getLogger(__name__)


class PathService:
    def __init__(
        self,
        *,
        repository: Repository,
        route_provider: RouteProvider,
        matcher: ProximityMatcher,
        cache: PathResultCache[tuple[NearbyUser, ...]],
        default_radius_m: float = 500,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repository = repository
        self.route_provider = route_provider
        self.matcher = matcher
        self.cache = cache
        self.default_radius_m = float(default_radius_m)
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, *, repository: Repository | None = None) -> "PathService":
        repo = repository if repository is not None else build_repository(settings)
        return cls(
            repository=repo,
            route_provider=RouteProvider(settings.routing),
            matcher=ProximityMatcher(repo, freshness=timedelta(minutes=settings.proximity.freshness_minutes)),
            cache=PathResultCache(settings.cache.ttl_seconds, enabled=settings.cache.enabled),
            default_radius_m=settings.proximity.default_radius_m,
        )

    async def update_location(self, caller: Caller, position: Point) -> TrackedUser:
        """Store the caller's position and drop every cached proximity result."""
        user = await self.repository.upsert_user_location(caller.id, caller.display_name, position, self._clock())
        # Any move can change any path's nearby-user set.
        self.cache.invalidate_all()
        return user

    async def create_path(self, caller: Caller, source: Point, destination: Point) -> Path:
        """Route source -> destination and store it as the caller's only current path."""
        await self.update_location(caller, source)

        route = await self.route_provider.get_route(source, destination)
        geometry = wkt.decode(route)
        if not geometry:
            raise MalformedGeometry(f"Route for user {caller.id!r} has no usable geometry")

        path = await self.repository.replace_path(caller.id, geometry[0], geometry[-1], geometry)
        logger.info("User %s now has path %s with %d points", caller.id, path.id, len(path.geometry))
        return path

    async def _nearby(self, path: Path, radius_m: float, exclude_user_id: str | None) -> tuple[tuple[NearbyUser, ...], bool]:
        # The excluded user is part of the result, so it is part of the cache identity.
        cache_id = f"{path.id}:{exclude_user_id or ''}"
        cached = self.cache.get(cache_id, radius_m)
        if cached is not None:
            return cached, True
        # A location update during the query bumps the generation and the write is dropped.
        generation = self.cache.generation
        users = tuple(await self.matcher.find_users_near_path(path, radius_m, exclude_user_id))
        self.cache.put(cache_id, radius_m, users, generation=generation)
        return users, False

    async def users_near_path(
        self, path_id: str, radius_m: float | None = None, exclude_user_id: str | None = None
    ) -> NearbyUsersResult:
        """Live users near a stored path (raises `PathNotFound` for an unknown id)."""
        radius = self.default_radius_m if radius_m is None else float(radius_m)
        path = await self.repository.get_path(path_id)
        users, cached = await self._nearby(path, radius, exclude_user_id)
        return NearbyUsersResult(path_id=path.id, users=users, radius_m=radius, cached=cached)

    async def live_view(
        self, caller: Caller, radius_m: float | None = None, *, intersecting_only: bool = False
    ) -> LiveViewResult:
        """The caller's path, users along it and other users' paths flagged for crossings.

        Raises:
            PathNotFound: If the caller has not created a path yet.
        """
        radius = self.default_radius_m if radius_m is None else float(radius_m)
        own = await self.repository.get_current_path(caller.id)
        users, cached = await self._nearby(own, radius, caller.id)

        others: list[LivePath] = []
        for path in await self.repository.list_paths():
            if path.owner_id == caller.id:
                continue
            crosses = points_intersect(own.geometry, path.geometry)
            if intersecting_only and not crosses:
                continue
            others.append(LivePath(path=path, intersects_with_user=crosses))

        return LiveViewResult(path=own, users_along_path=users, paths=tuple(others), radius_m=radius, cached=cached)

    async def live_users(self) -> list[TrackedUser]:
        return await self.matcher.live_users()

    async def aclose(self) -> None:
        await self.repository.aclose()
