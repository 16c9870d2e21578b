"""
Point-to-path proximity matching.

A live tracked user matches a path when the great-circle distance from the user's
position to the nearest point on the path polyline (not merely the nearest vertex) is at
most the radius. Results are ordered by ascending distance.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime, timedelta

from pathmatch.core.geo import distance_to_path_m
from pathmatch.core.time import utc_now
from pathmatch.domain.models import NearbyUser, Path, Point, TrackedUser
from pathmatch.repository.base import UserLocationRepository

logger = logging.getLogger(__name__)


def match_users(
    geometry: Sequence[Point],
    users: Iterable[TrackedUser],
    radius_m: float,
    *,
    exclude_user_id: str | None = None,
) -> list[NearbyUser]:
    """Pure matching step: users within `radius_m` of the polyline, nearest first."""
    if len(geometry) < 2 or radius_m < 0:
        return []

    matches: list[NearbyUser] = []
    for user in users:
        if exclude_user_id is not None and user.id == exclude_user_id:
            continue
        distance = distance_to_path_m(user.position, geometry)
        if distance is not None and distance <= radius_m:
            matches.append(NearbyUser(user=user, distance_m=distance))
    matches.sort(key=lambda m: (m.distance_m, m.user.id))
    return matches


class ProximityMatcher:
    """Finds live users near a path using the user-location repository."""

    def __init__(
        self,
        users: UserLocationRepository,
        *,
        freshness: timedelta = timedelta(minutes=30),
        clock: Callable[[], datetime] = utc_now,
    ):
        self._users = users
        self._freshness = freshness
        self._clock = clock

    @property
    def freshness(self) -> timedelta:
        return self._freshness

    async def live_users(self) -> list[TrackedUser]:
        now = self._clock()
        users = await self._users.list_users(now - self._freshness)
        return [u for u in users if u.is_live(now, self._freshness)]

    async def find_users_near_path(
        self, path: Path, radius_m: float, exclude_user_id: str | None = None
    ) -> list[NearbyUser]:
        matches = match_users(path.geometry, await self.live_users(), radius_m, exclude_user_id=exclude_user_id)
        logger.debug("Path %s: %d live user(s) within %.1fm", path.id, len(matches), radius_m)
        return matches
