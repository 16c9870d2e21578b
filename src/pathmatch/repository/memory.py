"""
In-memory repository.

Used for local development, demos and tests. State lives until the process exits.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable, Sequence
from datetime import datetime

from pathmatch.core.errors import PathNotFound
from pathmatch.core.time import utc_now
from pathmatch.domain.models import Path, Point, TrackedUser

logger = logging.getLogger(__name__)


class InMemoryRepository:
    """Dict-backed store keyed by owner id (paths) and user id (locations)."""

    name = "memory"

    def __init__(self, *, clock: Callable[[], datetime] = utc_now):
        self._clock = clock
        self._lock = threading.Lock()
        self._paths_by_owner: dict[str, Path] = {}
        self._users: dict[str, TrackedUser] = {}

    async def replace_path(
        self, owner_id: str, source: Point, destination: Point, geometry: Sequence[Point]
    ) -> Path:
        path = Path(
            id=uuid.uuid4().hex,
            owner_id=owner_id,
            source=source,
            destination=destination,
            geometry=tuple(geometry),
            created_at=self._clock(),
        )
        with self._lock:
            previous = self._paths_by_owner.get(owner_id)
            self._paths_by_owner[owner_id] = path
        if previous is not None:
            logger.info("Superseded path %s of user %s with %s", previous.id, owner_id, path.id)
        return path

    async def get_current_path(self, owner_id: str) -> Path:
        with self._lock:
            path = self._paths_by_owner.get(owner_id)
        if path is None:
            raise PathNotFound(owner_id=owner_id)
        return path

    async def get_path(self, path_id: str) -> Path:
        with self._lock:
            for path in self._paths_by_owner.values():
                if path.id == path_id:
                    return path
        raise PathNotFound(path_id=path_id)

    async def list_paths(self) -> list[Path]:
        with self._lock:
            paths = list(self._paths_by_owner.values())
        return sorted(paths, key=lambda p: p.created_at, reverse=True)

    async def upsert_user_location(
        self, user_id: str, display_name: str, position: Point, seen_at: datetime
    ) -> TrackedUser:
        user = TrackedUser(id=user_id, display_name=display_name, position=position, last_seen_at=seen_at)
        with self._lock:
            self._users[user_id] = user
        return user

    async def list_users(self, active_since: datetime) -> list[TrackedUser]:
        with self._lock:
            users = list(self._users.values())
        return [u for u in users if u.last_seen_at >= active_since]

    async def aclose(self) -> None:
        return None
