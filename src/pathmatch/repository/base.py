"""
Repository contract for paths and tracked users.

The engine has no persistence logic of its own. A backend is chosen once at startup
(`build_repository`) and every component talks to it through this protocol.

Backends raise:
- `PathNotFound` when a path lookup has no result,
- `RepositoryError` for any storage failure.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol

from pathmatch.domain.models import Path, Point, TrackedUser


class PathRepository(Protocol):
    name: str

    async def replace_path(
        self, owner_id: str, source: Point, destination: Point, geometry: Sequence[Point]
    ) -> Path:
        """Delete every prior path of `owner_id` and store the new one."""
        ...

    async def get_current_path(self, owner_id: str) -> Path: ...

    async def get_path(self, path_id: str) -> Path: ...

    async def list_paths(self) -> list[Path]:
        """All current paths, newest first."""
        ...


class UserLocationRepository(Protocol):
    async def upsert_user_location(
        self, user_id: str, display_name: str, position: Point, seen_at: datetime
    ) -> TrackedUser: ...

    async def list_users(self, active_since: datetime) -> list[TrackedUser]:
        """Users whose last report is at or after `active_since`."""
        ...


class Repository(PathRepository, UserLocationRepository, Protocol):
    async def aclose(self) -> None: ...
