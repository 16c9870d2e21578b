"""
Error kinds raised by the path-matching engine.

Geometric edge cases (parallel segments, zero-length segments, paths with fewer than two
points) are not errors: they evaluate to "no intersection" / "no match".
"""

from __future__ import annotations

from typing import Any


class PathMatchError(Exception):
    """Base class for all engine errors."""

    code = "PATHMATCH_ERROR"


class MalformedGeometry(PathMatchError, ValueError):
    """The text is not a parseable `LINESTRING(lng lat, ...)` geometry."""

    code = "MALFORMED_GEOMETRY"


class RoutingServiceUnavailable(PathMatchError):
    """The routing service failed; absorbed by the route provider's straight-line fallback."""

    code = "ROUTING_UNAVAILABLE"


class PathNotFound(PathMatchError):
    """No path exists for the requested owner or id (expected for new users)."""

    code = "PATH_NOT_FOUND"

    def __init__(self, *, owner_id: str | None = None, path_id: str | None = None):
        self.owner_id = owner_id
        self.path_id = path_id
        if path_id is not None:
            message = f"No path with id {path_id!r}"
        else:
            message = f"No path yet for user {owner_id!r}"
        super().__init__(message)


class RepositoryError(PathMatchError):
    """The external path/user store failed; carries enough detail for the caller to retry."""

    code = "REPOSITORY_ERROR"

    def __init__(self, message: str, *, status_code: int | None = None, detail: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail

    def as_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": str(self),
            "upstream_status": self.status_code,
            "upstream_detail": self.detail,
        }
