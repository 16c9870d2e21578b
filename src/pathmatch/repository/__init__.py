"""Path/user repositories and the startup-time backend selection."""

from __future__ import annotations

import logging

from pathmatch.config.settings import Settings
from pathmatch.repository.base import PathRepository, Repository, UserLocationRepository
from pathmatch.repository.hosted import HostedRepository
from pathmatch.repository.memory import InMemoryRepository

logger = logging.getLogger(__name__)

__all__ = [
    "HostedRepository",
    "InMemoryRepository",
    "PathRepository",
    "Repository",
    "UserLocationRepository",
    "build_repository",
]


def build_repository(settings: Settings) -> Repository:
    """Pick the configured backend once; callers never re-check it per request."""
    backend = settings.repository.backend
    if backend == "hosted":
        logger.info("Using hosted repository at %s", settings.repository.hosted.url)
        return HostedRepository(settings.repository.hosted, timezone=settings.app.timezone)
    logger.info("Using in-memory repository")
    return InMemoryRepository()
