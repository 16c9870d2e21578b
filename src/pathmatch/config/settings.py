# src/pathmatch/config/settings.py
"""
Application settings (Pydantic).

Settings are loaded from `src/pathmatch/config/defaults.yaml`, then optionally overridden by:
- an external YAML file via `PATHMATCH_CONFIG_PATH`
- environment variables (e.g., `SUPABASE_URL`, `SUPABASE_KEY`, `PATHMATCH_LOG_LEVEL`)

Design rule:
- Tuning knobs (radius, freshness window, cache TTL, routing timeout) live in YAML,
  not hard-coded in business logic.
"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field

from pathmatch.core.env import load_dotenv_if_present


def _read_package_yaml(filename: str) -> dict[str, Any]:
    """Read a YAML file packaged inside `pathmatch.config`."""
    text = resources.files("pathmatch.config").joinpath(filename).read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {filename}; expected a mapping.")
    return data


def _read_yaml_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML file from disk and return its mapping root."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {path}; expected a mapping.")
    return data


class AppSettings(BaseModel):
    # Attached to naive timestamps read from the hosted store.
    timezone: str = "UTC"
    log_level: str = "INFO"


class RoutingSettings(BaseModel):
    base_url: str = "https://router.project-osrm.org"
    profile: str = "driving"
    timeout_seconds: float = Field(5, gt=0)


class ProximitySettings(BaseModel):
    default_radius_m: float = Field(500, gt=0)
    freshness_minutes: float = Field(30, gt=0)


class CacheSettings(BaseModel):
    enabled: bool = True
    ttl_seconds: float = Field(5, ge=0)


class HostedRepositorySettings(BaseModel):
    url: str | None = None
    api_key: str | None = None
    paths_table: str = "commute_routes"
    users_table: str = "profiles"
    timeout_seconds: float = Field(10, gt=0)


class RepositorySettings(BaseModel):
    backend: Literal["memory", "hosted"] = "memory"
    hosted: HostedRepositorySettings = Field(default_factory=HostedRepositorySettings)


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    routing: RoutingSettings = Field(default_factory=RoutingSettings)
    proximity: ProximitySettings = Field(default_factory=ProximitySettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    repository: RepositorySettings = Field(default_factory=RepositorySettings)


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay selected environment variables onto raw settings payload.

    Note: We intentionally keep this whitelist small to avoid exposing unsafe overrides.
    """
    load_dotenv_if_present()
    data = dict(data)

    log_level = os.getenv("PATHMATCH_LOG_LEVEL")
    if log_level:
        data.setdefault("app", {})["log_level"] = log_level

    routing_url = os.getenv("PATHMATCH_ROUTING_BASE_URL")
    if routing_url:
        data.setdefault("routing", {})["base_url"] = routing_url

    backend = os.getenv("PATHMATCH_REPOSITORY_BACKEND")
    if backend:
        data.setdefault("repository", {})["backend"] = backend.strip().lower()

    hosted_url = os.getenv("SUPABASE_URL")
    hosted_key = os.getenv("SUPABASE_KEY")
    if hosted_url:
        data.setdefault("repository", {}).setdefault("hosted", {})["url"] = hosted_url
    if hosted_key:
        data.setdefault("repository", {}).setdefault("hosted", {})["api_key"] = hosted_key

    return data


@lru_cache
def get_settings() -> Settings:
    """Load and validate settings (cached)."""
    load_dotenv_if_present()
    config_path = os.getenv("PATHMATCH_CONFIG_PATH")
    raw = _read_yaml_file(config_path) if config_path else _read_package_yaml("defaults.yaml")
    raw = _apply_env_overrides(raw)
    return Settings.model_validate(raw)


@lru_cache
def get_logging_config() -> dict[str, Any]:
    """Load logging configuration (cached)."""
    return _read_package_yaml("logging.yaml")
