import pytest

from pathmatch.config.settings import Settings, get_settings


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_packaged_defaults_match_reference_values(monkeypatch):
    for name in ["PATHMATCH_CONFIG_PATH", "PATHMATCH_REPOSITORY_BACKEND", "PATHMATCH_ROUTING_BASE_URL"]:
        monkeypatch.delenv(name, raising=False)

    settings = get_settings()

    assert settings.proximity.default_radius_m == 500
    assert settings.proximity.freshness_minutes == 30
    assert settings.cache.ttl_seconds == 5
    assert settings.repository.backend == "memory"
    assert settings.routing.base_url == "https://router.project-osrm.org"


def test_env_overrides_apply(monkeypatch):
    monkeypatch.delenv("PATHMATCH_CONFIG_PATH", raising=False)
    monkeypatch.setenv("PATHMATCH_REPOSITORY_BACKEND", "HOSTED")
    monkeypatch.setenv("SUPABASE_URL", "https://store.example.test")
    monkeypatch.setenv("SUPABASE_KEY", "secret")
    monkeypatch.setenv("PATHMATCH_LOG_LEVEL", "debug")

    settings = get_settings()

    assert settings.repository.backend == "hosted"
    assert settings.repository.hosted.url == "https://store.example.test"
    assert settings.repository.hosted.api_key == "secret"
    assert settings.app.log_level == "debug"


def test_external_yaml_replaces_defaults(monkeypatch, tmp_path):
    config = tmp_path / "config.yaml"
    config.write_text("cache:\n  ttl_seconds: 2\nproximity:\n  default_radius_m: 250\n", encoding="utf-8")
    monkeypatch.setenv("PATHMATCH_CONFIG_PATH", str(config))
    monkeypatch.delenv("PATHMATCH_REPOSITORY_BACKEND", raising=False)

    settings = get_settings()

    assert settings.cache.ttl_seconds == 2
    assert settings.proximity.default_radius_m == 250
    assert settings.proximity.freshness_minutes == 30


def test_unknown_backend_is_rejected():
    with pytest.raises(ValueError):
        Settings.model_validate({"repository": {"backend": "sqlite"}})
