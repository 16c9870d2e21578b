from datetime import datetime, timedelta, timezone

import httpx
import pytest
from starlette.testclient import TestClient

from pathmatch.api.app import app
from pathmatch.config.settings import RoutingSettings
from pathmatch.core.cache import PathResultCache
from pathmatch.core.errors import RepositoryError
from pathmatch.proximity.matcher import ProximityMatcher
from pathmatch.repository.memory import InMemoryRepository
from pathmatch.routing.route_provider import RouteProvider
from pathmatch.service import PathService

NOW = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)


def _osrm(request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        200,
        json={"code": "Ok", "routes": [{"geometry": {"coordinates": [[0, 0], [0, 5], [0, 10]]}}]},
    )


@pytest.fixture
def service(monkeypatch):
    # Patch the cached service factory so API tests stay offline.
    import pathmatch.api.routes as routes

    repo = InMemoryRepository(clock=lambda: NOW)
    svc = PathService(
        repository=repo,
        route_provider=RouteProvider(RoutingSettings(base_url="https://osrm.test"), transport=httpx.MockTransport(_osrm)),
        matcher=ProximityMatcher(repo, freshness=timedelta(minutes=30), clock=lambda: NOW),
        cache=PathResultCache(5, clock=lambda: 0.0),
        clock=lambda: NOW,
    )
    monkeypatch.setattr(routes, "_service", lambda: svc)
    return svc


def _headers(user_id: str, name: str) -> dict[str, str]:
    return {"X-User-Id": user_id, "X-User-Name": name}


def test_live_view_reports_no_path_for_new_user(service):
    with TestClient(app) as c:
        resp = c.get("/api/path/live", headers=_headers("alice", "Alice"))
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "no_path"
    assert data["data"] == []
    assert data["proximity_radius"] == 500


def test_set_path_then_query_users_along_it(service):
    with TestClient(app) as c:
        created = c.post(
            "/api/path/set",
            json={"source": {"lat": 0, "lng": 0}, "destination": {"lat": 10, "lng": 0}},
            headers=_headers("alice", "Alice"),
        )
        assert created.status_code == 200
        body = created.json()
        assert body["success"] is True
        assert body["route"] == "LINESTRING(0 0, 0 5, 0 10)"
        path_id = body["path_id"]

        moved = c.post("/api/location/update", json={"latitude": 5, "longitude": 0.001}, headers=_headers("bob", "Bob"))
        assert moved.status_code == 200

        near = c.get(f"/api/path/{path_id}/users", params={"radius": 200}, headers=_headers("alice", "Alice"))
        again = c.get(f"/api/path/{path_id}/users", params={"radius": 200}, headers=_headers("alice", "Alice"))
        narrow = c.get(f"/api/path/{path_id}/users", params={"radius": 50}, headers=_headers("alice", "Alice"))

    data = near.json()
    assert [u["user_id"] for u in data["data"]] == ["bob"]
    assert data["data"][0]["display_name"] == "Bob"
    assert 100 < data["data"][0]["distance_meters"] < 120
    assert data["radius"] == 200
    assert data["cached"] is False
    assert again.json()["cached"] is True
    assert again.json()["data"] == data["data"]
    assert narrow.json()["data"] == []


def test_live_view_returns_own_path_and_users_along_it(service):
    with TestClient(app) as c:
        c.post(
            "/api/path/set",
            json={"source": {"lat": 0, "lng": 0}, "destination": {"lat": 10, "lng": 0}},
            headers=_headers("alice", "Alice"),
        )
        c.post("/api/location/update", json={"latitude": 5, "longitude": 0.001}, headers=_headers("bob", "Bob"))
        resp = c.get("/api/path/live", params={"proximity_radius": 200}, headers=_headers("alice", "Alice"))

    data = resp.json()
    assert data["status"] == "success"
    assert data["data"][0]["user_id"] == "alice"
    assert data["data"][0]["route"] == "LINESTRING(0 0, 0 5, 0 10)"
    assert [u["user_id"] for u in data["users_along_path"]] == ["bob"]


def test_unknown_path_id_is_404(service):
    with TestClient(app) as c:
        resp = c.get("/api/path/nope/users", headers=_headers("alice", "Alice"))
    assert resp.status_code == 404
    assert resp.json()["detail"]["code"] == "PATH_NOT_FOUND"


def test_missing_identity_header_is_rejected(service):
    with TestClient(app) as c:
        resp = c.get("/api/path/live")
    assert resp.status_code == 422


def test_invalid_coordinates_are_rejected(service):
    with TestClient(app) as c:
        resp = c.post("/api/location/update", json={"latitude": 91, "longitude": 0}, headers=_headers("bob", "Bob"))
    assert resp.status_code == 422


def test_repository_failures_are_502_with_detail(service, monkeypatch):
    async def broken(_since):
        raise RepositoryError("GET profiles returned HTTP 503", status_code=503, detail={"message": "down"})

    monkeypatch.setattr(service.repository, "list_users", broken)
    with TestClient(app) as c:
        resp = c.get("/api/location/live")
    assert resp.status_code == 502
    assert resp.json()["detail"]["upstream_status"] == 503


def test_health_reports_backend(service):
    with TestClient(app) as c:
        resp = c.get("/api/health")
    assert resp.json() == {"status": "ok", "repository": "memory"}
