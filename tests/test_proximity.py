import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from pathmatch.core.geo import distance_to_path_m, distance_to_segment_m, haversine_m
from pathmatch.domain.models import Path, Point, TrackedUser
from pathmatch.proximity.matcher import ProximityMatcher, match_users
from pathmatch.repository.memory import InMemoryRepository

NOW = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)

# Straight line from (0, 0) to (0, 10): ten degrees north along the prime meridian.
LINE = (Point(lat=0, lng=0), Point(lat=10, lng=0))


def _user(user_id: str, lat: float, lng: float, *, minutes_ago: float = 1) -> TrackedUser:
    return TrackedUser(
        id=user_id,
        display_name=user_id.title(),
        position=Point(lat=lat, lng=lng),
        last_seen_at=NOW - timedelta(minutes=minutes_ago),
    )


def _path(geometry: tuple[Point, ...], path_id: str = "p1", owner_id: str = "owner") -> Path:
    return Path(
        id=path_id,
        owner_id=owner_id,
        source=geometry[0],
        destination=geometry[-1],
        geometry=geometry,
        created_at=NOW,
    )


def test_haversine_one_degree_of_latitude():
    assert haversine_m(Point(lat=0, lng=0), Point(lat=1, lng=0)) == pytest.approx(111_195, rel=1e-3)


def test_distance_uses_nearest_point_on_segment_not_nearest_vertex():
    user = Point(lat=5, lng=0.001)
    nearest_vertex = min(haversine_m(user, p) for p in LINE)

    d = distance_to_segment_m(user, *LINE)

    assert d == pytest.approx(110.77, abs=0.5)
    assert nearest_vertex > 500_000


def test_distance_clamps_to_segment_endpoints():
    beyond_end = Point(lat=10.01, lng=0)
    assert distance_to_segment_m(beyond_end, *LINE) == pytest.approx(haversine_m(beyond_end, LINE[1]))


def test_distance_to_zero_length_segment_is_distance_to_the_point():
    p = Point(lat=1, lng=1)
    q = Point(lat=1.001, lng=1)
    assert distance_to_segment_m(q, p, p) == pytest.approx(haversine_m(q, p))


def test_distance_to_path_takes_minimum_over_segments():
    geometry = [Point(lat=0, lng=0), Point(lat=0, lng=1), Point(lat=1, lng=1)]
    user = Point(lat=0.5, lng=1.002)
    assert distance_to_path_m(user, geometry) == pytest.approx(distance_to_segment_m(user, geometry[1], geometry[2]))
    assert distance_to_path_m(user, geometry[:1]) is None


def test_example_user_111m_east_included_at_200m_excluded_at_50m():
    users = [_user("east", lat=5, lng=0.001)]
    assert [m.user.id for m in match_users(LINE, users, 200)] == ["east"]
    assert match_users(LINE, users, 50) == []


def test_user_exactly_at_radius_is_included_and_excluded_just_below():
    user = _user("edge", lat=3.3, lng=0.0042)
    r = distance_to_path_m(user.position, LINE)

    assert [m.user.id for m in match_users(LINE, [user], r)] == ["edge"]
    assert match_users(LINE, [user], r - 1e-6) == []


def test_results_are_ordered_by_distance_and_exclude_requested_user():
    users = [
        _user("far", lat=5, lng=0.003),
        _user("owner", lat=5, lng=0.0),
        _user("near", lat=2, lng=0.001),
        _user("outside", lat=5, lng=0.5),
    ]
    matches = match_users(LINE, users, 500, exclude_user_id="owner")
    assert [m.user.id for m in matches] == ["near", "far"]
    assert matches[0].distance_m < matches[1].distance_m


def test_empty_geometry_matches_nobody():
    assert match_users((), [_user("a", 0, 0)], 1_000) == []


def test_matcher_only_returns_live_users():
    repo = InMemoryRepository(clock=lambda: NOW)
    matcher = ProximityMatcher(repo, freshness=timedelta(minutes=30), clock=lambda: NOW)

    async def scenario():
        for user in [_user("fresh", 5, 0.001, minutes_ago=29), _user("stale", 5, 0.001, minutes_ago=31)]:
            await repo.upsert_user_location(user.id, user.display_name, user.position, user.last_seen_at)
        return await matcher.find_users_near_path(_path(LINE), 200)

    matches = asyncio.run(scenario())
    assert [m.user.id for m in matches] == ["fresh"]
    assert matches[0].as_response() == {
        "user_id": "fresh",
        "display_name": "Fresh",
        "latitude": 5,
        "longitude": 0.001,
        "distance_meters": matches[0].distance_m,
    }
