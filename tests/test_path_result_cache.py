import threading

import pytest

from pathmatch.core.cache import PathResultCache


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_hit_within_ttl_returns_the_stored_object():
    clock = FakeClock()
    cache = PathResultCache(5, clock=clock)
    result = ({"user_id": "u1", "distance_meters": 12.5},)
    cache.put("p1", 500, result)

    clock.now = 4.9
    assert cache.get("p1", 500) is result
    assert cache.stats.hits == 1


def test_entry_expires_after_ttl():
    clock = FakeClock()
    cache = PathResultCache(5, clock=clock)
    cache.put("p1", 500, ("x",))

    clock.now = 5.0
    assert cache.get("p1", 500) is None
    assert cache.stats.expired == 1
    assert len(cache) == 0


def test_key_includes_radius():
    cache = PathResultCache(5, clock=FakeClock())
    cache.put("p1", 500, ("a",))
    assert cache.get("p1", 200) is None
    assert cache.get("p1", 500.0) == ("a",)
    assert cache.get("p2", 500) is None


def test_invalidate_all_drops_every_entry():
    cache = PathResultCache(5, clock=FakeClock())
    cache.put("p1", 500, ("a",))
    cache.put("p2", 100, ("b",))

    cache.invalidate_all()

    assert cache.get("p1", 500) is None
    assert cache.get("p2", 100) is None
    assert cache.stats.invalidations == 1


def test_disabled_cache_never_stores():
    cache = PathResultCache(5, clock=FakeClock(), enabled=False)
    cache.put("p1", 500, ("a",))
    assert cache.get("p1", 500) is None


def test_negative_ttl_is_rejected():
    with pytest.raises(ValueError):
        PathResultCache(-1)


def test_concurrent_put_and_get_are_safe():
    cache = PathResultCache(60)

    def worker(n: int) -> None:
        for i in range(200):
            cache.put(f"p{i % 10}", float(n), (n, i))
            cache.get(f"p{i % 10}", float(n))
            if i % 50 == 0:
                cache.invalidate_all()

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert cache.stats.sets == 8 * 200


def test_put_computed_before_invalidation_is_discarded():
    cache = PathResultCache(5, clock=FakeClock())
    generation = cache.generation

    cache.invalidate_all()
    cache.put("p1", 500, ("before the move",), generation=generation)

    assert cache.get("p1", 500) is None
    assert cache.stats.stale_writes == 1

    cache.put("p1", 500, ("after the move",), generation=cache.generation)
    assert cache.get("p1", 500) == ("after the move",)


def test_put_sweeps_expired_entries():
    clock = FakeClock()
    cache = PathResultCache(5, clock=clock)
    cache.put("p1", 500, ("a",))
    cache.put("p2", 500, ("b",))

    clock.now = 6.0
    cache.put("p3", 500, ("c",))

    assert len(cache) == 1
    assert cache.stats.expired == 2
    assert cache.get("p3", 500) == ("c",)
