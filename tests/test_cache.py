import pytest

from surgery_lab.cache import DEFAULT_NAMESPACES, BoundedCache, cache_stats, clear_caches, make_caches


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


def test_miss_on_absent_key(clock):
    cache = BoundedCache(max_size=2, ttl=10, clock=clock)
    assert cache.get("missing") is None
    assert cache.get("missing", "fallback") == "fallback"
    assert cache.stats() == {"size": 0, "hit_rate": 0.0, "total_requests": 2, "hits": 0, "misses": 2}


def test_hit_returns_value_and_counts(clock):
    cache = BoundedCache(max_size=2, ttl=10, clock=clock)
    cache.set("a", {"score": 1})
    assert cache.get("a") == {"score": 1}
    cache.get("b")
    stats = cache.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["hit_rate"] == 0.5
    assert stats["total_requests"] == 2


def test_stats_without_requests(clock):
    assert BoundedCache(clock=clock).stats()["hit_rate"] == 0.0


def test_expired_entry_is_removed_on_get(clock):
    cache = BoundedCache(max_size=5, ttl=10, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    clock.advance(10.001)
    assert cache.get("a") is None
    assert cache.stats()["size"] == 1
    assert cache.stats()["misses"] == 1


def test_entry_at_exact_ttl_is_still_fresh(clock):
    cache = BoundedCache(max_size=5, ttl=10, clock=clock)
    cache.set("a", 1)
    clock.advance(10)
    assert cache.get("a") == 1


def test_ttl_counts_from_insertion_not_access(clock):
    cache = BoundedCache(max_size=5, ttl=10, clock=clock)
    cache.set("a", 1)
    clock.advance(9)
    assert cache.get("a") == 1
    clock.advance(2)
    assert cache.get("a") is None


def test_expired_entries_are_not_swept(clock):
    cache = BoundedCache(max_size=5, ttl=10, clock=clock)
    cache.set("a", 1)
    clock.advance(60)
    assert len(cache) == 1
    assert "a" not in cache


def test_set_refreshes_insertion_time(clock):
    cache = BoundedCache(max_size=5, ttl=10, clock=clock)
    cache.set("a", 1)
    clock.advance(8)
    cache.set("a", 2)
    clock.advance(8)
    assert cache.get("a") == 2


def test_lru_eviction_order(clock):
    cache = BoundedCache(max_size=2, ttl=100, clock=clock)
    cache.set("a", 1)
    clock.advance(1)
    cache.set("b", 2)
    clock.advance(1)
    assert cache.get("a") == 1
    clock.advance(1)
    cache.set("c", 3)
    assert cache.has("a")
    assert not cache.has("b")
    assert cache.has("c")


def test_eviction_tie_takes_first_inserted(clock):
    cache = BoundedCache(max_size=2, ttl=100, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("c", 3)
    assert not cache.has("a")
    assert cache.has("b")


def test_overwrite_at_capacity_does_not_evict(clock):
    cache = BoundedCache(max_size=2, ttl=100, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("a", 10)
    assert len(cache) == 2
    assert cache.get("a") == 10
    assert cache.get("b") == 2


def test_capacity_invariant(clock):
    cache = BoundedCache(max_size=3, ttl=100, clock=clock)
    for i in range(50):
        clock.advance(0.5)
        cache.set(f"key{i % 7}", i)
        if i % 3 == 0:
            cache.get(f"key{i % 5}")
        assert len(cache) <= 3


def test_has_does_not_touch_counters(clock):
    cache = BoundedCache(max_size=2, ttl=10, clock=clock)
    cache.set("a", 1)
    assert cache.has("a") is True
    assert cache.has("b") is False
    assert cache.stats()["total_requests"] == 0


def test_has_does_not_refresh_access_time(clock):
    cache = BoundedCache(max_size=2, ttl=100, clock=clock)
    cache.set("a", 1)
    clock.advance(1)
    cache.set("b", 2)
    clock.advance(1)
    cache.has("a")
    cache.set("c", 3)
    assert not cache.has("a")


def test_delete(clock):
    cache = BoundedCache(clock=clock)
    cache.set("a", 1)
    assert cache.delete("a") is True
    assert cache.delete("a") is False


def test_clear_resets_everything(clock):
    cache = BoundedCache(max_size=2, ttl=10, clock=clock)
    cache.set("a", 1)
    cache.get("a")
    cache.get("z")
    cache.clear()
    assert cache.stats() == {"size": 0, "hit_rate": 0.0, "total_requests": 0, "hits": 0, "misses": 0}


def test_stored_none_is_a_hit(clock):
    cache = BoundedCache(max_size=2, ttl=10, clock=clock)
    cache.set("k", None)
    missing = object()
    assert cache.get("k", missing) is None
    assert cache.get("absent", missing) is missing
    assert cache.stats()["hits"] == 1
    assert cache.stats()["misses"] == 1


def test_invalid_max_size():
    with pytest.raises(ValueError):
        BoundedCache(max_size=0)


def test_make_caches_builds_independent_instances(clock):
    caches = make_caches(clock=clock)
    assert set(caches) == set(DEFAULT_NAMESPACES)
    assert caches["dashboard"].max_size == 150
    assert caches["user_progress"].ttl == 120
    caches["cases"].set("k", 1)
    assert not caches["resources"].has("k")


def test_make_caches_custom_namespaces(clock):
    caches = make_caches({"only": (1, 5)}, clock=clock)
    assert list(caches) == ["only"]
    assert caches["only"].max_size == 1


def test_cache_stats_covers_every_namespace(clock):
    caches = make_caches({"a": (2, 10), "b": (2, 10)}, clock=clock)
    caches["a"].set("k", 1)
    caches["a"].get("k")
    stats = cache_stats(caches)
    assert set(stats) == {"a", "b"}
    assert stats["a"]["hits"] == 1
    assert stats["b"]["size"] == 0


def test_clear_caches_one_namespace(clock):
    caches = make_caches({"a": (2, 10), "b": (2, 10)}, clock=clock)
    caches["a"].set("k", 1)
    caches["b"].set("k", 2)
    clear_caches(caches, "a")
    assert len(caches["a"]) == 0
    assert caches["b"].get("k") == 2


def test_clear_caches_all(clock):
    caches = make_caches({"a": (2, 10), "b": (2, 10)}, clock=clock)
    caches["a"].set("k", 1)
    caches["b"].set("k", 2)
    clear_caches(caches)
    assert len(caches["a"]) == 0
    assert len(caches["b"]) == 0


def test_clear_unknown_namespace(clock):
    caches = make_caches({"a": (2, 10)}, clock=clock)
    caches["a"].set("k", 1)
    with pytest.raises(KeyError):
        clear_caches(caches, "typo")
    assert len(caches["a"]) == 1
