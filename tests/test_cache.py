"""Tests for ruleweave.infrastructure.cache — TTL expiry and LRU eviction."""

from __future__ import annotations

import pytest

from ruleweave.infrastructure.cache import TTLCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


class TestTTLCache:
    def test_get_set(self, clock: FakeClock) -> None:
        cache = TTLCache(clock=clock)
        cache.set("a", {"x": 1})
        assert cache.get("a") == {"x": 1}
        assert cache.get("missing") is None
        assert "a" in cache
        assert len(cache) == 1

    def test_entries_expire(self, clock: FakeClock) -> None:
        cache = TTLCache(default_ttl=10, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2, ttl=100)
        clock.now = 10.0
        assert cache.get("a") == 1
        clock.now = 10.5
        assert cache.get("a") is None
        assert "a" not in cache
        assert cache.get("b") == 2

    def test_evicts_exactly_one_lru_entry(self, clock: FakeClock) -> None:
        cache = TTLCache(max_size=3, clock=clock)
        for key in ("a", "b", "c"):
            cache.set(key, key)
        cache.get("a")
        cache.set("d", "d")
        assert cache.keys() == ["c", "a", "d"]
        assert cache.stats()["evictions"] == 1

    def test_overwrite_does_not_evict(self, clock: FakeClock) -> None:
        cache = TTLCache(max_size=2, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 3)
        assert cache.keys() == ["b", "a"]
        assert cache.get("a") == 3
        assert cache.stats()["evictions"] == 0

    def test_stats_and_clear(self, clock: FakeClock) -> None:
        cache = TTLCache(max_size=5, clock=clock)
        cache.set("a", 1)
        cache.get("a")
        cache.get("b")
        assert cache.stats() == {"entries": 1, "max_size": 5, "hits": 1, "misses": 1, "evictions": 0}
        assert cache.delete("a")
        assert not cache.delete("a")
        cache.set("c", 1)
        cache.clear()
        assert len(cache) == 0

    def test_invalid_size(self) -> None:
        with pytest.raises(ValueError, match="max_size"):
            TTLCache(max_size=0)
