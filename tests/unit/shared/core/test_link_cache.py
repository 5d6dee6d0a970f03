from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from cloudasset.shared.core.cache import LinkCache
from tests.utils import FakeClock


def test_get_returns_value_before_ttl(fake_clock: FakeClock):
    cache: LinkCache[str] = LinkCache(clock=fake_clock)
    cache.put("link", "value", timedelta(seconds=10))

    fake_clock.advance(9.999)
    assert cache.get("link") == "value"


def test_get_returns_none_after_ttl(fake_clock: FakeClock):
    cache: LinkCache[str] = LinkCache(clock=fake_clock)
    cache.put("link", "value", 10)

    fake_clock.advance(10.001)
    assert cache.get("link") is None
    assert len(cache) == 0


def test_overwrite_resets_ttl(fake_clock: FakeClock):
    cache: LinkCache[str] = LinkCache(clock=fake_clock)
    cache.put("link", "old", 10)
    fake_clock.advance(8)
    cache.put("link", "new", 10)
    fake_clock.advance(8)

    assert cache.get("link") == "new"


def test_miss_returns_none():
    cache: LinkCache[str] = LinkCache()
    assert cache.get("unknown") is None
    assert "unknown" not in cache


def test_capacity_evicts_least_recently_used(fake_clock: FakeClock):
    cache: LinkCache[str] = LinkCache(max_size=2, clock=fake_clock)
    cache.put("a", "A", 60)
    cache.put("b", "B", 60)
    # Touch "a" so "b" becomes the eviction candidate
    assert cache.get("a") == "A"

    cache.put("c", "C", 60)

    assert cache.get("b") is None
    assert cache.get("a") == "A"
    assert cache.get("c") == "C"


def test_full_cache_drops_expired_entries_first(fake_clock: FakeClock):
    cache: LinkCache[str] = LinkCache(max_size=2, clock=fake_clock)
    cache.put("short", "S", 1)
    cache.put("long", "L", 60)
    # Make "long" the least recently used entry
    assert cache.get("short") == "S"
    fake_clock.advance(2)

    cache.put("new", "N", 60)

    assert cache.get("long") == "L"
    assert cache.get("new") == "N"


def test_capacity_is_never_exceeded(fake_clock: FakeClock):
    cache: LinkCache[int] = LinkCache(max_size=3, clock=fake_clock)
    for i in range(10):
        cache.put(f"link-{i}", i, 60)

    assert len(cache) == 3
    assert cache.values() == [7, 8, 9]


def test_items_skip_expired_without_touching_recency(fake_clock: FakeClock):
    cache: LinkCache[str] = LinkCache(max_size=2, clock=fake_clock)
    cache.put("a", "A", 60)
    cache.put("b", "B", 5)
    assert cache.items() == [("a", "A"), ("b", "B")]

    fake_clock.advance(6)
    assert cache.items() == [("a", "A")]


def test_invalid_size_is_rejected():
    with pytest.raises(ValueError):
        LinkCache(max_size=0)


def test_concurrent_writers_and_readers_keep_the_cache_bounded():
    cache: LinkCache[int] = LinkCache(max_size=64)

    def worker(worker_id: int) -> int:
        hits = 0
        for i in range(500):
            link = f"link-{(worker_id * 31 + i) % 200}"
            cache.put(link, i, 60)
            if cache.get(link) is not None:
                hits += 1
            assert len(cache.values()) <= cache.max_size
        return hits

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(worker, range(8)))

    assert len(results) == 8
    assert 0 < len(cache) <= 64
    assert len(cache.items()) == len(cache)
