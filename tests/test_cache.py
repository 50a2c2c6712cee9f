import threading

from cache import TTLCache
from scheduler import SchedulerManager


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_entries_expire_after_ttl() -> None:
    clock = FakeClock()
    cache = TTLCache(default_ttl=10, clock=clock)
    cache.set("a", 1)

    clock.now = 10
    assert cache.get("a") == 1

    clock.now = 10.5
    assert cache.get("a") is None
    assert len(cache) == 0


def test_get_or_compute_only_computes_once() -> None:
    cache = TTLCache(default_ttl=60, clock=FakeClock())
    calls = []

    def compute():
        calls.append(1)
        return {"total": 42}

    first = cache.get_or_compute("k", compute)
    second = cache.get_or_compute("k", compute)

    assert first is second
    assert len(calls) == 1


def test_purge_expired_returns_count() -> None:
    clock = FakeClock()
    cache = TTLCache(default_ttl=5, clock=clock)
    cache.set("short", 1)
    cache.set("long", 2, ttl=100)
    cache.set("gone", 3)
    cache.delete("gone")

    clock.now = 6
    assert cache.purge_expired() == 1
    assert cache.has("long")
    assert not cache.has("short")

    cache.clear()
    assert len(cache) == 0


def test_make_key_joins_parts() -> None:
    assert TTLCache.make_key("calendar", 1, "business", 2025, 3) == "calendar:1:business:2025:3"


def test_scheduler_job_purges_cache() -> None:
    clock = FakeClock()
    cache = TTLCache(default_ttl=1, clock=clock)
    cache.set("stale", True)
    clock.now = 2

    manager = SchedulerManager(cache)

    assert manager._run_job("test") == 1
    assert len(cache) == 0


def test_readers_and_purge_can_run_concurrently() -> None:
    clock = FakeClock()
    cache = TTLCache(default_ttl=1, clock=clock)
    keys = [f"k{i}" for i in range(20_000)]
    for key in keys:
        cache.set(key, key)
    clock.now = 5

    failures = []
    start = threading.Barrier(5)

    def read_all() -> None:
        start.wait()
        try:
            for key in keys:
                cache.get(key)
                cache.set(f"fresh-{key}", 1, ttl=100)
        except Exception as exc:
            failures.append(repr(exc))

    readers = [threading.Thread(target=read_all) for _ in range(4)]
    for thread in readers:
        thread.start()
    start.wait()
    purged = cache.purge_expired()
    for thread in readers:
        thread.join()

    assert failures == []
    assert purged <= len(keys)
    assert all(cache.get(key) is None for key in keys)
    assert len(cache) == len(keys)
