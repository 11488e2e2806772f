import threading

from cache import SeriesCache, is_entry_fresh


class FakeClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now


def test_is_entry_fresh_without_ttl_lasts_the_session():
    assert is_entry_fresh(0.0, 0, now=10_000.0) is True
    assert is_entry_fresh(None, 0) is False


def test_is_entry_fresh_respects_ttl():
    assert is_entry_fresh(100.0, 60, now=159.0) is True
    assert is_entry_fresh(100.0, 60, now=160.0) is False


def test_series_cache_expires_entries_after_ttl():
    clock = FakeClock()
    cache = SeriesCache(ttl_seconds=60, clock=clock)
    cache.put(("daily", "rum", "A"), "series")

    assert cache.get(("daily", "rum", "A")) == "series"
    clock.now += 61
    assert cache.get(("daily", "rum", "A")) is None
    assert len(cache) == 0


def test_invalidate_project_drops_only_that_project():
    cache = SeriesCache()
    cache.put(("catalog", "rum"), 1)
    cache.put(("daily", "rum", "A"), 2)
    cache.put(("hourly", "rum", "A", "2024_01"), 3)
    cache.put(("catalog", "pima"), 4)

    cache.invalidate_project("rum")

    assert ("catalog", "pima") in cache
    assert ("daily", "rum", "A") not in cache
    assert cache.status() == {"entries": 1, "by_kind": {"catalog": 1}, "ttl_seconds": 0}


def test_series_cache_survives_concurrent_writers():
    cache = SeriesCache()
    stop = threading.Event()
    errors = []

    def writer(prefix):
        i = 0
        while not stop.is_set():
            cache.put(("hourly", prefix, "A", str(i)), i)
            i += 1

    threads = [threading.Thread(target=writer, args=(name,)) for name in ("rum", "other")]
    for thread in threads:
        thread.start()
    try:
        for _ in range(500):
            try:
                cache.status()
                cache.invalidate_project("other")
            except RuntimeError as exc:
                errors.append(exc)
    finally:
        stop.set()
        for thread in threads:
            thread.join()

    assert errors == []
    assert cache.status()["by_kind"]["hourly"] == len(cache)


def test_clear_drops_every_entry():
    cache = SeriesCache()
    cache.put(("catalog", "rum"), 1)
    cache.put(("catalog", "pima"), 2)

    cache.clear()

    assert len(cache) == 0
    assert cache.status()["by_kind"] == {}
