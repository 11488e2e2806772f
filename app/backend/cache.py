import threading
import time as time_module


def is_entry_fresh(stored_at, ttl_seconds, now=None):
    if stored_at is None:
        return False
    if not ttl_seconds or ttl_seconds <= 0:
        # No TTL: entries live for the whole session.
        return True
    current = time_module.monotonic() if now is None else now
    return (current - stored_at) < ttl_seconds


class SeriesCache:
    """Session cache for catalogs and series.

    Keys are tuples starting with the kind and project:
    ``("catalog", project)``, ``("daily", project, node)`` and
    ``("hourly", project, node, month)``.

    Shared by the coordinator on the event loop and by sync endpoints on
    worker threads, so every access goes through ``_guard``.
    """

    def __init__(self, ttl_seconds=0, clock=None):
        self.ttl_seconds = ttl_seconds
        self._clock = clock or time_module.monotonic
        self._entries = {}
        self._guard = threading.Lock()

    def get(self, key):
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if not is_entry_fresh(stored_at, self.ttl_seconds, now=self._clock()):
                self._entries.pop(key, None)
                return None
            return value

    def put(self, key, value):
        with self._guard:
            self._entries[key] = (self._clock(), value)

    def invalidate_project(self, project):
        with self._guard:
            for key in [k for k in list(self._entries) if len(k) > 1 and k[1] == project]:
                self._entries.pop(key, None)

    def clear(self):
        with self._guard:
            self._entries.clear()

    def status(self):
        with self._guard:
            keys = list(self._entries)
        counts = {}
        for key in keys:
            counts[key[0]] = counts.get(key[0], 0) + 1
        return {"entries": len(keys), "by_kind": counts, "ttl_seconds": self.ttl_seconds}

    def __contains__(self, key):
        return self.get(key) is not None

    def __len__(self):
        with self._guard:
            return len(self._entries)
