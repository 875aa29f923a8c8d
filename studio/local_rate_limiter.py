import threading


class InMemoryRateWindowStore:
    """
    Process-local rate windows keyed by (source_key, window_start).

    Useful for tests and single-process runs; every store instance is
    independent, so two limiters never share counters by accident.
    """

    def __init__(self):
        self.windows = {}
        self.lock    = threading.Lock()

    def count(self, source_key, window_start):
        with self.lock:
            record = self.windows.get((source_key, window_start))
            return record["request_count"] if record else 0

    def increment(self, source_key, window_start, now):
        with self.lock:
            record = self.windows.setdefault(
                (source_key, window_start),
                {"request_count": 0, "last_updated": now}
            )
            record["request_count"] += 1
            record["last_updated"]   = now
            return record["request_count"]

    def windows_since(self, source_key, since):
        with self.lock:
            return sorted(
                (start, record["request_count"])
                for (key, start), record in self.windows.items()
                if key == source_key and start >= since
            )

    def delete_before(self, cutoff, source_key=None):
        with self.lock:
            old = [
                (key, start) for (key, start) in self.windows
                if start < cutoff and (source_key is None or key == source_key)
            ]
            for k in old:
                del self.windows[k]
            return len(old)
