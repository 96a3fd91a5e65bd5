# ==============================================
# SingleFlight + MetricsCache
# ==============================================
#
# PURPOSE:
#   Coalesce duplicate concurrent work. When several callers ask
#   for the same key at the same time, exactly one computation runs
#   and every caller receives its result (or its exception).
#
# CLASSES:
# --------
# - SingleFlight
#     do(key, fn) -> result
#       Not a cache: once the in-flight call finishes, the next call
#       for the key computes again. Used to share one evaluation of
#       a dataset between concurrent callers.
#
# - MetricsCache
#     get_or_compute(key, fn) -> result
#       Memoizing cache keyed by (dataset_id, descriptor, sibling
#       descriptors, checksum), bounded LRU, with at most one in-flight computation per key.
#
# FUNCTION:
# ---------
# - sample_checksum(values) -> str
#     Order-independent SHA-256 of a value sample.
#
# ==============================================

import hashlib
import json
import threading
from collections import OrderedDict
from concurrent.futures import Future
from typing import Any, Callable, Dict, Hashable, Iterable, Tuple


def sample_checksum(values: Iterable[Any]) -> str:
    """
    Checksum of a value sample that ignores value order.

    Args:
        values: Raw values (any JSON-ish content)

    Returns:
        Hex SHA-256 digest
    """
    encoded = sorted(
        json.dumps(value, sort_keys=True, default=str, ensure_ascii=False)
        for value in values
    )
    digest = hashlib.sha256()
    for item in encoded:
        digest.update(item.encode("utf-8"))
        digest.update(b"\x00")
    return digest.hexdigest()


class SingleFlight:
    """At most one in-flight call per key; concurrent callers share it."""

    def __init__(self):
        self._lock = threading.Lock()
        self._inflight: Dict[Hashable, Future] = {}

    def do(self, key: Hashable, fn: Callable[[], Any]) -> Any:
        with self._lock:
            future = self._inflight.get(key)
            leader = future is None
            if leader:
                future = Future()
                self._inflight[key] = future

        if not leader:
            return future.result()

        try:
            result = fn()
        except BaseException as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(result)
            return result
        finally:
            with self._lock:
                self._inflight.pop(key, None)

    def inflight_count(self) -> int:
        with self._lock:
            return len(self._inflight)


MetricsKey = Tuple[Hashable, ...]


class MetricsCache:
    """
    Bounded cache of per-field results keyed by dataset, field
    descriptor, sibling descriptors and sample checksum.
    """

    def __init__(self, max_entries: int = 10000):
        self.max_entries = max_entries
        self._lock = threading.Lock()
        self._entries: "OrderedDict[MetricsKey, Any]" = OrderedDict()
        self._flight = SingleFlight()
        self.hits = 0
        self.misses = 0

    def get(self, key: MetricsKey) -> Any:
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
                self.hits += 1
                return self._entries[key]
        return None

    def get_or_compute(self, key: MetricsKey, fn: Callable[[], Any]) -> Any:
        cached = self.get(key)
        if cached is not None:
            return cached

        def compute():
            # Another leader may have filled the entry while we waited
            with self._lock:
                if key in self._entries:
                    self.hits += 1
                    return self._entries[key]
                self.misses += 1
            value = fn()
            with self._lock:
                self._entries[key] = value
                self._entries.move_to_end(key)
                while len(self._entries) > self.max_entries:
                    self._entries.popitem(last=False)
            return value

        return self._flight.do(key, compute)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
