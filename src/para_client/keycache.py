"""Bounded LRU cache for derived SigV4 signing keys."""

import collections
import threading
from collections.abc import Callable

DEFAULT_CAPACITY = 1000

CacheKey = tuple[str, str, str, str]


class DerivedKeyCache:
    """Maps (secret, date, region, service) to the derived signing key.

    Entries never expire by time: the date stamp is part of the key, so a
    cached value can only be evicted by LRU pressure.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError(f"Cache capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._entries: collections.OrderedDict[CacheKey, bytes] = (
            collections.OrderedDict()
        )
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries

    def get_or_compute(
        self,
        secret: str,
        date_stamp: str,
        region: str,
        service: str,
        compute: Callable[[str, str, str, str], bytes],
    ) -> bytes:
        key = (secret, date_stamp, region, service)
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
                return self._entries[key]

            value = compute(secret, date_stamp, region, service)
            self._entries[key] = value
            if len(self._entries) > self.capacity:
                self._entries.popitem(last=False)
            return value

    def clear(self):
        with self._lock:
            self._entries.clear()
