from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Dict, Generic, Optional, TypeVar

from seoul_bites.models import LocationCoords

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    value: T
    expires_at: float


class ReplyCache(Generic[T]):
    """In-memory TTL cache for backend replies, evicting the oldest entry when full.

    Only touched from the event loop, so there is no locking. ttl_s <= 0
    turns the cache off.
    """

    def __init__(self, *, ttl_s: float, max_size: int) -> None:
        self.ttl_s = ttl_s
        self.max_size = max_size
        self._store: Dict[str, CacheEntry[T]] = {}

    @property
    def enabled(self) -> bool:
        return self.ttl_s > 0 and self.max_size > 0

    def get(self, key: str) -> Optional[T]:
        if not self.enabled:
            return None
        entry = self._store.get(key)
        if entry is None:
            return None
        if entry.expires_at < time.monotonic():
            self._store.pop(key, None)
            return None
        return entry.value

    def put(self, key: str, value: T) -> None:
        if not self.enabled:
            return
        now = time.monotonic()
        for stale in [k for k, e in self._store.items() if e.expires_at < now]:
            self._store.pop(stale, None)
        if key not in self._store and len(self._store) >= self.max_size:
            oldest = min(self._store.items(), key=lambda item: item[1].expires_at)[0]
            self._store.pop(oldest, None)
        self._store[key] = CacheEntry(value=value, expires_at=now + self.ttl_s)

    def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)


def search_cache_key(query: str, location: Optional[LocationCoords]) -> str:
    # ~100 m grid, so a jittery GPS fix still hits the cache
    if location is None:
        where = "-"
    else:
        where = f"{location.latitude:.3f},{location.longitude:.3f}"
    return f"{query.strip().lower()}|{where}"
