"""In-memory TTL cache shared by market lookups and report snapshots."""

from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Lock
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass
class _CacheEntry(Generic[T]):
    value: T
    expires_at: float


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    entries: int = 0


class TTLCache:
    """Thread-safe TTL cache keyed by string."""

    def __init__(self, default_ttl_seconds: int = 300) -> None:
        self.default_ttl_seconds = max(1, default_ttl_seconds)
        self._entries: dict[str, _CacheEntry[object]] = {}
        self._lock = Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> object | None:
        now = time.time()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.expires_at < now:
                self._entries.pop(key, None)
                self._misses += 1
                return None
            self._hits += 1
            return entry.value

    def set(self, key: str, value: object, ttl_seconds: int | None = None) -> None:
        ttl = self.default_ttl_seconds if ttl_seconds is None else max(1, ttl_seconds)
        with self._lock:
            self._entries[key] = _CacheEntry(value=value, expires_at=time.time() + ttl)

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(hits=self._hits, misses=self._misses, entries=len(self._entries))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
