"""In-memory provider disable windows for fallback orchestration."""

from __future__ import annotations

import threading
import time
from typing import Callable


class ProviderStatus:
    """Tracks which market-data providers are sitting out a rate-limit window."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._disabled_until: dict[str, float] = {}
        self._disable_counts: dict[str, int] = {}

    def disable_provider(self, provider: str, ttl_seconds: int) -> float:
        until = self._clock() + max(1, ttl_seconds)
        with self._lock:
            current = self._disabled_until.get(provider, 0.0)
            self._disabled_until[provider] = max(current, until)
            self._disable_counts[provider] = self._disable_counts.get(provider, 0) + 1
            return self._disabled_until[provider]

    def get_disabled_until(self, provider: str) -> float | None:
        with self._lock:
            until = self._disabled_until.get(provider)
            if until is None:
                return None
            if until <= self._clock():
                self._disabled_until.pop(provider, None)
                return None
            return until

    def is_disabled(self, provider: str) -> bool:
        return self.get_disabled_until(provider) is not None

    def snapshot(self, providers: list[str]) -> dict[str, dict[str, float | int | bool | None]]:
        out: dict[str, dict[str, float | int | bool | None]] = {}
        for provider in providers:
            until = self.get_disabled_until(provider)
            with self._lock:
                count = self._disable_counts.get(provider, 0)
            out[provider] = {"disabled": until is not None, "disabled_until": until, "disable_count": count}
        return out
