"""Per-provider minimum-interval limiter."""

from __future__ import annotations

import time
from threading import Lock


class RateLimiterRegistry:
    """Spaces out calls to each upstream provider.

    FMP's free tier tolerates roughly one request per second, so the default
    interval is one second. Per-provider overrides take precedence.
    """

    def __init__(
        self,
        min_interval_seconds: float = 1.0,
        overrides: dict[str, float] | None = None,
    ) -> None:
        self.min_interval_seconds = max(0.0, min_interval_seconds)
        self._overrides = {key: max(0.0, value) for key, value in (overrides or {}).items()}
        self._next_allowed: dict[str, float] = {}
        self._lock = Lock()

    def interval_for(self, provider: str) -> float:
        return self._overrides.get(provider, self.min_interval_seconds)

    def wait(self, provider: str) -> float:
        """Block until the provider may be called again; returns seconds slept."""
        interval = self.interval_for(provider)
        if interval <= 0:
            return 0.0
        # Reserve the slot under the lock, sleep outside it so other providers are not blocked.
        with self._lock:
            now = time.monotonic()
            slot = max(now, self._next_allowed.get(provider, 0.0))
            self._next_allowed[provider] = slot + interval
        delay = slot - now
        if delay > 0:
            time.sleep(delay)
        return max(0.0, delay)
