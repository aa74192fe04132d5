"""Per-client request quota and in-flight cap for the HTTP tool route."""

from __future__ import annotations

import threading
import time
from collections import defaultdict, deque
from contextlib import contextmanager
from typing import Callable, Iterator


class RateLimitExceeded(Exception):
    def __init__(self, retry_after_seconds: float, reason: str = "rate_limit") -> None:
        self.retry_after_seconds = max(0.0, retry_after_seconds)
        self.reason = reason
        super().__init__(f"Request rejected: {reason}")


class RequestLimiter:
    """Sliding one-minute window per client plus a global cap on concurrent requests."""

    def __init__(
        self,
        requests_per_minute: int = 100,
        queue_limit: int = 200,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.requests_per_minute = max(1, requests_per_minute)
        self.queue_limit = max(1, queue_limit)
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: dict[str, deque[float]] = defaultdict(deque)
        self._inflight = 0

    @property
    def inflight(self) -> int:
        with self._lock:
            return self._inflight

    def acquire(self, client_id: str) -> None:
        now = self._clock()
        with self._lock:
            if self._inflight >= self.queue_limit:
                raise RateLimitExceeded(retry_after_seconds=1.0, reason="queue_full")
            window = self._windows[client_id]
            while window and window[0] <= now - 60.0:
                window.popleft()
            if len(window) >= self.requests_per_minute:
                raise RateLimitExceeded(retry_after_seconds=max(0.1, 60.0 - (now - window[0])))
            window.append(now)
            self._inflight += 1

    def release(self) -> None:
        with self._lock:
            self._inflight = max(0, self._inflight - 1)

    @contextmanager
    def slot(self, client_id: str) -> Iterator[None]:
        self.acquire(client_id)
        try:
            yield
        finally:
            self.release()
