"""Tool-event logging and server health aggregation."""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any

LOGGER = logging.getLogger("folio_server.tool_events")


@dataclass
class HealthSnapshot:
    status: str
    uptime_seconds: float
    total_requests: int
    error_rate: float
    avg_latency_ms: float
    rate_limit_hits: int
    tool_counts: dict[str, int] = field(default_factory=dict)
    providers: dict[str, Any] = field(default_factory=dict)
    cache: dict[str, int] = field(default_factory=dict)


class ServerMetrics:
    def __init__(self, started_at: float | None = None) -> None:
        self.started_at = started_at or time.time()
        self._lock = threading.Lock()
        self.total_requests = 0
        self.error_requests = 0
        self.total_latency_ms = 0.0
        self.rate_limit_hits: dict[str, int] = {}
        self.tool_counts: dict[str, int] = {}

    def record(self, tool: str, latency_ms: float, success: bool) -> None:
        with self._lock:
            self.total_requests += 1
            self.tool_counts[tool] = self.tool_counts.get(tool, 0) + 1
            if not success:
                self.error_requests += 1
            self.total_latency_ms += max(0.0, latency_ms)

    def record_rate_limit_hit(self, client_id: str) -> None:
        with self._lock:
            self.rate_limit_hits[client_id] = self.rate_limit_hits.get(client_id, 0) + 1

    def snapshot(self, providers: dict[str, Any] | None = None) -> HealthSnapshot:
        with self._lock:
            requests = self.total_requests
            errors = self.error_requests
            latency = self.total_latency_ms
            hits = sum(self.rate_limit_hits.values())
            counts = dict(self.tool_counts)
        error_rate = errors / requests if requests else 0.0
        provider_view = providers or {}
        degraded = error_rate > 0.5 or any(
            isinstance(item, dict) and item.get("disabled") for item in provider_view.values()
        )
        return HealthSnapshot(
            status="degraded" if degraded else "ok",
            uptime_seconds=max(0.0, time.time() - self.started_at),
            total_requests=requests,
            error_rate=error_rate,
            avg_latency_ms=latency / requests if requests else 0.0,
            rate_limit_hits=hits,
            tool_counts=counts,
            providers=provider_view,
        )


def log_tool_event(
    tool: str,
    latency_ms: float,
    success: bool,
    client_id: str,
    ticker: str | None = None,
    error: str | None = None,
) -> None:
    """One JSON line per tool call; goes through logging so stdout stays free for stdio transport."""
    payload: dict[str, Any] = {
        "tool": tool,
        "ticker": ticker,
        "latency_ms": round(latency_ms, 3),
        "success": success,
        "client_id": client_id,
        "timestamp": int(time.time()),
    }
    if error:
        payload["error"] = error
    LOGGER.info(json.dumps(payload, ensure_ascii=True))
