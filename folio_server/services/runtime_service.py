"""Runtime health service."""

from __future__ import annotations

from folio_server.runtime.monitoring import HealthSnapshot, ServerMetrics
from folio_server.services.base import ServiceContext
from folio_server.services.market_service import MARKET_PROVIDERS
from folio_server.services.provider_status import ProviderStatus


class RuntimeService:
    def __init__(self, ctx: ServiceContext, provider_status: ProviderStatus) -> None:
        self.ctx = ctx
        self.provider_status = provider_status

    def provider_report(self) -> dict[str, dict[str, object]]:
        report = self.provider_status.snapshot(MARKET_PROVIDERS)
        for name, entry in report.items():
            entry["configured"] = self.ctx.get_provider(name) is not None
        return report

    def get_server_health(self) -> HealthSnapshot:
        metrics = self.ctx.server_metrics
        if not isinstance(metrics, ServerMetrics):
            metrics = ServerMetrics()
        snapshot = metrics.snapshot(self.provider_report())
        cache_stats = self.ctx.cache.stats()
        snapshot.cache = {
            "hits": cache_stats.hits,
            "misses": cache_stats.misses,
            "entries": cache_stats.entries,
        }
        return snapshot
