"""Quotes, fundamentals and price history with provider fallback and caching."""

from __future__ import annotations

from folio_server.providers.alpha_vantage import AlphaVantageClient
from folio_server.providers.fmp import FmpClient
from folio_server.providers.models import CompanyFundamentals, NormalizedDailyClose, NormalizedQuote
from folio_server.services.base import ServiceContext, ServiceResult, run_with_cache, validate_symbol
from folio_server.services.fallback_manager import FallbackManager, ProviderAttempt
from folio_server.services.provider_status import ProviderStatus

MARKET_PROVIDERS = ["fmp", "alphavantage"]


class MarketDataService:
    def __init__(
        self,
        ctx: ServiceContext,
        provider_status: ProviderStatus | None = None,
        quote_ttl_seconds: int = 60,
        fundamentals_ttl_seconds: int = 1800,
        history_ttl_seconds: int = 3600,
        rate_limit_disable_seconds: int = 900,
    ) -> None:
        self.ctx = ctx
        self.provider_status = provider_status or ProviderStatus()
        self.fallback = FallbackManager(
            ctx,
            self.provider_status,
            default_disable_seconds=rate_limit_disable_seconds,
        )
        self.quote_ttl_seconds = quote_ttl_seconds
        self.fundamentals_ttl_seconds = fundamentals_ttl_seconds
        self.history_ttl_seconds = history_ttl_seconds

    def _fmp(self) -> FmpClient | None:
        client = self.ctx.get_provider("fmp")
        return client if isinstance(client, FmpClient) else None

    def _alpha(self) -> AlphaVantageClient | None:
        client = self.ctx.get_provider("alphavantage")
        return client if isinstance(client, AlphaVantageClient) else None

    def configured_providers(self) -> list[str]:
        return [name for name in MARKET_PROVIDERS if self.ctx.get_provider(name) is not None]

    def get_quote(self, symbol: str) -> ServiceResult[NormalizedQuote]:
        clean = validate_symbol(symbol)
        fmp = self._fmp()
        alpha = self._alpha()
        attempts: list[ProviderAttempt[NormalizedQuote]] = []
        if fmp:
            attempts.append(ProviderAttempt("fmp", "Financial Modeling Prep", lambda: fmp.get_quote(clean)))
        if alpha:
            attempts.append(ProviderAttempt("alphavantage", "Alpha Vantage", lambda: alpha.get_quote(clean)))
        return run_with_cache(
            self.ctx,
            f"market:quote:{clean}",
            lambda: self.fallback.execute("get_quote", clean, attempts),
            ttl_seconds=self.quote_ttl_seconds,
        )

    def get_fundamentals(self, symbol: str) -> ServiceResult[CompanyFundamentals]:
        clean = validate_symbol(symbol)
        fmp = self._fmp()
        alpha = self._alpha()
        attempts: list[ProviderAttempt[CompanyFundamentals]] = []
        if fmp:
            attempts.append(ProviderAttempt("fmp", "Financial Modeling Prep", lambda: fmp.get_fundamentals(clean)))
        if alpha:
            attempts.append(ProviderAttempt("alphavantage", "Alpha Vantage", lambda: alpha.get_overview(clean)))
        return run_with_cache(
            self.ctx,
            f"market:fundamentals:{clean}",
            lambda: self.fallback.execute("get_fundamentals", clean, attempts),
            ttl_seconds=self.fundamentals_ttl_seconds,
        )

    def get_daily_closes(self, symbol: str, limit: int = 260) -> ServiceResult[list[NormalizedDailyClose]]:
        clean = validate_symbol(symbol)
        fmp = self._fmp()
        alpha = self._alpha()
        attempts: list[ProviderAttempt[list[NormalizedDailyClose]]] = []
        if fmp:
            attempts.append(
                ProviderAttempt("fmp", "Financial Modeling Prep", lambda: fmp.get_daily_closes(clean, limit))
            )
        if alpha:
            attempts.append(
                ProviderAttempt("alphavantage", "Alpha Vantage", lambda: alpha.get_daily_closes(clean, limit))
            )
        return run_with_cache(
            self.ctx,
            f"market:history:{clean}:{limit}",
            lambda: self.fallback.execute("get_daily_closes", clean, attempts),
            ttl_seconds=self.history_ttl_seconds,
        )
