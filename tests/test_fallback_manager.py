from folio_server.cache.ttl_cache import TTLCache
from folio_server.providers.alpha_vantage import AlphaVantageClient
from folio_server.providers.fmp import FmpClient
from folio_server.providers.http import ProviderError
from folio_server.providers.models import NormalizedQuote
from folio_server.services.base import ServiceContext
from folio_server.services.fallback_manager import FallbackManager, ProviderAttempt
from folio_server.services.market_service import MarketDataService
from folio_server.services.provider_status import ProviderStatus
from folio_server.utils.rate_limit import RateLimiterRegistry


def _ctx(providers=None) -> ServiceContext:
    return ServiceContext(providers=providers or {}, cache=TTLCache(), rate_limiter=RateLimiterRegistry(0.0))


def _quote(symbol: str, source: str) -> NormalizedQuote:
    return NormalizedQuote(
        symbol=symbol,
        price=123.0,
        change=1.0,
        percent_change=0.8,
        high=124.0,
        low=122.0,
        open=122.5,
        previous_close=122.0,
        timestamp=1700000000,
        source=source,
    )


def test_rate_limited_provider_is_parked_and_skipped() -> None:
    status = ProviderStatus()
    manager = FallbackManager(ctx=_ctx(), provider_status=status, rate_limit_disable_seconds={"fmp": 60})
    calls = {"fmp": 0, "alpha": 0}

    def fmp_call():
        calls["fmp"] += 1
        raise ProviderError("fmp", "RATE_LIMIT", "Limit Reach", 429)

    def alpha_call():
        calls["alpha"] += 1
        return _quote("AAPL", "alphavantage")

    attempts = [
        ProviderAttempt("fmp", "Financial Modeling Prep", fmp_call),
        ProviderAttempt("alphavantage", "Alpha Vantage", alpha_call),
    ]
    first = manager.execute("get_quote", "AAPL", attempts)
    assert first.data is not None
    assert first.source == "Alpha Vantage"
    assert first.warning is not None
    assert status.is_disabled("fmp") is True

    second = manager.execute("get_quote", "AAPL", attempts)
    assert second.source == "Alpha Vantage"
    assert calls == {"fmp": 1, "alpha": 2}
    assert status.snapshot(["fmp"])["fmp"]["disable_count"] == 1


def test_no_configured_provider_is_not_found() -> None:
    manager = FallbackManager(ctx=_ctx(), provider_status=ProviderStatus())
    result = manager.execute("get_quote", "AAPL", [])
    assert result.data is None
    assert result.error.code == "NOT_FOUND"
    assert result.error.retriable is False


def test_upstream_error_is_wrapped_in_envelope() -> None:
    manager = FallbackManager(ctx=_ctx(), provider_status=ProviderStatus())

    def failing_call():
        raise ProviderError("fmp", "NETWORK", "connection reset")

    result = manager.execute("get_quote", "AAPL", [ProviderAttempt("fmp", "Financial Modeling Prep", failing_call)])
    assert result.error.code == "NETWORK"
    assert result.error.retriable is True
    assert result.error.provider == "fmp"


def test_market_service_falls_back_and_caches(monkeypatch) -> None:
    fmp = FmpClient("x")
    alpha = AlphaVantageClient("x")
    calls = {"alpha": 0}

    def alpha_quote(symbol: str):
        calls["alpha"] += 1
        return _quote(symbol, "alphavantage")

    monkeypatch.setattr(
        fmp,
        "get_quote",
        lambda symbol: (_ for _ in ()).throw(ProviderError("fmp", "UPSTREAM", "provider failed")),
    )
    monkeypatch.setattr(alpha, "get_quote", alpha_quote)

    service = MarketDataService(_ctx({"fmp": fmp, "alphavantage": alpha}))
    result = service.get_quote("aapl")
    assert result.data.symbol == "AAPL"
    assert result.source == "Alpha Vantage"
    assert service.get_quote("AAPL").data is result.data
    assert calls["alpha"] == 1
    assert service.configured_providers() == ["fmp", "alphavantage"]
