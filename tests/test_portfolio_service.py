import json
from datetime import date
from types import SimpleNamespace

import pytest

from folio_server.cache.ttl_cache import TTLCache
from folio_server.portfolio.portfolio_service import PortfolioService
from folio_server.providers.models import CompanyFundamentals, NormalizedDailyClose, NormalizedQuote
from folio_server.runtime.response import dump_payload
from folio_server.services.base import ErrorEnvelope, ServiceContext, ServiceResult
from folio_server.utils.rate_limit import RateLimiterRegistry

TRANSACTIONS = [
    {"ticker": "AAA", "type": "buy", "date": "2024-01-02", "shares": 10, "price": 100},
    {"ticker": "BBB", "type": "buy", "date": "2024-01-02", "shares": 5, "price": 40, "accountType": "roth_ira"},
    {"ticker": "AAA", "type": "dividend", "date": "2024-03-15", "amount": 12},
    {"ticker": "AAA", "type": "sell", "date": "2024-04-01", "shares": 2, "price": 120},
]


def _quote(symbol: str, price: float) -> NormalizedQuote:
    return NormalizedQuote(
        symbol=symbol, price=price, change=0.0, percent_change=0.0, high=price, low=price,
        open=price, previous_close=price, timestamp=1700000000, source="fmp",
    )


def _closes(start: float, step: float) -> list[NormalizedDailyClose]:
    return [NormalizedDailyClose(date=f"2024-05-{day:02d}", close=start + step * (day % 4)) for day in range(1, 31)]


def _market(fundamentals_ok: bool = True) -> SimpleNamespace:
    prices = {"AAA": 110.0, "BBB": 50.0}

    def get_quote(symbol: str):
        if symbol not in prices:
            return ServiceResult(data=None, error=ErrorEnvelope(code="NOT_FOUND", message="unknown"))
        return ServiceResult(data=_quote(symbol, prices[symbol]), source="Financial Modeling Prep")

    def get_fundamentals(symbol: str):
        if not fundamentals_ok:
            return ServiceResult(data=None, error=ErrorEnvelope(code="NOT_FOUND", message=f"no fundamentals for {symbol}"))
        return ServiceResult(
            data=CompanyFundamentals(
                symbol=symbol, source="fmp", name=f"{symbol} Inc", sector="Technology", market_cap=1_000_000_000,
                pe=20, net_margin=10, revenue_growth=8, beta=1.0, dividend=1.0, current_price=prices.get(symbol),
            )
        )

    def get_daily_closes(symbol: str, limit: int = 260):
        return ServiceResult(data=_closes(100.0 if symbol != "BBB" else 50.0, 1.5))

    return SimpleNamespace(get_quote=get_quote, get_fundamentals=get_fundamentals, get_daily_closes=get_daily_closes)


def _service(market=None, updates=None) -> PortfolioService:
    ctx = ServiceContext(providers={}, cache=TTLCache(), rate_limiter=RateLimiterRegistry(0.0))
    return PortfolioService(
        ctx,
        market or _market(),
        batch_delay_seconds=0.0,
        resource_updated_callback=(updates.append if updates is not None else None),
    )


def test_analyze_builds_full_report_and_snapshot() -> None:
    updates: list[str] = []
    service = _service(updates=updates)
    payload = service.analyze(transactions=TRANSACTIONS, targets={"stocks": 100}, as_of=date(2024, 5, 31))

    assert payload["ok"] is True
    assert payload["summary"]["total_value"] == pytest.approx(8 * 110 + 5 * 50)
    assert payload["ledger"]["dividend_income"] == pytest.approx(12)
    assert {row["ticker"] for row in payload["holdings"]} == {"AAA", "BBB"}
    assert payload["allocation"]["by_account"]["roth_ira"] == pytest.approx(250 / 1130 * 100)
    assert payload["dividends"]["upcoming_payments"][0]["next_ex_date"] == "2024-07-15"
    assert payload["rebalancing"]["stocks"]["target"] == 100.0
    assert payload["risk"]["history"]["available"] is True
    assert payload["risk"]["history"]["metrics"]["observations"] == 29
    assert payload["enrichment"]["failures"] == []
    json.loads(dump_payload(payload))

    assert updates == ["portfolio://current"]
    assert service.get_current_resource_snapshot()["report_type"] == "analysis"
    assert service.get_resource_snapshot("analysis")["payload"]["ok"] is True
    assert service.get_resource_snapshot("tax") is None
    assert service.get_resource_snapshot("bogus") is None


def test_input_must_be_exactly_one_source() -> None:
    service = _service()
    missing = service.analyze()
    assert missing["ok"] is False
    assert missing["error"]["type"] == "validation_error"
    both = service.validate_transactions(transactions=TRANSACTIONS, file_path="ledger.csv")
    assert both["error"]["errors"][0]["code"] == "invalid_input"


def test_invalid_transactions_are_reported_not_raised() -> None:
    result = _service().reconcile(transactions=[{"ticker": "AAA", "type": "buy", "date": "someday", "shares": 1}])
    assert result["ok"] is False
    assert result["error"]["errors"][0]["code"] == "invalid_date"
    assert result["error"]["errors"][0]["row"] == 1


def test_file_input_errors(tmp_path) -> None:
    result = _service().validate_transactions(file_path=str(tmp_path / "nope.csv"))
    assert result["error"]["errors"][0]["code"] == "file_error"


def test_reconcile_and_cost_basis() -> None:
    service = _service()
    reconciled = service.reconcile(transactions=TRANSACTIONS)
    assert {row["ticker"]: row["shares"] for row in reconciled["holdings"]} == {"AAA": 8, "BBB": 5}
    assert reconciled["ledger"]["realized_gains"] == pytest.approx(40)

    lots = service.cost_basis("aaa", method="FIFO", transactions=TRANSACTIONS)
    assert lots["ok"] is True
    assert lots["lots"][0]["acquired"] == "2024-01-02"
    assert lots["sales"][0]["gain"] == pytest.approx(40)
    assert service.cost_basis("AAA", method="HIFO", transactions=TRANSACTIONS)["ok"] is False


def test_tax_report_with_suggestions() -> None:
    service = _service()
    report = service.tax_report(2024, transactions=TRANSACTIONS)
    assert report["ok"] is True
    assert report["short_term_gains"] == pytest.approx(40)
    assert report["dividends"] == pytest.approx(12)
    assert isinstance(report["suggestions"], list)
    assert "tax_deferred" in report["asset_location"]
    assert service.get_current_resource_snapshot()["report_type"] == "tax"


def test_dividend_report() -> None:
    report = _service().dividend_report(transactions=TRANSACTIONS, as_of=date(2024, 5, 31))
    assert report["received_total"] == pytest.approx(12)
    assert report["total_annual_income"] == pytest.approx(8 * 1.0 + 5 * 1.0)
    assert report["calendar"][0]["month"] == "July 2024"


def test_valuation_from_inputs_and_from_fundamentals() -> None:
    service = _service()
    explicit = service.valuation(
        "AAA",
        inputs={"current_fcf": 100, "growth_rate": 5, "discount_rate": 9, "shares_outstanding": 10},
        current_price=120.0,
    )
    assert explicit["ok"] is True
    assert explicit["source"] == "inputs"
    assert explicit["inputs"]["terminal_growth_rate"] == 2.5

    estimated = service.valuation("AAA")
    assert estimated["ok"] is True
    assert estimated["company"] == "AAA Inc"
    assert estimated["current_price"] == 110.0
    assert service.get_resource_snapshot("valuation")["source"] == "AAA"

    bad = service.valuation("AAA", inputs={"current_fcf": 1, "growth_rate": 5, "discount_rate": 2, "shares_outstanding": 1}, current_price=10)
    assert bad["error"]["errors"][0]["code"] == "invalid_dcf_inputs"


def test_valuation_without_market_data() -> None:
    result = _service(_market(fundamentals_ok=False)).valuation("ZZZ")
    assert result["ok"] is False
    assert result["error"]["type"] == "market_data_error"


def test_enrichment_failures_do_not_block_analysis() -> None:
    service = _service(_market(fundamentals_ok=False))
    payload = service.analyze(transactions=TRANSACTIONS, include_risk=False)
    assert payload["ok"] is True
    assert "risk" not in payload
    assert {item["phase"] for item in payload["enrichment"]["failures"]} == {"fundamentals"}


def test_export_csv_and_bad_format() -> None:
    service = _service()
    exported = service.export(format="csv", transactions=TRANSACTIONS)
    assert exported["ok"] is True
    assert exported["content"].startswith("Portfolio Summary")
    assert service.export(format="pdf", transactions=TRANSACTIONS)["ok"] is False


def test_bad_new_ticker_is_rejected_before_analysis() -> None:
    rows = [
        {"ticker": "GE", "type": "buy", "date": "2023-01-03", "shares": 10, "price": 80},
        {"ticker": "GE", "type": "spinoff", "date": "2024-04-02", "shares": 3, "amount": 150, "newTicker": "GE HEALTH"},
    ]
    service = _service()
    checked = service.validate_transactions(transactions=rows)
    assert checked["ok"] is False
    assert checked["error"]["type"] == "validation_error"
    assert service.analyze(transactions=rows)["ok"] is False


def test_history_lookup_rejecting_a_symbol_does_not_abort_analysis() -> None:
    market = _market()
    good_closes = market.get_daily_closes

    def get_daily_closes(symbol: str, limit: int = 260):
        if symbol == "BBB":
            raise ValueError("Symbol must be 1-10 chars: A-Z, 0-9, dot, hyphen, slash.")
        return good_closes(symbol, limit)

    market.get_daily_closes = get_daily_closes
    payload = _service(market).analyze(transactions=TRANSACTIONS, as_of=date(2024, 5, 31))
    assert payload["ok"] is True
    assert "risk" in payload
