"""Portfolio valuation and analytics orchestration service."""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict
from datetime import date
from typing import Any, Awaitable, Callable, Iterable, Mapping, TypeVar

import pandas as pd

from folio_server.portfolio.attribution import calculate_attribution
from folio_server.portfolio.cost_basis import COST_BASIS_METHODS, WashSale, calculate_cost_basis, generate_tax_report
from folio_server.portfolio.data_loader import frame_to_transactions, load_transactions_file
from folio_server.portfolio.dcf import DcfInputs, calculate_dcf, estimate_inputs
from folio_server.portfolio.dividends import analyze_dividends, dividend_calendar, holding_dividend_metrics
from folio_server.portfolio.enrichment import EnrichmentPipeline, EnrichmentProgress, EnrichmentResult
from folio_server.portfolio.export import EXPORT_FORMATS, export_report
from folio_server.portfolio.factors import factor_attribution, factor_exposure
from folio_server.portfolio.ledger import reconcile_ledger
from folio_server.portfolio.metrics import asset_allocation, holding_metrics, portfolio_metrics, rebalancing_needs
from folio_server.portfolio.models import Holding, Transaction, ValidationIssue
from folio_server.portfolio.risk import (
    analyze_drawdowns,
    build_portfolio_returns,
    calculate_risk_metrics,
    closes_frame,
    correlation_matrix,
    decompose_risk,
    estimated_correlation_matrix,
    risk_exposures,
)
from folio_server.portfolio.tax import analyze_tax_optimization, asset_location_efficiency
from folio_server.portfolio.validation import validate_transaction_frame, validate_transaction_payloads
from folio_server.services.base import ServiceContext, validate_symbol
from folio_server.services.market_service import MarketDataService

LOGGER = logging.getLogger(__name__)
T = TypeVar("T")

SNAPSHOT_TYPES = ("analysis", "valuation", "dividends", "tax")
BENCHMARK_SYMBOL = "SPY"
HISTORY_LIMIT = 260
MIN_RETURN_OBSERVATIONS = 20


def _json_validation_error(errors: list[dict[str, Any]]) -> dict[str, Any]:
    return {"ok": False, "error": {"type": "validation_error", "errors": errors}}


def _issues_payload(issues: Iterable[ValidationIssue]) -> dict[str, Any]:
    return _json_validation_error([asdict(issue) for issue in issues])


def _market_error(code: str, message: str) -> dict[str, Any]:
    return {"ok": False, "error": {"type": "market_data_error", "code": code, "message": message}}


def _wash_sale_dict(item: WashSale) -> dict[str, Any]:
    payload = asdict(item)
    payload["sale_date"] = item.sale_date.isoformat()
    payload["purchase_date"] = item.purchase_date.isoformat()
    return payload


def _holding_rows(holdings: list[Holding], total_value: float) -> list[dict[str, Any]]:
    return [{**holding.to_dict(), "metrics": holding_metrics(holding, total_value)} for holding in holdings]


class PortfolioService:
    def __init__(
        self,
        ctx: ServiceContext,
        market: MarketDataService,
        risk_free_rate: float = 0.02,
        tax_rate: float = 0.24,
        batch_size: int = 8,
        batch_delay_seconds: float = 1.0,
        resource_updated_callback: Callable[[str], None] | None = None,
    ) -> None:
        self.ctx = ctx
        self.market = market
        self.risk_free_rate = risk_free_rate
        self.tax_rate = tax_rate
        self.pipeline = EnrichmentPipeline(market, batch_size=batch_size, batch_delay_seconds=batch_delay_seconds)
        self._current_resource_cache_key = "portfolio:current_resource"
        self._resource_snapshot_prefix = "portfolio:resource_snapshot:"
        self._resource_updated_callback = resource_updated_callback

    def _store_current_resource_snapshot(self, report_type: str, source: str, payload: dict[str, Any]) -> None:
        snapshot = {
            "uri": "portfolio://current",
            "report_type": report_type,
            "source": source,
            "payload": payload,
        }
        self.ctx.cache.set(self._current_resource_cache_key, snapshot, ttl_seconds=self.ctx.cache_ttl_seconds)
        self.ctx.cache.set(
            f"{self._resource_snapshot_prefix}{report_type}",
            snapshot,
            ttl_seconds=self.ctx.cache_ttl_seconds,
        )
        if self._resource_updated_callback is not None:
            self._resource_updated_callback("portfolio://current")

    def get_current_resource_snapshot(self) -> dict[str, Any] | None:
        cached = self.ctx.cache.get(self._current_resource_cache_key)
        return cached if isinstance(cached, dict) else None

    def get_resource_snapshot(self, report_type: str) -> dict[str, Any] | None:
        normalized = report_type.strip().lower()
        if normalized not in SNAPSHOT_TYPES:
            return None
        cached = self.ctx.cache.get(f"{self._resource_snapshot_prefix}{normalized}")
        return cached if isinstance(cached, dict) else None

    def _run(self, factory: Callable[[], Awaitable[T]]) -> T:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(factory())  # type: ignore[arg-type]
        with ThreadPoolExecutor(max_workers=1) as executor:
            return executor.submit(lambda: asyncio.run(factory())).result()  # type: ignore[arg-type]

    @staticmethod
    def _source_label(transactions: list[dict[str, Any]] | None, file_path: str | None) -> str:
        if file_path:
            return file_path
        return f"inline:{len(transactions or [])} transactions"

    def _load(
        self,
        transactions: list[dict[str, Any]] | None = None,
        file_path: str | None = None,
    ) -> tuple[list[Transaction] | None, dict[str, Any] | None]:
        """Parse and validate input; returns ``(transactions, None)`` or ``(None, error_payload)``."""
        if (transactions is None) == (file_path is None):
            return None, _json_validation_error(
                [
                    {
                        "field": "transactions",
                        "code": "invalid_input",
                        "message": "Provide either a transactions list or a file_path.",
                    }
                ]
            )
        if file_path is not None:
            try:
                frame = load_transactions_file(file_path)
            except Exception as error:
                return None, _json_validation_error([{"field": "file_path", "message": str(error), "code": "file_error"}])
            issues = validate_transaction_frame(frame)
            if issues:
                return None, _issues_payload(issues)
            return frame_to_transactions(frame), None

        if not isinstance(transactions, list):
            return None, _json_validation_error(
                [{"field": "transactions", "code": "invalid_input", "message": "transactions must be a list."}]
            )
        issues = validate_transaction_payloads(transactions)
        if issues:
            return None, _issues_payload(issues)
        return [Transaction.from_dict(item) for item in transactions], None

    def validate_transactions(
        self,
        transactions: list[dict[str, Any]] | None = None,
        file_path: str | None = None,
    ) -> dict[str, Any]:
        parsed, error = self._load(transactions, file_path)
        if error is not None:
            return error
        assert parsed is not None
        return {"ok": True, "message": "Transactions validated.", "rows": len(parsed)}

    def reconcile(
        self,
        transactions: list[dict[str, Any]] | None = None,
        file_path: str | None = None,
    ) -> dict[str, Any]:
        """Holdings from the ledger alone, without market data."""
        parsed, error = self._load(transactions, file_path)
        if error is not None:
            return error
        ledger = reconcile_ledger(parsed or [])
        holdings = ledger.holdings_list()
        return {
            "ok": True,
            "holdings": [holding.to_dict() for holding in holdings],
            "ledger": asdict(ledger.summary),
        }

    def cost_basis(
        self,
        ticker: str,
        method: str = "FIFO",
        transactions: list[dict[str, Any]] | None = None,
        file_path: str | None = None,
        account_type: str | None = None,
    ) -> dict[str, Any]:
        parsed, error = self._load(transactions, file_path)
        if error is not None:
            return error
        if method not in COST_BASIS_METHODS:
            return _json_validation_error(
                [{"field": "method", "code": "invalid_method", "message": f"Method must be one of {list(COST_BASIS_METHODS)}."}]
            )
        try:
            symbol = validate_symbol(ticker)
        except ValueError as exc:
            return _json_validation_error([{"field": "ticker", "code": "invalid_symbol", "message": str(exc)}])
        result = calculate_cost_basis(parsed or [], symbol, method, account_type=account_type)
        payload = asdict(result)
        for lot in payload["lots"]:
            lot["acquired"] = lot["acquired"].isoformat()
        for sale in payload["sales"]:
            sale["date"] = sale["date"].isoformat()
            sale["gain"] = sale["proceeds"] - sale["cost"]
            for item in sale["lots"]:
                item["acquired"] = item["acquired"].isoformat()
        return {"ok": True, **payload}

    async def _enrich(self, parsed: list[Transaction]) -> EnrichmentResult:
        def _progress(update: EnrichmentProgress) -> None:
            LOGGER.debug("enrichment progress: phase=%s completed=%s total=%s", update.phase, update.completed, update.total)

        return await self.pipeline.run(parsed, progress=_progress)

    async def _fetch_closes(self, symbol: str) -> list[tuple[str, float]]:
        try:
            result = await asyncio.to_thread(self.market.get_daily_closes, symbol, HISTORY_LIMIT)
        except ValueError as error:
            LOGGER.warning("price history skipped: symbol=%s reason=%s", symbol, error)
            return []
        if result.data is None:
            return []
        return [(row.date, row.close) for row in result.data]

    async def _risk_section(self, holdings: list[Holding], total_value: float) -> dict[str, Any]:
        exposures = risk_exposures(holdings)
        section: dict[str, Any] = {
            "exposures": exposures,
            "decomposition": decompose_risk(holdings, exposures).to_dict(),
            "estimated_correlation": estimated_correlation_matrix(holdings),
        }
        weights: dict[str, float] = {}
        for holding in holdings:
            if total_value > 0:
                weights[holding.ticker] = weights.get(holding.ticker, 0.0) + holding.market_value / total_value
        symbols = [symbol for symbol, weight in weights.items() if weight > 0]
        if not symbols:
            section["history"] = {"available": False, "reason": "No priced holdings."}
            return section

        histories = await asyncio.gather(*(self._fetch_closes(symbol) for symbol in [*symbols, BENCHMARK_SYMBOL]))
        series = {symbol: rows for symbol, rows in zip(symbols, histories[:-1]) if rows}
        closes = closes_frame(series)
        portfolio_returns = build_portfolio_returns(closes, weights) if not closes.empty else pd.Series(dtype=float)
        benchmark = closes_frame({BENCHMARK_SYMBOL: histories[-1]}) if histories[-1] else pd.DataFrame()
        benchmark_returns = (
            benchmark[BENCHMARK_SYMBOL].pct_change().dropna() if not benchmark.empty else pd.Series(dtype=float)
        )
        if len(portfolio_returns) < MIN_RETURN_OBSERVATIONS:
            section["history"] = {"available": False, "reason": "Not enough price history for return-based metrics."}
            return section
        section["history"] = {
            "available": True,
            "tickers": sorted(series),
            "missing": sorted(set(symbols) - set(series)),
            "metrics": calculate_risk_metrics(portfolio_returns, benchmark_returns, self.risk_free_rate).to_dict(),
            "drawdowns": analyze_drawdowns(portfolio_returns).to_dict(),
            "correlation": correlation_matrix(closes.pct_change().dropna(how="all")),
        }
        return section

    async def analyze_async(
        self,
        transactions: list[dict[str, Any]] | None = None,
        file_path: str | None = None,
        targets: Mapping[str, float] | None = None,
        include_risk: bool = True,
        as_of: date | None = None,
    ) -> dict[str, Any]:
        parsed, error = self._load(transactions, file_path)
        if error is not None:
            return error
        assert parsed is not None
        enriched = await self._enrich(parsed)
        holdings = enriched.holdings
        summary = portfolio_metrics(holdings)
        total_value = summary["total_value"]
        dividends = analyze_dividends(holdings, parsed, as_of=as_of)
        exposure = factor_exposure(holdings)

        payload: dict[str, Any] = {
            "ok": True,
            "summary": summary,
            "holdings": _holding_rows(holdings, total_value),
            "ledger": asdict(enriched.summary),
            "allocation": asset_allocation(holdings),
            "dividends": {
                **dividends.to_dict(),
                "calendar": dividend_calendar(dividends.upcoming_payments),
            },
            "factors": {
                "exposure": exposure.to_dict(),
                "attribution": factor_attribution(summary["total_gain_loss_percent"] / 100.0, exposure).to_dict(),
            },
            "attribution": calculate_attribution(holdings).to_dict(),
            "tax": {
                "suggestions": [item.to_dict() for item in analyze_tax_optimization(holdings, parsed, self.tax_rate)],
                "asset_location": asset_location_efficiency(holdings),
            },
            "enrichment": {"phases": enriched.phases, "failures": enriched.failures_payload()},
        }
        if targets:
            payload["rebalancing"] = rebalancing_needs(holdings, dict(targets))
        if include_risk:
            payload["risk"] = await self._risk_section(holdings, total_value)
        return payload

    def analyze(
        self,
        transactions: list[dict[str, Any]] | None = None,
        file_path: str | None = None,
        targets: Mapping[str, float] | None = None,
        include_risk: bool = True,
        as_of: date | None = None,
    ) -> dict[str, Any]:
        payload = self._run(
            lambda: self.analyze_async(transactions, file_path, targets=targets, include_risk=include_risk, as_of=as_of)
        )
        if payload.get("ok"):
            self._store_current_resource_snapshot("analysis", self._source_label(transactions, file_path), payload)
        return payload

    def dividend_report(
        self,
        transactions: list[dict[str, Any]] | None = None,
        file_path: str | None = None,
        as_of: date | None = None,
    ) -> dict[str, Any]:
        parsed, error = self._load(transactions, file_path)
        if error is not None:
            return error
        assert parsed is not None
        enriched = self._run(lambda: self._enrich(parsed))
        analysis = analyze_dividends(enriched.holdings, parsed, as_of=as_of)
        payload = {
            "ok": True,
            **analysis.to_dict(),
            "calendar": dividend_calendar(analysis.upcoming_payments),
            "by_holding": [holding_dividend_metrics(holding, parsed) for holding in enriched.holdings],
            "received_total": enriched.summary.dividend_income,
            "received_by_ticker": enriched.summary.dividend_income_by_ticker,
            "enrichment": {"phases": enriched.phases, "failures": enriched.failures_payload()},
        }
        self._store_current_resource_snapshot("dividends", self._source_label(transactions, file_path), payload)
        return payload

    def tax_report(
        self,
        year: int,
        method: str = "FIFO",
        transactions: list[dict[str, Any]] | None = None,
        file_path: str | None = None,
        include_suggestions: bool = True,
    ) -> dict[str, Any]:
        parsed, error = self._load(transactions, file_path)
        if error is not None:
            return error
        assert parsed is not None
        if method not in COST_BASIS_METHODS:
            return _json_validation_error(
                [{"field": "method", "code": "invalid_method", "message": f"Method must be one of {list(COST_BASIS_METHODS)}."}]
            )
        report = generate_tax_report(parsed, year, method)
        payload: dict[str, Any] = {
            "ok": True,
            **report,
            "wash_sales": [_wash_sale_dict(item) for item in report["wash_sales"]],
        }
        if include_suggestions:
            enriched = self._run(lambda: self._enrich(parsed))
            payload["suggestions"] = [
                item.to_dict() for item in analyze_tax_optimization(enriched.holdings, parsed, self.tax_rate)
            ]
            payload["asset_location"] = asset_location_efficiency(enriched.holdings)
            payload["enrichment"] = {"phases": enriched.phases, "failures": enriched.failures_payload()}
        self._store_current_resource_snapshot("tax", self._source_label(transactions, file_path), payload)
        return payload

    def valuation(
        self,
        ticker: str,
        inputs: Mapping[str, Any] | None = None,
        current_price: float | None = None,
    ) -> dict[str, Any]:
        """DCF for ``ticker`` from explicit inputs, or from fundamentals when none are given."""
        try:
            symbol = validate_symbol(ticker)
        except ValueError as exc:
            return _json_validation_error([{"field": "ticker", "code": "invalid_symbol", "message": str(exc)}])

        price = current_price
        source = "inputs"
        fundamentals = None
        if inputs is None or price is None:
            if inputs is None:
                result = self.market.get_fundamentals(symbol)
                if result.data is None:
                    envelope = result.error
                    return _market_error(
                        envelope.code if envelope else "NOT_FOUND",
                        envelope.message if envelope else f"No fundamentals for {symbol}.",
                    )
                fundamentals = result.data
                source = result.source or fundamentals.source
            if price is None:
                quote = self.market.get_quote(symbol)
                if quote.data is not None:
                    price = quote.data.price
                elif fundamentals is not None:
                    price = fundamentals.current_price
            if price is None:
                return _market_error("NOT_FOUND", f"No current price for {symbol}.")

        try:
            dcf_inputs = (
                DcfInputs.from_dict(inputs)
                if inputs is not None
                else estimate_inputs(fundamentals, price, fundamentals.market_cap, fundamentals.beta)  # type: ignore[union-attr]
            )
            result_dcf = calculate_dcf(dcf_inputs, price)
        except ValueError as exc:
            return _json_validation_error([{"field": "inputs", "code": "invalid_dcf_inputs", "message": str(exc)}])

        payload: dict[str, Any] = {
            "ok": True,
            "ticker": symbol,
            "source": source,
            "inputs": asdict(dcf_inputs),
            **result_dcf.to_dict(),
        }
        if fundamentals is not None:
            payload["company"] = fundamentals.name
            payload["sector"] = fundamentals.sector
            payload["provider_intrinsic_value"] = fundamentals.intrinsic_value
        self._store_current_resource_snapshot("valuation", symbol, payload)
        return payload

    def export(
        self,
        format: str = "csv",
        transactions: list[dict[str, Any]] | None = None,
        file_path: str | None = None,
    ) -> dict[str, Any]:
        if format.strip().lower() not in EXPORT_FORMATS:
            return _json_validation_error(
                [{"field": "format", "code": "invalid_format", "message": f"Format must be one of {list(EXPORT_FORMATS)}."}]
            )
        parsed, error = self._load(transactions, file_path)
        if error is not None:
            return error
        assert parsed is not None
        enriched = self._run(lambda: self._enrich(parsed))
        report = {
            "summary": portfolio_metrics(enriched.holdings),
            "holdings": [holding.to_dict() for holding in enriched.holdings],
            "transactions": [tx.to_dict() for tx in parsed],
            "ledger": asdict(enriched.summary),
        }
        normalized = format.strip().lower()
        return {"ok": True, "format": normalized, "content": export_report(report, normalized)}
