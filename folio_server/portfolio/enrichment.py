"""Batched market-data enrichment of ledger holdings."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Iterable, Protocol

from folio_server.portfolio.asset_types import detect_asset_type
from folio_server.portfolio.ledger import LedgerSummary, reconcile_ledger
from folio_server.portfolio.models import Holding, HoldingKey, Transaction
from folio_server.providers.models import CompanyFundamentals, NormalizedQuote
from folio_server.services.base import ServiceResult

LOGGER = logging.getLogger(__name__)

PHASES = ("ledger", "fundamentals", "quotes", "complete")

_FUNDAMENTAL_FIELDS = (
    "industry",
    "description",
    "year_high",
    "year_low",
    "market_cap",
    "shares_outstanding",
    "beta",
    "pe",
    "pb",
    "peg",
    "debt_to_equity",
    "current_ratio",
    "quick_ratio",
    "roe",
    "roa",
    "gross_margin",
    "net_margin",
    "operating_margin",
    "asset_turnover",
    "revenue_growth",
    "dividend",
    "dividend_yield",
    "fcf_1yr",
    "fcf_2yr",
    "fcf_3yr",
    "fcf_10yr",
    "ev_fcf",
    "sector_median_ev_fcf",
    "intrinsic_value",
)


class MarketDataSource(Protocol):
    def get_quote(self, symbol: str) -> ServiceResult[NormalizedQuote]: ...

    def get_fundamentals(self, symbol: str) -> ServiceResult[CompanyFundamentals]: ...


@dataclass
class EnrichmentProgress:
    phase: str
    completed: int
    total: int


@dataclass
class EnrichmentFailure:
    ticker: str
    phase: str
    error: str

    def to_dict(self) -> dict[str, str]:
        return {"ticker": self.ticker, "phase": self.phase, "error": self.error}


@dataclass
class EnrichmentResult:
    holdings: list[Holding]
    summary: LedgerSummary
    failures: list[EnrichmentFailure] = field(default_factory=list)
    phases: list[str] = field(default_factory=list)

    def failures_payload(self) -> list[dict[str, str]]:
        return [failure.to_dict() for failure in self.failures]


ProgressCallback = Callable[[EnrichmentProgress], None]


def apply_fundamentals(holding: Holding, data: CompanyFundamentals) -> Holding:
    """Merge a fundamentals record into ``holding``; missing values leave the holding's own."""
    updates: dict[str, Any] = {
        name: getattr(data, name) for name in _FUNDAMENTAL_FIELDS if getattr(data, name) is not None
    }
    if data.name:
        updates["company"] = data.name
    if data.sector:
        updates["sector"] = data.sector
    if data.current_price is not None and holding.current_price is None:
        updates["current_price"] = data.current_price
    updates["asset_type"] = detect_asset_type(
        holding.ticker,
        company_name=data.name or holding.company,
        is_etf=data.is_etf,
        exchange=data.exchange,
    )
    return replace(holding, **updates)


def apply_quote(holding: Holding, quote: NormalizedQuote) -> Holding:
    updates: dict[str, Any] = {
        "current_price": quote.price,
        "last_price_update": float(quote.timestamp) if quote.timestamp else time.time(),
    }
    if quote.previous_close:
        updates["previous_close"] = quote.previous_close
    for name in ("year_high", "year_low", "market_cap", "shares_outstanding", "pe"):
        value = getattr(quote, name)
        if value is not None:
            updates[name] = value
    if quote.name and not holding.company:
        updates["company"] = quote.name
    return replace(holding, **updates)


def _unique_tickers(holdings: Iterable[Holding]) -> list[str]:
    seen: dict[str, None] = {}
    for holding in holdings:
        seen.setdefault(holding.ticker, None)
    return list(seen)


class EnrichmentPipeline:
    def __init__(
        self,
        market: MarketDataSource,
        batch_size: int = 8,
        batch_delay_seconds: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1.")
        self.market = market
        self.batch_size = batch_size
        self.batch_delay_seconds = max(0.0, batch_delay_seconds)
        self._sleep = sleep

    async def run(
        self,
        transactions: Iterable[Transaction],
        progress: ProgressCallback | None = None,
    ) -> EnrichmentResult:
        ledger = reconcile_ledger(transactions)
        self._emit(progress, "ledger", 1, 1)
        holdings, failures, phases = await self._enrich(ledger.holdings, progress)
        return EnrichmentResult(
            holdings=[holdings[key] for key in sorted(holdings)],
            summary=ledger.summary,
            failures=failures,
            phases=["ledger", *phases],
        )

    async def enrich_holdings(
        self,
        holdings: Iterable[Holding],
        progress: ProgressCallback | None = None,
    ) -> tuple[list[Holding], list[EnrichmentFailure]]:
        keyed = {holding.key: holding for holding in holdings}
        enriched, failures, _ = await self._enrich(keyed, progress)
        return [enriched[key] for key in sorted(enriched)], failures

    async def _enrich(
        self,
        holdings: dict[HoldingKey, Holding],
        progress: ProgressCallback | None,
    ) -> tuple[dict[HoldingKey, Holding], list[EnrichmentFailure], list[str]]:
        working = dict(holdings)
        failures: list[EnrichmentFailure] = []
        tickers = _unique_tickers(working.values())
        await self._run_phase("fundamentals", tickers, self.market.get_fundamentals, apply_fundamentals, working, failures, progress)
        await self._run_phase("quotes", tickers, self.market.get_quote, apply_quote, working, failures, progress)
        self._emit(progress, "complete", len(tickers), len(tickers))
        LOGGER.info("enrichment complete: tickers=%s failures=%s", len(tickers), len(failures))
        return working, failures, ["fundamentals", "quotes", "complete"]

    async def _run_phase(
        self,
        phase: str,
        tickers: list[str],
        fetch: Callable[[str], ServiceResult[Any]],
        apply: Callable[[Holding, Any], Holding],
        holdings: dict[HoldingKey, Holding],
        failures: list[EnrichmentFailure],
        progress: ProgressCallback | None,
    ) -> None:
        total = len(tickers)
        completed = 0
        self._emit(progress, phase, completed, total)
        for start in range(0, total, self.batch_size):
            if start > 0 and self.batch_delay_seconds > 0:
                await self._sleep(self.batch_delay_seconds)
            batch = tickers[start : start + self.batch_size]
            outcomes = await asyncio.gather(
                *(asyncio.to_thread(fetch, ticker) for ticker in batch),
                return_exceptions=True,
            )
            for ticker, outcome in zip(batch, outcomes):
                error = self._failure_message(outcome)
                if error is not None:
                    LOGGER.warning("enrichment failed: phase=%s ticker=%s error=%s", phase, ticker, error)
                    failures.append(EnrichmentFailure(ticker=ticker, phase=phase, error=error))
                    continue
                merged: dict[HoldingKey, Holding] = {}
                try:
                    for key, holding in holdings.items():
                        if holding.ticker == ticker:
                            merged[key] = apply(holding, outcome.data)  # type: ignore[union-attr]
                except Exception as merge_error:
                    LOGGER.exception("enrichment merge failed: phase=%s ticker=%s", phase, ticker)
                    failures.append(EnrichmentFailure(ticker=ticker, phase=phase, error=str(merge_error) or type(merge_error).__name__))
                    continue
                holdings.update(merged)
            completed += len(batch)
            self._emit(progress, phase, completed, total)

    @staticmethod
    def _failure_message(outcome: object) -> str | None:
        if isinstance(outcome, BaseException):
            return str(outcome) or type(outcome).__name__
        if not isinstance(outcome, ServiceResult):
            return "Unexpected provider response."
        if outcome.data is None:
            return outcome.error.message if outcome.error else "No data returned."
        return None

    @staticmethod
    def _emit(progress: ProgressCallback | None, phase: str, completed: int, total: int) -> None:
        if progress is None:
            return
        progress(EnrichmentProgress(phase=phase, completed=completed, total=total))
