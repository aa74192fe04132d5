"""Normalized data models shared across providers and the enrichment pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

ProviderName = Literal["fmp", "alphavantage"]


@dataclass
class NormalizedQuote:
    symbol: str
    price: float
    change: float
    percent_change: float
    high: float
    low: float
    open: float
    previous_close: float
    timestamp: int | None
    source: ProviderName
    year_high: float | None = None
    year_low: float | None = None
    market_cap: float | None = None
    shares_outstanding: float | None = None
    pe: float | None = None
    name: str | None = None


@dataclass
class NormalizedDailyClose:
    date: str
    close: float


@dataclass
class CompanyFundamentals:
    """Company profile plus valuation/health ratios, percentages expressed as 0-100."""

    symbol: str
    source: ProviderName
    name: str | None = None
    sector: str | None = None
    industry: str | None = None
    description: str | None = None
    exchange: str | None = None
    is_etf: bool | None = None
    current_price: float | None = None
    year_high: float | None = None
    year_low: float | None = None
    market_cap: float | None = None
    shares_outstanding: float | None = None
    beta: float | None = None
    analyst_target: float | None = None
    pe: float | None = None
    pb: float | None = None
    peg: float | None = None
    debt_to_equity: float | None = None
    current_ratio: float | None = None
    quick_ratio: float | None = None
    roe: float | None = None
    roa: float | None = None
    gross_margin: float | None = None
    net_margin: float | None = None
    operating_margin: float | None = None
    asset_turnover: float | None = None
    revenue_growth: float | None = None
    dividend: float | None = None
    dividend_yield: float | None = None
    fcf_1yr: float | None = None
    fcf_2yr: float | None = None
    fcf_3yr: float | None = None
    fcf_10yr: float | None = None
    ev_fcf: float | None = None
    sector_median_ev_fcf: float | None = None
    intrinsic_value: float | None = None
