"""Financial Modeling Prep adapter."""

from __future__ import annotations

import logging
from typing import Any

from folio_server.providers.http import ProviderError, fetch_json
from folio_server.providers.models import CompanyFundamentals, NormalizedDailyClose, NormalizedQuote

LOGGER = logging.getLogger(__name__)
FMP_BASE_URL = "https://financialmodelingprep.com/api/v3"
SECTOR_MEDIAN_EV_FCF = 15.0

# Sector labels for well-known names whose profile carries no sector.
SECTOR_FALLBACKS: dict[str, tuple[str, str]] = {
    **{s: ("Technology", "Software & Technology") for s in ("AAPL", "MSFT", "GOOGL", "GOOG", "AMZN", "TSLA", "META", "NVDA", "CRM", "ORCL")},
    **{s: ("Financial Services", "Banking & Investment") for s in ("JPM", "BAC", "WFC", "C", "GS", "MS", "BRK.A", "BRK.B", "BRK-A", "BRK-B")},
    **{s: ("Healthcare", "Pharmaceuticals & Healthcare") for s in ("JNJ", "PFE", "UNH", "ABBV", "MRK", "CVS")},
    **{s: ("Consumer Staples", "Consumer Products") for s in ("KO", "PEP", "WMT", "PG", "HD", "MCD", "NKE")},
}


def format_ticker(symbol: str) -> str:
    """FMP spells share classes with hyphens: BRK.B and BRK/B become BRK-B."""
    return symbol.strip().replace(".", "-").replace("/", "-").upper()


def _as_float(value: object) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        out = float(value)
    except (TypeError, ValueError):
        return None
    return out if out == out else None


def _pct(value: object) -> float | None:
    number = _as_float(value)
    return number * 100.0 if number is not None else None


def _first(*values: float | None) -> float | None:
    for value in values:
        if value:
            return value
    return None


def _text(item: dict[str, Any], key: str) -> str | None:
    value = item.get(key)
    return value.strip() if isinstance(value, str) and value.strip() else None


class FmpClient:
    def __init__(self, api_key: str, timeout_seconds: float = 15.0) -> None:
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.base = FMP_BASE_URL

    def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        query = dict(params or {})
        query["apikey"] = self.api_key
        data = fetch_json(
            f"{self.base}{path}",
            provider="fmp",
            timeout_seconds=self.timeout_seconds,
            params=query,
        )
        if isinstance(data, dict) and isinstance(data.get("Error Message"), str):
            message = data["Error Message"]
            lower = message.lower()
            if "limit" in lower:
                raise ProviderError("fmp", "RATE_LIMIT", message)
            if "api key" in lower or "apikey" in lower:
                raise ProviderError("fmp", "AUTH", message)
            raise ProviderError("fmp", "UPSTREAM", message)
        return data

    def _first_row(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any] | None:
        data = self._get(path, params)
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            return None
        return data[0]

    def get_quote(self, symbol: str) -> NormalizedQuote | None:
        item = self._first_row(f"/quote/{format_ticker(symbol)}")
        if not item:
            return None
        price = _as_float(item.get("price"))
        if price is None or price <= 0:
            return None
        timestamp = item.get("timestamp")
        return NormalizedQuote(
            symbol=symbol,
            price=price,
            change=_as_float(item.get("change")) or 0.0,
            percent_change=_as_float(item.get("changesPercentage")) or 0.0,
            high=_as_float(item.get("dayHigh")) or price,
            low=_as_float(item.get("dayLow")) or price,
            open=_as_float(item.get("open")) or price,
            previous_close=_as_float(item.get("previousClose")) or price,
            timestamp=int(timestamp) if isinstance(timestamp, (int, float)) else None,
            source="fmp",
            year_high=_as_float(item.get("yearHigh")),
            year_low=_as_float(item.get("yearLow")),
            market_cap=_as_float(item.get("marketCap")),
            shares_outstanding=_as_float(item.get("sharesOutstanding")),
            pe=_as_float(item.get("pe")),
            name=_text(item, "name"),
        )

    def get_company_profile(self, symbol: str) -> dict[str, Any] | None:
        return self._first_row(f"/profile/{format_ticker(symbol)}")

    def get_ratios(self, symbol: str) -> dict[str, Any] | None:
        return self._first_row(f"/ratios/{format_ticker(symbol)}", {"limit": 1})

    def get_key_metrics(self, symbol: str) -> dict[str, Any] | None:
        return self._first_row(f"/key-metrics/{format_ticker(symbol)}", {"limit": 1})

    def get_financial_growth(self, symbol: str) -> dict[str, Any] | None:
        return self._first_row(f"/financial-growth/{format_ticker(symbol)}", {"limit": 1})

    def get_fundamentals(self, symbol: str) -> CompanyFundamentals | None:
        quote = self.get_quote(symbol)
        profile = self.get_company_profile(symbol)
        if quote is None and profile is None:
            LOGGER.info("fmp fundamentals empty: symbol=%s", symbol)
            return None
        ratios = self.get_ratios(symbol) or {}
        metrics = self.get_key_metrics(symbol) or {}
        growth = self.get_financial_growth(symbol) or {}
        profile = profile or {}
        return build_fundamentals(symbol, quote, profile, ratios, metrics, growth)

    def get_daily_closes(self, symbol: str, limit: int = 260) -> list[NormalizedDailyClose] | None:
        data = self._get(
            f"/historical-price-full/{format_ticker(symbol)}",
            {"serietype": "line", "timeseries": max(2, limit)},
        )
        rows = data.get("historical") if isinstance(data, dict) else None
        if not isinstance(rows, list):
            return None
        closes: list[NormalizedDailyClose] = []
        for row in rows:
            if not isinstance(row, dict) or not isinstance(row.get("date"), str):
                continue
            close = _as_float(row.get("close"))
            if close is None or close <= 0:
                continue
            closes.append(NormalizedDailyClose(date=row["date"][:10], close=close))
        closes.sort(key=lambda item: item.date)
        return closes or None


def _sector_info(symbol: str, profile: dict[str, Any]) -> tuple[str, str]:
    sector = _text(profile, "sector")
    if sector and sector != "N/A":
        return sector, _text(profile, "industry") or "General"
    upper = symbol.upper()
    if "ETF" in upper or profile.get("isEtf") is True:
        return "ETF", "Exchange Traded Fund"
    if upper in SECTOR_FALLBACKS:
        return SECTOR_FALLBACKS[upper]
    exchange = _text(profile, "exchangeShortName") or _text(profile, "exchange") or "Unknown Exchange"
    return f"{exchange} Listed", "Market Securities"


def build_fundamentals(
    symbol: str,
    quote: NormalizedQuote | None,
    profile: dict[str, Any],
    ratios: dict[str, Any],
    metrics: dict[str, Any],
    growth: dict[str, Any],
) -> CompanyFundamentals:
    """Merge FMP quote/profile/ratios/key-metrics payloads into one record."""
    sector, industry = _sector_info(symbol, profile)
    price = _first(quote.price if quote else None, _as_float(profile.get("price")))
    shares_outstanding = quote.shares_outstanding if quote else None
    market_cap = _first(quote.market_cap if quote else None, _as_float(profile.get("mktCap")))
    if not shares_outstanding and market_cap and price:
        shares_outstanding = market_cap / price

    fcf_per_share = _as_float(metrics.get("freeCashFlowPerShare"))
    fcf_millions = (
        fcf_per_share * shares_outstanding / 1_000_000
        if fcf_per_share is not None and shares_outstanding
        else None
    )
    dcf_value = _as_float(profile.get("dcf"))

    return CompanyFundamentals(
        symbol=symbol.upper(),
        source="fmp",
        name=_text(profile, "companyName") or (quote.name if quote else None) or symbol.upper(),
        sector=sector,
        industry=industry,
        description=_text(profile, "description"),
        exchange=_text(profile, "exchangeShortName") or _text(profile, "exchange"),
        is_etf=profile.get("isEtf") if isinstance(profile.get("isEtf"), bool) else None,
        current_price=price,
        year_high=quote.year_high if quote else None,
        year_low=quote.year_low if quote else None,
        market_cap=market_cap,
        shares_outstanding=shares_outstanding,
        beta=_as_float(profile.get("beta")),
        analyst_target=_first(dcf_value, price),
        pe=_first(quote.pe if quote else None, _as_float(metrics.get("peRatio"))),
        pb=_first(_as_float(ratios.get("priceToBookRatio")), _as_float(metrics.get("pbRatio"))),
        peg=_as_float(ratios.get("priceEarningsToGrowthRatio")),
        debt_to_equity=_first(_as_float(ratios.get("debtEquityRatio")), _as_float(metrics.get("debtToEquity"))),
        current_ratio=_first(_as_float(ratios.get("currentRatio")), _as_float(metrics.get("currentRatio"))),
        quick_ratio=_as_float(ratios.get("quickRatio")),
        roe=_first(_pct(ratios.get("returnOnEquity")), _pct(metrics.get("roe"))),
        roa=_pct(ratios.get("returnOnAssets")),
        gross_margin=_pct(ratios.get("grossProfitMargin")),
        net_margin=_pct(ratios.get("netProfitMargin")),
        operating_margin=_pct(ratios.get("operatingProfitMargin")),
        asset_turnover=_as_float(ratios.get("assetTurnover")),
        revenue_growth=_pct(growth.get("revenueGrowth")),
        dividend=_as_float(profile.get("lastDiv")),
        dividend_yield=_first(_pct(ratios.get("dividendYield")), _pct(metrics.get("dividendYield"))),
        fcf_1yr=fcf_millions,
        fcf_2yr=fcf_millions * 1.1 if fcf_millions is not None else None,
        fcf_3yr=fcf_millions * 1.21 if fcf_millions is not None else None,
        fcf_10yr=fcf_millions * 2 if fcf_millions is not None else None,
        ev_fcf=_as_float(metrics.get("evToFreeCashFlow")),
        sector_median_ev_fcf=SECTOR_MEDIAN_EV_FCF,
        intrinsic_value=_first(dcf_value, price),
    )
