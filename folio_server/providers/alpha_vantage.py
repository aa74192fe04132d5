"""Alpha Vantage client, the fallback market-data source."""

from __future__ import annotations

from typing import Any

from folio_server.providers.http import ProviderError, fetch_json
from folio_server.providers.models import CompanyFundamentals, NormalizedDailyClose, NormalizedQuote

ALPHA_VANTAGE_BASE_URL = "https://www.alphavantage.co/query"
MISSING = {"", "None", "-", "N/A"}
# Alpha Vantage reports throttling and bad keys inside a 200 body.
MESSAGE_KEYS = ("Note", "Information", "Error Message")
SECTOR_MEDIAN_EV_FCF = 15.0


def _num(value: Any) -> float | None:
    if value is None or (isinstance(value, str) and value.strip() in MISSING):
        return None
    try:
        return float(str(value).rstrip("%"))
    except ValueError:
        return None


def _percent(value: Any) -> float | None:
    ratio = _num(value)
    return None if ratio is None else ratio * 100.0


def classify_message(data: dict[str, Any]) -> ProviderError | None:
    """Turn an in-body Alpha Vantage message into a ``ProviderError``; ``None`` when the body is clean."""
    found = {key: data[key] for key in MESSAGE_KEYS if isinstance(data.get(key), str) and data[key]}
    if not found:
        return None
    text = next(iter(found.values()))
    lowered = text.lower()
    if "frequency" in lowered or "rate limit" in lowered or "requests per day" in lowered:
        code = "RATE_LIMIT"
    elif "apikey" in lowered.replace(" ", ""):
        code = "AUTH"
    elif "Error Message" in found:
        code = "NOT_FOUND"
    else:
        code = "UPSTREAM"
    return ProviderError("alphavantage", code, text)


class AlphaVantageClient:
    def __init__(self, api_key: str, timeout_seconds: float = 15.0) -> None:
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds

    def _query(self, function: str, symbol: str, **extra: str) -> dict[str, Any]:
        params = {"function": function, "symbol": symbol, "apikey": self.api_key, **extra}
        data = fetch_json(ALPHA_VANTAGE_BASE_URL, provider="alphavantage", timeout_seconds=self.timeout_seconds, params=params)
        if not isinstance(data, dict):
            raise ProviderError("alphavantage", "BAD_RESPONSE", f"Alpha Vantage {function} returned a non-object body.")
        problem = classify_message(data)
        if problem is not None:
            raise problem
        return data

    def get_quote(self, symbol: str) -> NormalizedQuote | None:
        row = self._query("GLOBAL_QUOTE", symbol).get("Global Quote") or {}
        price = _num(row.get("05. price"))
        if not price or price <= 0:
            return None

        def field(key: str) -> float:
            value = _num(row.get(key))
            return price if value is None else value

        return NormalizedQuote(
            symbol=symbol,
            price=price,
            change=_num(row.get("09. change")) or 0.0,
            percent_change=_num(row.get("10. change percent")) or 0.0,
            high=field("03. high"),
            low=field("04. low"),
            open=field("02. open"),
            previous_close=field("08. previous close"),
            timestamp=None,
            source="alphavantage",
        )

    def get_overview(self, symbol: str) -> CompanyFundamentals | None:
        data = self._query("OVERVIEW", symbol)
        if not data.get("Symbol"):
            return None
        market_cap = _num(data.get("MarketCapitalization"))
        shares = _num(data.get("SharesOutstanding"))
        asset_type = str(data.get("AssetType") or "").upper()
        clean = symbol.upper()
        return CompanyFundamentals(
            symbol=clean,
            source="alphavantage",
            name=data.get("Name") or clean,
            sector=str(data.get("Sector") or "").title() or None,
            industry=str(data.get("Industry") or "").title() or None,
            description=data.get("Description"),
            exchange=data.get("Exchange"),
            is_etf=(asset_type == "ETF") if asset_type else None,
            # OVERVIEW has no price; market cap over share count approximates it.
            current_price=market_cap / shares if market_cap and shares else None,
            year_high=_num(data.get("52WeekHigh")),
            year_low=_num(data.get("52WeekLow")),
            market_cap=market_cap,
            shares_outstanding=shares,
            beta=_num(data.get("Beta")),
            analyst_target=_num(data.get("AnalystTargetPrice")),
            pe=_num(data.get("PERatio")),
            pb=_num(data.get("PriceToBookRatio")),
            peg=_num(data.get("PEGRatio")),
            roe=_percent(data.get("ReturnOnEquityTTM")),
            roa=_percent(data.get("ReturnOnAssetsTTM")),
            net_margin=_percent(data.get("ProfitMargin")),
            operating_margin=_percent(data.get("OperatingMarginTTM")),
            revenue_growth=_percent(data.get("QuarterlyRevenueGrowthYOY")),
            dividend=_num(data.get("DividendPerShare")),
            dividend_yield=_percent(data.get("DividendYield")),
            sector_median_ev_fcf=SECTOR_MEDIAN_EV_FCF,
        )

    def get_daily_closes(self, symbol: str, limit: int = 260) -> list[NormalizedDailyClose] | None:
        data = self._query("TIME_SERIES_DAILY", symbol, outputsize="compact" if limit <= 100 else "full")
        series = data.get("Time Series (Daily)")
        if not isinstance(series, dict):
            return None
        closes: list[NormalizedDailyClose] = []
        for day, bar in series.items():
            close = _num(bar.get("4. close")) if isinstance(bar, dict) else None
            if close is not None and close > 0:
                closes.append(NormalizedDailyClose(date=str(day)[:10], close=close))
        closes.sort(key=lambda item: item.date)
        return closes[-limit:] or None
