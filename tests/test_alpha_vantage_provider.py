import pytest

from folio_server.providers import alpha_vantage
from folio_server.providers.alpha_vantage import AlphaVantageClient, classify_message
from folio_server.providers.http import ProviderError


def _serve(monkeypatch, payload) -> list[dict]:
    seen: list[dict] = []

    def fake_fetch(url, provider, timeout_seconds=15.0, params=None, headers=None, max_retries=3):
        seen.append(params)
        return payload

    monkeypatch.setattr(alpha_vantage, "fetch_json", fake_fetch)
    return seen


def test_in_body_messages_are_classified() -> None:
    throttled = classify_message({"Note": "Our standard API call frequency is 5 calls per minute."})
    assert throttled.code == "RATE_LIMIT"
    assert classify_message({"Error Message": "Invalid API call."}).code == "NOT_FOUND"
    assert classify_message({"Information": "The apikey is invalid."}).code == "AUTH"
    assert classify_message({"Global Quote": {}}) is None


def test_quote_parses_percent_and_fills_missing_fields(monkeypatch) -> None:
    seen = _serve(
        monkeypatch,
        {"Global Quote": {"05. price": "101.5", "09. change": "1.5", "10. change percent": "1.5%", "08. previous close": "100"}},
    )
    quote = AlphaVantageClient("key").get_quote("IBM")
    assert seen[0]["function"] == "GLOBAL_QUOTE"
    assert seen[0]["apikey"] == "key"
    assert quote.percent_change == pytest.approx(1.5)
    assert quote.previous_close == 100
    assert quote.high == 101.5


def test_throttle_note_raises(monkeypatch) -> None:
    _serve(monkeypatch, {"Note": "Thank you for using Alpha Vantage! rate limit is 25 requests per day."})
    with pytest.raises(ProviderError) as error:
        AlphaVantageClient("key").get_quote("IBM")
    assert error.value.code == "RATE_LIMIT"


def test_overview_converts_ratios(monkeypatch) -> None:
    _serve(
        monkeypatch,
        {
            "Symbol": "KO",
            "Name": "Coca-Cola",
            "Sector": "CONSUMER DEFENSIVE",
            "AssetType": "Common Stock",
            "MarketCapitalization": "1000000",
            "SharesOutstanding": "1000",
            "ReturnOnEquityTTM": "0.4",
            "DividendYield": "0.03",
            "PERatio": "None",
        },
    )
    data = AlphaVantageClient("key").get_overview("ko")
    assert data.symbol == "KO"
    assert data.sector == "Consumer Defensive"
    assert data.is_etf is False
    assert data.current_price == pytest.approx(1000)
    assert data.roe == pytest.approx(40)
    assert data.dividend_yield == pytest.approx(3)
    assert data.pe is None


def test_daily_closes_sorted_and_limited(monkeypatch) -> None:
    _serve(
        monkeypatch,
        {
            "Time Series (Daily)": {
                "2024-01-03": {"4. close": "12"},
                "2024-01-01": {"4. close": "10"},
                "2024-01-02": {"4. close": "0"},
                "2024-01-04": {"4. close": "13"},
            }
        },
    )
    closes = AlphaVantageClient("key").get_daily_closes("IBM", limit=2)
    assert [item.date for item in closes] == ["2024-01-03", "2024-01-04"]
