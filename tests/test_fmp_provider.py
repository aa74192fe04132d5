import pytest

from folio_server.providers.fmp import build_fundamentals, format_ticker


def test_format_ticker_share_classes() -> None:
    assert format_ticker("brk.b") == "BRK-B"
    assert format_ticker("BF/B") == "BF-B"


def test_build_fundamentals_converts_ratios_and_derives_shares() -> None:
    data = build_fundamentals(
        "ko",
        None,
        {"price": 100, "mktCap": 1_000_000_000, "companyName": "Coca-Cola", "lastDiv": 1.84, "beta": 0.6},
        {"returnOnEquity": 0.4, "priceToBookRatio": 10.5, "dividendYield": 0.03},
        {"freeCashFlowPerShare": 5},
        {"revenueGrowth": 0.05},
    )
    assert data.symbol == "KO"
    assert data.sector == "Consumer Staples"
    assert data.shares_outstanding == pytest.approx(10_000_000)
    assert data.roe == pytest.approx(40)
    assert data.dividend_yield == pytest.approx(3)
    assert data.revenue_growth == pytest.approx(5)
    assert data.fcf_1yr == pytest.approx(50)
    assert data.current_price == 100
    assert data.dividend == 1.84


def test_etf_profile_without_sector() -> None:
    data = build_fundamentals("SPY", None, {"isEtf": True, "price": 500}, {}, {}, {})
    assert data.sector == "ETF"
    assert data.is_etf is True
