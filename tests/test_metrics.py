import pytest

from folio_server.portfolio.metrics import asset_allocation, holding_metrics, portfolio_metrics, rebalancing_needs
from folio_server.portfolio.models import Holding


def _holdings() -> list[Holding]:
    return [
        Holding(ticker="AAPL", shares=10, total_cost=1000, current_price=150, previous_close=145, dividend=1.0, sector="Technology"),
        Holding(ticker="BND", shares=20, total_cost=1500, current_price=75, asset_type="bonds", sector="Fixed Income", account_type="roth_ira"),
    ]


def test_holding_metrics_with_and_without_previous_close() -> None:
    apple, bond = _holdings()
    metrics = holding_metrics(apple, total_value=3000)
    assert metrics["current_value"] == pytest.approx(1500)
    assert metrics["gain_loss_percent"] == pytest.approx(50)
    assert metrics["weight"] == pytest.approx(50)
    assert metrics["day_change"] == pytest.approx(50)
    assert metrics["yield_on_cost"] == pytest.approx(1.0)
    assert holding_metrics(bond)["day_change"] == 0.0


def test_unpriced_holding_is_valued_at_cost() -> None:
    holding = Holding(ticker="XYZ", shares=4, total_cost=200)
    assert holding.market_value == pytest.approx(200)
    assert holding_metrics(holding)["gain_loss"] == 0.0


def test_portfolio_totals() -> None:
    totals = portfolio_metrics(_holdings())
    assert totals["total_value"] == pytest.approx(3000)
    assert totals["total_cost"] == pytest.approx(2500)
    assert totals["total_gain_loss_percent"] == pytest.approx(20)
    assert totals["dividend_income"] == pytest.approx(10)
    assert totals["day_change"] == pytest.approx(50)
    assert totals["day_change_percent"] == pytest.approx(50 / 2950 * 100)


def test_empty_portfolio_has_zero_totals() -> None:
    totals = portfolio_metrics([])
    assert totals["total_value"] == 0.0
    assert totals["dividend_yield"] == 0.0
    assert asset_allocation([]) == {"by_type": {}, "by_sector": {}, "by_account": {}}


def test_allocation_and_rebalancing() -> None:
    allocation = asset_allocation(_holdings())
    assert allocation["by_type"] == {"bonds": pytest.approx(50), "stocks": pytest.approx(50)}
    assert allocation["by_account"]["roth_ira"] == pytest.approx(50)
    needs = rebalancing_needs(_holdings(), {"stocks": 60, "bonds": 40})
    assert needs["stocks"]["difference"] == pytest.approx(10)
    assert needs["stocks"]["dollar_amount"] == pytest.approx(300)
    assert needs["bonds"]["dollar_amount"] == pytest.approx(-300)
