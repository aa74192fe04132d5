import pytest

from folio_server.portfolio.ledger import build_holdings, parse_split_ratio, reconcile_ledger
from folio_server.portfolio.models import Transaction


def _tx(**payload) -> Transaction:
    return Transaction.from_dict(payload)


def test_buys_and_partial_sell_keep_average_cost() -> None:
    result = reconcile_ledger(
        [
            _tx(ticker="aapl", type="buy", date="2024-01-02", shares=10, price=100, fees=5),
            _tx(ticker="AAPL", type="buy", date="2024-02-01", shares=10, price=120),
            _tx(ticker="AAPL", type="sell", date="2024-03-01", shares=5, price=150),
        ]
    )
    holding = result.holdings[("AAPL", "taxable")]
    assert holding.shares == pytest.approx(15)
    assert holding.total_cost == pytest.approx(2205 * 0.75)
    assert holding.cost_basis == pytest.approx(110.25)
    assert result.summary.realized_gains == pytest.approx(750 - 551.25)
    assert result.summary.fees_paid == pytest.approx(5)
    assert result.summary.processed == 3


def test_transactions_are_applied_in_date_order() -> None:
    result = reconcile_ledger(
        [
            _tx(ticker="MSFT", type="sell", date="2024-05-01", shares=4, price=50),
            _tx(ticker="MSFT", type="buy", date="2024-01-01", shares=4, price=40),
        ]
    )
    assert ("MSFT", "taxable") not in result.holdings
    assert result.summary.realized_gains == pytest.approx(40)
    assert result.summary.warnings == []


def test_split_multiplies_shares_without_changing_cost() -> None:
    result = reconcile_ledger(
        [
            _tx(ticker="NVDA", type="buy", date="2023-01-01", shares=10, price=400),
            _tx(ticker="NVDA", type="split", date="2024-06-10", split_ratio="10:1"),
        ]
    )
    holding = result.holdings[("NVDA", "taxable")]
    assert holding.shares == pytest.approx(100)
    assert holding.total_cost == pytest.approx(4000)
    assert holding.cost_basis == pytest.approx(40)


def test_transfer_moves_shares_and_cost_between_accounts() -> None:
    result = reconcile_ledger(
        [
            _tx(ticker="VTI", type="buy", date="2024-01-01", shares=20, price=200),
            _tx(ticker="VTI", type="transfer", date="2024-02-01", shares=5, account_type="taxable", to_account_type="roth_ira"),
        ]
    )
    assert result.holdings[("VTI", "taxable")].shares == pytest.approx(15)
    moved = result.holdings[("VTI", "roth_ira")]
    assert moved.shares == pytest.approx(5)
    assert moved.total_cost == pytest.approx(1000)


def test_spinoff_and_cash_merger() -> None:
    result = reconcile_ledger(
        [
            _tx(ticker="GE", type="buy", date="2022-01-01", shares=10, price=100),
            _tx(ticker="GE", type="spinoff", date="2023-01-04", new_ticker="GEHC", shares=3, amount=150),
            _tx(ticker="XYZ", type="buy", date="2022-01-01", shares=10, price=10),
            _tx(ticker="XYZ", type="merger", date="2023-06-01", amount=250),
        ]
    )
    assert result.holdings[("GE", "taxable")].total_cost == pytest.approx(850)
    spun = result.holdings[("GEHC", "taxable")]
    assert spun.shares == pytest.approx(3)
    assert spun.total_cost == pytest.approx(150)
    assert ("XYZ", "taxable") not in result.holdings
    assert result.summary.realized_gains_by_ticker["XYZ"] == pytest.approx(150)


def test_income_fees_and_warnings() -> None:
    result = reconcile_ledger(
        [
            _tx(ticker="KO", type="buy", date="2024-01-01", shares=10, price=60),
            _tx(ticker="KO", type="dividend", date="2024-04-01", amount=4.6),
            _tx(ticker="KO", type="dividend", date="2024-07-01", amount=4.6),
            _tx(ticker="CASH", type="interest", date="2024-07-01", amount=12),
            _tx(ticker="CASH", type="fee", date="2024-07-01", amount=25),
            _tx(ticker="PEP", type="sell", date="2024-08-01", shares=1, price=170),
        ]
    )
    assert result.summary.dividend_income == pytest.approx(9.2)
    assert result.summary.dividend_income_by_ticker == {"KO": pytest.approx(9.2)}
    assert result.summary.interest_income == pytest.approx(12)
    assert result.summary.fees_paid == pytest.approx(25)
    assert len(result.summary.warnings) == 1
    assert "PEP" in result.summary.warnings[0]


def test_return_of_capital_reduces_cost_then_realizes_excess() -> None:
    result = reconcile_ledger(
        [
            _tx(ticker="O", type="buy", date="2024-01-01", shares=10, price=5),
            _tx(ticker="O", type="return_of_capital", date="2024-06-01", amount=60),
        ]
    )
    assert result.holdings[("O", "taxable")].total_cost == 0.0
    assert result.summary.realized_gains == pytest.approx(10)
    assert result.summary.return_of_capital == pytest.approx(60)


def test_parse_split_ratio_forms() -> None:
    assert parse_split_ratio("2:1") == 2.0
    assert parse_split_ratio("3/2") == 1.5
    assert parse_split_ratio("1-for-10") == pytest.approx(0.1)
    with pytest.raises(ValueError):
        parse_split_ratio("two for one")


def test_build_holdings_is_pure_and_keyed_by_account() -> None:
    history = [
        _tx(ticker="VTI", type="buy", date="2024-01-02", shares=3, price=200, account_type="roth_ira"),
        _tx(ticker="VTI", type="buy", date="2024-01-02", shares=2, price=200),
    ]
    first = build_holdings(history)
    second = build_holdings(history)
    assert set(first) == {("VTI", "roth_ira"), ("VTI", "taxable")}
    assert first[("VTI", "roth_ira")].shares == second[("VTI", "roth_ira")].shares == pytest.approx(3)


def test_oversell_is_clamped_with_warning() -> None:
    result = reconcile_ledger(
        [
            _tx(ticker="AMD", type="buy", date="2024-01-02", shares=5, price=100),
            _tx(ticker="AMD", type="sell", date="2024-02-01", shares=8, price=120),
        ]
    )
    assert ("AMD", "taxable") not in result.holdings
    assert result.summary.realized_gains == pytest.approx(5 * 120 - 500)
    assert len(result.summary.warnings) == 1
    assert "clamped" in result.summary.warnings[0]


def test_malformed_split_ratio_becomes_warning() -> None:
    result = reconcile_ledger(
        [
            _tx(ticker="NVDA", type="buy", date="2023-01-01", shares=10, price=400),
            _tx(ticker="NVDA", type="split", date="2024-06-10", split_ratio="ten-for-one"),
        ]
    )
    assert result.holdings[("NVDA", "taxable")].shares == pytest.approx(10)
    assert len(result.summary.warnings) == 1


def test_stock_merger_converts_shares_and_joins_existing_target() -> None:
    result = reconcile_ledger(
        [
            _tx(ticker="AAA", type="buy", date="2024-01-02", shares=10, price=10),
            _tx(ticker="BBB", type="buy", date="2024-01-02", shares=5, price=20),
            _tx(ticker="AAA", type="merger", date="2024-06-03", new_ticker="BBB", shares=4, amount=20),
        ]
    )
    assert ("AAA", "taxable") not in result.holdings
    target = result.holdings[("BBB", "taxable")]
    assert target.shares == pytest.approx(9)
    assert target.total_cost == pytest.approx(180)
    assert result.summary.realized_gains == pytest.approx(0)


def test_spinoff_without_parent_is_skipped() -> None:
    result = reconcile_ledger(
        [_tx(ticker="GE", type="spinoff", date="2024-04-02", new_ticker="GEHC", shares=3, amount=150)]
    )
    assert result.holdings == {}
    assert "no parent position" in result.summary.warnings[0]


def test_sell_without_price_warns() -> None:
    result = reconcile_ledger(
        [
            _tx(ticker="XYZ", type="buy", date="2024-01-02", shares=4, price=25),
            _tx(ticker="XYZ", type="sell", date="2024-03-01", shares=4),
        ]
    )
    assert result.summary.realized_gains == pytest.approx(-100)
    assert "no price or amount" in result.summary.warnings[0]
