from datetime import date

import pytest

from folio_server.portfolio.dividends import (
    analyze_dividends,
    build_payment_history,
    dividend_calendar,
    dividend_growth_rate,
    dividend_growth_streak,
    holding_dividend_metrics,
    next_quarter_start,
)
from folio_server.portfolio.models import Holding, Transaction


def _dividends() -> list[Transaction]:
    return [
        Transaction.from_dict({"ticker": "KO", "type": "dividend", "date": "2022-06-01", "amount": 100}),
        Transaction.from_dict({"ticker": "KO", "type": "dividend", "date": "2023-06-01", "amount": 110}),
        Transaction.from_dict({"ticker": "KO", "type": "dividend", "date": "2024-06-01", "amount": 121}),
    ]


def _holding() -> Holding:
    return Holding(ticker="KO", shares=100, total_cost=5000, current_price=60, dividend=1.84, company="Coca-Cola")


def test_growth_rate_and_streak_from_history() -> None:
    history = build_payment_history(_dividends(), [_holding()])
    assert history[0].company == "Coca-Cola"
    assert dividend_growth_rate(history) == pytest.approx(10.0)
    assert dividend_growth_streak(history) == 2


def test_streak_breaks_on_gap_year() -> None:
    transactions = [
        Transaction.from_dict({"ticker": "T", "type": "dividend", "date": "2020-01-01", "amount": 10}),
        Transaction.from_dict({"ticker": "T", "type": "dividend", "date": "2022-01-01", "amount": 20}),
        Transaction.from_dict({"ticker": "T", "type": "dividend", "date": "2023-01-01", "amount": 30}),
    ]
    assert dividend_growth_streak(build_payment_history(transactions, [])) == 1


def test_next_quarter_start_rolls_year() -> None:
    assert next_quarter_start(date(2024, 5, 10)) == date(2024, 7, 1)
    assert next_quarter_start(date(2024, 11, 30)) == date(2025, 1, 1)


def test_analysis_income_yields_and_projection() -> None:
    analysis = analyze_dividends([_holding()], _dividends(), as_of=date(2024, 5, 10))
    assert analysis.total_annual_income == pytest.approx(184)
    assert analysis.monthly_average == pytest.approx(184 / 12)
    assert analysis.yield_on_cost == pytest.approx(3.68)
    assert analysis.current_yield == pytest.approx(184 / 6000 * 100)
    projection = analysis.upcoming_payments[0]
    assert projection.next_ex_date == date(2024, 7, 15)
    assert projection.next_pay_date == date(2024, 7, 29)
    assert projection.estimated_amount == pytest.approx(0.46)

    calendar = dividend_calendar(analysis.upcoming_payments)
    assert calendar[0]["month"] == "July 2024"
    assert calendar[0]["total_amount"] == pytest.approx(0.46)
    assert analysis.to_dict()["payment_history"][0]["ex_date"] == "2022-06-01"


def test_non_payers_are_skipped() -> None:
    analysis = analyze_dividends([Holding(ticker="BRK.B", shares=1, total_cost=300)], [], as_of=date(2024, 1, 1))
    assert analysis.total_annual_income == 0.0
    assert analysis.upcoming_payments == []
    assert analysis.growth_rate == 0.0


def test_holding_dividend_metrics() -> None:
    metrics = holding_dividend_metrics(_holding(), _dividends())
    assert metrics["total_dividends_received"] == pytest.approx(331)
    assert metrics["payments_count"] == 3
    assert metrics["last_payment_date"] == "2024-06-01"
