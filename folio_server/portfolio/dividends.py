"""Dividend income analysis and payment projections."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from typing import Any, Iterable

from folio_server.portfolio.ledger import sort_transactions
from folio_server.portfolio.models import Holding, Transaction

EX_DATE_DAY = 15
PAY_DATE_LAG = timedelta(days=14)


@dataclass
class DividendPayment:
    id: str
    ticker: str
    company: str
    ex_date: date
    pay_date: date
    amount: float
    shares: float
    total_payment: float
    dividend_type: str = "ordinary"
    tax_withheld: float = 0.0


@dataclass
class DividendProjection:
    ticker: str
    next_ex_date: date
    next_pay_date: date
    estimated_amount: float
    frequency: str = "quarterly"
    confidence: str = "medium"


@dataclass
class DividendAnalysis:
    total_annual_income: float
    monthly_average: float
    yield_on_cost: float
    current_yield: float
    growth_rate: float
    growth_streak: int
    payment_history: list[DividendPayment] = field(default_factory=list)
    upcoming_payments: list[DividendProjection] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        for item in payload["payment_history"]:
            item["ex_date"] = item["ex_date"].isoformat()
            item["pay_date"] = item["pay_date"].isoformat()
        for item in payload["upcoming_payments"]:
            item["next_ex_date"] = item["next_ex_date"].isoformat()
            item["next_pay_date"] = item["next_pay_date"].isoformat()
        return payload


def build_payment_history(transactions: Iterable[Transaction], holdings: Iterable[Holding]) -> list[DividendPayment]:
    companies = {holding.ticker: holding.company for holding in holdings if holding.company}
    payments: list[DividendPayment] = []
    dividends = [tx for tx in sort_transactions(transactions) if tx.type == "dividend"]
    for index, tx in enumerate(dividends):
        total = tx.cash_value
        shares = tx.shares or 0.0
        per_share = tx.price if tx.price is not None else (total / shares if shares > 0 else 0.0)
        payments.append(
            DividendPayment(
                id=tx.id or f"div-{index}",
                ticker=tx.ticker,
                company=companies.get(tx.ticker, tx.ticker),
                ex_date=tx.date,
                pay_date=tx.date,
                amount=per_share,
                shares=shares,
                total_payment=total,
            )
        )
    return payments


def _yearly_totals(payments: Iterable[DividendPayment]) -> dict[str, dict[int, float]]:
    totals: dict[str, dict[int, float]] = defaultdict(lambda: defaultdict(float))
    for payment in payments:
        totals[payment.ticker][payment.pay_date.year] += payment.total_payment
    return totals


def dividend_growth_rate(payments: Iterable[DividendPayment]) -> float:
    """Average per-ticker CAGR of yearly dividend totals, in percent."""
    rates: list[float] = []
    for yearly in _yearly_totals(payments).values():
        years = sorted(yearly)
        if len(years) < 2:
            continue
        first, last = years[0], years[-1]
        if yearly[first] <= 0:
            continue
        rates.append((yearly[last] / yearly[first]) ** (1.0 / (last - first)) - 1.0)
    return (sum(rates) / len(rates)) * 100.0 if rates else 0.0


def dividend_growth_streak(payments: Iterable[DividendPayment]) -> int:
    """Longest run of consecutive recent calendar years with a higher total than the year before."""
    best = 0
    for yearly in _yearly_totals(payments).values():
        years = sorted(yearly)
        streak = 0
        for index in range(len(years) - 1, 0, -1):
            current, previous = years[index], years[index - 1]
            if current - previous != 1 or yearly[current] <= yearly[previous]:
                break
            streak += 1
        best = max(best, streak)
    return best


def next_quarter_start(as_of: date) -> date:
    quarter_end_month = ((as_of.month - 1) // 3 + 1) * 3
    month = quarter_end_month + 1
    year = as_of.year
    if month > 12:
        month -= 12
        year += 1
    return date(year, month, 1)


def project_upcoming_dividends(holdings: Iterable[Holding], as_of: date) -> list[DividendProjection]:
    ex_date = next_quarter_start(as_of).replace(day=EX_DATE_DAY)
    projections = [
        DividendProjection(
            ticker=holding.ticker,
            next_ex_date=ex_date,
            next_pay_date=ex_date + PAY_DATE_LAG,
            estimated_amount=holding.dividend / 4.0,
        )
        for holding in holdings
        if holding.dividend and holding.dividend > 0
    ]
    return sorted(projections, key=lambda item: item.next_ex_date)


def analyze_dividends(
    holdings: Iterable[Holding],
    transactions: Iterable[Transaction],
    as_of: date | None = None,
) -> DividendAnalysis:
    items = list(holdings)
    history = build_payment_history(transactions, items)
    annual_income = 0.0
    cost = 0.0
    value = 0.0
    for holding in items:
        if not holding.dividend or holding.dividend <= 0:
            continue
        annual_income += holding.shares * holding.dividend
        cost += holding.total_cost
        value += holding.market_value
    return DividendAnalysis(
        total_annual_income=annual_income,
        monthly_average=annual_income / 12.0,
        yield_on_cost=(annual_income / cost) * 100.0 if cost > 0 else 0.0,
        current_yield=(annual_income / value) * 100.0 if value > 0 else 0.0,
        growth_rate=dividend_growth_rate(history),
        growth_streak=dividend_growth_streak(history),
        payment_history=history,
        upcoming_payments=project_upcoming_dividends(items, as_of or date.today()),
    )


def dividend_calendar(projections: Iterable[DividendProjection]) -> list[dict[str, Any]]:
    """Group projected payments by pay month, e.g. ``"January 2025"``."""
    months: dict[str, list[dict[str, Any]]] = {}
    for projection in projections:
        label = projection.next_pay_date.strftime("%B %Y")
        months.setdefault(label, []).append(
            {
                "ticker": projection.ticker,
                "amount": projection.estimated_amount,
                "date": projection.next_pay_date.isoformat(),
            }
        )
    return [
        {"month": month, "payments": payments, "total_amount": sum(item["amount"] for item in payments)}
        for month, payments in months.items()
    ]


def holding_dividend_metrics(holding: Holding, transactions: Iterable[Transaction]) -> dict[str, Any]:
    received = [
        tx for tx in sort_transactions(transactions) if tx.type == "dividend" and tx.ticker == holding.ticker
    ]
    dividend = holding.dividend or 0.0
    cost_basis = holding.cost_basis
    return {
        "ticker": holding.ticker,
        "total_dividends_received": sum(tx.cash_value for tx in received),
        "current_annual_income": holding.shares * dividend,
        "yield_on_cost": (dividend / cost_basis) * 100.0 if cost_basis > 0 and dividend else 0.0,
        "payments_count": len(received),
        "last_payment_date": received[-1].date.isoformat() if received else None,
    }
