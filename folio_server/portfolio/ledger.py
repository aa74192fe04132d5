"""Transaction ledger to holdings reconciliation.

Holdings are rebuilt from the complete transaction history on every call. Positions are keyed by
``(ticker, account_type)`` and carry a total cost, so the weighted-average cost basis is
``total_cost / shares`` and is unchanged by partial sales and splits.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable

from folio_server.portfolio.models import Holding, HoldingKey, Transaction

LOGGER = logging.getLogger(__name__)
EPSILON = 1e-9
_RATIO_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(?::|/|-for-|for)\s*(\d+(?:\.\d+)?)\s*$", re.IGNORECASE)


@dataclass
class LedgerSummary:
    realized_gains: float = 0.0
    realized_gains_by_ticker: dict[str, float] = field(default_factory=dict)
    dividend_income: float = 0.0
    dividend_income_by_ticker: dict[str, float] = field(default_factory=dict)
    interest_income: float = 0.0
    fees_paid: float = 0.0
    return_of_capital: float = 0.0
    processed: int = 0
    warnings: list[str] = field(default_factory=list)

    def realize(self, ticker: str, amount: float) -> None:
        self.realized_gains += amount
        self.realized_gains_by_ticker[ticker] = self.realized_gains_by_ticker.get(ticker, 0.0) + amount

    def warn(self, tx: Transaction, message: str) -> None:
        text = f"{tx.date.isoformat()} {tx.type} {tx.ticker} ({tx.account_type}): {message}"
        LOGGER.warning("ledger warning: %s", text)
        self.warnings.append(text)


@dataclass
class LedgerResult:
    holdings: dict[HoldingKey, Holding]
    summary: LedgerSummary

    def holdings_list(self) -> list[Holding]:
        return [self.holdings[key] for key in sorted(self.holdings)]


def parse_split_ratio(ratio: str | None) -> float:
    """Return the share multiplier for ratios such as ``"2:1"``, ``"3/2"`` or ``"1-for-10"``."""
    match = _RATIO_PATTERN.match(ratio or "")
    if not match:
        raise ValueError(f"Invalid split ratio: {ratio!r}. Use the form '2:1'.")
    new_shares, old_shares = float(match.group(1)), float(match.group(2))
    if new_shares <= 0 or old_shares <= 0:
        raise ValueError(f"Invalid split ratio: {ratio!r}. Both sides must be positive.")
    return new_shares / old_shares


def sort_transactions(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Chronological order; same-day transactions keep their input order."""
    return sorted(transactions, key=lambda tx: tx.date)


def _add_position(
    holdings: dict[HoldingKey, Holding],
    ticker: str,
    account_type: str,
    shares: float,
    cost: float,
    template: Holding | None = None,
) -> None:
    key = (ticker, account_type)
    current = holdings.get(key)
    if current is None:
        if template is not None:
            holdings[key] = replace(template, ticker=ticker, account_type=account_type, shares=shares, total_cost=cost)
        else:
            holdings[key] = Holding(ticker=ticker, account_type=account_type, shares=shares, total_cost=cost)
        return
    current.shares += shares
    current.total_cost += cost


def _remove_shares(holdings: dict[HoldingKey, Holding], position: Holding, shares: float) -> float:
    """Take ``shares`` out of ``position`` at average cost; returns the cost removed."""
    fraction = min(1.0, shares / position.shares) if position.shares > 0 else 1.0
    removed_cost = position.total_cost * fraction
    position.shares -= shares
    position.total_cost -= removed_cost
    if position.shares <= EPSILON:
        del holdings[position.key]
    return removed_cost


def _positive_shares(tx: Transaction, summary: LedgerSummary) -> float | None:
    if tx.shares is None or tx.shares <= 0:
        summary.warn(tx, "shares must be a positive number; transaction skipped.")
        return None
    return tx.shares


def _apply_buy(holdings: dict[HoldingKey, Holding], tx: Transaction, summary: LedgerSummary) -> None:
    shares = _positive_shares(tx, summary)
    if shares is None:
        return
    cost = tx.amount if tx.amount > 0 else shares * (tx.price or 0.0) + tx.fees
    _add_position(holdings, tx.ticker, tx.account_type, shares, cost)


def _apply_sell(holdings: dict[HoldingKey, Holding], tx: Transaction, summary: LedgerSummary) -> None:
    shares = _positive_shares(tx, summary)
    if shares is None:
        return
    position = holdings.get((tx.ticker, tx.account_type))
    if position is None:
        summary.warn(tx, "no open position to sell; transaction skipped.")
        return
    sold = min(shares, position.shares)
    if shares > position.shares + EPSILON:
        summary.warn(tx, f"sell of {shares:g} shares exceeds the {position.shares:g} held; clamped.")
    gross = tx.cash_value
    if gross <= 0:
        summary.warn(tx, "sell has no price or amount; proceeds booked as zero.")
    proceeds = gross * (sold / shares)
    removed_cost = _remove_shares(holdings, position, sold)
    summary.realize(tx.ticker, proceeds - tx.fees - removed_cost)


def _apply_split(holdings: dict[HoldingKey, Holding], tx: Transaction, summary: LedgerSummary) -> None:
    try:
        factor = parse_split_ratio(tx.split_ratio)
    except ValueError as error:
        summary.warn(tx, f"{error} Transaction skipped.")
        return
    positions = [holding for holding in holdings.values() if holding.ticker == tx.ticker]
    if not positions:
        summary.warn(tx, "no open position to split.")
        return
    for position in positions:
        position.shares *= factor
        if position.current_price is not None:
            position.current_price /= factor


def _apply_spinoff(holdings: dict[HoldingKey, Holding], tx: Transaction, summary: LedgerSummary) -> None:
    if not tx.new_ticker:
        summary.warn(tx, "spinoff requires new_ticker; transaction skipped.")
        return
    shares = _positive_shares(tx, summary)
    if shares is None:
        return
    parent = holdings.get((tx.ticker, tx.account_type))
    if parent is None:
        summary.warn(tx, "no parent position for spinoff; transaction skipped.")
        return
    moved_cost = min(max(tx.amount, 0.0), parent.total_cost)
    parent.total_cost -= moved_cost
    _add_position(holdings, tx.new_ticker, tx.account_type, shares, moved_cost)


def _apply_merger(holdings: dict[HoldingKey, Holding], tx: Transaction, summary: LedgerSummary) -> None:
    parent = holdings.pop((tx.ticker, tx.account_type), None)
    if parent is None:
        summary.warn(tx, "no position to convert in merger; transaction skipped.")
        return
    cash = max(tx.amount, 0.0)
    carried_cost = parent.total_cost - cash
    if carried_cost < 0:
        summary.realize(tx.ticker, -carried_cost)
        carried_cost = 0.0
    if not tx.new_ticker:
        # Cash-only acquisition closes the position.
        summary.realize(tx.ticker, -carried_cost)
        return
    new_shares = tx.shares if tx.shares is not None and tx.shares > 0 else parent.shares
    _add_position(holdings, tx.new_ticker, tx.account_type, new_shares, carried_cost)


def _apply_dividend(holdings: dict[HoldingKey, Holding], tx: Transaction, summary: LedgerSummary) -> None:
    amount = tx.cash_value
    if amount <= 0:
        summary.warn(tx, "dividend amount is zero.")
        return
    summary.dividend_income += amount
    summary.dividend_income_by_ticker[tx.ticker] = summary.dividend_income_by_ticker.get(tx.ticker, 0.0) + amount


def _apply_return_of_capital(holdings: dict[HoldingKey, Holding], tx: Transaction, summary: LedgerSummary) -> None:
    if tx.amount <= 0:
        summary.warn(tx, "return of capital amount must be positive; transaction skipped.")
        return
    position = holdings.get((tx.ticker, tx.account_type))
    if position is None:
        summary.warn(tx, "no position for return of capital; transaction skipped.")
        return
    summary.return_of_capital += tx.amount
    excess = tx.amount - position.total_cost
    position.total_cost = max(0.0, position.total_cost - tx.amount)
    if excess > 0:
        summary.realize(tx.ticker, excess)


def _apply_fee(holdings: dict[HoldingKey, Holding], tx: Transaction, summary: LedgerSummary) -> None:
    summary.fees_paid += abs(tx.amount)


def _apply_interest(holdings: dict[HoldingKey, Holding], tx: Transaction, summary: LedgerSummary) -> None:
    summary.interest_income += tx.cash_value


def _apply_transfer(holdings: dict[HoldingKey, Holding], tx: Transaction, summary: LedgerSummary) -> None:
    target = tx.to_account_type
    if not target or target == tx.account_type:
        summary.warn(tx, "transfer requires a different to_account_type; transaction skipped.")
        return
    position = holdings.get((tx.ticker, tx.account_type))
    if position is None:
        summary.warn(tx, "no position to transfer; transaction skipped.")
        return
    requested = tx.shares if tx.shares is not None and tx.shares > 0 else position.shares
    moved = min(requested, position.shares)
    if requested > position.shares + EPSILON:
        summary.warn(tx, f"transfer of {requested:g} shares exceeds the {position.shares:g} held; clamped.")
    template = replace(position)
    moved_cost = _remove_shares(holdings, position, moved)
    _add_position(holdings, tx.ticker, target, moved, moved_cost, template=template)


_HANDLERS: dict[str, Callable[[dict[HoldingKey, Holding], Transaction, LedgerSummary], None]] = {
    "buy": _apply_buy,
    "rights": _apply_buy,
    "sell": _apply_sell,
    "split": _apply_split,
    "spinoff": _apply_spinoff,
    "merger": _apply_merger,
    "dividend": _apply_dividend,
    "return_of_capital": _apply_return_of_capital,
    "fee": _apply_fee,
    "interest": _apply_interest,
    "transfer": _apply_transfer,
}


def reconcile_ledger(transactions: Iterable[Transaction]) -> LedgerResult:
    """Fold the full transaction history into current holdings plus a ledger summary."""
    holdings: dict[HoldingKey, Holding] = {}
    summary = LedgerSummary()
    for tx in sort_transactions(transactions):
        handler = _HANDLERS.get(tx.type)
        if handler is None:
            summary.warn(tx, "unsupported transaction type; skipped.")
            continue
        if tx.type != "fee" and tx.fees > 0:
            summary.fees_paid += tx.fees
        handler(holdings, tx, summary)
        summary.processed += 1
    LOGGER.debug(
        "ledger reconciled: transactions=%s positions=%s warnings=%s",
        summary.processed,
        len(holdings),
        len(summary.warnings),
    )
    return LedgerResult(holdings=holdings, summary=summary)


def build_holdings(transactions: Iterable[Transaction]) -> dict[HoldingKey, Holding]:
    return reconcile_ledger(transactions).holdings
