"""Lot-level cost basis accounting for tax reporting."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Literal

from folio_server.portfolio.ledger import EPSILON, parse_split_ratio, sort_transactions
from folio_server.portfolio.models import Transaction

CostBasisMethod = Literal["FIFO", "LIFO", "AverageCost"]
COST_BASIS_METHODS = ("FIFO", "LIFO", "AverageCost")
LONG_TERM_DAYS = 365
WASH_SALE_WINDOW = timedelta(days=30)


@dataclass
class Lot:
    id: str
    acquired: date
    shares: float
    cost_per_share: float
    remaining_shares: float

    @property
    def remaining_cost(self) -> float:
        return self.remaining_shares * self.cost_per_share


@dataclass
class LotSale:
    lot_id: str
    acquired: date
    shares: float
    cost_per_share: float
    sale_price: float
    gain: float
    holding_days: int

    @property
    def long_term(self) -> bool:
        return self.holding_days > LONG_TERM_DAYS


@dataclass
class SaleRecord:
    date: date
    shares: float
    proceeds: float
    cost: float
    lots: list[LotSale] = field(default_factory=list)

    @property
    def gain(self) -> float:
        return self.proceeds - self.cost


@dataclass
class CostBasisResult:
    ticker: str
    method: str
    total_shares: float
    total_cost: float
    average_cost: float
    realized_gains: float
    lots: list[Lot]
    sales: list[SaleRecord]


@dataclass
class WashSale:
    ticker: str
    sale_date: date
    purchase_date: date
    shares: float
    disallowed_loss: float


def _check_method(method: str) -> str:
    if method not in COST_BASIS_METHODS:
        raise ValueError(f"Cost basis method must be one of {list(COST_BASIS_METHODS)}.")
    return method


def _consume(lots: list[Lot], shares: float, sale_price: float, sale_date: date, method: str) -> list[LotSale]:
    open_lots = [lot for lot in lots if lot.remaining_shares > EPSILON]
    available = sum(lot.remaining_shares for lot in open_lots)
    to_sell = min(shares, available)
    if to_sell <= EPSILON:
        return []

    portions: list[tuple[Lot, float]] = []
    if method == "AverageCost":
        for lot in open_lots:
            portions.append((lot, to_sell * lot.remaining_shares / available))
        average = sum(lot.remaining_cost for lot in open_lots) / available
    else:
        ordered = sorted(open_lots, key=lambda lot: lot.acquired, reverse=(method == "LIFO"))
        remaining = to_sell
        for lot in ordered:
            if remaining <= EPSILON:
                break
            take = min(remaining, lot.remaining_shares)
            portions.append((lot, take))
            remaining -= take
        average = None

    sold: list[LotSale] = []
    for lot, take in portions:
        cost_per_share = average if average is not None else lot.cost_per_share
        lot.remaining_shares = max(0.0, lot.remaining_shares - take)
        sold.append(
            LotSale(
                lot_id=lot.id,
                acquired=lot.acquired,
                shares=take,
                cost_per_share=cost_per_share,
                sale_price=sale_price,
                gain=(sale_price - cost_per_share) * take,
                holding_days=(sale_date - lot.acquired).days,
            )
        )
    if average is not None:
        # Average-cost pools keep one blended basis for the shares still held.
        for lot in open_lots:
            lot.cost_per_share = average
    return sold


def calculate_cost_basis(
    transactions: Iterable[Transaction],
    ticker: str,
    method: str = "FIFO",
    account_type: str | None = None,
) -> CostBasisResult:
    """Replay buys, sells and splits for one ticker into tax lots."""
    _check_method(method)
    symbol = ticker.strip().upper()
    relevant = [
        (index, tx)
        for index, tx in enumerate(sort_transactions(transactions))
        if tx.ticker == symbol
        and tx.type in {"buy", "rights", "sell", "split"}
        and (account_type is None or tx.account_type == account_type)
    ]
    lots: list[Lot] = []
    sales: list[SaleRecord] = []
    for index, tx in relevant:
        if tx.type in {"buy", "rights"}:
            if not tx.shares or tx.shares <= 0:
                continue
            cost = tx.amount if tx.amount > 0 else tx.shares * (tx.price or 0.0) + tx.fees
            lots.append(
                Lot(
                    id=tx.id or f"{symbol}-{index}",
                    acquired=tx.date,
                    shares=tx.shares,
                    cost_per_share=cost / tx.shares,
                    remaining_shares=tx.shares,
                )
            )
        elif tx.type == "split":
            try:
                factor = parse_split_ratio(tx.split_ratio)
            except ValueError:
                continue
            for lot in lots:
                lot.shares *= factor
                lot.remaining_shares *= factor
                lot.cost_per_share /= factor
        elif tx.shares and tx.shares > 0:
            gross = tx.cash_value
            sale_price = (gross - tx.fees) / tx.shares
            sold = _consume(lots, tx.shares, sale_price, tx.date, method)
            if sold:
                shares = sum(item.shares for item in sold)
                sales.append(
                    SaleRecord(
                        date=tx.date,
                        shares=shares,
                        proceeds=sale_price * shares,
                        cost=sum(item.cost_per_share * item.shares for item in sold),
                        lots=sold,
                    )
                )

    open_lots = [lot for lot in lots if lot.remaining_shares > EPSILON]
    total_shares = sum(lot.remaining_shares for lot in open_lots)
    total_cost = sum(lot.remaining_cost for lot in open_lots)
    return CostBasisResult(
        ticker=symbol,
        method=method,
        total_shares=total_shares,
        total_cost=total_cost,
        average_cost=total_cost / total_shares if total_shares > 0 else 0.0,
        realized_gains=sum(sale.gain for sale in sales),
        lots=open_lots,
        sales=sales,
    )


def detect_wash_sales(transactions: Iterable[Transaction], ticker: str, method: str = "FIFO") -> list[WashSale]:
    """Loss sales with a purchase of the same ticker within 30 days either side."""
    history = list(transactions)
    symbol = ticker.strip().upper()
    result = calculate_cost_basis(history, symbol, method)
    purchases = [
        (index, tx)
        for index, tx in enumerate(sort_transactions(history))
        if tx.ticker == symbol and tx.type in {"buy", "rights"} and tx.shares and tx.shares > 0
    ]
    washes: list[WashSale] = []
    used: dict[int, float] = {}
    for sale in result.sales:
        if sale.gain >= 0 or sale.shares <= 0:
            continue
        loss_per_share = -sale.gain / sale.shares
        consumed = {item.lot_id for item in sale.lots}
        unmatched = sale.shares
        for index, purchase in purchases:
            if unmatched <= EPSILON:
                break
            lot_id = purchase.id or f"{symbol}-{index}"
            if lot_id in consumed:
                continue
            if abs((purchase.date - sale.date).days) > WASH_SALE_WINDOW.days:
                continue
            available = (purchase.shares or 0.0) - used.get(index, 0.0)
            replaced = min(unmatched, available)
            if replaced <= EPSILON:
                continue
            used[index] = used.get(index, 0.0) + replaced
            unmatched -= replaced
            washes.append(
                WashSale(
                    ticker=symbol,
                    sale_date=sale.date,
                    purchase_date=purchase.date,
                    shares=replaced,
                    disallowed_loss=loss_per_share * replaced,
                )
            )
    return washes


def generate_tax_report(transactions: Iterable[Transaction], year: int, method: str = "FIFO") -> dict[str, object]:
    _check_method(method)
    history = list(transactions)
    tickers = sorted({tx.ticker for tx in history})
    short_term = 0.0
    long_term = 0.0
    realized_by_ticker: dict[str, float] = {}
    wash_sales: list[WashSale] = []
    for ticker in tickers:
        result = calculate_cost_basis(history, ticker, method)
        for sale in result.sales:
            if sale.date.year != year:
                continue
            for item in sale.lots:
                if item.long_term:
                    long_term += item.gain
                else:
                    short_term += item.gain
            realized_by_ticker[ticker] = realized_by_ticker.get(ticker, 0.0) + sale.gain
        wash_sales.extend(ws for ws in detect_wash_sales(history, ticker, method) if ws.sale_date.year == year)

    dividends = sum(tx.cash_value for tx in history if tx.type == "dividend" and tx.date.year == year)
    interest = sum(tx.cash_value for tx in history if tx.type == "interest" and tx.date.year == year)
    return {
        "year": year,
        "method": method,
        "short_term_gains": short_term,
        "long_term_gains": long_term,
        "total_gains": short_term + long_term,
        "realized_by_ticker": realized_by_ticker,
        "dividends": dividends,
        "interest": interest,
        "wash_sales": wash_sales,
        "disallowed_losses": sum(ws.disallowed_loss for ws in wash_sales),
    }
