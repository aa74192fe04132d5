"""Tax optimization suggestions and asset location scoring."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import asdict, dataclass, field
from typing import Any, Iterable, Literal

from folio_server.portfolio.cost_basis import detect_wash_sales
from folio_server.portfolio.models import TAX_DEFERRED_ACCOUNTS, TAX_FREE_ACCOUNTS, Holding, Transaction

SuggestionType = Literal["tax_loss_harvest", "asset_location", "rebalance_timing", "wash_sale_warning"]
Priority = Literal["high", "medium", "low"]

PRIORITY_ORDER = {"high": 3, "medium": 2, "low": 1}
HARVEST_THRESHOLD = 1000.0
HARVEST_HIGH_THRESHOLD = 5000.0
HIGH_DIVIDEND_YIELD = 3.0
LOW_DIVIDEND_YIELD = 1.0
GROWTH_REVENUE_THRESHOLD = 15.0
LARGE_GAIN_PERCENT = 50.0
LARGE_GAIN_AMOUNT = 10000.0
LONG_TERM_GAINS_RATE = 0.20


@dataclass
class TaxSuggestion:
    type: SuggestionType
    priority: Priority
    title: str
    description: str
    potential_savings: float
    action: str
    holdings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _is_growth(holding: Holding) -> bool:
    return (holding.dividend_yield or 0.0) < LOW_DIVIDEND_YIELD and (
        holding.revenue_growth or 0.0
    ) > GROWTH_REVENUE_THRESHOLD


def tax_loss_harvesting(holdings: Iterable[Holding], tax_rate: float) -> list[TaxSuggestion]:
    suggestions: list[TaxSuggestion] = []
    for holding in holdings:
        loss = holding.total_cost - holding.market_value
        if loss <= HARVEST_THRESHOLD:
            continue
        suggestions.append(
            TaxSuggestion(
                type="tax_loss_harvest",
                priority="high" if loss > HARVEST_HIGH_THRESHOLD else "medium",
                title=f"Tax Loss Harvesting: {holding.ticker}",
                description=f"Realize {loss:.0f} loss to offset gains and reduce taxes",
                potential_savings=loss * tax_rate,
                action=f"Consider selling {holding.ticker} to harvest tax loss",
                holdings=[holding.ticker],
            )
        )
    return suggestions


def asset_location_suggestions(holdings: Iterable[Holding], tax_rate: float) -> list[TaxSuggestion]:
    items = list(holdings)
    suggestions: list[TaxSuggestion] = []
    high_dividend = [
        holding
        for holding in items
        if holding.account_type == "taxable"
        and (holding.dividend or 0.0) > 0
        and (holding.dividend_yield or 0.0) > HIGH_DIVIDEND_YIELD
    ]
    if high_dividend:
        dividend_tax = sum(holding.shares * (holding.dividend or 0.0) * tax_rate for holding in high_dividend)
        suggestions.append(
            TaxSuggestion(
                type="asset_location",
                priority="high" if dividend_tax > 500 else "medium",
                title="Move High-Dividend Assets to Tax-Advantaged Accounts",
                description="High-dividend holdings in taxable accounts are generating avoidable tax liability",
                potential_savings=dividend_tax,
                action="Consider moving dividend-paying assets to IRA or 401(k)",
                holdings=[holding.ticker for holding in high_dividend],
            )
        )

    deferred_growth = [holding for holding in items if holding.account_type in TAX_DEFERRED_ACCOUNTS and _is_growth(holding)]
    if deferred_growth:
        suggestions.append(
            TaxSuggestion(
                type="asset_location",
                priority="medium",
                title="Consider Moving Growth Stocks to Taxable Accounts",
                description="Low-dividend growth holdings may benefit from capital gains rates in taxable accounts",
                potential_savings=0.0,
                action="Review asset location for tax efficiency",
                holdings=[holding.ticker for holding in deferred_growth],
            )
        )
    return suggestions


def wash_sale_warnings(transactions: Iterable[Transaction], tax_rate: float) -> list[TaxSuggestion]:
    by_ticker: dict[str, list[Transaction]] = defaultdict(list)
    for tx in transactions:
        by_ticker[tx.ticker].append(tx)
    suggestions: list[TaxSuggestion] = []
    for ticker, history in sorted(by_ticker.items()):
        washes = detect_wash_sales(history, ticker)
        if not washes:
            continue
        disallowed = sum(item.disallowed_loss for item in washes)
        suggestions.append(
            TaxSuggestion(
                type="wash_sale_warning",
                priority="high",
                title=f"Wash Sale Detected: {ticker}",
                description=f"{len(washes)} potential wash sale(s) may disallow {disallowed:.0f} in losses",
                potential_savings=-disallowed * tax_rate,
                action="Review recent transactions and avoid repurchasing within 30 days",
                holdings=[ticker],
            )
        )
    return suggestions


def rebalancing_timing(holdings: Iterable[Holding]) -> list[TaxSuggestion]:
    large_gains = [
        holding
        for holding in holdings
        if holding.total_cost > 0
        and holding.gain_loss_percent > LARGE_GAIN_PERCENT
        and holding.gain_loss > LARGE_GAIN_AMOUNT
    ]
    if not large_gains:
        return []
    liability = sum(holding.gain_loss * LONG_TERM_GAINS_RATE for holding in large_gains)
    return [
        TaxSuggestion(
            type="rebalance_timing",
            priority="medium",
            title="Consider Tax-Efficient Rebalancing",
            description=f"Large unrealized gains could create about {liability:.0f} in tax if rebalanced",
            potential_savings=0.0,
            action="Consider rebalancing with new contributions or tax-loss harvesting",
            holdings=[holding.ticker for holding in large_gains],
        )
    ]


def analyze_tax_optimization(
    holdings: Iterable[Holding],
    transactions: Iterable[Transaction],
    tax_rate: float = 0.24,
) -> list[TaxSuggestion]:
    """All suggestions, highest priority first."""
    items = list(holdings)
    suggestions = [
        *tax_loss_harvesting(items, tax_rate),
        *asset_location_suggestions(items, tax_rate),
        *wash_sale_warnings(transactions, tax_rate),
        *rebalancing_timing(items),
    ]
    return sorted(suggestions, key=lambda item: PRIORITY_ORDER[item.priority], reverse=True)


def _location_efficiency(current: list[str], recommended: list[str]) -> float:
    if not recommended:
        return 100.0
    matches = sum(1 for ticker in current if ticker in recommended)
    return matches / len(recommended) * 100.0


def asset_location_efficiency(holdings: Iterable[Holding]) -> dict[str, dict[str, Any]]:
    """Where each holding sits versus where its tax profile suggests it should sit."""
    groups: dict[str, dict[str, list[str]]] = {
        name: {"current": [], "recommended": []} for name in ("taxable", "tax_deferred", "tax_free")
    }
    for holding in holdings:
        if holding.account_type == "taxable":
            groups["taxable"]["current"].append(holding.ticker)
        elif holding.account_type in TAX_DEFERRED_ACCOUNTS:
            groups["tax_deferred"]["current"].append(holding.ticker)
        elif holding.account_type in TAX_FREE_ACCOUNTS:
            groups["tax_free"]["current"].append(holding.ticker)

        if holding.asset_type == "bonds" or (holding.dividend_yield or 0.0) > HIGH_DIVIDEND_YIELD:
            groups["tax_deferred"]["recommended"].append(holding.ticker)
        elif _is_growth(holding):
            groups["tax_free"]["recommended"].append(holding.ticker)
        else:
            groups["taxable"]["recommended"].append(holding.ticker)

    return {
        name: {**lists, "efficiency": _location_efficiency(lists["current"], lists["recommended"])}
        for name, lists in groups.items()
    }
