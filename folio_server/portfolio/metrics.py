"""Holding and portfolio level valuation metrics."""

from __future__ import annotations

from typing import Iterable

import pandas as pd

from folio_server.portfolio.models import Holding

FRAME_COLUMNS = [
    "Ticker",
    "Account_Type",
    "Asset_Type",
    "Sector",
    "Shares",
    "Price",
    "Previous_Close",
    "Total_Cost",
    "Market_Value",
    "Gain_Loss",
    "Day_Change",
    "Dividend",
    "Dividend_Income",
]


def holdings_frame(holdings: Iterable[Holding]) -> pd.DataFrame:
    rows = []
    for holding in holdings:
        price = holding.price
        previous = holding.previous_close if holding.previous_close else price
        rows.append(
            {
                "Ticker": holding.ticker,
                "Account_Type": holding.account_type,
                "Asset_Type": holding.asset_type,
                "Sector": holding.sector or "Unknown",
                "Shares": holding.shares,
                "Price": price,
                "Previous_Close": previous,
                "Total_Cost": holding.total_cost,
                "Market_Value": holding.shares * price,
                "Gain_Loss": holding.shares * price - holding.total_cost,
                "Day_Change": holding.shares * (price - previous),
                "Dividend": holding.dividend or 0.0,
                "Dividend_Income": holding.shares * (holding.dividend or 0.0),
            }
        )
    return pd.DataFrame(rows, columns=FRAME_COLUMNS)


def holding_metrics(holding: Holding, total_value: float | None = None) -> dict[str, float]:
    """Per-holding value, gain and income figures. Day change is zero without a previous close."""
    price = holding.price
    current_value = holding.shares * price
    gain_loss = current_value - holding.total_cost
    previous = holding.previous_close
    if previous and previous > 0:
        day_change = holding.shares * (price - previous)
        day_change_percent = (price - previous) / previous * 100.0
    else:
        day_change = 0.0
        day_change_percent = 0.0
    dividend = holding.dividend or 0.0
    cost_basis = holding.cost_basis
    return {
        "current_value": current_value,
        "total_cost": holding.total_cost,
        "gain_loss": gain_loss,
        "gain_loss_percent": (gain_loss / holding.total_cost) * 100.0 if holding.total_cost > 0 else 0.0,
        "weight": (current_value / total_value) * 100.0 if total_value else 0.0,
        "day_change": day_change,
        "day_change_percent": day_change_percent,
        "annual_dividend_income": holding.shares * dividend,
        "yield_on_cost": (dividend / cost_basis) * 100.0 if cost_basis > 0 and dividend else 0.0,
    }


def portfolio_metrics(holdings: Iterable[Holding]) -> dict[str, float]:
    frame = holdings_frame(holdings)
    total_value = float(frame["Market_Value"].sum())
    total_cost = float(frame["Total_Cost"].sum())
    dividend_income = float(frame["Dividend_Income"].sum())
    day_change = float(frame["Day_Change"].sum())
    gain_loss = total_value - total_cost
    opening_value = total_value - day_change
    return {
        "total_value": total_value,
        "total_cost": total_cost,
        "total_gain_loss": gain_loss,
        "total_gain_loss_percent": (gain_loss / total_cost) * 100.0 if total_cost > 0 else 0.0,
        "dividend_income": dividend_income,
        "dividend_yield": (dividend_income / total_value) * 100.0 if total_value > 0 else 0.0,
        "day_change": day_change,
        "day_change_percent": (day_change / opening_value) * 100.0 if opening_value > 0 else 0.0,
    }


def _weights_by(frame: pd.DataFrame, column: str, total_value: float) -> dict[str, float]:
    if frame.empty or total_value <= 0:
        return {}
    totals = frame.groupby(column)["Market_Value"].sum()
    return {str(name): float(value / total_value * 100.0) for name, value in totals.items()}


def asset_allocation(holdings: Iterable[Holding]) -> dict[str, dict[str, float]]:
    """Percent of market value by asset type, sector and account."""
    frame = holdings_frame(holdings)
    total_value = float(frame["Market_Value"].sum())
    return {
        "by_type": _weights_by(frame, "Asset_Type", total_value),
        "by_sector": _weights_by(frame, "Sector", total_value),
        "by_account": _weights_by(frame, "Account_Type", total_value),
    }


def rebalancing_needs(holdings: Iterable[Holding], targets: dict[str, float]) -> dict[str, dict[str, float]]:
    """Dollar moves needed to reach ``targets`` (asset type -> percent)."""
    items = list(holdings)
    by_type = asset_allocation(items)["by_type"]
    total_value = float(holdings_frame(items)["Market_Value"].sum())
    needs: dict[str, dict[str, float]] = {}
    for asset, target in targets.items():
        current = by_type.get(asset, 0.0)
        difference = float(target) - current
        needs[asset] = {
            "current": current,
            "target": float(target),
            "difference": difference,
            "dollar_amount": difference / 100.0 * total_value,
        }
    return needs
