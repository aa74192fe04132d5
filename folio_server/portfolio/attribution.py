"""Brinson-Hood-Beebower sector attribution against the S&P 500."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Iterable

import pandas as pd

from folio_server.portfolio.models import Holding

# sector -> (benchmark weight, benchmark return)
SP500_SECTORS: dict[str, tuple[float, float]] = {
    "Technology": (0.28, 0.25),
    "Healthcare": (0.13, 0.15),
    "Financial Services": (0.11, 0.18),
    "Consumer Discretionary": (0.10, 0.22),
    "Communication Services": (0.09, 0.12),
    "Industrials": (0.08, 0.16),
    "Consumer Staples": (0.06, 0.08),
    "Energy": (0.04, 0.35),
    "Utilities": (0.03, 0.05),
    "Real Estate": (0.03, 0.10),
    "Materials": (0.03, 0.20),
    "Index Fund": (0.02, 0.24),
    "Fixed Income": (0.00, 0.02),
}

SECTOR_ALIASES = {
    "Health Care": "Healthcare",
    "Financial": "Financial Services",
    "Financials": "Financial Services",
    "Consumer Cyclical": "Consumer Discretionary",
    "Consumer Defensive": "Consumer Staples",
    "Basic Materials": "Materials",
    "Industrial": "Industrials",
    "Information Technology": "Technology",
}


@dataclass
class SectorAttribution:
    sector: str
    portfolio_weight: float
    benchmark_weight: float
    portfolio_return: float
    benchmark_return: float
    allocation_effect: float
    selection_effect: float
    interaction_effect: float
    total_effect: float


@dataclass
class AttributionAnalysis:
    total_return: float
    benchmark_return: float
    active_return: float
    allocation_effect: float
    selection_effect: float
    interaction_effect: float
    sectors: list[SectorAttribution] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def benchmark_sector(holding: Holding) -> str:
    sector = SECTOR_ALIASES.get(holding.sector, holding.sector)
    if sector in SP500_SECTORS:
        return sector
    if holding.asset_type == "etfs":
        return "Index Fund"
    if holding.asset_type == "bonds":
        return "Fixed Income"
    return sector or "Unknown"


def benchmark_return() -> float:
    return sum(weight * value for weight, value in SP500_SECTORS.values())


def calculate_attribution(holdings: Iterable[Holding]) -> AttributionAnalysis:
    """Returns are fractions of cost (0.12 means 12%)."""
    frame = pd.DataFrame(
        [
            {"Sector": benchmark_sector(holding), "Value": holding.market_value, "Cost": holding.total_cost}
            for holding in holdings
        ],
        columns=["Sector", "Value", "Cost"],
    )
    total_value = float(frame["Value"].sum())
    total_cost = float(frame["Cost"].sum())
    bench_total = benchmark_return()
    total_return = (total_value - total_cost) / total_cost if total_cost > 0 else 0.0

    sectors: list[SectorAttribution] = []
    if total_value > 0:
        grouped = frame.groupby("Sector", sort=False)[["Value", "Cost"]].sum()
        for sector, row in grouped.iterrows():
            value = float(row["Value"])
            cost = float(row["Cost"])
            bench_weight, bench_return = SP500_SECTORS.get(str(sector), (0.0, 0.0))
            weight = value / total_value
            sector_return = (value - cost) / cost if cost > 0 else 0.0
            allocation = (weight - bench_weight) * bench_return
            selection = bench_weight * (sector_return - bench_return)
            interaction = (weight - bench_weight) * (sector_return - bench_return)
            sectors.append(
                SectorAttribution(
                    sector=str(sector),
                    portfolio_weight=weight,
                    benchmark_weight=bench_weight,
                    portfolio_return=sector_return,
                    benchmark_return=bench_return,
                    allocation_effect=allocation,
                    selection_effect=selection,
                    interaction_effect=interaction,
                    total_effect=allocation + selection + interaction,
                )
            )
    sectors.sort(key=lambda item: abs(item.total_effect), reverse=True)
    return AttributionAnalysis(
        total_return=total_return,
        benchmark_return=bench_total,
        active_return=total_return - bench_total,
        allocation_effect=sum(item.allocation_effect for item in sectors),
        selection_effect=sum(item.selection_effect for item in sectors),
        interaction_effect=sum(item.interaction_effect for item in sectors),
        sectors=sectors,
    )
