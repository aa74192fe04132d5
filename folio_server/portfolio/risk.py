"""Return-series risk metrics and holdings-based risk estimates."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Iterable, Mapping

import numpy as np
import pandas as pd

from folio_server.portfolio.factors import factor_exposure
from folio_server.portfolio.models import Holding

TRADING_DAYS = 252
VAR_CONFIDENCE = 0.95
STABLE_SECTORS = frozenset({"Utilities", "Consumer Staples", "Consumer Defensive", "Healthcare"})

FACTOR_VARIANCES: dict[str, float] = {
    "market": 0.04,
    "size": 0.02,
    "value": 0.015,
    "profitability": 0.01,
    "investment": 0.008,
    "momentum": 0.025,
    "quality": 0.012,
    "low_volatility": 0.006,
}


@dataclass
class RiskMetrics:
    beta: float
    volatility: float
    downside_deviation: float
    sharpe_ratio: float
    sortino_ratio: float
    treynor_ratio: float
    information_ratio: float
    tracking_error: float
    value_at_risk: float
    expected_shortfall: float
    max_drawdown: float
    observations: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class UnderwaterPeriod:
    start: str
    end: str | None
    duration: int
    max_drawdown: float


@dataclass
class DrawdownAnalysis:
    current_drawdown: float
    max_drawdown: float
    max_drawdown_date: str | None
    recovery_time: int | None
    underwater_periods: list[UnderwaterPeriod] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class RiskDecomposition:
    systematic_risk: float
    specific_risk: float
    total_risk: float
    factor_contributions: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _clean(returns: pd.Series) -> pd.Series:
    return pd.Series(returns, dtype=float).replace([np.inf, -np.inf], np.nan).dropna()


def _joined(portfolio_returns: pd.Series, benchmark_returns: pd.Series) -> pd.DataFrame:
    if len(portfolio_returns) == len(benchmark_returns) and not isinstance(portfolio_returns.index, pd.DatetimeIndex):
        frame = pd.DataFrame(
            {"portfolio": np.asarray(portfolio_returns, dtype=float), "benchmark": np.asarray(benchmark_returns, dtype=float)}
        )
    else:
        frame = pd.concat([portfolio_returns.rename("portfolio"), benchmark_returns.rename("benchmark")], axis=1)
    return frame.dropna()


def _label(index_value: object) -> str:
    if hasattr(index_value, "isoformat"):
        return index_value.isoformat()[:10]  # type: ignore[union-attr]
    return str(index_value)


def annualized_return(returns: pd.Series, periods_per_year: int = TRADING_DAYS) -> float:
    data = _clean(returns)
    return float(data.mean() * periods_per_year) if not data.empty else 0.0


def calculate_volatility(returns: pd.Series, periods_per_year: int = TRADING_DAYS) -> float:
    data = _clean(returns)
    if len(data) < 2:
        return 0.0
    return float(data.std(ddof=1) * np.sqrt(periods_per_year))


def calculate_beta(portfolio_returns: pd.Series, benchmark_returns: pd.Series) -> float:
    joined = _joined(portfolio_returns, benchmark_returns)
    if len(joined) < 2:
        return 1.0
    variance = float(joined["benchmark"].var(ddof=1))
    if variance <= 0:
        return 1.0
    return float(joined["portfolio"].cov(joined["benchmark"]) / variance)


def calculate_downside_deviation(
    returns: pd.Series,
    risk_free_rate: float = 0.0,
    periods_per_year: int = TRADING_DAYS,
) -> float:
    data = _clean(returns)
    threshold = risk_free_rate / periods_per_year
    shortfall = data[data < threshold] - threshold
    if shortfall.empty:
        return 0.0
    return float(np.sqrt(np.mean(np.square(shortfall))) * np.sqrt(periods_per_year))


def calculate_tracking_error(
    portfolio_returns: pd.Series,
    benchmark_returns: pd.Series,
    periods_per_year: int = TRADING_DAYS,
) -> float:
    joined = _joined(portfolio_returns, benchmark_returns)
    return calculate_volatility(joined["portfolio"] - joined["benchmark"], periods_per_year)


def calculate_information_ratio(
    portfolio_returns: pd.Series,
    benchmark_returns: pd.Series,
    periods_per_year: int = TRADING_DAYS,
) -> float:
    tracking_error = calculate_tracking_error(portfolio_returns, benchmark_returns, periods_per_year)
    if tracking_error <= 0:
        return 0.0
    joined = _joined(portfolio_returns, benchmark_returns)
    active = annualized_return(joined["portfolio"] - joined["benchmark"], periods_per_year)
    return active / tracking_error


def calculate_value_at_risk(returns: pd.Series, confidence: float = VAR_CONFIDENCE) -> float:
    """Historical VaR: the return at the (1 - confidence) quantile of observed returns."""
    ordered = np.sort(_clean(returns).to_numpy())
    if ordered.size == 0:
        return 0.0
    index = int(np.floor((1 - confidence) * ordered.size))
    return float(ordered[min(index, ordered.size - 1)])


def calculate_expected_shortfall(returns: pd.Series, confidence: float = VAR_CONFIDENCE) -> float:
    ordered = np.sort(_clean(returns).to_numpy())
    if ordered.size == 0:
        return 0.0
    cutoff = max(1, int(np.floor((1 - confidence) * ordered.size)))
    return float(ordered[:cutoff].mean())


def _drawdown_series(returns: pd.Series) -> pd.Series:
    data = _clean(returns)
    wealth = (1 + data).cumprod()
    peak = wealth.cummax().clip(lower=1.0)
    return wealth / peak - 1.0


def calculate_max_drawdown(returns: pd.Series) -> float:
    """Largest peak-to-trough loss of the compounded return path, as a negative fraction."""
    drawdown = _drawdown_series(returns)
    return float(min(drawdown.min(), 0.0)) if not drawdown.empty else 0.0


def analyze_drawdowns(returns: pd.Series) -> DrawdownAnalysis:
    drawdown = _drawdown_series(returns)
    if drawdown.empty:
        return DrawdownAnalysis(current_drawdown=0.0, max_drawdown=0.0, max_drawdown_date=None, recovery_time=None)

    periods: list[UnderwaterPeriod] = []
    start: int | None = None
    for position, value in enumerate(drawdown.to_numpy()):
        if value < 0 and start is None:
            start = position
        elif value >= 0 and start is not None:
            periods.append(
                UnderwaterPeriod(
                    start=_label(drawdown.index[start]),
                    end=_label(drawdown.index[position]),
                    duration=position - start,
                    max_drawdown=float(drawdown.iloc[start:position].min()),
                )
            )
            start = None
    if start is not None:
        periods.append(
            UnderwaterPeriod(
                start=_label(drawdown.index[start]),
                end=None,
                duration=len(drawdown) - start,
                max_drawdown=float(drawdown.iloc[start:].min()),
            )
        )

    max_drawdown = float(min(drawdown.min(), 0.0))
    trough = int(np.argmin(drawdown.to_numpy())) if max_drawdown < 0 else None
    recovery_time: int | None = None
    if trough is not None:
        recovered = np.nonzero(drawdown.to_numpy()[trough:] >= 0)[0]
        recovery_time = int(recovered[0]) if recovered.size else None
    return DrawdownAnalysis(
        current_drawdown=float(drawdown.iloc[-1]),
        max_drawdown=max_drawdown,
        max_drawdown_date=_label(drawdown.index[trough]) if trough is not None else None,
        recovery_time=recovery_time,
        underwater_periods=periods,
    )


def calculate_risk_metrics(
    portfolio_returns: pd.Series,
    benchmark_returns: pd.Series,
    risk_free_rate: float = 0.02,
    periods_per_year: int = TRADING_DAYS,
) -> RiskMetrics:
    """Annualized risk metrics for periodic (daily by default) return series."""
    portfolio = _clean(portfolio_returns)
    mean_annual = annualized_return(portfolio, periods_per_year)
    excess = mean_annual - risk_free_rate
    volatility = calculate_volatility(portfolio, periods_per_year)
    downside = calculate_downside_deviation(portfolio, risk_free_rate, periods_per_year)
    beta = calculate_beta(portfolio, benchmark_returns)
    return RiskMetrics(
        beta=beta,
        volatility=volatility,
        downside_deviation=downside,
        sharpe_ratio=excess / volatility if volatility > 0 else 0.0,
        sortino_ratio=excess / downside if downside > 0 else 0.0,
        treynor_ratio=excess / beta if beta > 0 else 0.0,
        information_ratio=calculate_information_ratio(portfolio, benchmark_returns, periods_per_year),
        tracking_error=calculate_tracking_error(portfolio, benchmark_returns, periods_per_year),
        value_at_risk=calculate_value_at_risk(portfolio),
        expected_shortfall=calculate_expected_shortfall(portfolio),
        max_drawdown=calculate_max_drawdown(portfolio),
        observations=int(len(portfolio)),
    )


def build_portfolio_returns(closes: pd.DataFrame, weights: Mapping[str, float]) -> pd.Series:
    """Weighted daily returns from a frame of closes (one column per ticker)."""
    columns = [column for column in closes.columns if weights.get(column, 0.0) > 0]
    if not columns:
        return pd.Series(dtype=float)
    returns = closes[columns].sort_index().pct_change().dropna(how="any")
    if returns.empty:
        return pd.Series(dtype=float)
    vector = np.array([float(weights[column]) for column in columns], dtype=float)
    vector = vector / vector.sum()
    return returns.dot(vector)


def closes_frame(series: Mapping[str, Iterable[tuple[str, float]]]) -> pd.DataFrame:
    """Align ``{ticker: [(date, close), ...]}`` on a shared date index."""
    columns = {
        ticker: pd.Series({pd.Timestamp(day): float(close) for day, close in rows}, dtype=float)
        for ticker, rows in series.items()
    }
    if not columns:
        return pd.DataFrame()
    return pd.DataFrame(columns).sort_index()


def quality_exposure(holding: Holding) -> float:
    score = sum(
        (
            (holding.roe or 0.0) > 15,
            holding.debt_to_equity is not None and holding.debt_to_equity < 0.3,
            (holding.current_ratio or 0.0) > 1.5,
            (holding.gross_margin or 0.0) > 30,
        )
    )
    return score / 4 * 0.5 - 0.25


def low_volatility_exposure(holding: Holding) -> float:
    sector_score = 0.3 if holding.sector in STABLE_SECTORS else -0.1
    stable_balance_sheet = (
        holding.debt_to_equity is not None
        and holding.debt_to_equity < 0.3
        and (holding.current_ratio or 0.0) > 1.5
    )
    return sector_score + (0.2 if stable_balance_sheet else -0.1)


def risk_exposures(holdings: Iterable[Holding]) -> dict[str, float]:
    """Factor exposures plus quality and low-volatility tilts, weighted by market value."""
    items = list(holdings)
    exposures = factor_exposure(items).to_dict()
    total_value = sum(holding.market_value for holding in items)
    quality = 0.0
    low_volatility = 0.0
    if total_value > 0:
        for holding in items:
            weight = holding.market_value / total_value
            quality += weight * quality_exposure(holding)
            low_volatility += weight * low_volatility_exposure(holding)
    exposures["quality"] = quality
    exposures["low_volatility"] = low_volatility
    return exposures


def estimate_specific_risk(holding: Holding) -> float:
    risk = 0.15
    if holding.asset_type == "etfs":
        risk *= 0.3
    if holding.sector == "Technology":
        risk *= 1.2
    if holding.current_ratio is not None and holding.current_ratio < 1:
        risk *= 1.3
    if holding.debt_to_equity is not None and holding.debt_to_equity > 0.6:
        risk *= 1.2
    return min(risk, 0.4)


def decompose_risk(holdings: Iterable[Holding], exposures: Mapping[str, float] | None = None) -> RiskDecomposition:
    items = list(holdings)
    factor_values = dict(exposures) if exposures is not None else risk_exposures(items)
    contributions = {
        name: exposure**2 * FACTOR_VARIANCES.get(name, 0.01) for name, exposure in factor_values.items()
    }
    factor_variance = sum(contributions.values())
    total_value = sum(holding.market_value for holding in items)
    specific_variance = 0.0
    if total_value > 0:
        for holding in items:
            weight = holding.market_value / total_value
            specific_variance += weight**2 * estimate_specific_risk(holding) ** 2
    return RiskDecomposition(
        systematic_risk=float(np.sqrt(factor_variance)),
        specific_risk=float(np.sqrt(specific_variance)),
        total_risk=float(np.sqrt(factor_variance + specific_variance)),
        factor_contributions=contributions,
    )


def estimate_correlation(first: Holding, second: Holding) -> float:
    correlation = 0.3
    if first.sector == second.sector:
        correlation += 0.4
    if first.asset_type == second.asset_type:
        correlation += 0.2
    high = max(first.price, second.price)
    if high > 0 and abs(first.price - second.price) / high < 0.5:
        correlation += 0.1
    return min(correlation, 0.95)


def estimated_correlation_matrix(holdings: Iterable[Holding]) -> dict[str, dict[str, float]]:
    """Pairwise correlation estimates from sector, asset type and price similarity."""
    by_ticker: dict[str, Holding] = {}
    for holding in holdings:
        by_ticker.setdefault(holding.ticker, holding)
    return {
        left: {
            right: 1.0 if left == right else estimate_correlation(by_ticker[left], by_ticker[right])
            for right in by_ticker
        }
        for left in by_ticker
    }


def correlation_matrix(returns: pd.DataFrame) -> dict[str, dict[str, float]]:
    """Observed correlation of per-ticker return columns."""
    corr = returns.corr().fillna(0.0)
    return {str(idx): {str(col): float(corr.loc[idx, col]) for col in corr.columns} for idx in corr.index}
