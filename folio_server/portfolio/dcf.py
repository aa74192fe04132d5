"""Discounted cash flow valuation."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from typing import Any, Mapping

SENSITIVITY_STEPS = [step / 2 for step in range(-4, 5)]
TERMINAL_GROWTH_DEFAULT = 2.5
PROJECTION_YEARS_DEFAULT = 10


@dataclass(frozen=True)
class DcfInputs:
    """DCF assumptions. Growth and discount rates are percentages (8.0 means 8%)."""

    current_fcf: float
    growth_rate: float
    terminal_growth_rate: float
    discount_rate: float
    projection_years: int
    shares_outstanding: float
    cash_and_equivalents: float | None = None
    total_debt: float | None = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> DcfInputs:
        try:
            return cls(
                current_fcf=float(payload["current_fcf"]),
                growth_rate=float(payload["growth_rate"]),
                terminal_growth_rate=float(payload.get("terminal_growth_rate", TERMINAL_GROWTH_DEFAULT)),
                discount_rate=float(payload["discount_rate"]),
                projection_years=int(payload.get("projection_years", PROJECTION_YEARS_DEFAULT)),
                shares_outstanding=float(payload["shares_outstanding"]),
                cash_and_equivalents=_maybe_float(payload.get("cash_and_equivalents")),
                total_debt=_maybe_float(payload.get("total_debt")),
            )
        except KeyError as error:
            raise ValueError(f"Missing DCF input: {error.args[0]}.") from error
        except (TypeError, ValueError) as error:
            raise ValueError(f"Invalid DCF inputs: {error}") from error


@dataclass
class SensitivityPoint:
    rate: float
    value: float | None


@dataclass
class DcfResult:
    intrinsic_value: float
    current_price: float
    upside: float
    upside_percent: float
    projected_cash_flows: list[float]
    present_values: list[float]
    terminal_value: float
    enterprise_value: float
    equity_value: float
    confidence: str = "Low"
    scenarios: dict[str, float] = field(default_factory=dict)
    growth_sensitivity: list[SensitivityPoint] = field(default_factory=list)
    discount_sensitivity: list[SensitivityPoint] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _maybe_float(value: object) -> float | None:
    if value is None or value == "":
        return None
    return float(value)  # type: ignore[arg-type]


def _check_inputs(inputs: DcfInputs, current_price: float) -> None:
    if inputs.discount_rate <= inputs.terminal_growth_rate:
        raise ValueError("Discount rate must exceed the terminal growth rate.")
    if inputs.shares_outstanding <= 0:
        raise ValueError("Shares outstanding must be positive.")
    if current_price <= 0:
        raise ValueError("Current price must be positive.")
    if inputs.projection_years < 1:
        raise ValueError("Projection years must be at least 1.")


def _core(inputs: DcfInputs, current_price: float) -> DcfResult:
    growth = inputs.growth_rate / 100.0
    discount = inputs.discount_rate / 100.0
    terminal_growth = inputs.terminal_growth_rate / 100.0

    projected: list[float] = []
    present: list[float] = []
    for year in range(1, inputs.projection_years + 1):
        cash_flow = inputs.current_fcf * (1 + growth) ** year
        projected.append(cash_flow)
        present.append(cash_flow / (1 + discount) ** year)

    terminal = projected[-1] * (1 + terminal_growth) / (discount - terminal_growth)
    terminal_pv = terminal / (1 + discount) ** inputs.projection_years
    enterprise_value = sum(present) + terminal_pv
    equity_value = enterprise_value + (inputs.cash_and_equivalents or 0.0) - (inputs.total_debt or 0.0)
    intrinsic = equity_value / inputs.shares_outstanding
    upside = intrinsic - current_price
    return DcfResult(
        intrinsic_value=intrinsic,
        current_price=current_price,
        upside=upside,
        upside_percent=upside / current_price * 100.0,
        projected_cash_flows=projected,
        present_values=present,
        terminal_value=terminal_pv,
        enterprise_value=enterprise_value,
        equity_value=equity_value,
    )


def _grid_point(inputs: DcfInputs, current_price: float) -> float | None:
    if inputs.discount_rate <= inputs.terminal_growth_rate:
        return None
    return _core(inputs, current_price).intrinsic_value


def sensitivity(inputs: DcfInputs, current_price: float) -> dict[str, list[SensitivityPoint]]:
    """Intrinsic value across growth and discount rates +/-2 points in 0.5 steps."""
    growth = [
        SensitivityPoint(
            rate=inputs.growth_rate + step,
            value=_grid_point(replace(inputs, growth_rate=inputs.growth_rate + step), current_price),
        )
        for step in SENSITIVITY_STEPS
    ]
    discount = [
        SensitivityPoint(
            rate=inputs.discount_rate + step,
            value=_grid_point(replace(inputs, discount_rate=inputs.discount_rate + step), current_price),
        )
        for step in SENSITIVITY_STEPS
    ]
    return {"growth_rate": growth, "discount_rate": discount}


def determine_confidence(inputs: DcfInputs) -> str:
    score = sum(
        (
            inputs.current_fcf > 0,
            0 < inputs.growth_rate < 30,
            inputs.shares_outstanding > 0,
            inputs.cash_and_equivalents is not None,
            inputs.total_debt is not None,
        )
    )
    if score >= 4:
        return "High"
    if score >= 3:
        return "Medium"
    return "Low"


def calculate_dcf(inputs: DcfInputs, current_price: float) -> DcfResult:
    _check_inputs(inputs, current_price)
    result = _core(inputs, current_price)
    grids = sensitivity(inputs, current_price)
    growth_grid = grids["growth_rate"]
    middle = growth_grid[len(growth_grid) // 2]
    result.scenarios = {
        "bear": growth_grid[0].value or result.intrinsic_value * 0.8,
        "base": middle.value or result.intrinsic_value,
        "bull": growth_grid[-1].value or result.intrinsic_value * 1.2,
    }
    result.confidence = determine_confidence(inputs)
    result.growth_sensitivity = growth_grid
    result.discount_sensitivity = grids["discount_rate"]
    return result


def _field(source: object, name: str) -> float | None:
    value = source.get(name) if isinstance(source, Mapping) else getattr(source, name, None)
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def estimate_inputs(
    fundamentals: object,
    price: float,
    market_cap: float | None = None,
    beta: float | None = None,
) -> DcfInputs:
    """Rough DCF assumptions from headline ratios when no cash-flow statement is at hand."""
    if price <= 0:
        raise ValueError("Current price must be positive.")
    cap = market_cap or _field(fundamentals, "market_cap") or price * 1_000_000_000
    pe = max(_field(fundamentals, "pe") or 20.0, 5.0)
    net_margin = _field(fundamentals, "net_margin") or 10.0
    revenue = cap / pe
    net_income = revenue * max(net_margin, 5.0) / 100.0
    fcf = max(net_income * 0.8, cap * 0.05)
    growth = max(2.0, min(25.0, abs(_field(fundamentals, "revenue_growth") or 8.0)))
    risk_beta = beta if beta is not None else (_field(fundamentals, "beta") or 1.0)
    discount = max(8.0, min(15.0, 10.0 + risk_beta * 2.0))
    debt_ratio = min(_field(fundamentals, "debt_to_equity") or 0.3, 1.0)
    return DcfInputs(
        current_fcf=fcf,
        growth_rate=growth,
        terminal_growth_rate=TERMINAL_GROWTH_DEFAULT,
        discount_rate=discount,
        projection_years=PROJECTION_YEARS_DEFAULT,
        shares_outstanding=max(cap / price, 1_000_000.0),
        cash_and_equivalents=max(0.0, cap * 0.1),
        total_debt=max(0.0, cap * debt_ratio),
    )
