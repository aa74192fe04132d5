import pytest

from folio_server.portfolio.dcf import DcfInputs, calculate_dcf, estimate_inputs, sensitivity


def _inputs(**overrides) -> DcfInputs:
    payload = {
        "current_fcf": 100.0,
        "growth_rate": 5.0,
        "terminal_growth_rate": 2.5,
        "discount_rate": 10.0,
        "projection_years": 5,
        "shares_outstanding": 10.0,
    }
    payload.update(overrides)
    return DcfInputs.from_dict(payload)


def test_projection_and_per_share_value() -> None:
    result = calculate_dcf(_inputs(), current_price=100.0)
    assert len(result.projected_cash_flows) == 5
    assert result.projected_cash_flows[0] == pytest.approx(105.0)
    assert result.present_values[0] == pytest.approx(105.0 / 1.1)
    assert result.intrinsic_value == pytest.approx(result.equity_value / 10.0)
    assert result.upside_percent == pytest.approx((result.intrinsic_value - 100.0))


def test_cash_and_debt_adjust_equity_value() -> None:
    base = calculate_dcf(_inputs(), 100.0)
    adjusted = calculate_dcf(_inputs(cash_and_equivalents=50.0, total_debt=20.0), 100.0)
    assert adjusted.equity_value == pytest.approx(base.equity_value + 30.0)
    assert adjusted.confidence == "High"
    assert base.confidence == "Medium"


def test_scenarios_are_ordered() -> None:
    result = calculate_dcf(_inputs(), 100.0)
    assert result.scenarios["bear"] < result.scenarios["base"] < result.scenarios["bull"]
    assert result.scenarios["base"] == pytest.approx(result.intrinsic_value)
    assert len(result.growth_sensitivity) == 9


def test_discount_must_exceed_terminal_growth() -> None:
    with pytest.raises(ValueError):
        calculate_dcf(_inputs(discount_rate=2.5), 100.0)
    with pytest.raises(ValueError):
        calculate_dcf(_inputs(), 0.0)


def test_sensitivity_marks_invalid_grid_points() -> None:
    grid = sensitivity(_inputs(discount_rate=4.0, terminal_growth_rate=3.0), 100.0)
    values = [point.value for point in grid["discount_rate"]]
    assert values[:3] == [None, None, None]
    assert all(value is not None for value in values[3:])


def test_missing_input_is_reported() -> None:
    with pytest.raises(ValueError, match="current_fcf"):
        DcfInputs.from_dict({"growth_rate": 5, "discount_rate": 9, "shares_outstanding": 1})


def test_estimate_inputs_from_ratios() -> None:
    fundamentals = {
        "market_cap": 1_000_000_000,
        "pe": 20,
        "net_margin": 10,
        "revenue_growth": 8,
        "beta": 1.0,
        "debt_to_equity": 0.3,
    }
    inputs = estimate_inputs(fundamentals, price=50.0)
    assert inputs.discount_rate == pytest.approx(12.0)
    assert inputs.growth_rate == pytest.approx(8.0)
    assert inputs.shares_outstanding == pytest.approx(20_000_000)
    assert calculate_dcf(inputs, 50.0).intrinsic_value > 0
