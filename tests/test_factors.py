import pytest

from folio_server.portfolio.factors import (
    FACTOR_RETURNS,
    factor_attribution,
    factor_exposure,
    holding_exposure,
    size_exposure,
)
from folio_server.portfolio.models import Holding


def _mega_cap() -> Holding:
    return Holding(
        ticker="AAPL",
        shares=10,
        total_cost=1500,
        current_price=195,
        year_high=200,
        year_low=150,
        market_cap=3_000_000_000_000,
        beta=1.2,
        pb=40,
        pe=30,
        roe=150,
        roa=25,
        revenue_growth=2,
    )


def test_single_holding_exposure() -> None:
    exposure = holding_exposure(_mega_cap())
    assert exposure.market == pytest.approx(1.2)
    assert exposure.size == -0.5
    assert exposure.value == pytest.approx(-0.3)
    assert exposure.profitability == pytest.approx(0.3)
    assert exposure.investment == pytest.approx(0.3)
    assert exposure.momentum == pytest.approx(0.4)


def test_missing_fundamentals_are_neutral() -> None:
    exposure = holding_exposure(Holding(ticker="XYZ", shares=1, total_cost=10))
    assert exposure.market == 1.0
    assert exposure.size == 0.0
    assert exposure.value == 0.0
    assert exposure.momentum == 0.0
    assert size_exposure(5_000_000_000) == 0.5


def test_portfolio_exposure_is_value_weighted() -> None:
    neutral = Holding(ticker="XYZ", shares=1, total_cost=1950, beta=0.8)
    exposure = factor_exposure([_mega_cap(), neutral])
    assert exposure.market == pytest.approx(1.0)
    assert exposure.size == pytest.approx(-0.25)
    assert factor_exposure([]).market == 0.0


def test_attribution_alpha_is_the_residual() -> None:
    exposure = holding_exposure(_mega_cap())
    attribution = factor_attribution(0.2, exposure)
    explained = sum(value for name, value in attribution.contributions.items() if name != "alpha")
    assert attribution.contributions["market"] == pytest.approx(1.2 * FACTOR_RETURNS["market"])
    assert attribution.contributions["alpha"] == pytest.approx(0.2 - explained)
    assert attribution.r_squared == 0.85
