import pytest

from folio_server.portfolio.attribution import benchmark_return, benchmark_sector, calculate_attribution
from folio_server.portfolio.models import Holding


def test_sector_mapping() -> None:
    assert benchmark_sector(Holding(ticker="AMZN", sector="Consumer Cyclical")) == "Consumer Discretionary"
    assert benchmark_sector(Holding(ticker="VXUS", sector="Unknown", asset_type="etfs")) == "Index Fund"
    assert benchmark_sector(Holding(ticker="TBIL", sector="Unknown", asset_type="bonds")) == "Fixed Income"


def test_single_sector_effects() -> None:
    analysis = calculate_attribution(
        [Holding(ticker="MSFT", shares=10, total_cost=1000, current_price=150, sector="Technology")]
    )
    assert analysis.total_return == pytest.approx(0.5)
    assert analysis.benchmark_return == pytest.approx(benchmark_return())
    assert analysis.active_return == pytest.approx(0.5 - benchmark_return())
    sector = analysis.sectors[0]
    assert sector.allocation_effect == pytest.approx(0.72 * 0.25)
    assert sector.selection_effect == pytest.approx(0.28 * 0.25)
    assert sector.interaction_effect == pytest.approx(0.72 * 0.25)


def test_sectors_sorted_by_absolute_effect() -> None:
    analysis = calculate_attribution(
        [
            Holding(ticker="MSFT", shares=10, total_cost=1000, current_price=150, sector="Technology"),
            Holding(ticker="DUK", shares=10, total_cost=1000, current_price=101, sector="Utilities"),
        ]
    )
    effects = [abs(item.total_effect) for item in analysis.sectors]
    assert effects == sorted(effects, reverse=True)
    assert calculate_attribution([]).sectors == []
