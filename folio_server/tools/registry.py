"""Tool registry entrypoint."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from mcp.server.fastmcp import FastMCP

from folio_server.config.settings import Settings
from folio_server.portfolio.portfolio_service import PortfolioService
from folio_server.services.base import ServiceContext
from folio_server.services.market_service import MarketDataService
from folio_server.services.provider_status import ProviderStatus
from folio_server.services.runtime_service import RuntimeService
from folio_server.tools.market_tools import register_market_tools
from folio_server.tools.portfolio_tools import register_portfolio_tools
from folio_server.tools.runtime_tools import register_runtime_tools
from folio_server.tools.valuation_tools import register_valuation_tools


@dataclass
class ToolServices:
    market: MarketDataService
    portfolio: PortfolioService
    runtime: RuntimeService


def build_tool_services(
    ctx: ServiceContext,
    settings: Settings | None = None,
    provider_status: ProviderStatus | None = None,
    resource_updated_callback: Callable[[str], None] | None = None,
) -> ToolServices:
    config = settings or Settings()
    status = provider_status or ProviderStatus()
    market = MarketDataService(
        ctx,
        provider_status=status,
        quote_ttl_seconds=config.cache_ttl_quote_seconds,
        fundamentals_ttl_seconds=config.cache_ttl_fundamentals_seconds,
        history_ttl_seconds=config.cache_ttl_history_seconds,
        rate_limit_disable_seconds=config.provider_rate_limit_disable_seconds,
    )
    return ToolServices(
        market=market,
        portfolio=PortfolioService(
            ctx,
            market,
            risk_free_rate=config.risk_free_rate,
            tax_rate=config.tax_rate,
            batch_size=config.enrichment_batch_size,
            batch_delay_seconds=config.enrichment_batch_delay_seconds,
            resource_updated_callback=resource_updated_callback,
        ),
        runtime=RuntimeService(ctx, status),
    )


def register_all_tools(mcp: FastMCP, services: ToolServices) -> None:
    register_portfolio_tools(mcp, services)
    register_valuation_tools(mcp, services)
    register_market_tools(mcp, services)
    register_runtime_tools(mcp, services)
