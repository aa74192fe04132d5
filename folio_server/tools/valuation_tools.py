"""Valuation tools."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from mcp.server.fastmcp import FastMCP

from folio_server.runtime.response import dump_payload

if TYPE_CHECKING:
    from folio_server.tools.registry import ToolServices


def register_valuation_tools(mcp: FastMCP, services: ToolServices) -> None:
    @mcp.tool(
        description=(
            "Discounted cash flow valuation for a ticker. Without inputs the assumptions are estimated from "
            "fundamentals. Inputs keys: current_fcf, growth_rate, terminal_growth_rate, discount_rate "
            "(percent), projection_years, shares_outstanding, cash_and_equivalents, total_debt."
        )
    )
    def dcf_valuation(
        ticker: str,
        inputs: dict[str, Any] | None = None,
        current_price: float | None = None,
    ) -> str:
        payload = services.portfolio.valuation(ticker, inputs=inputs, current_price=current_price)
        return dump_payload(payload)
