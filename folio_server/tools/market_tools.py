"""Market data tools."""

from __future__ import annotations

from typing import TYPE_CHECKING

from mcp.server.fastmcp import FastMCP

from folio_server.runtime.response import error_response, result_response

if TYPE_CHECKING:
    from folio_server.tools.registry import ToolServices


def register_market_tools(mcp: FastMCP, services: ToolServices) -> None:
    @mcp.tool(description="Latest quote for a ticker (FMP with Alpha Vantage fallback).")
    def get_quote(ticker: str) -> str:
        try:
            result = services.market.get_quote(ticker)
        except ValueError as error:
            return error_response("validation_error", str(error))
        return result_response(result)

    @mcp.tool(description="Company profile and valuation/health ratios for a ticker.")
    def get_fundamentals(ticker: str) -> str:
        try:
            result = services.market.get_fundamentals(ticker)
        except ValueError as error:
            return error_response("validation_error", str(error))
        return result_response(result)

    @mcp.tool(description="Daily closing prices for a ticker, newest last.")
    def get_price_history(ticker: str, limit: int = 260) -> str:
        if limit < 1 or limit > 5000:
            return error_response("validation_error", "limit must be between 1 and 5000.")
        try:
            result = services.market.get_daily_closes(ticker, limit=limit)
        except ValueError as error:
            return error_response("validation_error", str(error))
        return result_response(result)
