"""Portfolio-domain MCP tools.

Every tool accepts either ``transactions`` (a list of transaction objects) or ``file_path``
(a .csv/.xlsx/.xls ledger export), never both.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from mcp.server.fastmcp import FastMCP

from folio_server.runtime.response import dump_payload, error_response
from folio_server.tools.common import parse_as_of

if TYPE_CHECKING:
    from folio_server.tools.registry import ToolServices


def register_portfolio_tools(mcp: FastMCP, services: ToolServices) -> None:
    @mcp.tool(description="Validate a transaction ledger (JSON list or CSV/Excel file) without analyzing it.")
    def validate_transactions(transactions: list[dict[str, Any]] | None = None, file_path: str | None = None) -> str:
        payload = services.portfolio.validate_transactions(transactions=transactions, file_path=file_path)
        return dump_payload(payload)

    @mcp.tool(description="Rebuild holdings per ticker and account from the transaction ledger, without market data.")
    def reconcile_holdings(transactions: list[dict[str, Any]] | None = None, file_path: str | None = None) -> str:
        payload = services.portfolio.reconcile(transactions=transactions, file_path=file_path)
        return dump_payload(payload)

    @mcp.tool(
        description=(
            "Full portfolio analysis: holdings enriched with live quotes and fundamentals, metrics, allocation, "
            "dividends, factor exposure, sector attribution, tax suggestions and risk."
        )
    )
    def analyze_portfolio(
        transactions: list[dict[str, Any]] | None = None,
        file_path: str | None = None,
        target_allocation: dict[str, float] | None = None,
        include_risk: bool = True,
        as_of: str | None = None,
    ) -> str:
        try:
            as_of_date = parse_as_of(as_of)
        except ValueError as error:
            return error_response("validation_error", str(error))
        payload = services.portfolio.analyze(
            transactions=transactions,
            file_path=file_path,
            targets=target_allocation,
            include_risk=include_risk,
            as_of=as_of_date,
        )
        return dump_payload(payload)

    @mcp.tool(description="Lot-level cost basis for one ticker using FIFO, LIFO or AverageCost.")
    def cost_basis_lots(
        ticker: str,
        method: str = "FIFO",
        transactions: list[dict[str, Any]] | None = None,
        file_path: str | None = None,
        account_type: str | None = None,
    ) -> str:
        payload = services.portfolio.cost_basis(
            ticker,
            method=method,
            transactions=transactions,
            file_path=file_path,
            account_type=account_type,
        )
        return dump_payload(payload)

    @mcp.tool(description="Dividend income report: totals, yields, growth, payment history and projected calendar.")
    def dividend_report(
        transactions: list[dict[str, Any]] | None = None,
        file_path: str | None = None,
        as_of: str | None = None,
    ) -> str:
        try:
            as_of_date = parse_as_of(as_of)
        except ValueError as error:
            return error_response("validation_error", str(error))
        payload = services.portfolio.dividend_report(transactions=transactions, file_path=file_path, as_of=as_of_date)
        return dump_payload(payload)

    @mcp.tool(description="Tax report for a year: short/long term gains, dividends, wash sales and optimization ideas.")
    def tax_report(
        year: int,
        method: str = "FIFO",
        transactions: list[dict[str, Any]] | None = None,
        file_path: str | None = None,
        include_suggestions: bool = True,
    ) -> str:
        payload = services.portfolio.tax_report(
            year,
            method=method,
            transactions=transactions,
            file_path=file_path,
            include_suggestions=include_suggestions,
        )
        return dump_payload(payload)

    @mcp.tool(description="Export the portfolio report as CSV (summary, holdings, transactions) or JSON text.")
    def export_portfolio_report(
        format: str = "csv",
        transactions: list[dict[str, Any]] | None = None,
        file_path: str | None = None,
    ) -> str:
        payload = services.portfolio.export(format=format, transactions=transactions, file_path=file_path)
        return dump_payload(payload)
