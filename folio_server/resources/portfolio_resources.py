"""Portfolio report resources backed by the snapshot cache."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from mcp.server.fastmcp import FastMCP

from folio_server.portfolio.portfolio_service import SNAPSHOT_TYPES

if TYPE_CHECKING:
    from folio_server.tools.registry import ToolServices

CURRENT_PORTFOLIO_URI = "portfolio://current"
SNAPSHOT_TEMPLATE_URI = "portfolio://snapshot/{report_type}"


def register_portfolio_resources(mcp: FastMCP, services: "ToolServices") -> None:
    @mcp.resource(
        CURRENT_PORTFOLIO_URI,
        name="current-portfolio",
        title="Latest Portfolio Report",
        description="Most recent successful report (analysis, valuation, dividends or tax) produced by a tool call.",
        mime_type="application/json",
    )
    def current_portfolio() -> str:
        snapshot = services.portfolio.get_current_resource_snapshot()
        if not snapshot:
            raise ValueError("No portfolio report yet. Call analyze_portfolio or another report tool first.")
        return json.dumps(snapshot, ensure_ascii=True, default=str)

    @mcp.resource(
        SNAPSHOT_TEMPLATE_URI,
        name="portfolio-snapshot",
        title="Portfolio Report By Type",
        description=f"Latest report of one type: {', '.join(SNAPSHOT_TYPES)}.",
        mime_type="application/json",
    )
    def portfolio_snapshot(report_type: str) -> str:
        snapshot = services.portfolio.get_resource_snapshot(report_type)
        if not snapshot:
            raise ValueError(f"No {report_type} report has been generated.")
        return json.dumps(snapshot, ensure_ascii=True, default=str)
