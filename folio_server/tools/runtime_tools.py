"""Runtime and operations tools."""

from __future__ import annotations

from typing import TYPE_CHECKING

from mcp.server.fastmcp import FastMCP

from folio_server.runtime.response import dump_payload

if TYPE_CHECKING:
    from folio_server.tools.registry import ToolServices


def register_runtime_tools(mcp: FastMCP, services: ToolServices) -> None:
    @mcp.tool(description="Server health: uptime, request and error rates, latency, provider status and cache stats.")
    def server_health() -> str:
        return dump_payload(services.runtime.get_server_health())
