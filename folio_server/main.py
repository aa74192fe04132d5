"""Application entrypoint for the portfolio valuation MCP server."""

from __future__ import annotations

import asyncio
import gzip
import io
import logging
import os
import sys
import time
from typing import Any

from mcp.server.fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from folio_server.cache.ttl_cache import TTLCache
from folio_server.config.settings import Settings, get_settings
from folio_server.prompts.portfolio_prompts import register_portfolio_prompts
from folio_server.protocol.subscriptions import ResourceNotifier
from folio_server.providers.alpha_vantage import AlphaVantageClient
from folio_server.providers.fmp import FmpClient
from folio_server.resources.portfolio_resources import register_portfolio_resources
from folio_server.runtime.limits import RateLimitExceeded, RequestLimiter
from folio_server.runtime.monitoring import ServerMetrics, log_tool_event
from folio_server.services.base import ServiceContext
from folio_server.services.provider_status import ProviderStatus
from folio_server.tools.registry import ToolServices, build_tool_services, register_all_tools
from folio_server.utils.rate_limit import RateLimiterRegistry

LOGGER = logging.getLogger(__name__)
SLOW_RESPONSE_MS = 2000.0


def resolve_transport_mode(configured_mode: str) -> str:
    if os.getenv("RENDER") and configured_mode == "stdio":
        return "http"
    if configured_mode in {"stdio", "http"}:
        return configured_mode
    if os.getenv("RENDER") or os.getenv("PORT"):
        return "http"
    return "stdio"


def resolve_http_transport(configured_transport: str) -> str:
    if configured_transport in {"sse", "streamable"}:
        return configured_transport
    return "sse"


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def tool_result_text(result: Any) -> str:
    """Flatten what ``FastMCP.call_tool`` returns into the tool's JSON text."""
    if isinstance(result, tuple) and len(result) == 2:
        blocks, structured = result
        if isinstance(structured, dict) and isinstance(structured.get("result"), str):
            return structured["result"]
        result = blocks
    if isinstance(result, dict):
        value = result.get("result")
        return value if isinstance(value, str) else ""
    texts = [getattr(block, "text", "") for block in result or []]
    return "".join(text for text in texts if isinstance(text, str))


def gzip_bytes(text: str) -> bytes:
    compressed = io.BytesIO()
    with gzip.GzipFile(fileobj=compressed, mode="wb") as gz:
        gz.write(text.encode("utf-8"))
    return compressed.getvalue()


def build_server(settings: Settings) -> tuple[FastMCP, ToolServices]:
    server_metrics = ServerMetrics()
    request_limiter = RequestLimiter(
        requests_per_minute=settings.default_requests_per_minute,
        queue_limit=settings.request_queue_limit,
    )
    fmp_client = FmpClient(settings.fmp_api_key, settings.request_timeout_seconds) if settings.fmp_api_key else None
    alpha_vantage_client = (
        AlphaVantageClient(settings.alphavantage_api_key, settings.request_timeout_seconds)
        if settings.alphavantage_api_key
        else None
    )
    mcp = FastMCP(
        name=settings.app_name,
        host=settings.host,
        port=settings.port,
        streamable_http_path=settings.mcp_path,
    )
    notifier = ResourceNotifier(mcp)
    service_ctx = ServiceContext(
        providers={"fmp": fmp_client, "alphavantage": alpha_vantage_client},
        cache=TTLCache(default_ttl_seconds=settings.cache_ttl_seconds),
        rate_limiter=RateLimiterRegistry(min_interval_seconds=settings.provider_min_interval_seconds),
        cache_ttl_seconds=settings.cache_ttl_seconds,
        server_metrics=server_metrics,
    )
    services = build_tool_services(
        service_ctx,
        settings,
        provider_status=ProviderStatus(),
        resource_updated_callback=notifier.notify_resource_updated_sync,
    )
    register_all_tools(mcp, services)
    register_portfolio_prompts(mcp)
    register_portfolio_resources(mcp, services)

    @mcp.custom_route(settings.health_path, methods=["GET"])
    async def health_check(_: object) -> Response:
        health = services.runtime.get_server_health()
        return JSONResponse(
            {
                "status": health.status,
                "service": settings.app_name,
                "version": settings.app_version,
                "uptime_seconds": round(health.uptime_seconds, 3),
                "providers": services.market.configured_providers(),
            }
        )

    @mcp.custom_route("/tools/{tool_name}", methods=["POST"])
    async def guarded_tool_call(request: Request) -> Response:
        tool_name = request.path_params.get("tool_name", "unknown")
        started = time.perf_counter()
        client_id = str(request.headers.get("x-api-key") or request.headers.get("x-client-id") or request.client or "anonymous")
        try:
            body = await request.json()
        except ValueError:
            body = {}
        arguments = body.get("arguments") if isinstance(body, dict) else {}
        if not isinstance(arguments, dict):
            arguments = {}
        ticker = str(arguments.get("ticker") or "") or None
        try:
            request_limiter.acquire(client_id)
        except RateLimitExceeded as error:
            server_metrics.record_rate_limit_hit(client_id)
            LOGGER.warning("request rejected: client=%s reason=%s", client_id, error.reason)
            return JSONResponse(
                {"ok": False, "error": {"type": "rate_limited", "message": "Rate limit exceeded."}, "timestamp": int(time.time())},
                status_code=429,
                headers={"Retry-After": str(max(1, int(error.retry_after_seconds)))},
            )
        try:
            known = {tool.name for tool in await mcp.list_tools()}
            if tool_name not in known:
                latency_ms = (time.perf_counter() - started) * 1000.0
                server_metrics.record(tool_name, latency_ms, success=False)
                return JSONResponse(
                    {"ok": False, "error": {"type": "not_found", "message": f"Unknown tool: {tool_name}"}},
                    status_code=404,
                )
            result_text = tool_result_text(await mcp.call_tool(tool_name, arguments))
            latency_ms = (time.perf_counter() - started) * 1000.0
            if latency_ms > SLOW_RESPONSE_MS:
                LOGGER.warning("slow tool response: tool=%s latency_ms=%.1f", tool_name, latency_ms)
            log_tool_event(tool=tool_name, latency_ms=latency_ms, success=True, client_id=client_id, ticker=ticker)
            server_metrics.record(tool_name, latency_ms, success=True)
            if settings.compress_tool_responses:
                return Response(
                    content=gzip_bytes(result_text),
                    media_type="application/json",
                    headers={"Content-Encoding": "gzip"},
                )
            return Response(content=result_text, media_type="application/json")
        except Exception as error:
            latency_ms = (time.perf_counter() - started) * 1000.0
            LOGGER.exception("tool call failed: tool=%s", tool_name)
            log_tool_event(
                tool=tool_name,
                latency_ms=latency_ms,
                success=False,
                client_id=client_id,
                ticker=ticker,
                error=str(error),
            )
            server_metrics.record(tool_name, latency_ms, success=False)
            return JSONResponse(
                {"ok": False, "error": {"type": "internal_error", "message": "Request failed."}, "timestamp": int(time.time())},
                status_code=500,
            )
        finally:
            request_limiter.release()

    if not (fmp_client or alpha_vantage_client):
        LOGGER.warning(
            "no market data providers configured; set FMP_API_KEY and/or ALPHAVANTAGE_API_KEY. "
            "Ledger, cost basis and tax tools still work."
        )
    return mcp, services


async def run() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    mcp, _ = build_server(settings)
    resolved_mode = resolve_transport_mode(settings.transport_mode)
    resolved_http_transport = resolve_http_transport(settings.http_transport)
    LOGGER.info("starting server: mode=%s http_transport=%s", resolved_mode, resolved_http_transport)
    if resolved_mode == "stdio":
        await mcp.run_stdio_async()
    elif resolved_http_transport == "streamable":
        await mcp.run_streamable_http_async()
    else:
        await mcp.run_sse_async()


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
