"""Environment-driven settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import TypeVar

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    """Runtime settings for local/stdin and HTTP-hosted modes."""

    app_name: str = "folio-valuation-server"
    app_version: str = "1.0.0"
    transport_mode: str = "auto"
    http_transport: str = "sse"
    host: str = "0.0.0.0"
    port: int = 8000
    mcp_path: str = "/mcp"
    health_path: str = "/health"
    log_level: str = "INFO"
    fmp_api_key: str | None = None
    alphavantage_api_key: str | None = None
    request_timeout_seconds: float = 15.0
    cache_ttl_seconds: int = 300
    cache_ttl_quote_seconds: int = 60
    cache_ttl_fundamentals_seconds: int = 1800
    cache_ttl_history_seconds: int = 3600
    provider_min_interval_seconds: float = 1.0
    provider_rate_limit_disable_seconds: int = 900
    enrichment_batch_size: int = 8
    enrichment_batch_delay_seconds: float = 1.0
    risk_free_rate: float = 0.02
    tax_rate: float = 0.24
    default_requests_per_minute: int = 100
    request_queue_limit: int = 200
    compress_tool_responses: bool = True


TRUTHY = {"1", "true", "yes", "on"}
NumberT = TypeVar("NumberT", int, float)


def _env_number(name: str, default: NumberT) -> NumberT:
    """Read a numeric variable; blank or unparseable values fall back to ``default``."""
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return type(default)(raw)
    except ValueError:
        return default


def _env_flag(name: str, default: bool) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    return raw in TRUTHY if raw else default


def _env_text(name: str, default: str) -> str:
    return (os.getenv(name) or default).strip()


def get_settings() -> Settings:
    """Build ``Settings`` from the process environment, after loading any ``.env`` file."""
    load_dotenv()
    return Settings(
        transport_mode=_env_text("TRANSPORT_MODE", "auto").lower(),
        http_transport=_env_text("HTTP_TRANSPORT", "sse").lower(),
        host=_env_text("HOST", "0.0.0.0"),
        port=_env_number("PORT", 8000),
        mcp_path=_env_text("MCP_PATH", "/mcp"),
        health_path=_env_text("HEALTH_PATH", "/health"),
        log_level=_env_text("LOG_LEVEL", "INFO").upper(),
        fmp_api_key=os.getenv("FMP_API_KEY") or None,
        alphavantage_api_key=os.getenv("ALPHAVANTAGE_API_KEY") or None,
        request_timeout_seconds=_env_number("REQUEST_TIMEOUT_SECONDS", 15.0),
        cache_ttl_seconds=_env_number("CACHE_TTL_SECONDS", 300),
        cache_ttl_quote_seconds=_env_number("CACHE_TTL_QUOTE_SECONDS", 60),
        cache_ttl_fundamentals_seconds=_env_number("CACHE_TTL_FUNDAMENTALS_SECONDS", 1800),
        cache_ttl_history_seconds=_env_number("CACHE_TTL_HISTORY_SECONDS", 3600),
        provider_min_interval_seconds=_env_number("PROVIDER_MIN_INTERVAL_SECONDS", 1.0),
        provider_rate_limit_disable_seconds=_env_number("PROVIDER_RATE_LIMIT_DISABLE_SECONDS", 900),
        enrichment_batch_size=max(1, _env_number("ENRICHMENT_BATCH_SIZE", 8)),
        enrichment_batch_delay_seconds=max(0.0, _env_number("ENRICHMENT_BATCH_DELAY_SECONDS", 1.0)),
        risk_free_rate=_env_number("RISK_FREE_RATE", 0.02),
        tax_rate=_env_number("TAX_RATE", 0.24),
        default_requests_per_minute=_env_number("DEFAULT_REQUESTS_PER_MINUTE", 100),
        request_queue_limit=_env_number("REQUEST_QUEUE_LIMIT", 200),
        compress_tool_responses=_env_flag("COMPRESS_TOOL_RESPONSES", True),
    )
