"""Service context, result envelopes and the read-through cache helper."""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

from folio_server.cache.ttl_cache import TTLCache
from folio_server.providers.http import ProviderError
from folio_server.utils.rate_limit import RateLimiterRegistry

# Letters, digits, dot, hyphen and slash (BRK.B, BF-B, BRK/B).
TICKER_RE = re.compile(r"^[A-Z][A-Z0-9.\-/]{0,9}$")
RETRIABLE_CODES = frozenset({"RATE_LIMIT", "NETWORK", "UPSTREAM", "BAD_RESPONSE"})
T = TypeVar("T")


@dataclass
class ErrorEnvelope:
    code: str
    message: str
    retriable: bool = True
    provider: str | None = None


@dataclass
class ServiceResult(Generic[T]):
    data: T | None
    source: str | None = None
    warning: str | None = None
    error: ErrorEnvelope | None = None
    fetched_at: float | None = None

    @property
    def ok(self) -> bool:
        return self.data is not None


@dataclass
class ServiceContext:
    """Provider clients by name plus the cache and pacing every service shares."""

    providers: dict[str, object]
    cache: TTLCache
    rate_limiter: RateLimiterRegistry
    cache_ttl_seconds: int = 300
    server_metrics: Any | None = None

    def get_provider(self, name: str) -> object | None:
        return self.providers.get(name)


def validate_symbol(symbol: str) -> str:
    clean = symbol.strip().upper()
    if TICKER_RE.fullmatch(clean) is None:
        raise ValueError("Symbol must be 1-10 chars: A-Z, 0-9, dot, hyphen, slash.")
    return clean


def envelope_from_provider_error(error: ProviderError) -> ErrorEnvelope:
    return ErrorEnvelope(
        code=error.code,
        message=error.message,
        retriable=error.code in RETRIABLE_CODES,
        provider=error.provider,
    )


def run_with_cache(ctx: ServiceContext, cache_key: str, call: Callable[[], T], ttl_seconds: int | None = None) -> T:
    """Read-through cache: a hit skips ``call`` entirely.

    A ``ServiceResult`` without data is handed back uncached so the next request goes upstream again.
    """
    hit = ctx.cache.get(cache_key)
    if hit is not None:
        return hit  # type: ignore[return-value]
    value = call()
    if isinstance(value, ServiceResult):
        if not value.ok:
            return value
        if value.fetched_at is None:
            value.fetched_at = time.time()
    ctx.cache.set(cache_key, value, ttl_seconds=ttl_seconds or ctx.cache_ttl_seconds)
    return value
