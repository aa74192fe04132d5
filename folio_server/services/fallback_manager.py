"""Ordered provider fallback for market-data lookups."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from folio_server.providers.http import ProviderError
from folio_server.services.base import ErrorEnvelope, ServiceContext, ServiceResult, envelope_from_provider_error
from folio_server.services.provider_status import ProviderStatus

T = TypeVar("T")
LOGGER = logging.getLogger(__name__)
# Free-tier quota messages arrive with HTTP 200 on some providers.
QUOTA_PHRASES = ("rate limit", "requests per day", "limit reach", "api calls", "premium", "limit exceeded")
DEFAULT_DISABLE_SECONDS = 900
FALLBACK_WARNING = "Served by a fallback provider; the preferred provider was unavailable."


@dataclass(frozen=True)
class ProviderAttempt(Generic[T]):
    key: str
    label: str
    call: Callable[[], T | None]


class FallbackManager:
    """Tries each ``ProviderAttempt`` in order and returns the first non-empty answer.

    A provider that reports a quota or rate-limit problem is parked in ``ProviderStatus``
    for its disable window and skipped until the window lapses.
    """

    def __init__(
        self,
        ctx: ServiceContext,
        provider_status: ProviderStatus,
        rate_limit_disable_seconds: dict[str, int] | None = None,
        default_disable_seconds: int = DEFAULT_DISABLE_SECONDS,
    ) -> None:
        self._ctx = ctx
        self._status = provider_status
        self._disable_windows = dict(rate_limit_disable_seconds or {})
        self._default_disable_seconds = default_disable_seconds

    @property
    def provider_status(self) -> ProviderStatus:
        return self._status

    def _park(self, key: str, operation: str, symbol: str) -> None:
        until = self._status.disable_provider(key, self._disable_windows.get(key, self._default_disable_seconds))
        LOGGER.warning("provider parked after quota error: provider=%s until=%s op=%s symbol=%s", key, until, operation, symbol)

    def execute(self, operation: str, symbol: str, attempts: list[ProviderAttempt[T]]) -> ServiceResult[T]:
        degraded = False
        failure: ProviderError | None = None
        for attempt in attempts:
            if self._status.is_disabled(attempt.key):
                LOGGER.info("provider skipped while parked: op=%s symbol=%s provider=%s", operation, symbol, attempt.key)
                degraded = True
                continue
            started = time.perf_counter()
            try:
                self._ctx.rate_limiter.wait(attempt.key)
                value = attempt.call()
            except ProviderError as error:
                failure = error
                LOGGER.warning(
                    "provider failed: op=%s symbol=%s provider=%s code=%s status=%s elapsed_ms=%.1f",
                    operation,
                    symbol,
                    attempt.key,
                    error.code,
                    error.status,
                    (time.perf_counter() - started) * 1000,
                )
                if self.is_rate_limited(error):
                    self._park(attempt.key, operation, symbol)
                degraded = True
                continue
            except Exception:
                LOGGER.exception("provider raised unexpectedly: op=%s symbol=%s provider=%s", operation, symbol, attempt.key)
                degraded = True
                continue

            if value is None:
                LOGGER.debug("provider returned nothing: op=%s symbol=%s provider=%s", operation, symbol, attempt.key)
                degraded = True
                continue
            return ServiceResult(
                data=value,
                source=attempt.label,
                warning=FALLBACK_WARNING if degraded else None,
                fetched_at=time.time(),
            )

        if failure is not None:
            envelope = envelope_from_provider_error(failure)
            envelope.message = f"{operation} failed for {symbol}: {envelope.message}"
            return ServiceResult(data=None, error=envelope)
        reason = "no provider returned data" if attempts else "no market data provider is configured"
        return ServiceResult(
            data=None,
            error=ErrorEnvelope(code="NOT_FOUND", message=f"{operation} failed for {symbol}: {reason}.", retriable=False),
        )

    @staticmethod
    def is_rate_limited(error: ProviderError) -> bool:
        if error.code == "RATE_LIMIT" or error.status == 429:
            return True
        text = (error.message or "").lower()
        return any(phrase in text for phrase in QUOTA_PHRASES)
