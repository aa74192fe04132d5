"""Shared requests session and the provider error type."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Literal

import requests
from requests.adapters import HTTPAdapter

from folio_server.providers.models import ProviderName

ProviderErrorCode = Literal["RATE_LIMIT", "AUTH", "NOT_FOUND", "UPSTREAM", "NETWORK", "BAD_RESPONSE"]
RETRY_STATUSES = frozenset({408, 425, 429, 500, 502, 503, 504})
STATUS_CODES: dict[int, ProviderErrorCode] = {401: "AUTH", 403: "AUTH", 404: "NOT_FOUND", 429: "RATE_LIMIT"}
BACKOFF_BASE_SECONDS = 0.25
LOGGER = logging.getLogger(__name__)

_SESSION = requests.Session()
for _prefix in ("https://", "http://"):
    _SESSION.mount(_prefix, HTTPAdapter(pool_connections=20, pool_maxsize=40))


@dataclass
class ProviderError(Exception):
    provider: ProviderName
    code: ProviderErrorCode
    message: str
    status: int | None = None

    def __str__(self) -> str:
        return self.message

    @property
    def transient(self) -> bool:
        return self.code == "NETWORK" or self.status in RETRY_STATUSES


def map_status_to_code(status: int) -> ProviderErrorCode:
    return STATUS_CODES.get(status, "UPSTREAM")


def _decode(response: requests.Response, provider: ProviderName) -> Any:
    if not response.ok:
        raise ProviderError(
            provider,
            map_status_to_code(response.status_code),
            f"{provider} answered HTTP {response.status_code}.",
            response.status_code,
        )
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError as error:
        raise ProviderError(provider, "BAD_RESPONSE", f"{provider} sent a body that is not JSON.", response.status_code) from error


def fetch_json(
    url: str,
    provider: ProviderName,
    timeout_seconds: float = 15.0,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    max_retries: int = 3,
) -> Any:
    """GET ``url`` and decode JSON, retrying network faults and transient statuses with exponential backoff.

    Every failure surfaces as a ``ProviderError``.
    """
    attempts = max(1, max_retries)
    for attempt in range(1, attempts + 1):
        try:
            try:
                response = _SESSION.get(url, params=params, timeout=timeout_seconds, headers=headers)
            except requests.RequestException as error:
                raise ProviderError(provider, "NETWORK", f"Could not reach {provider}.") from error
            return _decode(response, provider)
        except ProviderError as error:
            if not error.transient or attempt == attempts:
                raise
            delay = BACKOFF_BASE_SECONDS * (2 ** (attempt - 1))
            LOGGER.debug("retrying provider call: provider=%s code=%s attempt=%s delay=%.2f", provider, error.code, attempt, delay)
            time.sleep(delay)
    raise ProviderError(provider, "UPSTREAM", f"{provider} request failed.")
