"""JSON response shaping for tools and HTTP routes."""

from __future__ import annotations

import json
import time
from dataclasses import asdict, is_dataclass
from datetime import date
from typing import Any

DISCLAIMER = "Valuations and projections are estimates for informational purposes only, not financial advice."


def to_jsonable(data: Any) -> Any:
    if is_dataclass(data) and not isinstance(data, type):
        return to_jsonable(asdict(data))
    if isinstance(data, (date,)):
        return data.isoformat()
    if isinstance(data, (list, tuple)):
        return [to_jsonable(item) for item in data]
    if isinstance(data, dict):
        return {str(key): to_jsonable(value) for key, value in data.items()}
    if isinstance(data, float) and data != data:
        return None
    return data


def dump_payload(payload: Any) -> str:
    return json.dumps(to_jsonable(payload), ensure_ascii=True)


def success_response(payload: dict[str, Any], source: str | None = None) -> str:
    body = dict(payload)
    body.setdefault("generated_at", int(time.time()))
    body.setdefault("disclaimer", DISCLAIMER)
    if source:
        body["source"] = source
    return dump_payload(body)


def error_response(code: str, message: str, details: Any | None = None) -> str:
    body: dict[str, Any] = {
        "ok": False,
        "error": {"type": code, "message": message},
        "timestamp": int(time.time()),
    }
    if details is not None:
        body["error"]["details"] = details
    return dump_payload(body)


def result_response(result: Any) -> str:
    """Render a ``ServiceResult`` as a success payload or a provider error."""
    if result.data is None:
        envelope = result.error
        if envelope is None:
            return error_response("NOT_FOUND", "No data returned.")
        return error_response(envelope.code, envelope.message, {"retriable": envelope.retriable, "provider": envelope.provider})
    body: dict[str, Any] = {"ok": True, "data": result.data}
    if result.fetched_at:
        body["fetched_at"] = int(result.fetched_at)
    if result.warning:
        body["warning"] = result.warning
    return success_response(body, source=result.source)
