"""Shared tool-layer helpers."""

from __future__ import annotations

from datetime import date


def parse_as_of(value: str | None) -> date | None:
    if value is None or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError as error:
        raise ValueError(f"Invalid as_of date: {value!r}. Use YYYY-MM-DD.") from error
