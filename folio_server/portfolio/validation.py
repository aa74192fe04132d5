"""Transaction validation logic."""

from __future__ import annotations

import math
from typing import Any, Iterable, Mapping

import pandas as pd

from folio_server.portfolio.data_loader import REQUIRED_COLUMNS, frame_row_payload, normalize_columns
from folio_server.portfolio.ledger import parse_split_ratio
from folio_server.portfolio.models import ACCOUNT_TYPES, FIELD_ALIASES, TRANSACTION_TYPES, ValidationIssue, parse_date
from folio_server.services.base import validate_symbol

FRAME_LABELS = {
    "ticker": "Ticker",
    "type": "Type",
    "date": "Date",
    "account_type": "Account_Type",
    "shares": "Shares",
    "price": "Price",
    "amount": "Amount",
    "fees": "Fees",
    "split_ratio": "Split_Ratio",
    "new_ticker": "New_Ticker",
    "to_account_type": "To_Account_Type",
}
SHARE_TYPES = {"buy", "sell", "rights"}


def _blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and not value.strip()


def _number(value: Any) -> float | None:
    if _blank(value) or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def validate_record(record: Mapping[str, Any], row: int | None, labels: Mapping[str, str] | None = None) -> list[ValidationIssue]:
    """Check one snake_case transaction record; ``labels`` renames fields in the reported issues."""
    names = labels or {}

    def issue(field: str, code: str, message: str) -> ValidationIssue:
        return ValidationIssue(field=names.get(field, field), row=row, code=code, message=message)

    issues: list[ValidationIssue] = []
    ticker = "" if _blank(record.get("ticker")) else str(record.get("ticker")).strip().upper()
    try:
        validate_symbol(ticker)
    except ValueError:
        issues.append(issue("ticker", "invalid_symbol", f"Invalid ticker: {ticker or '<empty>'}"))

    tx_type = "" if _blank(record.get("type")) else str(record.get("type")).strip().lower()
    if tx_type not in TRANSACTION_TYPES:
        issues.append(
            issue("type", "invalid_type", f"Type must be one of {sorted(TRANSACTION_TYPES)}, received {tx_type or '<empty>'}.")
        )

    try:
        parse_date(None if _blank(record.get("date")) else record.get("date"))
    except ValueError as error:
        issues.append(issue("date", "invalid_date", str(error)))

    for field in ("account_type", "to_account_type"):
        value = record.get(field)
        if not _blank(value) and str(value).strip().lower() not in ACCOUNT_TYPES:
            issues.append(issue(field, "invalid_account_type", f"Account type must be one of {sorted(ACCOUNT_TYPES)}."))

    for field in ("shares", "price", "amount", "fees"):
        value = record.get(field)
        if not _blank(value) and _number(value) is None:
            issues.append(issue(field, "invalid_number", f"{names.get(field, field)} must be numeric."))
    fees = _number(record.get("fees"))
    if fees is not None and fees < 0:
        issues.append(issue("fees", "invalid_fees", "Fees cannot be negative."))

    shares = _number(record.get("shares"))
    if tx_type in SHARE_TYPES and (shares is None or shares <= 0):
        issues.append(issue("shares", "invalid_shares", f"Shares must be positive for {tx_type} transactions."))
    if tx_type == "sell" and _blank(record.get("price")) and (_number(record.get("amount")) or 0.0) <= 0:
        issues.append(issue("price", "missing_proceeds", "Sells need a price or a positive amount."))

    if tx_type == "split":
        try:
            parse_split_ratio(None if _blank(record.get("split_ratio")) else str(record.get("split_ratio")))
        except ValueError as error:
            issues.append(issue("split_ratio", "invalid_split_ratio", str(error)))

    has_new_ticker = not _blank(record.get("new_ticker"))
    if has_new_ticker:
        try:
            validate_symbol(str(record.get("new_ticker")))
        except ValueError:
            issues.append(issue("new_ticker", "invalid_symbol", f"Invalid new ticker: {record.get('new_ticker')}"))
    cash_merger = tx_type == "merger" and (_number(record.get("amount")) or 0.0) > 0
    if tx_type in {"spinoff", "merger"} and not has_new_ticker and not cash_merger:
        issues.append(issue("new_ticker", "missing_new_ticker", f"New ticker is required for {tx_type} transactions."))

    if tx_type == "transfer":
        target = record.get("to_account_type")
        source = "taxable" if _blank(record.get("account_type")) else str(record.get("account_type")).strip().lower()
        if _blank(target):
            issues.append(issue("to_account_type", "missing_target_account", "Transfers require a target account type."))
        elif str(target).strip().lower() == source:
            issues.append(issue("to_account_type", "same_account", "Transfer target must differ from the source account."))
    return issues


def validate_transaction_frame(frame: pd.DataFrame) -> list[ValidationIssue]:
    data = normalize_columns(frame)
    missing = [column for column in REQUIRED_COLUMNS if column not in data.columns]
    if missing:
        return [
            ValidationIssue(field=column, code="missing_column", message=f"Required column is missing: {column}")
            for column in missing
        ]
    if data.empty:
        return [ValidationIssue(field="rows", code="empty_file", message="No transactions found.")]

    issues: list[ValidationIssue] = []
    for position, row in enumerate(data.to_dict(orient="records")):
        issues.extend(validate_record(frame_row_payload(row), row=position + 2, labels=FRAME_LABELS))
    return issues


def validate_transaction_payloads(items: Iterable[Mapping[str, Any]]) -> list[ValidationIssue]:
    """Validate JSON transaction objects; rows are 1-based positions in the list."""
    issues: list[ValidationIssue] = []
    for position, item in enumerate(items, start=1):
        if not isinstance(item, Mapping):
            issues.append(ValidationIssue(field="transaction", row=position, code="invalid_type", message="Each transaction must be an object."))
            continue
        record = {FIELD_ALIASES.get(key, key): value for key, value in item.items()}
        issues.extend(validate_record(record, row=position))
    return issues
