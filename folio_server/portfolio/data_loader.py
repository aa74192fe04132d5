"""Transaction file loading helpers."""

from __future__ import annotations

import os
from typing import Any

import pandas as pd

from folio_server.portfolio.models import Transaction

REQUIRED_COLUMNS = ["Ticker", "Type", "Date"]
OPTIONAL_COLUMNS = [
    "Account_Type",
    "Shares",
    "Price",
    "Amount",
    "Fees",
    "Notes",
    "Split_Ratio",
    "New_Ticker",
    "To_Account_Type",
    "Id",
]
COLUMN_FIELDS = {column: column.lower() for column in REQUIRED_COLUMNS + OPTIONAL_COLUMNS}
SUPPORTED_EXTENSIONS = {".csv", ".xlsx", ".xls"}


def normalize_columns(frame: pd.DataFrame) -> pd.DataFrame:
    """Map header spellings such as ``account type`` or ``TICKER`` onto the canonical column names."""
    lookup = {column.lower(): column for column in COLUMN_FIELDS}
    renamed = {}
    for column in frame.columns:
        key = str(column).strip().lower().replace(" ", "_")
        if key in lookup:
            renamed[column] = lookup[key]
    return frame.rename(columns=renamed)


def load_transactions_file(file_path: str) -> pd.DataFrame:
    absolute_path = file_path if os.path.isabs(file_path) else os.path.abspath(file_path)
    ext = os.path.splitext(absolute_path)[1].lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise ValueError("Transaction input must be a .csv, .xlsx or .xls file.")
    if not os.path.exists(absolute_path):
        raise ValueError(f"Transaction file not found: {absolute_path}")
    if ext == ".csv":
        frame = pd.read_csv(absolute_path, dtype={"Ticker": str, "Split_Ratio": str})
    elif ext == ".xlsx":
        frame = pd.read_excel(absolute_path, sheet_name=0, engine="openpyxl")
    else:
        frame = pd.read_excel(absolute_path, sheet_name=0)
    return normalize_columns(frame)


def _clean_value(value: Any) -> Any:
    if value is None:
        return None
    if not isinstance(value, (list, dict)) and pd.isna(value):
        return None
    return value


def frame_row_payload(row: dict[str, Any]) -> dict[str, Any]:
    return {COLUMN_FIELDS[column]: _clean_value(value) for column, value in row.items() if column in COLUMN_FIELDS}


def frame_to_transactions(frame: pd.DataFrame) -> list[Transaction]:
    """Convert a validated frame into transactions; row numbers in errors match the spreadsheet."""
    transactions: list[Transaction] = []
    for position, row in enumerate(normalize_columns(frame).to_dict(orient="records")):
        try:
            transactions.append(Transaction.from_dict(frame_row_payload(row)))
        except ValueError as error:
            raise ValueError(f"Row {position + 2}: {error}") from error
    return transactions
