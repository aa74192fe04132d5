"""Report export to CSV and JSON."""

from __future__ import annotations

import io
import json
from typing import Any, Mapping

import pandas as pd

EXPORT_FORMATS = ("csv", "json")

SUMMARY_ROWS = [
    ("Total Value", "total_value"),
    ("Total Cost", "total_cost"),
    ("Total Gain/Loss", "total_gain_loss"),
    ("Total Gain/Loss %", "total_gain_loss_percent"),
    ("Dividend Income", "dividend_income"),
    ("Dividend Yield %", "dividend_yield"),
    ("Day Change", "day_change"),
]
HOLDING_COLUMNS = {
    "ticker": "Ticker",
    "company": "Company",
    "account_type": "Account",
    "shares": "Shares",
    "cost_basis": "Cost Basis",
    "current_price": "Current Price",
    "market_value": "Current Value",
    "gain_loss": "Gain/Loss",
    "gain_loss_percent": "Gain/Loss %",
    "sector": "Sector",
    "asset_type": "Type",
}
TRANSACTION_COLUMNS = {
    "date": "Date",
    "ticker": "Ticker",
    "type": "Type",
    "account_type": "Account",
    "shares": "Shares",
    "price": "Price",
    "amount": "Amount",
    "fees": "Fees",
    "notes": "Notes",
}


def _section(buffer: io.StringIO, title: str, frame: pd.DataFrame) -> None:
    buffer.write(f"{title}\n")
    frame.to_csv(buffer, index=False, lineterminator="\n")
    buffer.write("\n")


def _table(rows: Any, columns: Mapping[str, str]) -> pd.DataFrame:
    frame = pd.DataFrame(list(rows or []))
    for column in columns:
        if column not in frame.columns:
            frame[column] = None
    if "gain_loss_percent" in frame.columns:
        frame["gain_loss_percent"] = pd.to_numeric(frame["gain_loss_percent"], errors="coerce").round(2)
    return frame[list(columns)].rename(columns=columns)


def report_to_csv(report: Mapping[str, Any]) -> str:
    summary = report.get("summary") or {}
    buffer = io.StringIO()
    _section(
        buffer,
        "Portfolio Summary",
        pd.DataFrame(
            [{"Metric": label, "Value": summary.get(key)} for label, key in SUMMARY_ROWS if key in summary],
            columns=["Metric", "Value"],
        ),
    )
    _section(buffer, "Holdings", _table(report.get("holdings"), HOLDING_COLUMNS))
    _section(buffer, "Transactions", _table(report.get("transactions"), TRANSACTION_COLUMNS))
    return buffer.getvalue().rstrip("\n") + "\n"


def export_report(report: Mapping[str, Any], format: str = "csv") -> str:
    """Render ``report`` (summary, holdings, transactions and any extra sections) as text."""
    normalized = format.strip().lower()
    if normalized == "csv":
        return report_to_csv(report)
    if normalized == "json":
        return json.dumps(report, indent=2, default=str)
    raise ValueError(f"Unsupported export format: {format}. Use one of {list(EXPORT_FORMATS)}.")
