import json

import pytest

from folio_server.portfolio.export import export_report, report_to_csv


def _report() -> dict:
    return {
        "summary": {"total_value": 1500.0, "total_cost": 1000.0, "total_gain_loss": 500.0},
        "holdings": [
            {"ticker": "AAPL", "account_type": "taxable", "shares": 10, "cost_basis": 100.0, "current_price": 150.0,
             "market_value": 1500.0, "gain_loss": 500.0, "gain_loss_percent": 50.0, "sector": "Technology", "asset_type": "stocks"}
        ],
        "transactions": [
            {"date": "2024-01-02", "ticker": "AAPL", "type": "buy", "account_type": "taxable", "shares": 10, "price": 100.0,
             "amount": 0.0, "fees": 0.0, "notes": None}
        ],
    }


def test_csv_has_three_sections() -> None:
    text = report_to_csv(_report())
    lines = text.splitlines()
    assert lines[0] == "Portfolio Summary"
    assert lines[1] == "Metric,Value"
    assert "Total Value,1500.0" in lines
    assert "Holdings" in lines
    assert "Transactions" in lines
    header = lines[lines.index("Holdings") + 1]
    assert header.startswith("Ticker,Company,Account,Shares")
    assert text.endswith("\n")


def test_json_export_and_unknown_format() -> None:
    assert json.loads(export_report(_report(), "JSON"))["summary"]["total_value"] == 1500.0
    with pytest.raises(ValueError, match="Unsupported export format"):
        export_report(_report(), "pdf")
