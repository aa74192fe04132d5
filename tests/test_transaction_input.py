import pandas as pd
import pytest

from folio_server.portfolio.data_loader import frame_to_transactions, load_transactions_file, normalize_columns
from folio_server.portfolio.validation import (
    validate_record,
    validate_transaction_frame,
    validate_transaction_payloads,
)

CSV_TEXT = """Ticker,Type,Date,Account Type,Shares,Price,Amount,Fees,Split_Ratio
AAPL,buy,2024-01-02,taxable,10,150,,1,
AAPL,split,2024-06-10,,,,,,4:1
KO,dividend,2024-04-01,,,,4.6,,
"""


def test_csv_load_normalizes_headers_and_blank_cells(tmp_path) -> None:
    path = tmp_path / "ledger.csv"
    path.write_text(CSV_TEXT)
    frame = load_transactions_file(str(path))
    assert "Account_Type" in frame.columns
    assert validate_transaction_frame(frame) == []
    transactions = frame_to_transactions(frame)
    assert [tx.type for tx in transactions] == ["buy", "split", "dividend"]
    assert transactions[0].fees == 1.0
    assert transactions[1].split_ratio == "4:1"
    assert transactions[1].account_type == "taxable"
    assert transactions[2].amount == pytest.approx(4.6)


def test_xlsx_load(tmp_path) -> None:
    path = tmp_path / "ledger.xlsx"
    pd.DataFrame(
        [{"Ticker": "MSFT", "Type": "buy", "Date": "2024-01-02", "Shares": 3, "Price": 400}]
    ).to_excel(path, index=False, engine="openpyxl")
    transactions = frame_to_transactions(load_transactions_file(str(path)))
    assert transactions[0].ticker == "MSFT"
    assert transactions[0].shares == 3


def test_bad_paths_are_rejected(tmp_path) -> None:
    with pytest.raises(ValueError, match="csv"):
        load_transactions_file(str(tmp_path / "ledger.txt"))
    with pytest.raises(ValueError, match="not found"):
        load_transactions_file(str(tmp_path / "missing.csv"))


def test_frame_validation_reports_spreadsheet_rows() -> None:
    frame = pd.DataFrame(
        [
            {"Ticker": "AAPL", "Type": "buy", "Date": "2024-01-02", "Shares": 1},
            {"Ticker": "AAPL", "Type": "gift", "Date": "2024-13-40", "Shares": 1},
        ]
    )
    issues = validate_transaction_frame(frame)
    assert {(issue.row, issue.field, issue.code) for issue in issues} == {
        (3, "Type", "invalid_type"),
        (3, "Date", "invalid_date"),
    }


def test_missing_columns_and_empty_frames() -> None:
    issues = validate_transaction_frame(pd.DataFrame([{"Ticker": "AAPL"}]))
    assert sorted(issue.field for issue in issues) == ["Date", "Type"]
    empty = validate_transaction_frame(pd.DataFrame(columns=["Ticker", "Type", "Date"]))
    assert empty[0].code == "empty_file"
    assert "Date" in normalize_columns(pd.DataFrame(columns=["date"])).columns


def test_record_rules() -> None:
    def codes(record) -> set[str]:
        return {issue.code for issue in validate_record(record, row=1)}

    assert codes({"ticker": "AAPL", "type": "sell", "date": "2024-01-02", "shares": 0, "price": 10}) == {"invalid_shares"}
    assert codes({"ticker": "AAPL", "type": "sell", "date": "2024-01-02", "shares": 2}) == {"missing_proceeds"}
    assert codes({"ticker": "GE", "type": "spinoff", "date": "2024-04-02", "shares": 3, "new_ticker": "GE HEALTH"}) == {"invalid_symbol"}
    assert codes({"ticker": "AAPL", "type": "split", "date": "2024-01-02", "split_ratio": "abc"}) == {"invalid_split_ratio"}
    assert codes({"ticker": "AAPL", "type": "spinoff", "date": "2024-01-02", "shares": 1}) == {"missing_new_ticker"}
    assert codes({"ticker": "AAPL", "type": "merger", "date": "2024-01-02", "amount": 100}) == set()
    assert codes({"ticker": "AAPL", "type": "transfer", "date": "2024-01-02"}) == {"missing_target_account"}
    assert codes({"ticker": "AAPL", "type": "transfer", "date": "2024-01-02", "to_account_type": "taxable"}) == {"same_account"}
    assert codes({"ticker": "AAPL", "type": "buy", "date": "2024-01-02", "shares": 1, "fees": -2}) == {"invalid_fees"}
    assert codes({"ticker": "AAPL", "type": "buy", "date": "2024-01-02", "shares": 1, "account_type": "offshore"}) == {"invalid_account_type"}
    assert codes({"ticker": "", "type": "fee", "date": "2024-01-02"}) == {"invalid_symbol"}


def test_payload_validation_accepts_camel_case_and_counts_from_one() -> None:
    issues = validate_transaction_payloads(
        [
            {"symbol": "VTI", "type": "transfer", "date": "2024-01-02", "accountType": "taxable", "toAccountType": "roth_ira"},
            {"ticker": "VTI", "type": "buy", "date": "2024-01-02", "shares": "ten"},
            "not an object",
        ]
    )
    assert [(issue.row, issue.code) for issue in issues] == [
        (2, "invalid_number"),
        (2, "invalid_shares"),
        (3, "invalid_type"),
    ]
