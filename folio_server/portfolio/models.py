"""Typed portfolio models."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Any, Literal, get_args

TransactionType = Literal[
    "buy",
    "sell",
    "dividend",
    "split",
    "spinoff",
    "merger",
    "rights",
    "return_of_capital",
    "fee",
    "interest",
    "transfer",
]
AccountType = Literal[
    "taxable",
    "401k",
    "traditional_ira",
    "roth_ira",
    "hsa",
    "sep_ira",
    "simple_ira",
    "529",
    "cash_money_market",
    "trust",
    "custodial",
]
AssetType = Literal["stocks", "etfs", "bonds"]

TRANSACTION_TYPES: frozenset[str] = frozenset(get_args(TransactionType))
ACCOUNT_TYPES: frozenset[str] = frozenset(get_args(AccountType))
TAX_DEFERRED_ACCOUNTS = frozenset({"401k", "traditional_ira", "sep_ira", "simple_ira"})
TAX_FREE_ACCOUNTS = frozenset({"roth_ira", "hsa"})
DEFAULT_ACCOUNT: AccountType = "taxable"

HoldingKey = tuple[str, str]

FIELD_ALIASES = {
    "accountType": "account_type",
    "splitRatio": "split_ratio",
    "newTicker": "new_ticker",
    "toAccountType": "to_account_type",
    "symbol": "ticker",
}


def parse_date(value: object) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if hasattr(value, "to_pydatetime"):
        return value.to_pydatetime().date()  # type: ignore[union-attr]
    text = str(value or "").strip()
    if not text:
        raise ValueError("Transaction date is required.")
    try:
        return date.fromisoformat(text[:10])
    except ValueError as error:
        raise ValueError(f"Invalid transaction date: {text!r}. Use YYYY-MM-DD.") from error


def _optional_float(value: object, name: str) -> float | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"{name} must be numeric.")
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as error:
        raise ValueError(f"{name} must be numeric, received {value!r}.") from error
    if number != number:
        return None
    return number


def _optional_text(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() == "nan":
        return None
    return text


@dataclass(frozen=True)
class Transaction:
    ticker: str
    type: TransactionType
    date: date
    account_type: str = DEFAULT_ACCOUNT
    shares: float | None = None
    price: float | None = None
    amount: float = 0.0
    fees: float = 0.0
    notes: str | None = None
    split_ratio: str | None = None
    new_ticker: str | None = None
    to_account_type: str | None = None
    id: str | None = None

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Transaction:
        data = {FIELD_ALIASES.get(key, key): value for key, value in payload.items()}
        ticker = _optional_text(data.get("ticker"))
        if not ticker:
            raise ValueError("Transaction ticker is required.")
        tx_type = str(data.get("type") or "").strip().lower()
        if tx_type not in TRANSACTION_TYPES:
            raise ValueError(f"Unknown transaction type: {tx_type or '<empty>'}.")
        account = (_optional_text(data.get("account_type")) or DEFAULT_ACCOUNT).lower()
        if account not in ACCOUNT_TYPES:
            raise ValueError(f"Unknown account type: {account}.")
        to_account = _optional_text(data.get("to_account_type"))
        if to_account is not None:
            to_account = to_account.lower()
            if to_account not in ACCOUNT_TYPES:
                raise ValueError(f"Unknown target account type: {to_account}.")
        new_ticker = _optional_text(data.get("new_ticker"))
        return cls(
            ticker=ticker.upper(),
            type=tx_type,  # type: ignore[arg-type]
            date=parse_date(data.get("date")),
            account_type=account,
            shares=_optional_float(data.get("shares"), "shares"),
            price=_optional_float(data.get("price"), "price"),
            amount=_optional_float(data.get("amount"), "amount") or 0.0,
            fees=_optional_float(data.get("fees"), "fees") or 0.0,
            notes=_optional_text(data.get("notes")),
            split_ratio=_optional_text(data.get("split_ratio")),
            new_ticker=new_ticker.upper() if new_ticker else None,
            to_account_type=to_account,
            id=_optional_text(data.get("id")),
        )

    @property
    def cash_value(self) -> float:
        """Explicit amount, or shares times price when no amount was recorded."""
        if self.amount > 0:
            return self.amount
        return (self.shares or 0.0) * (self.price or 0.0)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["date"] = self.date.isoformat()
        return payload


@dataclass
class Holding:
    ticker: str
    account_type: str = DEFAULT_ACCOUNT
    shares: float = 0.0
    total_cost: float = 0.0
    company: str | None = None
    asset_type: AssetType = "stocks"
    sector: str = "Unknown"
    industry: str | None = None
    description: str | None = None
    current_price: float | None = None
    previous_close: float | None = None
    year_high: float | None = None
    year_low: float | None = None
    market_cap: float | None = None
    shares_outstanding: float | None = None
    beta: float | None = None
    pe: float | None = None
    pb: float | None = None
    peg: float | None = None
    debt_to_equity: float | None = None
    current_ratio: float | None = None
    quick_ratio: float | None = None
    roe: float | None = None
    roa: float | None = None
    gross_margin: float | None = None
    net_margin: float | None = None
    operating_margin: float | None = None
    asset_turnover: float | None = None
    revenue_growth: float | None = None
    dividend: float | None = None
    dividend_yield: float | None = None
    fcf_1yr: float | None = None
    fcf_2yr: float | None = None
    fcf_3yr: float | None = None
    fcf_10yr: float | None = None
    ev_fcf: float | None = None
    sector_median_ev_fcf: float | None = None
    intrinsic_value: float | None = None
    last_price_update: float | None = None
    tags: list[str] = field(default_factory=list)

    @property
    def key(self) -> HoldingKey:
        return (self.ticker, self.account_type)

    @property
    def cost_basis(self) -> float:
        """Weighted-average cost per share."""
        return self.total_cost / self.shares if self.shares > 0 else 0.0

    @property
    def price(self) -> float:
        """Last known price, falling back to cost basis before enrichment."""
        return self.current_price if self.current_price is not None else self.cost_basis

    @property
    def market_value(self) -> float:
        return self.shares * self.price

    @property
    def gain_loss(self) -> float:
        return self.market_value - self.total_cost

    @property
    def gain_loss_percent(self) -> float:
        return (self.gain_loss / self.total_cost) * 100.0 if self.total_cost > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["cost_basis"] = self.cost_basis
        payload["market_value"] = self.market_value
        payload["gain_loss"] = self.gain_loss
        payload["gain_loss_percent"] = self.gain_loss_percent
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Holding:
        known = {name for name in cls.__dataclass_fields__}
        data = {key: value for key, value in payload.items() if key in known}
        if "total_cost" not in data and "cost_basis" in payload and "shares" in payload:
            data["total_cost"] = float(payload["cost_basis"]) * float(payload["shares"])
        if not data.get("ticker"):
            raise ValueError("Holding ticker is required.")
        data["ticker"] = str(data["ticker"]).strip().upper()
        return cls(**data)


@dataclass
class ValidationIssue:
    field: str
    message: str
    row: int | None = None
    code: str = "invalid_value"
