"""Stock / ETF / bond classification."""

from __future__ import annotations

import re
from dataclasses import dataclass

from folio_server.portfolio.models import AssetType


@dataclass(frozen=True)
class EtfInfo:
    ticker: str
    name: str
    category: str


KNOWN_ETFS: dict[str, EtfInfo] = {
    item.ticker: item
    for item in (
        EtfInfo("SPY", "SPDR S&P 500 ETF Trust", "Large Cap Blend"),
        EtfInfo("VOO", "Vanguard S&P 500 ETF", "Large Cap Blend"),
        EtfInfo("VTI", "Vanguard Total Stock Market ETF", "Total Stock Market"),
        EtfInfo("QQQ", "Invesco QQQ Trust", "Technology"),
        EtfInfo("IWM", "iShares Russell 2000 ETF", "Small Cap"),
        EtfInfo("VEA", "Vanguard FTSE Developed Markets ETF", "International"),
        EtfInfo("VWO", "Vanguard Emerging Markets Stock Index Fund", "Emerging Markets"),
        EtfInfo("JEPI", "JPMorgan Equity Premium Income ETF", "Dividend/Income"),
        EtfInfo("JEPQ", "JPMorgan Nasdaq Equity Premium Income ETF", "Dividend/Income"),
        EtfInfo("SCHD", "Schwab US Dividend Equity ETF", "Dividend"),
        EtfInfo("VYM", "Vanguard High Dividend Yield ETF", "Dividend"),
        EtfInfo("SPHD", "Invesco S&P 500 High Dividend Low Volatility ETF", "Dividend"),
        EtfInfo("XLK", "Technology Select Sector SPDR Fund", "Technology"),
        EtfInfo("XLF", "Financial Select Sector SPDR Fund", "Financial"),
        EtfInfo("XLE", "Energy Select Sector SPDR Fund", "Energy"),
        EtfInfo("XLV", "Health Care Select Sector SPDR Fund", "Healthcare"),
        EtfInfo("XLI", "Industrial Select Sector SPDR Fund", "Industrial"),
        EtfInfo("BND", "Vanguard Total Bond Market ETF", "Aggregate Bond"),
        EtfInfo("AGG", "iShares Core US Aggregate Bond ETF", "Aggregate Bond"),
        EtfInfo("TLT", "iShares 20+ Year Treasury Bond ETF", "Treasury"),
        EtfInfo("IEF", "iShares 7-10 Year Treasury Bond ETF", "Treasury"),
        EtfInfo("LQD", "iShares iBoxx $ Investment Grade Corporate Bond ETF", "Corporate Bond"),
        EtfInfo("EFA", "iShares MSCI EAFE ETF", "International Developed"),
        EtfInfo("EEM", "iShares MSCI Emerging Markets ETF", "Emerging Markets"),
        EtfInfo("FXI", "iShares China Large-Cap ETF", "China"),
        EtfInfo("GLD", "SPDR Gold Shares", "Gold"),
        EtfInfo("SLV", "iShares Silver Trust", "Silver"),
        EtfInfo("USO", "United States Oil Fund", "Oil"),
        EtfInfo("VNQ", "Vanguard Real Estate ETF", "Real Estate"),
        EtfInfo("IYR", "iShares US Real Estate ETF", "Real Estate"),
    )
}

ETF_NAME_PATTERNS = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"ETF$",
        r"Exchange.Traded.Fund",
        r"SPDR",
        r"iShares",
        r"Vanguard.*ETF",
        r"Invesco.*ETF",
        r"Schwab.*ETF",
        r"Select.*Sector",
        r"Trust$",
        r"Fund.*ETF",
    )
)
BOND_KEYWORDS = ("BOND", "TREASURY", "FIXED INCOME")
INDEX_KEYWORDS = ("INDEX", "SECTOR", "FACTOR")
FUND_KEYWORDS = ("FUND", "TRUST", "ETF")
ETF_HEAVY_EXCHANGES = ("ARCA", "BATS")
_SHORT_TICKER = re.compile(r"^[A-Z]{2,4}$")


def _matches_etf_name(name: str) -> bool:
    return any(pattern.search(name) for pattern in ETF_NAME_PATTERNS)


def detect_asset_type(
    ticker: str,
    company_name: str | None = None,
    is_etf: bool | None = None,
    exchange: str | None = None,
) -> AssetType:
    """Classify a ticker, most reliable signal first: provider flag, known list, name, exchange."""
    upper = ticker.strip().upper()
    if is_etf is True:
        return "etfs"
    if upper in KNOWN_ETFS:
        return "etfs"
    if company_name:
        name_upper = company_name.upper()
        if _matches_etf_name(company_name):
            return "etfs"
        if any(keyword in name_upper for keyword in BOND_KEYWORDS):
            return "bonds"
        if any(keyword in name_upper for keyword in INDEX_KEYWORDS):
            return "etfs"
        if _SHORT_TICKER.match(upper) and any(keyword in name_upper for keyword in FUND_KEYWORDS):
            return "etfs"
    if exchange and company_name and any(code in exchange.upper() for code in ETF_HEAVY_EXCHANGES):
        if _matches_etf_name(company_name):
            return "etfs"
    return "stocks"


def get_etf_info(ticker: str) -> EtfInfo | None:
    return KNOWN_ETFS.get(ticker.strip().upper())


def asset_category(ticker: str, asset_type: AssetType) -> str:
    if asset_type == "etfs":
        info = get_etf_info(ticker)
        return info.category if info else "ETF"
    if asset_type == "bonds":
        return "Fixed Income"
    return "Equity"
