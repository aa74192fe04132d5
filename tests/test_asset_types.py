from folio_server.portfolio.asset_types import asset_category, detect_asset_type, get_etf_info


def test_known_etf_and_provider_flag() -> None:
    assert detect_asset_type("spy") == "etfs"
    assert detect_asset_type("ABCD", is_etf=True) == "etfs"
    assert get_etf_info("TLT").category == "Treasury"


def test_name_based_detection() -> None:
    assert detect_asset_type("XYZQ", "Acme Momentum ETF") == "etfs"
    assert detect_asset_type("TBIL", "US Treasury Note 2030") == "bonds"
    assert detect_asset_type("AAPL", "Apple Inc.") == "stocks"
    assert detect_asset_type("MSFT") == "stocks"


def test_categories() -> None:
    assert asset_category("BND", "etfs") == "Aggregate Bond"
    assert asset_category("ZZZ", "etfs") == "ETF"
    assert asset_category("TBIL", "bonds") == "Fixed Income"
    assert asset_category("AAPL", "stocks") == "Equity"
