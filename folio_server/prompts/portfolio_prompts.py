"""Portfolio prompt definitions."""

from __future__ import annotations

from mcp.server.fastmcp import FastMCP


def _build_portfolio_review_prompt(focus: str) -> str:
    topic = focus.strip() or "overall health"
    return (
        "You are a portfolio analyst reviewing a transaction-derived portfolio.\n"
        "Call analyze_portfolio with the user's transactions (or file_path) and then report on:\n"
        "1) Holdings and performance (gain/loss, day change, dividend income)\n"
        "2) Allocation by asset type, sector and account, with any rebalancing needs\n"
        "3) Risk: factor exposures, volatility, drawdown and VaR where history is available\n"
        "4) Tax: harvesting candidates, wash sale warnings and asset location\n"
        f"Give extra attention to: {topic}. Close with a short prioritized action list."
    )


def _build_valuation_review_prompt(ticker: str) -> str:
    symbol = ticker.strip().upper()
    if not symbol:
        raise ValueError("Missing required argument: ticker.")
    return (
        "You are an equity analyst.\n"
        f"Call dcf_valuation for {symbol} and explain:\n"
        "1) The assumptions used (growth, terminal growth, discount rate, horizon)\n"
        "2) Intrinsic value per share versus price and the margin of safety\n"
        "3) The bear/base/bull range and which sensitivities matter most\n"
        "4) How much confidence the result deserves and why."
    )


def register_portfolio_prompts(mcp: FastMCP) -> None:
    @mcp.prompt(
        name="portfolio_review",
        title="Portfolio Review Prompt",
        description="Structured review of a portfolio built from its transaction ledger.",
    )
    def portfolio_review(focus: str = "") -> str:
        return _build_portfolio_review_prompt(focus)

    @mcp.prompt(
        name="valuation_review",
        title="Valuation Review Prompt",
        description="Walk through a DCF valuation for one ticker.",
    )
    def valuation_review(ticker: str) -> str:
        return _build_valuation_review_prompt(ticker)
