import asyncio
from dataclasses import replace

from starlette.testclient import TestClient

from folio_server.config.settings import Settings
from folio_server.main import build_server

ROWS = [{"ticker": "AAPL", "type": "buy", "date": "2024-01-02", "shares": 1, "price": 150}]


def test_server_registers_tools_prompts_and_resources() -> None:
    mcp, services = build_server(Settings())
    tools = {tool.name for tool in asyncio.run(mcp.list_tools())}
    assert {"analyze_portfolio", "dcf_valuation", "get_quote", "server_health"} <= tools
    assert {prompt.name for prompt in asyncio.run(mcp.list_prompts())} == {"portfolio_review", "valuation_review"}
    assert services.market.configured_providers() == []


def test_guarded_tool_route() -> None:
    mcp, _ = build_server(replace(Settings(), default_requests_per_minute=2))
    client = TestClient(mcp.sse_app())

    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["service"] == "folio-valuation-server"

    ok = client.post("/tools/validate_transactions", json={"arguments": {"transactions": ROWS}}, headers={"x-client-id": "c1"})
    assert ok.status_code == 200
    assert ok.json() == {"ok": True, "message": "Transactions validated.", "rows": 1}

    missing = client.post("/tools/no_such_tool", json={"arguments": {}}, headers={"x-client-id": "c1"})
    assert missing.status_code == 404

    limited = client.post("/tools/validate_transactions", json={"arguments": {"transactions": ROWS}}, headers={"x-client-id": "c1"})
    assert limited.status_code == 429
    assert int(limited.headers["Retry-After"]) >= 1
