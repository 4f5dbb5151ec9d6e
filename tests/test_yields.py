"""DefiLlama yield summaries."""

from __future__ import annotations

import httpx

from agent_vault.integrations.yields import YieldService

POOLS = {
    "data": [
        {"chain": "Base", "project": "aave-v3", "symbol": "USDC", "apy": 4.2, "tvlUsd": 12_500_000},
        {"chain": "Base", "project": "aave-v3", "symbol": "USDC", "apy": 3.9, "tvlUsd": 1_000_000},
        {"chain": "Base", "project": "moonwell", "symbol": "WETH", "apy": 2.5, "tvlUsd": 3_000_000},
        {"chain": "Base", "project": "spam", "symbol": "PEPE", "apy": 900.0, "tvlUsd": 1_000},
        {"chain": "Ethereum", "project": "lido", "symbol": "USDC", "apy": 50.0, "tvlUsd": 9e9},
    ]
}


def _service(handler, top_n: int = 10) -> YieldService:
    return YieldService(top_n=top_n, transport=httpx.MockTransport(handler))


async def test_summary_filters_and_sorts():
    service = _service(lambda request: httpx.Response(200, json=POOLS))

    text = await service.get_summary("base", ["USDC", "WETH"])

    lines = text.splitlines()
    assert lines[0] == "Top Yield Opportunities on base:"
    assert lines[2] == "- USDC @ aave-v3: 4.20% APY (TVL: $12.5M)"
    assert lines[3] == "- WETH @ moonwell: 2.50% APY (TVL: $3.0M)"
    assert "PEPE" not in text
    assert "lido" not in text
    assert text.count("aave-v3") == 1
    assert lines[-1] == "Source: DefiLlama"


async def test_top_n_limit():
    service = _service(lambda request: httpx.Response(200, json=POOLS), top_n=1)
    text = await service.get_summary("Base", ["USDC", "WETH"])
    assert "moonwell" not in text


async def test_no_matches():
    service = _service(lambda request: httpx.Response(200, json={"data": []}))
    text = await service.get_summary("Base", ["USDC"])
    assert text.startswith("No high-yield pools found for USDC on Base")


async def test_failure_is_reported():
    service = _service(lambda request: httpx.Response(503))
    assert (await service.get_summary("Base", ["USDC"])) == "Failed to fetch yield data: HTTP 503"
