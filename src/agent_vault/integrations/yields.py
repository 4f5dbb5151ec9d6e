"""Yield opportunities from the DefiLlama pools index."""

from __future__ import annotations

import logging

import httpx

logger = logging.getLogger("agent_vault.integrations.yields")

DEFILLAMA_POOLS_URL = "https://yields.llama.fi/pools"


class YieldService:
    """Fetches and filters DefiLlama pools for a chain and a set of symbols."""

    def __init__(
        self,
        api_url: str = DEFILLAMA_POOLS_URL,
        timeout_seconds: float = 30.0,
        top_n: int = 10,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_url = api_url
        self.timeout_seconds = timeout_seconds
        self.top_n = top_n
        self._transport = transport

    async def get_summary(self, index_name: str, symbols: list[str]) -> str:
        """Human-readable summary of the top pools by APY.

        Failures are reported in the returned text rather than raised.
        """
        logger.info(f"Fetching yields for {index_name} ({', '.join(symbols)})")
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, transport=self._transport
            ) as client:
                resp = await client.get(self.api_url)
            if resp.status_code >= 400:
                return f"Failed to fetch yield data: HTTP {resp.status_code}"
            pools = resp.json().get("data", [])
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Yield index error: {e}")
            return f"Failed to fetch yield data: {e}"

        wanted = [s.lower() for s in symbols]
        matching = [
            p for p in pools
            if str(p.get("chain", "")).lower() == index_name.lower()
            and any(s in str(p.get("symbol", "")).lower() for s in wanted)
        ]
        matching.sort(key=lambda p: p.get("apy") or 0.0, reverse=True)

        seen: set[str] = set()
        top: list[dict] = []
        for pool in matching:
            key = f"{pool.get('project')}-{pool.get('symbol')}"
            if key in seen:
                continue
            seen.add(key)
            top.append(pool)
            if len(top) >= self.top_n:
                break

        if not top:
            return (
                f"No high-yield pools found for {', '.join(symbols)} "
                f"on {index_name} at this time."
            )

        lines = [f"Top Yield Opportunities on {index_name}:", ""]
        for pool in top:
            apy = pool.get("apy") or 0.0
            tvl = (pool.get("tvlUsd") or 0.0) / 1e6
            lines.append(
                f"- {pool.get('symbol')} @ {pool.get('project')}: "
                f"{apy:.2f}% APY (TVL: ${tvl:.1f}M)"
            )
        lines.append("")
        lines.append("Source: DefiLlama")
        return "\n".join(lines)
