"""Native and token balances of a vault."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from web3 import Web3

from agent_vault.assets import format_units
from agent_vault.chains import AssetConfig
from agent_vault.integrations.abis import ERC20_ABI
from agent_vault.wallet.provider import ChainRPCClient

logger = logging.getLogger("agent_vault.core.balances")


@dataclass
class TokenBalance:
    symbol: str
    address: str
    raw: int
    decimals: int

    @property
    def formatted(self) -> str:
        return format_units(self.raw, self.decimals)


@dataclass
class VaultBalances:
    address: str
    native_symbol: str
    native_wei: int
    tokens: list[TokenBalance] = field(default_factory=list)

    @property
    def native(self) -> str:
        return format_units(self.native_wei, 18)

    def summary(self) -> str:
        """One line per non-zero holding, native asset first."""
        lines = [f"{self.native_symbol}: {self.native}"]
        for token in self.tokens:
            if token.raw > 0:
                lines.append(f"{token.symbol}: {token.formatted}")
        return "\n".join(lines)


async def fetch_balances(
    rpc: ChainRPCClient,
    address: str,
    assets: list[AssetConfig],
    native_symbol: str,
) -> VaultBalances:
    """Read the native balance and every listed asset balance of *address*.

    A failed token read is logged and reported as zero.
    """
    address = Web3.to_checksum_address(address)
    native_wei = await rpc.get_balance(address)
    tokens: list[TokenBalance] = []
    for asset in assets:
        try:
            raw = int(await rpc.call(asset.address, ERC20_ABI, "balanceOf", address))
        except Exception as e:
            logger.warning(f"Failed to read {asset.symbol} balance of {address}: {e}")
            raw = 0
        tokens.append(
            TokenBalance(symbol=asset.symbol, address=asset.address, raw=raw, decimals=asset.decimals)
        )
    return VaultBalances(
        address=address, native_symbol=native_symbol, native_wei=native_wei, tokens=tokens
    )
