"""Uniswap V3 swap builder: pool lookup, quotes and swap calldata."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from decimal import Decimal
from fractions import Fraction
from typing import TYPE_CHECKING, Optional

from web3 import Web3

from agent_vault.assets import ResolvedAsset
from agent_vault.chains import NetworkProfile, SwapConfig
from agent_vault.errors import (
    IntegrationUnavailable,
    InvalidAmount,
    NoPoolExists,
    QuoteFailed,
)
from agent_vault.integrations.abis import (
    QUOTER_ABI,
    SWAP_ROUTER_ABI,
    UNISWAP_FACTORY_ABI,
    ZERO_ADDRESS,
    encode_approve,
    encode_call,
)
from agent_vault.vault.sdk import VaultCall

if TYPE_CHECKING:
    from agent_vault.wallet.provider import ChainRPCClient

logger = logging.getLogger("agent_vault.integrations.uniswap")

def slippage_fraction(percent: float | Decimal | str) -> Fraction:
    """``0.5`` (percent) -> ``Fraction(1, 200)``, kept exact.

    Raises ``InvalidAmount`` unless ``0 <= percent < 100``.
    """
    try:
        fraction = Fraction(str(percent).strip())
    except (ValueError, ZeroDivisionError):
        raise InvalidAmount(f"Invalid slippage: {percent!r}") from None
    if not 0 <= fraction < 100:
        raise InvalidAmount(f"Slippage must be at least 0% and below 100%, got {percent}%")
    return fraction / 100


def apply_slippage(expected_out: int, slippage: Fraction) -> int:
    """Minimum acceptable output: ``expected_out * (1 - slippage)``, rounded down."""
    return math.floor(expected_out * (1 - slippage))


@dataclass(frozen=True)
class SwapQuote:
    asset_in: ResolvedAsset
    asset_out: ResolvedAsset
    amount_in: int
    expected_out: int
    min_out: int
    fee: int
    pool: str
    gas_estimate: int = 0


class SwapBuilder:
    """Builds swap calls against a network's Uniswap V3 deployment."""

    def __init__(self, profile: NetworkProfile, rpc: ChainRPCClient) -> None:
        if profile.swap is None:
            raise IntegrationUnavailable("Swaps", profile.name)
        self.profile = profile
        self.config: SwapConfig = profile.swap
        self.rpc = rpc

    async def get_pool(self, token_a: str, token_b: str, fee: int) -> Optional[str]:
        """Pool address for the pair, or ``None`` if none exists."""
        pool = await self.rpc.call(
            self.config.factory,
            UNISWAP_FACTORY_ABI,
            "getPool",
            Web3.to_checksum_address(token_a),
            Web3.to_checksum_address(token_b),
            fee,
        )
        if not pool or pool.lower() == ZERO_ADDRESS:
            return None
        return pool

    async def quote(
        self,
        asset_in: ResolvedAsset,
        asset_out: ResolvedAsset,
        amount_in: int,
        slippage: Fraction,
        fee: Optional[int] = None,
    ) -> SwapQuote:
        """Quote an exact-input single-pool swap.

        *slippage* is a fraction of the expected output (``Fraction(1, 200)``
        for 0.5%).  Raises ``NoPoolExists`` when the
        factory has no pool for the pair at *fee*.
        """
        fee = fee or self.config.default_pool_fee
        pool = await self.get_pool(asset_in.address, asset_out.address, fee)
        if pool is None:
            raise NoPoolExists(asset_in.symbol, asset_out.symbol, fee)

        params = (
            Web3.to_checksum_address(asset_in.address),
            Web3.to_checksum_address(asset_out.address),
            amount_in,
            fee,
            0,
        )
        try:
            result = await self.rpc.call(
                self.config.quoter, QUOTER_ABI, "quoteExactInputSingle", params
            )
        except Exception as exc:
            raise QuoteFailed(
                f"Quote for {asset_in.symbol}->{asset_out.symbol} failed: {exc}"
            ) from exc

        expected_out = int(result[0])
        gas_estimate = int(result[3]) if len(result) > 3 else 0
        min_out = apply_slippage(expected_out, slippage)
        logger.debug(
            f"Quote {amount_in} {asset_in.symbol} -> {expected_out} {asset_out.symbol} "
            f"(min {min_out}, fee {fee})"
        )
        return SwapQuote(
            asset_in=asset_in,
            asset_out=asset_out,
            amount_in=amount_in,
            expected_out=expected_out,
            min_out=min_out,
            fee=fee,
            pool=pool,
            gas_estimate=gas_estimate,
        )

    def build_swap_calls(self, quote: SwapQuote, recipient: str) -> list[VaultCall]:
        """Calls that execute *quote* for *recipient*.

        A native-asset input pays the router directly (one call); a token
        input is ``[approve(router), exactInputSingle]``.
        """
        router = Web3.to_checksum_address(self.config.router)
        swap_data = encode_call(
            SWAP_ROUTER_ABI,
            "exactInputSingle",
            [
                (
                    Web3.to_checksum_address(quote.asset_in.address),
                    Web3.to_checksum_address(quote.asset_out.address),
                    quote.fee,
                    Web3.to_checksum_address(recipient),
                    quote.amount_in,
                    quote.min_out,
                    0,
                )
            ],
        )
        if quote.asset_in.is_native:
            return [VaultCall(to=router, value=quote.amount_in, data=swap_data)]
        return [
            VaultCall(
                to=Web3.to_checksum_address(quote.asset_in.address),
                data=encode_approve(router, quote.amount_in),
            ),
            VaultCall(to=router, data=swap_data),
        ]
