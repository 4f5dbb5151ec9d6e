"""Asset resolution: symbol or address -> canonical address and decimals."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, localcontext
from typing import TYPE_CHECKING, Iterable

from web3 import Web3

from agent_vault.chains import AssetConfig, NetworkProfile
from agent_vault.errors import AssetLookupFailed, InvalidAmount, UnresolvableAsset
from agent_vault.integrations.abis import ERC20_ABI

if TYPE_CHECKING:
    from agent_vault.wallet.provider import ChainRPCClient

logger = logging.getLogger("agent_vault.assets")

NATIVE_ALIASES = frozenset({"ETH", "NATIVE"})


@dataclass(frozen=True)
class ResolvedAsset:
    symbol: str
    address: str
    decimals: int
    is_native: bool = False


def merge_assets(
    defaults: Iterable[AssetConfig], custom: Iterable[AssetConfig]
) -> list[AssetConfig]:
    """Merge network defaults with operator-added entries.

    Defaults keep their position and win when a custom entry has the same
    address.
    """
    merged = list(defaults)
    seen = {a.address.lower() for a in merged}
    for asset in custom:
        if asset.address.lower() in seen:
            continue
        seen.add(asset.address.lower())
        merged.append(asset)
    return merged


class AssetResolver:
    """Resolve human-given asset identifiers on one network."""

    def __init__(
        self,
        profile: NetworkProfile,
        assets: Iterable[AssetConfig],
        rpc: ChainRPCClient | None = None,
    ) -> None:
        self.profile = profile
        self.assets = list(assets)
        self._rpc = rpc

    def is_native_alias(self, value: str) -> bool:
        token = value.strip().upper()
        return token in NATIVE_ALIASES or token == self.profile.native_symbol.upper()

    def lookup(self, value: str) -> ResolvedAsset | None:
        """Resolve from the alias and the merged table only (no I/O)."""
        token = value.strip()
        if self.is_native_alias(token):
            return ResolvedAsset(
                symbol=self.profile.native_symbol,
                address=Web3.to_checksum_address(self.profile.wrapped_native),
                decimals=18,
                is_native=True,
            )
        lowered = token.lower()
        for asset in self.assets:
            if asset.symbol.lower() == lowered or asset.address.lower() == lowered:
                return ResolvedAsset(
                    symbol=asset.symbol,
                    address=Web3.to_checksum_address(asset.address),
                    decimals=asset.decimals,
                )
        return None

    async def resolve(self, value: str) -> ResolvedAsset:
        """Resolve *value* to an asset.

        Resolution order:

        1. the native-asset alias maps to the wrapped-native token with 18
           decimals;
        2. a case-insensitive symbol or address match in the merged table;
        3. an unlisted but well-formed address has its ``decimals`` read
           on-chain and is labelled ``TOKEN``.

        Raises
        ------
        UnresolvableAsset
            If *value* is neither a known symbol nor a valid address.
        AssetLookupFailed
            If the on-chain ``decimals`` read fails.
        """
        found = self.lookup(value)
        if found is not None:
            return found

        token = value.strip()
        if not Web3.is_address(token):
            raise UnresolvableAsset(value)
        if self._rpc is None:
            raise AssetLookupFailed(f"No RPC client available to read decimals of {token}")

        address = Web3.to_checksum_address(token)
        try:
            decimals = await self._rpc.call(address, ERC20_ABI, "decimals")
        except Exception as exc:
            raise AssetLookupFailed(
                f"Could not read decimals for {address} on {self.profile.name}: {exc}"
            ) from exc
        logger.debug(f"Resolved unlisted token {address} with {decimals} decimals")
        return ResolvedAsset(symbol="TOKEN", address=address, decimals=int(decimals))


def parse_amount(amount: str | Decimal | int) -> Decimal:
    """Parse a human amount; ``InvalidAmount`` unless finite and non-negative."""
    try:
        value = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError):
        raise InvalidAmount(f"Invalid amount: {amount!r}") from None
    if not value.is_finite() or value < 0:
        raise InvalidAmount(f"Invalid amount: {amount!r}")
    return value


def to_base_units(amount: str | Decimal | int, decimals: int) -> int:
    """Convert a human amount (``"1.5"``) into integer base units.

    Raises ``InvalidAmount`` for non-numeric, negative or over-precise input.
    """
    value = parse_amount(amount)
    with localcontext() as ctx:
        ctx.prec = 100
        scaled = value.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise InvalidAmount(
            f"Amount {amount} has more than {decimals} decimal places"
        )
    return int(scaled)


def format_units(raw: int, decimals: int) -> str:
    """Format integer base units as a human-readable decimal string."""
    with localcontext() as ctx:
        ctx.prec = 100
        value = Decimal(int(raw)).scaleb(-decimals)
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"
