"""Aave V3 lending builder."""

from __future__ import annotations

from typing import Optional

from web3 import Web3

from agent_vault.chains import LendingConfig, NetworkProfile
from agent_vault.errors import IntegrationUnavailable
from agent_vault.integrations.abis import (
    AAVE_FAUCET_ABI,
    AAVE_POOL_ABI,
    MAX_UINT256,
    encode_approve,
    encode_call,
)
from agent_vault.vault.sdk import VaultCall


class LendingBuilder:
    """Supply / withdraw calls for a network's Aave V3 pool."""

    def __init__(self, profile: NetworkProfile) -> None:
        if profile.lending is None:
            raise IntegrationUnavailable("Lending", profile.name)
        self.profile = profile
        self.config: LendingConfig = profile.lending

    @property
    def pool(self) -> str:
        return Web3.to_checksum_address(self.config.pool)

    def supply_calls(self, asset: str, amount: int, on_behalf_of: str) -> list[VaultCall]:
        """``[approve(pool, amount), supply(asset, amount, on_behalf_of, 0)]``."""
        asset = Web3.to_checksum_address(asset)
        return [
            VaultCall(to=asset, data=encode_approve(self.pool, amount)),
            VaultCall(
                to=self.pool,
                data=encode_call(
                    AAVE_POOL_ABI,
                    "supply",
                    [asset, amount, Web3.to_checksum_address(on_behalf_of), 0],
                ),
            ),
        ]

    def withdraw_call(self, asset: str, amount: Optional[int], to: str) -> VaultCall:
        """Withdraw *amount*; ``None`` withdraws the whole position."""
        return VaultCall(
            to=self.pool,
            data=encode_call(
                AAVE_POOL_ABI,
                "withdraw",
                [
                    Web3.to_checksum_address(asset),
                    MAX_UINT256 if amount is None else amount,
                    Web3.to_checksum_address(to),
                ],
            ),
        )

    def faucet_mint(self, token: str, to: str, amount: int) -> tuple[str, str]:
        """``(faucet_address, calldata)`` minting testnet *token* to *to*."""
        if not self.config.faucet:
            raise IntegrationUnavailable("The lending faucet", self.profile.name)
        data = encode_call(
            AAVE_FAUCET_ABI,
            "mint",
            [Web3.to_checksum_address(token), Web3.to_checksum_address(to), amount],
        )
        return Web3.to_checksum_address(self.config.faucet), data
