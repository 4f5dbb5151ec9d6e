"""Plain token calls: transfers and wrapped-native deposit / withdraw."""

from __future__ import annotations

from web3 import Web3

from agent_vault.integrations.abis import WETH_ABI, encode_call, encode_transfer
from agent_vault.vault.sdk import VaultCall


def native_transfer_call(to: str, value: int) -> VaultCall:
    return VaultCall(to=Web3.to_checksum_address(to), value=value, data="0x")


def token_transfer_call(token: str, to: str, amount: int) -> VaultCall:
    return VaultCall(to=Web3.to_checksum_address(token), data=encode_transfer(to, amount))


def wrap_call(wrapped_native: str, amount: int) -> VaultCall:
    """Deposit *amount* of the native asset into the wrapped-native contract."""
    return VaultCall(
        to=Web3.to_checksum_address(wrapped_native),
        value=amount,
        data=encode_call(WETH_ABI, "deposit"),
    )


def unwrap_call(wrapped_native: str, amount: int) -> VaultCall:
    return VaultCall(
        to=Web3.to_checksum_address(wrapped_native),
        data=encode_call(WETH_ABI, "withdraw", [amount]),
    )
