"""Async Web3 client for one EVM-compatible network."""

from __future__ import annotations

import logging
from typing import Any

from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3, Web3
from web3.exceptions import TimeExhausted
from web3.middleware import ExtraDataToPOAMiddleware

from agent_vault.chains import NetworkProfile
from agent_vault.errors import ExecutionReverted, RemoteFault

logger = logging.getLogger("agent_vault.wallet.provider")


class ChainRPCClient:
    """Read/write/wait primitives against a single network's RPC endpoint.

    Injects POA middleware for non-mainnet networks.
    """

    def __init__(
        self,
        profile: NetworkProfile,
        timeout_seconds: float = 30.0,
        receipt_timeout_seconds: float = 180.0,
        w3: AsyncWeb3 | None = None,
    ) -> None:
        self.profile = profile
        self.receipt_timeout_seconds = receipt_timeout_seconds
        if w3 is None:
            w3 = AsyncWeb3(
                AsyncWeb3.AsyncHTTPProvider(
                    profile.rpc_url, request_kwargs={"timeout": timeout_seconds}
                )
            )
            if profile.network_id != 1:
                w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
        self.w3 = w3

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_balance(self, address: str) -> int:
        """Native balance in wei."""
        return await self.w3.eth.get_balance(Web3.to_checksum_address(address))

    async def get_code(self, address: str) -> bytes:
        return bytes(await self.w3.eth.get_code(Web3.to_checksum_address(address)))

    async def is_contract(self, address: str) -> bool:
        return len(await self.get_code(address)) > 0

    async def call(self, address: str, abi: list[dict], fn_name: str, *args: Any) -> Any:
        """Read-only contract call (``eth_call``)."""
        contract = self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)
        return await getattr(contract.functions, fn_name)(*args).call()

    async def get_gas_price(self) -> int:
        return await self.w3.eth.gas_price

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def send_transaction(
        self,
        account: LocalAccount,
        to: str,
        value: int = 0,
        data: str = "0x",
    ) -> str:
        """Build, sign, and send a transaction from *account*.

        Uses EIP-1559 fee parameters with a legacy gas price fallback.

        Returns the transaction hash as a ``0x`` hex string.
        """
        tx: dict = {
            "from": account.address,
            "to": Web3.to_checksum_address(to),
            "value": int(value),
            "data": data,
            "nonce": await self.w3.eth.get_transaction_count(account.address, "pending"),
            "chainId": self.profile.network_id,
        }

        latest = await self.w3.eth.get_block("latest")
        base_fee = latest.get("baseFeePerGas")
        if base_fee is not None:
            max_priority = Web3.to_wei(1.5, "gwei")
            tx["maxFeePerGas"] = base_fee * 2 + max_priority
            tx["maxPriorityFeePerGas"] = max_priority
        else:
            tx["gasPrice"] = await self.get_gas_price()
        tx["gas"] = await self.w3.eth.estimate_gas(tx)

        signed = account.sign_transaction(tx)
        tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
        hex_hash = Web3.to_hex(tx_hash)
        logger.info(f"Sent transaction {hex_hash} on {self.profile.name}")
        return hex_hash

    async def wait_for_receipt(self, tx_hash: str) -> dict:
        """Wait for *tx_hash* to be mined.

        Raises ``ExecutionReverted`` if the receipt reports failure and
        ``RemoteFault`` if it does not arrive within the receipt timeout.
        """
        try:
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.receipt_timeout_seconds
            )
        except TimeExhausted as exc:
            raise RemoteFault(
                f"Transaction {tx_hash} not mined after {self.receipt_timeout_seconds}s"
            ) from exc
        if receipt.get("status") == 0:
            raise ExecutionReverted(f"Transaction {tx_hash} reverted", tx_hash=tx_hash)
        return dict(receipt)
