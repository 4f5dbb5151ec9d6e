"""Coordination service client (Safe Transaction Service REST API).

The coordination service stores proposed actions and the signatures owners
collect for them, keyed by action hash.  It is the source of truth for
confirmation counts until an action is executed.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field
from web3 import Web3

from agent_vault.errors import CoordinationServiceError
from agent_vault.integrations.abis import ZERO_ADDRESS
from agent_vault.vault.sdk import VaultAction

logger = logging.getLogger("agent_vault.vault.tx_service")

DEFAULT_ORIGIN = "agent-vault"


# ---------------------------------------------------------------------------
# Remote records
# ---------------------------------------------------------------------------


class RemoteConfirmation(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    owner: str
    signature: str
    submission_date: Optional[datetime] = Field(default=None, alias="submissionDate")


class RemoteTransaction(BaseModel):
    """A multisig transaction as the coordination service reports it."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    safe: str
    to: str
    value: int = 0
    data: Optional[str] = None
    operation: int = 0
    safe_tx_gas: int = Field(default=0, alias="safeTxGas")
    base_gas: int = Field(default=0, alias="baseGas")
    gas_price: int = Field(default=0, alias="gasPrice")
    gas_token: Optional[str] = Field(default=None, alias="gasToken")
    refund_receiver: Optional[str] = Field(default=None, alias="refundReceiver")
    nonce: int
    safe_tx_hash: str = Field(alias="safeTxHash")
    is_executed: bool = Field(default=False, alias="isExecuted")
    is_successful: Optional[bool] = Field(default=None, alias="isSuccessful")
    transaction_hash: Optional[str] = Field(default=None, alias="transactionHash")
    confirmations_required: int = Field(default=0, alias="confirmationsRequired")
    confirmations: list[RemoteConfirmation] = Field(default_factory=list)

    def to_action(self) -> VaultAction:
        return VaultAction(
            to=self.to,
            value=self.value,
            data=self.data or "0x",
            nonce=self.nonce,
            operation=self.operation,
            safe_tx_gas=self.safe_tx_gas,
            base_gas=self.base_gas,
            gas_price=self.gas_price,
            gas_token=self.gas_token or ZERO_ADDRESS,
            refund_receiver=self.refund_receiver or ZERO_ADDRESS,
        )

    def has_confirmation_from(self, owner: str) -> bool:
        return any(c.owner.lower() == owner.lower() for c in self.confirmations)


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------


class BaseCoordinationService(ABC):
    """What the orchestration core needs from the coordination service."""

    @abstractmethod
    async def propose(
        self,
        vault: str,
        action: VaultAction,
        action_hash: str,
        sender: str,
        signature: str,
        origin: str = DEFAULT_ORIGIN,
    ) -> None:
        ...

    @abstractmethod
    async def get_transaction(self, action_hash: str) -> RemoteTransaction:
        ...

    @abstractmethod
    async def get_pending_transactions(self, vault: str) -> list[RemoteTransaction]:
        ...

    @abstractmethod
    async def confirm(self, action_hash: str, signature: str) -> None:
        ...


# ---------------------------------------------------------------------------
# Safe Transaction Service
# ---------------------------------------------------------------------------


class SafeTxServiceClient(BaseCoordinationService):
    """Async ``httpx`` client for the Safe Transaction Service.

    Parameters
    ----------
    base_url:
        Service root ending in ``/api`` (e.g.
        ``https://api.safe.global/tx-service/base/api``).
    api_key:
        Optional key sent as a Bearer token.
    timeout_seconds:
        Per-request timeout.
    transport:
        Optional ``httpx`` transport, used to stub the service in tests.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout_seconds
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                resp = await client.request(method, url, headers=self._headers(), **kwargs)
        except httpx.HTTPError as exc:
            raise CoordinationServiceError(f"{method} {url} failed: {exc}") from exc

        if resp.status_code >= 400:
            raise CoordinationServiceError(
                f"{method} {url} returned {resp.status_code}: {resp.text}",
                status_code=resp.status_code,
            )
        if not resp.content:
            return None
        return resp.json()

    async def propose(
        self,
        vault: str,
        action: VaultAction,
        action_hash: str,
        sender: str,
        signature: str,
        origin: str = DEFAULT_ORIGIN,
    ) -> None:
        vault = Web3.to_checksum_address(vault)
        body = {
            "to": Web3.to_checksum_address(action.to),
            "value": str(action.value),
            "data": action.data if action.data not in ("", "0x") else None,
            "operation": action.operation,
            "safeTxGas": str(action.safe_tx_gas),
            "baseGas": str(action.base_gas),
            "gasPrice": str(action.gas_price),
            "gasToken": action.gas_token,
            "refundReceiver": action.refund_receiver,
            "nonce": action.nonce,
            "contractTransactionHash": action_hash,
            "sender": Web3.to_checksum_address(sender),
            "signature": signature,
            "origin": origin,
        }
        await self._request("POST", f"/v1/safes/{vault}/multisig-transactions/", json=body)
        logger.info(f"Proposed {action_hash} to coordination service for {vault}")

    async def get_transaction(self, action_hash: str) -> RemoteTransaction:
        data = await self._request("GET", f"/v1/multisig-transactions/{action_hash}/")
        return RemoteTransaction.model_validate(data)

    async def get_pending_transactions(self, vault: str) -> list[RemoteTransaction]:
        vault = Web3.to_checksum_address(vault)
        data = await self._request(
            "GET",
            f"/v1/safes/{vault}/multisig-transactions/",
            params={"executed": "false", "ordering": "-nonce"},
        )
        results = (data or {}).get("results", [])
        return [RemoteTransaction.model_validate(item) for item in results]

    async def confirm(self, action_hash: str, signature: str) -> None:
        await self._request(
            "POST",
            f"/v1/multisig-transactions/{action_hash}/confirmations/",
            json={"signature": signature},
        )
        logger.info(f"Submitted confirmation for {action_hash}")
