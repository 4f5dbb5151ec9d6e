"""Capability interface for the multisig vault account SDK.

The orchestration core only talks to a vault through :class:`BaseVaultSDK`.
An implementation must predict the vault address deterministically from the
owners and threshold, compose a list of calls into one action whose hash is
stable for identical input, and accept externally collected signatures in the
order the caller presents them (ascending by signer address).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from agent_vault.integrations.abis import ZERO_ADDRESS

OPERATION_CALL = 0
OPERATION_DELEGATECALL = 1


@dataclass(frozen=True)
class VaultCall:
    """A single ``(to, value, data)`` call."""

    to: str
    value: int = 0
    data: str = "0x"


@dataclass(frozen=True)
class VaultAction:
    """A fully assembled vault transaction, ready to be hashed."""

    to: str
    value: int
    data: str
    nonce: int
    operation: int = OPERATION_CALL
    safe_tx_gas: int = 0
    base_gas: int = 0
    gas_price: int = 0
    gas_token: str = ZERO_ADDRESS
    refund_receiver: str = ZERO_ADDRESS
    calls: tuple[VaultCall, ...] = field(default=(), compare=False)


@dataclass(frozen=True)
class OwnerSignature:
    owner: str
    signature: str


@dataclass(frozen=True)
class DeployResult:
    address: str
    tx_hash: str
    owners: list[str]
    threshold: int


class BaseVaultSDK(ABC):
    """Narrow capability interface implemented by a vault adapter."""

    @abstractmethod
    async def predict_address(self, owners: list[str], threshold: int, salt_nonce: int = 0) -> str:
        """Address the vault will have once deployed with these parameters."""

    @abstractmethod
    async def deploy(self, owners: list[str], threshold: int, salt_nonce: int = 0) -> DeployResult:
        """Submit the deployment transaction and wait for it to be mined."""

    @abstractmethod
    async def build_action(self, vault: str, calls: list[VaultCall], nonce: int) -> VaultAction:
        """Compose one or more calls into a single action."""

    @abstractmethod
    async def hash_action(self, vault: str, action: VaultAction) -> str:
        """Canonical ``0x`` hash of a fully assembled action."""

    @abstractmethod
    def sign_hash(self, action_hash: str) -> str:
        """Sign an action hash with the agent key."""

    @abstractmethod
    async def execute_action(
        self, vault: str, action: VaultAction, signatures: list[OwnerSignature]
    ) -> str:
        """Execute on-chain with *signatures* in the given order. Returns the tx hash."""

    @abstractmethod
    async def get_owners(self, vault: str) -> list[str]:
        ...

    @abstractmethod
    async def get_threshold(self, vault: str) -> int:
        ...

    @abstractmethod
    async def get_nonce(self, vault: str) -> int:
        ...
