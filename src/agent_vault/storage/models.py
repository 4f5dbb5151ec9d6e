"""Pydantic models for the persisted agent-vault documents."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from agent_vault.chains import AssetConfig


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class OnboardingState(str, Enum):
    INIT = "init"
    AGENT_KEY_CREATED = "agent_key_created"
    AWAIT_FUNDING = "await_funding"
    AWAIT_OWNER = "await_owner"
    READY_TO_DEPLOY = "ready_to_deploy"
    DEPLOYED = "deployed"
    READY = "ready"

    @property
    def rank(self) -> int:
        return _ONBOARDING_ORDER.index(self)

    def precedes(self, other: OnboardingState) -> bool:
        return self.rank < other.rank


_ONBOARDING_ORDER = list(OnboardingState)


class ProposalStatus(str, Enum):
    DRAFT = "draft"
    PROPOSED = "proposed"
    OWNER_CONFIRMED = "owner_confirmed"
    EXECUTED = "executed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ProposalStatus.EXECUTED, ProposalStatus.FAILED)

    def can_advance_to(self, new: ProposalStatus) -> bool:
        """Whether a move from this status to *new* is forward."""
        if self.is_terminal or new == self:
            return False
        if new == ProposalStatus.FAILED:
            return True
        return _PROPOSAL_ORDER.index(new) > _PROPOSAL_ORDER.index(self)


_PROPOSAL_ORDER = [
    ProposalStatus.DRAFT,
    ProposalStatus.PROPOSED,
    ProposalStatus.OWNER_CONFIRMED,
    ProposalStatus.EXECUTED,
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

class SwapDetails(BaseModel):
    """Structured metadata attached to swap proposals."""

    symbol_in: str
    symbol_out: str
    amount_in: str
    expected_out: str
    min_out: str
    fee: int = 3000


class Proposal(BaseModel):
    """One entry of the proposal ledger, keyed by ``action_hash``."""

    action_hash: str
    status: ProposalStatus = ProposalStatus.PROPOSED
    description: str = ""
    to: str
    value: int = 0
    data: str = "0x"
    nonce: Optional[int] = None
    network_id: Optional[int] = None
    created_at: datetime = Field(default_factory=_utcnow)
    executed_tx_hash: Optional[str] = None
    swap_details: Optional[SwapDetails] = None


class VaultRecord(BaseModel):
    """A deployed vault. Unique on ``(address, network_id)``."""

    address: str
    network_id: int
    network_name: str
    owners: list[str] = Field(default_factory=list)
    threshold: int
    created_at: datetime = Field(default_factory=_utcnow)

    def key(self) -> tuple[str, int]:
        return self.address.lower(), self.network_id


class StateDocument(BaseModel):
    """Onboarding progress, active vault, proposal ledger and custom assets."""

    onboarding_state: OnboardingState = OnboardingState.INIT
    agent_address: Optional[str] = None
    owner_addresses: list[str] = Field(default_factory=list)
    vault_address: Optional[str] = None
    vault_network_id: Optional[int] = None
    active_network_id: Optional[int] = None
    deploy_tx_hash: Optional[str] = None
    proposals: dict[str, Proposal] = Field(default_factory=dict)
    custom_assets: dict[str, list[AssetConfig]] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class VaultRegistryDocument(BaseModel):
    vaults: list[VaultRecord] = Field(default_factory=list)
