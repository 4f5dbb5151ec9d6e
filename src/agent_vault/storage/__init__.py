"""agent-vault storage layer -- async SQLite documents and Pydantic models."""

from agent_vault.storage.database import Database, get_database
from agent_vault.storage.models import (
    OnboardingState,
    Proposal,
    ProposalStatus,
    StateDocument,
    SwapDetails,
    VaultRecord,
)
from agent_vault.storage.store import StateStore

__all__ = [
    "Database",
    "get_database",
    "OnboardingState",
    "Proposal",
    "ProposalStatus",
    "StateDocument",
    "StateStore",
    "SwapDetails",
    "VaultRecord",
]
