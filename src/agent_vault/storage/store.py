"""Persistent state for onboarding progress, vaults and proposals.

Two logical documents live in the SQLite ``documents`` table:

* ``state`` -- onboarding state, agent and owner addresses, the active
  vault, the proposal ledger and per-network custom assets;
* ``vaults`` -- every vault ever deployed, across networks.

Every mutation copies the in-memory document, applies the change and writes
the whole document back in one transaction.  The in-memory copy is only
replaced once the write has committed, so a failed write leaves the store at
its last committed value.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from pydantic import ValidationError

from agent_vault.assets import merge_assets
from agent_vault.chains import AssetConfig
from agent_vault.storage.database import Database
from agent_vault.storage.models import (
    OnboardingState,
    Proposal,
    ProposalStatus,
    StateDocument,
    VaultRecord,
    VaultRegistryDocument,
)

logger = logging.getLogger("agent_vault.storage.store")

STATE_DOC = "state"
VAULTS_DOC = "vaults"


class StateStore:
    """Single-writer store over the ``state`` and ``vaults`` documents.

    Each document carries a revision.  A write made against a revision that
    another process has since replaced raises ``StateConflict``; call
    :meth:`load` and retry.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._state = StateDocument()
        self._vaults = VaultRegistryDocument()
        self._revisions: dict[str, int] = {STATE_DOC: 0, VAULTS_DOC: 0}

    # ------------------------------------------------------------------
    # Loading / committing
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """(Re)read both documents from the database."""
        raw, rev = await self._db.load_document(STATE_DOC)
        self._state = self._parse(StateDocument, raw, STATE_DOC)
        self._revisions[STATE_DOC] = rev

        raw, rev = await self._db.load_document(VAULTS_DOC)
        self._vaults = self._parse(VaultRegistryDocument, raw, VAULTS_DOC)
        self._revisions[VAULTS_DOC] = rev

    @staticmethod
    def _parse(model, raw: Optional[str], name: str):
        if raw is None:
            return model()
        try:
            return model.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning(f"Stored '{name}' document is unreadable, starting fresh: {exc}")
            return model()

    async def _commit(
        self,
        state: Optional[StateDocument] = None,
        vaults: Optional[VaultRegistryDocument] = None,
    ) -> None:
        docs = {}
        if state is not None:
            state.updated_at = datetime.now(timezone.utc)
            docs[STATE_DOC] = (state.model_dump(mode="json"), self._revisions[STATE_DOC])
        if vaults is not None:
            docs[VAULTS_DOC] = (vaults.model_dump(mode="json"), self._revisions[VAULTS_DOC])
        if not docs:
            return

        revisions = await self._db.save_documents(docs)
        self._revisions.update(revisions)
        if state is not None:
            self._state = state
        if vaults is not None:
            self._vaults = vaults

    def _state_copy(self) -> StateDocument:
        return self._state.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def state(self) -> StateDocument:
        """A snapshot of the state document. Mutating it has no effect."""
        return self._state_copy()

    @property
    def onboarding_state(self) -> OnboardingState:
        return self._state.onboarding_state

    @property
    def agent_address(self) -> Optional[str]:
        return self._state.agent_address

    @property
    def owner_addresses(self) -> list[str]:
        return list(self._state.owner_addresses)

    @property
    def active_network_id(self) -> Optional[int]:
        return self._state.active_network_id

    def vault_address_for(self, network_id: int) -> Optional[str]:
        """The vault actions on *network_id* run against, if one is known.

        The active vault wins when it lives on *network_id*; otherwise the
        most recently deployed vault on that network is used.
        """
        if self._state.vault_address and self._state.vault_network_id == network_id:
            return self._state.vault_address
        on_network = self.vaults_for_network(network_id)
        return on_network[-1].address if on_network else None

    # ------------------------------------------------------------------
    # Onboarding
    # ------------------------------------------------------------------

    async def set_onboarding_state(self, new_state: OnboardingState) -> None:
        if self._state.onboarding_state == new_state:
            return
        doc = self._state_copy()
        old = doc.onboarding_state
        doc.onboarding_state = new_state
        await self._commit(state=doc)
        logger.info(f"Onboarding state {old.value} -> {new_state.value}")

    async def set_agent_address(
        self, address: str, onboarding_state: Optional[OnboardingState] = None
    ) -> None:
        doc = self._state_copy()
        doc.agent_address = address
        if onboarding_state is not None:
            doc.onboarding_state = onboarding_state
        await self._commit(state=doc)

    async def add_owner_address(
        self, address: str, onboarding_state: Optional[OnboardingState] = None
    ) -> bool:
        """Append an owner. Returns ``False`` if it was already present."""
        if any(a.lower() == address.lower() for a in self._state.owner_addresses):
            return False
        doc = self._state_copy()
        doc.owner_addresses.append(address)
        if onboarding_state is not None:
            doc.onboarding_state = onboarding_state
        await self._commit(state=doc)
        return True

    async def record_deployment(self, record: VaultRecord, tx_hash: Optional[str]) -> None:
        """Register a freshly deployed vault and make it active.

        Both documents are written in one transaction and the onboarding
        state lands on ``DEPLOYED``.
        """
        doc = self._state_copy()
        doc.vault_address = record.address
        doc.vault_network_id = record.network_id
        doc.active_network_id = record.network_id
        doc.deploy_tx_hash = tx_hash
        doc.onboarding_state = OnboardingState.DEPLOYED

        registry = self._vaults.model_copy(deep=True)
        if not any(v.key() == record.key() for v in registry.vaults):
            registry.vaults.append(record)

        await self._commit(state=doc, vaults=registry)
        logger.info(f"Recorded vault {record.address} on {record.network_name}")

    # ------------------------------------------------------------------
    # Vault registry
    # ------------------------------------------------------------------

    def vaults(self) -> list[VaultRecord]:
        return [v.model_copy() for v in self._vaults.vaults]

    def vaults_for_network(self, network_id: int) -> list[VaultRecord]:
        return [v.model_copy() for v in self._vaults.vaults if v.network_id == network_id]

    async def record_vault(self, record: VaultRecord) -> bool:
        """Append to the registry; a duplicate ``(address, network)`` is ignored."""
        if any(v.key() == record.key() for v in self._vaults.vaults):
            return False
        registry = self._vaults.model_copy(deep=True)
        registry.vaults.append(record)
        await self._commit(vaults=registry)
        return True

    async def set_active_vault(self, address: str, network_id: int) -> None:
        doc = self._state_copy()
        doc.vault_address = address
        doc.vault_network_id = network_id
        doc.active_network_id = network_id
        await self._commit(state=doc)

    async def set_active_network(self, network_id: int) -> None:
        if self._state.active_network_id == network_id:
            return
        doc = self._state_copy()
        doc.active_network_id = network_id
        await self._commit(state=doc)

    # ------------------------------------------------------------------
    # Proposal ledger
    # ------------------------------------------------------------------

    def get_proposal(self, action_hash: str) -> Optional[Proposal]:
        proposal = self._state.proposals.get(action_hash.lower())
        return proposal.model_copy(deep=True) if proposal else None

    def list_proposals(self) -> list[Proposal]:
        return sorted(
            (p.model_copy(deep=True) for p in self._state.proposals.values()),
            key=lambda p: p.created_at,
        )

    def pending_proposals(self) -> list[Proposal]:
        pending = (ProposalStatus.PROPOSED, ProposalStatus.OWNER_CONFIRMED)
        return [p for p in self.list_proposals() if p.status in pending]

    async def add_proposal(self, proposal: Proposal) -> bool:
        """Store a new proposal. An existing entry with the same hash is kept."""
        key = proposal.action_hash.lower()
        if key in self._state.proposals:
            return False
        doc = self._state_copy()
        doc.proposals[key] = proposal
        await self._commit(state=doc)
        logger.info(f"Proposal {key} stored as {proposal.status.value}")
        return True

    async def update_proposal_status(
        self,
        action_hash: str,
        status: ProposalStatus,
        executed_tx_hash: Optional[str] = None,
    ) -> bool:
        """Advance a proposal's status.

        Returns ``False`` without writing when the hash is unknown or the
        move would not be forward (equal or earlier status, or leaving
        ``EXECUTED`` / ``FAILED``).
        """
        key = action_hash.lower()
        current = self._state.proposals.get(key)
        if current is None:
            logger.warning(f"Status update for unknown proposal {key} ignored")
            return False
        if not current.status.can_advance_to(status):
            logger.debug(
                f"Ignoring status move {current.status.value} -> {status.value} for {key}"
            )
            return False

        doc = self._state_copy()
        doc.proposals[key].status = status
        if executed_tx_hash:
            doc.proposals[key].executed_tx_hash = executed_tx_hash
        await self._commit(state=doc)
        logger.info(f"Proposal {key} -> {status.value}")
        return True

    # ------------------------------------------------------------------
    # Custom assets
    # ------------------------------------------------------------------

    def custom_assets(self, network_id: int) -> list[AssetConfig]:
        return list(self._state.custom_assets.get(str(network_id), []))

    def assets_for(self, network_id: int, defaults: Iterable[AssetConfig]) -> list[AssetConfig]:
        """Network defaults merged with custom entries (defaults win on address)."""
        return merge_assets(defaults, self.custom_assets(network_id))

    async def add_custom_asset(self, network_id: int, asset: AssetConfig) -> bool:
        """Persist a custom asset. Returns ``False`` if the address is already listed."""
        existing = self.custom_assets(network_id)
        if any(a.address.lower() == asset.address.lower() for a in existing):
            return False
        doc = self._state_copy()
        doc.custom_assets.setdefault(str(network_id), []).append(asset)
        await self._commit(state=doc)
        logger.info(f"Added custom asset {asset.symbol} ({asset.address}) on {network_id}")
        return True
