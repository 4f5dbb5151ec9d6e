"""State store persistence, ordering and conflict detection."""

from __future__ import annotations

import pytest

from agent_vault.chains import AssetConfig
from agent_vault.errors import StateConflict
from agent_vault.storage.database import Database
from agent_vault.storage.models import OnboardingState, Proposal, ProposalStatus, VaultRecord
from agent_vault.storage.store import StateStore

HASH = "0x" + "AB" * 32


def _vault(address: str = "0x" + "12" * 20, network_id: int = 84532) -> VaultRecord:
    return VaultRecord(
        address=address,
        network_id=network_id,
        network_name="Base Sepolia",
        owners=["0x" + "01" * 20],
        threshold=1,
    )


async def _reopen(db: Database) -> StateStore:
    other = Database(db.db_path)
    await other.connect()
    store = StateStore(other)
    await store.load()
    return store


async def test_fresh_store_defaults(store):
    assert store.onboarding_state == OnboardingState.INIT
    assert store.agent_address is None
    assert store.vaults() == []
    assert store.list_proposals() == []


async def test_values_survive_reload(store, db):
    big = 2**256 - 1
    await store.set_agent_address("0x" + "aa" * 20, onboarding_state=OnboardingState.AWAIT_OWNER)
    await store.add_proposal(
        Proposal(action_hash=HASH, description="big", to="0x" + "bb" * 20, value=big, nonce=7)
    )

    reopened = await _reopen(db)
    try:
        assert reopened.onboarding_state == OnboardingState.AWAIT_OWNER
        proposal = reopened.get_proposal(HASH)
        assert proposal.value == big
        assert proposal.nonce == 7
        assert proposal.status == ProposalStatus.PROPOSED
    finally:
        await reopened._db.close()


async def test_proposal_status_only_moves_forward(store):
    await store.add_proposal(Proposal(action_hash=HASH, to="0x" + "bb" * 20, nonce=0))

    assert await store.update_proposal_status(HASH, ProposalStatus.OWNER_CONFIRMED)
    assert not await store.update_proposal_status(HASH, ProposalStatus.PROPOSED)
    assert await store.update_proposal_status(
        HASH.lower(), ProposalStatus.EXECUTED, executed_tx_hash="0x01"
    )
    assert not await store.update_proposal_status(HASH, ProposalStatus.FAILED)

    proposal = store.get_proposal(HASH)
    assert proposal.status == ProposalStatus.EXECUTED
    assert proposal.executed_tx_hash == "0x01"


async def test_unknown_proposal_update_is_ignored(store):
    assert not await store.update_proposal_status("0x" + "00" * 32, ProposalStatus.EXECUTED)


async def test_duplicate_proposal_keeps_first(store):
    first = Proposal(action_hash=HASH, description="first", to="0x" + "bb" * 20, nonce=0)
    second = Proposal(action_hash=HASH.lower(), description="second", to="0x" + "bb" * 20, nonce=0)
    assert await store.add_proposal(first)
    assert not await store.add_proposal(second)
    assert store.get_proposal(HASH).description == "first"


async def test_owner_dedupe_is_case_insensitive(store):
    address = "0x" + "Ab" * 20
    assert await store.add_owner_address(address)
    assert not await store.add_owner_address(address.lower())
    assert store.owner_addresses == [address]


async def test_snapshot_is_detached(store):
    snapshot = store.state
    snapshot.owner_addresses.append("0x" + "cc" * 20)
    assert store.owner_addresses == []


async def test_concurrent_writer_conflict(store, db):
    other = await _reopen(db)
    try:
        await other.set_onboarding_state(OnboardingState.AGENT_KEY_CREATED)

        with pytest.raises(StateConflict):
            await store.add_owner_address("0x" + "cc" * 20)
        assert store.owner_addresses == []

        await store.load()
        assert store.onboarding_state == OnboardingState.AGENT_KEY_CREATED
        assert await store.add_owner_address("0x" + "cc" * 20)
    finally:
        await other._db.close()


async def test_corrupt_document_starts_fresh(store, db):
    await db.save_documents({"state": ({"onboarding_state": "bogus"}, 0)})
    await store.load()
    assert store.onboarding_state == OnboardingState.INIT


async def test_deployment_registers_once(store):
    record = _vault()
    await store.record_deployment(record, "0xdead")
    await store.record_deployment(record, "0xdead")

    assert len(store.vaults()) == 1
    assert store.onboarding_state == OnboardingState.DEPLOYED
    assert store.active_network_id == 84532
    assert not await store.record_vault(_vault(address=record.address.upper().replace("0X", "0x")))
    assert await store.record_vault(_vault(network_id=8453))


async def test_vault_lookup_by_network(store):
    await store.record_vault(_vault("0x" + "01" * 20, 8453))
    await store.record_vault(_vault("0x" + "02" * 20, 8453))
    assert store.vault_address_for(8453) == "0x" + "02" * 20
    assert store.vault_address_for(1) is None

    await store.set_active_vault("0x" + "01" * 20, 8453)
    assert store.vault_address_for(8453) == "0x" + "01" * 20


async def test_custom_assets_merge_with_defaults(store):
    default = AssetConfig("USDC", "0x" + "0a" * 20, 6)
    clash = AssetConfig("FAKE", "0x" + "0A" * 20, 18)
    extra = AssetConfig("GOLD", "0x" + "0b" * 20, 2)

    assert await store.add_custom_asset(84532, clash)
    assert await store.add_custom_asset(84532, extra)
    assert not await store.add_custom_asset(84532, extra)

    merged = store.assets_for(84532, [default])
    assert [a.symbol for a in merged] == ["USDC", "GOLD"]
    assert store.custom_assets(1) == []
