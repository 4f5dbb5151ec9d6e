"""Onboarding state machine."""

from __future__ import annotations

from decimal import Decimal

import pytest

from agent_vault.core.onboarding import effective_threshold
from agent_vault.errors import (
    InvalidAddress,
    InvalidThreshold,
    NoAgentIdentity,
    NoOwners,
    NotReady,
    SelfOwnershipRejected,
)
from agent_vault.storage.models import OnboardingState
from agent_vault.vault.safe import SAFE_PROXY_FACTORY

from tests.conftest import OWNER_A, OWNER_B


async def _to_ready_to_deploy(onboarding, rpc):
    started = await onboarding.start()
    rpc.balances[started.agent_address.lower()] = 10**18
    await onboarding.check_agent_funds()
    await onboarding.add_owner_address(OWNER_A.address)
    return started.agent_address


class TestStart:
    async def test_creates_key_once(self, onboarding, store):
        first = await onboarding.start()
        assert first.created
        assert first.state == OnboardingState.AGENT_KEY_CREATED
        assert store.agent_address == first.agent_address

        second = await onboarding.start()
        assert not second.created
        assert second.agent_address == first.agent_address
        assert store.onboarding_state == OnboardingState.AGENT_KEY_CREATED

    async def test_does_not_regress_progress(self, onboarding, store, rpc):
        await _to_ready_to_deploy(onboarding, rpc)
        result = await onboarding.start()
        assert result.state == OnboardingState.READY_TO_DEPLOY
        assert store.onboarding_state == OnboardingState.READY_TO_DEPLOY

    async def test_completes_interrupted_deployment(self, onboarding, store):
        await onboarding.start()
        await store.set_onboarding_state(OnboardingState.DEPLOYED)
        result = await onboarding.start()
        assert result.state == OnboardingState.READY


class TestFunding:
    async def test_requires_identity(self, onboarding):
        with pytest.raises(NoAgentIdentity):
            await onboarding.check_agent_funds()

    async def test_insufficient_then_funded(self, onboarding, store, rpc):
        started = await onboarding.start()

        low = await onboarding.check_agent_funds()
        assert not low.ok
        assert store.onboarding_state == OnboardingState.AWAIT_FUNDING
        assert started.agent_address in low.message

        rpc.balances[started.agent_address.lower()] = 5 * 10**14
        ok = await onboarding.check_agent_funds()
        assert ok.ok
        assert ok.balance == "0.0005"
        assert store.onboarding_state == OnboardingState.AWAIT_OWNER

    async def test_custom_minimum(self, onboarding, rpc):
        started = await onboarding.start()
        rpc.balances[started.agent_address.lower()] = 10**15
        result = await onboarding.check_agent_funds(Decimal("0.01"))
        assert not result.ok
        assert result.min_required == "0.01"

    async def test_later_states_are_left_alone(self, onboarding, store, rpc):
        agent = await _to_ready_to_deploy(onboarding, rpc)
        rpc.balances[agent.lower()] = 0
        result = await onboarding.check_agent_funds()
        assert not result.ok
        assert store.onboarding_state == OnboardingState.READY_TO_DEPLOY


class TestOwners:
    async def test_add_owner(self, onboarding, store):
        await onboarding.start()
        result = await onboarding.add_owner_address(OWNER_A.address.lower())
        assert result.added
        assert result.owner_address == OWNER_A.address
        assert result.total_owners == 2
        assert store.onboarding_state == OnboardingState.READY_TO_DEPLOY

        again = await onboarding.add_owner_address(OWNER_A.address)
        assert not again.added
        assert store.owner_addresses == [OWNER_A.address]

    async def test_rejects_malformed_and_self(self, onboarding, store):
        started = await onboarding.start()
        with pytest.raises(InvalidAddress):
            await onboarding.add_owner_address("not-an-address")
        with pytest.raises(SelfOwnershipRejected):
            await onboarding.add_owner_address(started.agent_address.lower())
        assert store.owner_addresses == []
        assert store.onboarding_state == OnboardingState.AGENT_KEY_CREATED

    async def test_overview(self, onboarding):
        agent = (await onboarding.start()).agent_address
        with pytest.raises(NoOwners):
            onboarding.get_deploy_overview()

        await onboarding.add_owner_address(OWNER_A.address)
        await onboarding.add_owner_address(OWNER_B.address)
        overview = onboarding.get_deploy_overview()
        assert overview.owners == [agent, OWNER_A.address, OWNER_B.address]
        assert overview.threshold == 3
        assert onboarding.get_deploy_overview(2).threshold == 2
        with pytest.raises(InvalidThreshold):
            onboarding.get_deploy_overview(4)


class TestDeploy:
    async def test_not_ready(self, onboarding):
        await onboarding.start()
        with pytest.raises(NotReady):
            await onboarding.deploy_vault()

    async def test_deploys_and_registers(self, onboarding, store, rpc, sdk):
        agent = await _to_ready_to_deploy(onboarding, rpc)
        predicted = await sdk.predict_address([agent, OWNER_A.address], 2)

        outcome = await onboarding.deploy_vault()

        assert outcome.vault_address == predicted
        assert outcome.threshold == 2
        assert rpc.sent[0]["to"] == SAFE_PROXY_FACTORY
        assert store.onboarding_state == OnboardingState.READY
        vaults = store.vaults()
        assert [v.address for v in vaults] == [predicted]
        assert vaults[0].owners == [agent, OWNER_A.address]
        assert store.vault_address_for(84532) == predicted

        with pytest.raises(NotReady):
            await onboarding.deploy_vault()

    async def test_reuses_existing_contract(self, onboarding, store, rpc, sdk):
        agent = await _to_ready_to_deploy(onboarding, rpc)
        predicted = await sdk.predict_address([agent, OWNER_A.address], 1)
        rpc.contracts.add(predicted.lower())

        outcome = await onboarding.deploy_vault(threshold=1)

        assert outcome.vault_address == predicted
        assert outcome.deploy_tx_hash == ""
        assert rpc.sent == []
        assert store.state.deploy_tx_hash is None


def test_effective_threshold():
    assert effective_threshold(None, 3) == 3
    assert effective_threshold(1, 3) == 1
    with pytest.raises(InvalidThreshold):
        effective_threshold(0, 3)
