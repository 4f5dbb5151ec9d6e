"""Agent-facing tools."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from agent_vault.tools import ToolRegistry, vault_tools

from tests.conftest import OWNER_A, RECIPIENT


@pytest.fixture
def session(orchestrator, onboarding, store):
    s = SimpleNamespace(orchestrator=orchestrator, onboarding=onboarding, list_vaults=store.vaults)
    vault_tools.set_session(s)
    yield s
    vault_tools.set_session(None)


async def _call(name: str, **kwargs) -> str:
    return await ToolRegistry.get().get_tool(name).execute(**kwargs)


def test_every_operation_is_registered():
    names = set(ToolRegistry.get().list_names())
    assert {
        "wizard_start",
        "wizard_check_agent_funds",
        "wizard_add_owner_address",
        "wizard_get_deploy_overview",
        "wizard_deploy_vault",
        "vault_get_balances",
        "vault_get_yields",
        "vault_propose_send_native",
        "vault_propose_send_asset",
        "vault_check_proposal_status",
        "vault_add_asset",
        "vault_list_vaults",
        "vault_select_vault",
        "vault_execute_if_ready",
        "vault_get_swap_quote",
        "vault_propose_swap",
        "vault_agent_sign",
        "vault_propose_wrap",
        "vault_propose_unwrap",
        "vault_propose_lending_supply",
        "vault_propose_lending_withdraw",
        "vault_lending_faucet",
        "vault_pending_proposals",
    } <= names


def test_definitions_export():
    definition = ToolRegistry.get().get_tool("vault_propose_send_native").to_definition()
    assert definition.to_anthropic()["input_schema"]["required"] == ["to", "amount"]
    assert definition.to_openai()["function"]["name"] == "vault_propose_send_native"


async def test_requires_session():
    vault_tools.set_session(None)
    with pytest.raises(RuntimeError):
        await _call("vault_list_vaults")


async def test_propose_and_status(session, coordinator):
    text = await _call("vault_propose_send_native", to=RECIPIENT, amount="0.1")
    assert "Transaction proposed!" in text
    action_hash = coordinator.proposed[0]

    status = await _call("vault_check_proposal_status", action_hash=action_hash)
    assert "Confirmations: 1/2" in status

    coordinator.sign_as(action_hash, OWNER_A)
    executed = await _call("vault_execute_if_ready", action_hash=action_hash)
    assert executed.startswith("Transaction executed!")


async def test_faults_become_error_text(session):
    text = await _call("vault_propose_send_native", to="0xnope", amount="1")
    assert text.startswith("Error: Invalid address format")

    text = await _call("vault_propose_swap", asset_in="USDC", asset_out="WETH", amount="1")
    assert text.startswith("Error: No liquidity pool exists for USDC/WETH")

    text = await _call("wizard_check_agent_funds", min_amount="abc")
    assert text == "Error: Invalid amount: 'abc'"


async def test_list_and_pending(session):
    listing = await _call("vault_list_vaults")
    assert "Base Sepolia (2-of-3)" in listing
    assert await _call("vault_pending_proposals") == "No pending proposals."
