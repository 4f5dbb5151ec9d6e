"""Session wiring and vault selection."""

from __future__ import annotations

import pytest

from agent_vault.config import AppConfig
from agent_vault.core.session import VaultSession
from agent_vault.errors import IntegrationUnavailable, InvalidAddress, UnknownVault
from agent_vault.storage.models import VaultRecord
from agent_vault.vault.tx_service import SafeTxServiceClient


@pytest.fixture
def config(tmp_path, monkeypatch):
    monkeypatch.delenv("CHAIN_ID", raising=False)
    return AppConfig(data_dir=tmp_path)


async def test_open_defaults_to_base_sepolia(config, tmp_path):
    async with await VaultSession.open(config) as session:
        assert session.profile.network_id == 84532
        assert isinstance(session.coordinator, SafeTxServiceClient)
        assert session.keystore.path == tmp_path / "wallet" / "keystore.json"
    assert (tmp_path / "vault.db").exists()


async def test_url_overrides_apply(config):
    config.rpc.url_overrides[84532] = "http://localhost:8545"
    async with await VaultSession.open(config) as session:
        assert session.profile.rpc_url == "http://localhost:8545"


async def test_network_without_coordination_service(config):
    async with await VaultSession.open(config, network_id=130) as session:
        with pytest.raises(IntegrationUnavailable):
            await session.coordinator.get_transaction("0x" + "00" * 32)


async def test_select_vault_switches_network(config):
    address = "0x" + "12" * 20
    async with await VaultSession.open(config) as session:
        with pytest.raises(InvalidAddress):
            await session.select_vault("0x12")
        with pytest.raises(UnknownVault):
            await session.select_vault(address)

        await session.store.record_vault(
            VaultRecord(address=address, network_id=8453, network_name="Base", threshold=1)
        )
        record = await session.select_vault(address.upper().replace("0X", "0x"))
        assert record.network_id == 8453
        assert len(session.list_vaults()) == 1

    async with await VaultSession.open(config) as session:
        assert session.profile.network_id == 8453
        assert session.orchestrator.vault_address == address
