"""Agent key creation, loading and signing."""

from __future__ import annotations

import json
import stat

import pytest
from eth_account import Account
from web3 import Web3

from agent_vault.errors import IdentityCorrupt, NoAgentIdentity
from agent_vault.wallet.keystore import AgentKeyStore


def test_create_and_reload(keystore, tmp_path):
    address = keystore.create()

    assert keystore.exists()
    assert stat.S_IMODE(keystore.path.stat().st_mode) == 0o600
    assert Web3.is_checksum_address(address)

    fresh = AgentKeyStore(tmp_path / "wallet", "test-password")
    assert fresh.read_address() == address
    assert fresh.load() == address


def test_create_refuses_to_overwrite(keystore):
    keystore.create()
    with pytest.raises(FileExistsError):
        keystore.create()


def test_missing_identity(keystore):
    assert keystore.read_address() is None
    with pytest.raises(NoAgentIdentity):
        keystore.load()
    with pytest.raises(NoAgentIdentity):
        _ = keystore.address


def test_wrong_password(keystore, tmp_path):
    keystore.create()
    with pytest.raises(IdentityCorrupt):
        AgentKeyStore(tmp_path / "wallet", "nope").load()


def test_address_mismatch(keystore, tmp_path):
    keystore.create()
    data = json.loads(keystore.path.read_text())
    data["address"] = "22" * 20
    keystore.path.write_text(json.dumps(data))

    with pytest.raises(IdentityCorrupt):
        AgentKeyStore(tmp_path / "wallet", "test-password").load()


def test_unreadable_file(keystore):
    keystore.wallet_dir.mkdir(parents=True)
    keystore.path.write_text("{not json")
    with pytest.raises(IdentityCorrupt):
        keystore.read_address()


def test_sign_hash_recovers_to_agent(keystore):
    address = keystore.create()
    digest = Web3.keccak(text="action")

    signature = keystore.sign_hash(digest)

    assert len(signature) == 2 + 65 * 2
    assert Account._recover_hash(digest, signature=signature) == address
