"""Safe adapter: hashing, batching, address prediction and execution calldata."""

from __future__ import annotations

import pytest
from eth_abi import decode
from hexbytes import HexBytes
from web3 import Web3

from agent_vault.errors import InvalidAmount
from agent_vault.integrations.abis import SAFE_ABI, ZERO_ADDRESS
from agent_vault.vault.safe import (
    MULTI_SEND_CALL_ONLY,
    domain_separator,
    encode_multi_send,
    safe_tx_hash,
)
from agent_vault.vault.sdk import (
    OPERATION_CALL,
    OPERATION_DELEGATECALL,
    OwnerSignature,
    VaultAction,
    VaultCall,
)

from tests.conftest import OWNER_A, OWNER_B, RECIPIENT, VAULT


def _action(**overrides) -> VaultAction:
    fields = dict(to=RECIPIENT, value=1, data="0x", nonce=0)
    fields.update(overrides)
    return VaultAction(**fields)


class TestHashing:
    def test_same_action_same_hash(self):
        assert safe_tx_hash(84532, VAULT, _action()) == safe_tx_hash(84532, VAULT, _action())

    def test_every_field_is_bound(self):
        base = safe_tx_hash(84532, VAULT, _action())
        assert safe_tx_hash(84532, VAULT, _action(nonce=1)) != base
        assert safe_tx_hash(84532, VAULT, _action(value=2)) != base
        assert safe_tx_hash(84532, VAULT, _action(data="0x01")) != base
        assert safe_tx_hash(84532, VAULT, _action(operation=OPERATION_DELEGATECALL)) != base
        assert safe_tx_hash(8453, VAULT, _action()) != base
        assert safe_tx_hash(84532, RECIPIENT, _action()) != base

    def test_composed_calls_do_not_affect_hash(self):
        with_calls = _action(calls=(VaultCall(to=RECIPIENT, value=1),))
        assert safe_tx_hash(84532, VAULT, with_calls) == safe_tx_hash(84532, VAULT, _action())

    def test_domain_depends_on_chain(self):
        assert domain_separator(1, VAULT) != domain_separator(10, VAULT)

    async def test_sdk_hash_is_hex(self, sdk):
        action_hash = await sdk.hash_action(VAULT, _action())
        assert action_hash.startswith("0x")
        assert len(action_hash) == 66


class TestBuildAction:
    async def test_single_call(self, sdk):
        action = await sdk.build_action(VAULT, [VaultCall(to=RECIPIENT.lower(), value=5)], 3)
        assert action.to == RECIPIENT
        assert action.value == 5
        assert action.nonce == 3
        assert action.operation == OPERATION_CALL
        assert action.gas_token == ZERO_ADDRESS

    async def test_batch_is_multisend_delegatecall(self, sdk):
        calls = [VaultCall(to=RECIPIENT, data="0xabcd"), VaultCall(to=VAULT, value=7)]
        action = await sdk.build_action(VAULT, calls, 0)
        assert action.to == MULTI_SEND_CALL_ONLY
        assert action.operation == OPERATION_DELEGATECALL
        assert action.value == 0
        assert action.data == encode_multi_send(calls)

    async def test_empty_batch(self, sdk):
        with pytest.raises(InvalidAmount):
            await sdk.build_action(VAULT, [], 0)


def test_multisend_packing():
    calls = [VaultCall(to=RECIPIENT, value=0, data="0xabcd"), VaultCall(to=VAULT, value=7)]
    (packed,) = decode(["bytes"], bytes(HexBytes(encode_multi_send(calls)))[4:])

    first = packed[: 1 + 20 + 32 + 32 + 2]
    assert first[0] == OPERATION_CALL
    assert Web3.to_checksum_address(first[1:21]) == RECIPIENT
    assert int.from_bytes(first[21:53], "big") == 0
    assert int.from_bytes(first[53:85], "big") == 2
    assert first[85:] == b"\xab\xcd"

    second = packed[len(first):]
    assert len(second) == 1 + 20 + 32 + 32
    assert Web3.to_checksum_address(second[1:21]) == VAULT
    assert int.from_bytes(second[21:53], "big") == 7


class TestDeployment:
    async def test_prediction_is_deterministic(self, sdk):
        owners = [OWNER_A.address, OWNER_B.address]
        first = await sdk.predict_address(owners, 2)
        assert first == await sdk.predict_address(owners, 2)
        assert first != await sdk.predict_address(owners, 1)
        assert first != await sdk.predict_address(owners, 2, salt_nonce=1)
        assert Web3.is_checksum_address(first)


class TestExecution:
    async def test_signatures_are_concatenated_in_order(self, sdk, keystore, rpc):
        keystore.create()
        sigs = [
            OwnerSignature(owner=OWNER_A.address, signature="0x" + "01" * 65),
            OwnerSignature(owner=OWNER_B.address, signature="0x" + "02" * 65),
        ]
        tx_hash = await sdk.execute_action(VAULT, _action(), sigs)

        assert tx_hash == "0x" + f"{1:064x}"
        contract = Web3().eth.contract(abi=SAFE_ABI)
        _, params = contract.decode_function_input(rpc.sent[0]["data"])
        assert bytes(params["signatures"]) == b"\x01" * 65 + b"\x02" * 65
        assert rpc.sent[0]["to"] == VAULT

    async def test_reads(self, sdk, rpc):
        rpc.vault_nonce = 4
        rpc.threshold = 3
        assert await sdk.get_nonce(VAULT) == 4
        assert await sdk.get_threshold(VAULT) == 3

    async def test_agent_signature(self, sdk, keystore):
        from eth_account import Account

        address = keystore.create()
        action_hash = await sdk.hash_action(VAULT, _action())
        signature = sdk.sign_hash(action_hash)
        assert Account._recover_hash(bytes(HexBytes(action_hash)), signature=signature) == address
