"""Shared fixtures: an in-memory chain, a fake coordination service and a
store on a temporary SQLite file."""

from __future__ import annotations

from typing import Any

import pytest
import pytest_asyncio
from eth_account import Account
from hexbytes import HexBytes
from web3 import Web3

from agent_vault.chains import NETWORKS
from agent_vault.core.onboarding import OnboardingStateMachine
from agent_vault.core.orchestrator import TransactionOrchestrator
from agent_vault.errors import CoordinationServiceError, ExecutionReverted
from agent_vault.integrations.abis import ZERO_ADDRESS
from agent_vault.storage.database import Database
from agent_vault.storage.models import OnboardingState, VaultRecord
from agent_vault.storage.store import StateStore
from agent_vault.vault.safe import SAFE_PROXY_FACTORY, SafeVaultSDK
from agent_vault.vault.tx_service import (
    BaseCoordinationService,
    RemoteConfirmation,
    RemoteTransaction,
)
from agent_vault.wallet.keystore import AgentKeyStore

OWNER_A = Account.from_key("0x" + "11" * 32)
OWNER_B = Account.from_key("0x" + "22" * 32)
VAULT = Web3.to_checksum_address("0x" + "5a" * 20)
RECIPIENT = Web3.to_checksum_address("0x" + "be" * 20)


class FakeRPC:
    """Answers the contract reads the engines make, and records writes."""

    def __init__(self) -> None:
        self.balances: dict[str, int] = {}
        self.token_balances: dict[tuple[str, str], int] = {}
        self.decimals: dict[str, int] = {}
        self.pools: dict[tuple[frozenset, int], str] = {}
        self.quote_out = 0
        self.vault_nonce = 0
        self.threshold = 2
        self.contracts: set[str] = set()
        self.deploy_mines = True
        self.reverts = False
        self.sent: list[dict[str, Any]] = []
        self.calls: list[str] = []

    def add_pool(self, token_a: str, token_b: str, fee: int = 3000) -> str:
        pool = Web3.to_checksum_address("0x" + "9f" * 20)
        self.pools[(frozenset({token_a.lower(), token_b.lower()}), fee)] = pool
        return pool

    async def get_balance(self, address: str) -> int:
        return self.balances.get(address.lower(), 0)

    async def is_contract(self, address: str) -> bool:
        if address.lower() in self.contracts:
            return True
        return self.deploy_mines and any(
            tx["to"].lower() == SAFE_PROXY_FACTORY.lower() for tx in self.sent
        )

    async def call(self, address: str, abi: list[dict], fn_name: str, *args: Any) -> Any:
        self.calls.append(fn_name)
        if fn_name == "nonce":
            return self.vault_nonce
        if fn_name == "getThreshold":
            return self.threshold
        if fn_name == "proxyCreationCode":
            return bytes.fromhex("608060405234801561001057600080fd5b50")
        if fn_name == "getPool":
            token_a, token_b, fee = args
            return self.pools.get(
                (frozenset({token_a.lower(), token_b.lower()}), fee), ZERO_ADDRESS
            )
        if fn_name == "quoteExactInputSingle":
            return (self.quote_out, 0, 1, 95_000)
        if fn_name == "decimals":
            if address.lower() not in self.decimals:
                raise ValueError("execution reverted")
            return self.decimals[address.lower()]
        if fn_name == "balanceOf":
            return self.token_balances.get((address.lower(), args[0].lower()), 0)
        raise AssertionError(f"unexpected call {fn_name}")

    async def send_transaction(self, account, to: str, value: int = 0, data: str = "0x") -> str:
        self.sent.append({"from": account.address, "to": to, "value": value, "data": data})
        return "0x" + f"{len(self.sent):064x}"

    async def wait_for_receipt(self, tx_hash: str) -> dict:
        if self.reverts:
            raise ExecutionReverted(f"Transaction {tx_hash} reverted", tx_hash=tx_hash)
        return {"status": 1, "transactionHash": tx_hash}


class FakeCoordinationService(BaseCoordinationService):
    """Keeps proposals in memory the way the hosted service would."""

    def __init__(self, confirmations_required: int = 2) -> None:
        self.confirmations_required = confirmations_required
        self.txs: dict[str, RemoteTransaction] = {}
        self.confirmer: str | None = None
        self.proposed: list[str] = []
        self.rejects_proposals = False

    async def propose(self, vault, action, action_hash, sender, signature, origin="agent-vault"):
        if self.rejects_proposals:
            raise CoordinationServiceError("Service rejected the proposal", status_code=422)
        self.proposed.append(action_hash)
        self.txs[action_hash.lower()] = RemoteTransaction(
            safe=vault,
            to=action.to,
            value=action.value,
            data=None if action.data in ("", "0x") else action.data,
            operation=action.operation,
            nonce=action.nonce,
            safe_tx_hash=action_hash,
            confirmations_required=self.confirmations_required,
            confirmations=[RemoteConfirmation(owner=sender, signature=signature)],
        )

    async def get_transaction(self, action_hash):
        tx = self.txs.get(action_hash.lower())
        if tx is None:
            raise CoordinationServiceError(f"{action_hash} not found", status_code=404)
        return tx.model_copy(deep=True)

    async def get_pending_transactions(self, vault):
        return [
            tx.model_copy(deep=True)
            for tx in self.txs.values()
            if tx.safe.lower() == vault.lower() and not tx.is_executed
        ]

    async def confirm(self, action_hash, signature):
        self.add_confirmation(action_hash, self.confirmer, signature)

    # helpers for tests

    def add_confirmation(self, action_hash: str, owner: str, signature: str) -> None:
        self.txs[action_hash.lower()].confirmations.append(
            RemoteConfirmation(owner=owner, signature=signature)
        )

    def sign_as(self, action_hash: str, account) -> None:
        signed = account.unsafe_sign_hash(bytes(HexBytes(action_hash)))
        self.add_confirmation(action_hash, account.address, "0x" + bytes(signed.signature).hex())

    def mark_executed(self, action_hash: str, tx_hash: str, successful: bool = True) -> None:
        tx = self.txs[action_hash.lower()]
        tx.is_executed = True
        tx.is_successful = successful
        tx.transaction_hash = tx_hash


@pytest.fixture
def profile():
    return NETWORKS[84532]


@pytest_asyncio.fixture
async def db(tmp_path):
    database = Database(tmp_path / "vault.db")
    await database.connect()
    yield database
    await database.close()


@pytest_asyncio.fixture
async def store(db):
    s = StateStore(db)
    await s.load()
    return s


@pytest.fixture
def keystore(tmp_path):
    return AgentKeyStore(tmp_path / "wallet", "test-password", kdf_iterations=2)


@pytest.fixture
def rpc():
    return FakeRPC()


@pytest.fixture
def sdk(rpc, keystore, profile):
    return SafeVaultSDK(rpc, keystore, profile)


@pytest.fixture
def coordinator():
    return FakeCoordinationService()


@pytest.fixture
def onboarding(store, keystore, rpc, sdk, profile):
    return OnboardingStateMachine(store, keystore, rpc, sdk, profile)


@pytest_asyncio.fixture
async def deployed(store, keystore, coordinator, profile):
    """A READY store with a 2-of-3 vault (agent + two humans)."""
    agent = keystore.create()
    coordinator.confirmer = agent
    await store.set_agent_address(agent, onboarding_state=OnboardingState.AGENT_KEY_CREATED)
    await store.add_owner_address(OWNER_A.address)
    await store.add_owner_address(OWNER_B.address)
    record = VaultRecord(
        address=VAULT,
        network_id=profile.network_id,
        network_name=profile.name,
        owners=[agent, OWNER_A.address, OWNER_B.address],
        threshold=2,
    )
    await store.record_deployment(record, "0x" + "ab" * 32)
    await store.set_onboarding_state(OnboardingState.READY)
    return record


@pytest.fixture
def orchestrator(deployed, store, keystore, rpc, sdk, coordinator, profile):
    return TransactionOrchestrator(store, keystore, rpc, sdk, coordinator, profile)
