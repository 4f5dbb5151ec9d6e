"""One-time setup: agent key, funding check, owner collection, deployment.

State sequence::

    INIT -> AGENT_KEY_CREATED -> AWAIT_FUNDING <-> AWAIT_OWNER
         -> READY_TO_DEPLOY -> DEPLOYED -> READY

Every transition is a single write to the state store.  Faults are raised
without touching state, so any step can be repeated from the last committed
state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from web3 import Web3

from agent_vault.assets import format_units, parse_amount, to_base_units
from agent_vault.chains import NetworkProfile
from agent_vault.errors import (
    InvalidAddress,
    InvalidThreshold,
    NoAgentIdentity,
    NoOwners,
    NotReady,
    SelfOwnershipRejected,
)
from agent_vault.storage.models import OnboardingState, VaultRecord
from agent_vault.storage.store import StateStore
from agent_vault.vault.sdk import BaseVaultSDK
from agent_vault.wallet.keystore import AgentKeyStore
from agent_vault.wallet.provider import ChainRPCClient

logger = logging.getLogger("agent_vault.core.onboarding")

DEFAULT_MIN_DEPLOY_NATIVE = Decimal("0.0005")

# States in which the funding check may move the machine.
_FUNDING_STATES = (
    OnboardingState.AGENT_KEY_CREATED,
    OnboardingState.AWAIT_FUNDING,
    OnboardingState.AWAIT_OWNER,
)


@dataclass
class StartResult:
    agent_address: str
    created: bool
    state: OnboardingState
    instructions: str


@dataclass
class FundsCheck:
    balance_wei: int
    balance: str
    min_required: str
    ok: bool
    state: OnboardingState
    message: str


@dataclass
class OwnerAdded:
    owner_address: str
    added: bool
    total_owners: int
    message: str


@dataclass
class DeployOverview:
    network: str
    owners: list[str]
    threshold: int
    deployer: str
    estimated_cost: str


@dataclass
class DeployOutcome:
    vault_address: str
    deploy_tx_hash: str
    owners: list[str]
    threshold: int
    instructions: str


def effective_threshold(threshold: Optional[int], owner_count: int) -> int:
    """Explicit *threshold*, or every owner when none is given."""
    if threshold is None:
        return owner_count
    if not 1 <= threshold <= owner_count:
        raise InvalidThreshold(
            f"Threshold {threshold} must be between 1 and the number of owners ({owner_count})"
        )
    return threshold


class OnboardingStateMachine:
    """Drives a fresh installation to a deployed, usable vault."""

    def __init__(
        self,
        store: StateStore,
        keystore: AgentKeyStore,
        rpc: ChainRPCClient,
        sdk: BaseVaultSDK,
        profile: NetworkProfile,
        min_deploy_native: Decimal = DEFAULT_MIN_DEPLOY_NATIVE,
    ) -> None:
        self.store = store
        self.keystore = keystore
        self.rpc = rpc
        self.sdk = sdk
        self.profile = profile
        self.min_deploy_native = Decimal(str(min_deploy_native))

    @property
    def state(self) -> OnboardingState:
        return self.store.onboarding_state

    def _ensure_identity(self) -> str:
        if not self.keystore.loaded:
            if not self.keystore.exists():
                raise NoAgentIdentity()
            self.keystore.load()
        return self.keystore.address

    def _funding_hint(self, address: str) -> str:
        return (
            f"Send at least {self.min_deploy_native} {self.profile.native_symbol} to "
            f"{address} on {self.profile.name} for deployment gas, then check funds."
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def start(self) -> StartResult:
        """Load the existing agent key, or create one.

        Safe to call on every process start.  With an existing key the
        state never regresses; ``INIT`` is promoted to ``AGENT_KEY_CREATED``
        and an interrupted ``DEPLOYED`` is completed to ``READY``.
        """
        current = self.store.onboarding_state

        if self.keystore.exists():
            address = self.keystore.load()
            target = current
            if current == OnboardingState.INIT:
                target = OnboardingState.AGENT_KEY_CREATED
            elif current == OnboardingState.DEPLOYED:
                target = OnboardingState.READY
            if self.store.agent_address != address or target != current:
                await self.store.set_agent_address(address, onboarding_state=target)
            return StartResult(
                agent_address=address,
                created=False,
                state=target,
                instructions=f"Agent key already exists.\n\nAgent Address: {address}\n\n"
                + self._funding_hint(address),
            )

        address = self.keystore.create()
        await self.store.set_agent_address(
            address, onboarding_state=OnboardingState.AGENT_KEY_CREATED
        )
        return StartResult(
            agent_address=address,
            created=True,
            state=OnboardingState.AGENT_KEY_CREATED,
            instructions=f"Agent key created!\n\nAgent Address: {address}\n\n"
            + self._funding_hint(address),
        )

    async def check_agent_funds(self, minimum: Optional[Decimal | str] = None) -> FundsCheck:
        """Compare the agent's native balance against *minimum*.

        Insufficient funds are a reported outcome, not an error.
        """
        address = self._ensure_identity()
        minimum = parse_amount(minimum) if minimum is not None else self.min_deploy_native
        min_wei = to_base_units(minimum, 18)

        balance_wei = await self.rpc.get_balance(address)
        balance = format_units(balance_wei, 18)
        ok = balance_wei >= min_wei
        symbol = self.profile.native_symbol

        state = self.store.onboarding_state
        if state in _FUNDING_STATES:
            state = OnboardingState.AWAIT_OWNER if ok else OnboardingState.AWAIT_FUNDING
            await self.store.set_onboarding_state(state)

        if ok:
            message = (
                f"Agent has {balance} {symbol}. Ready to proceed!\n\n"
                "Provide the address of a human signer to add as vault owner."
            )
        else:
            message = (
                f"Agent balance: {balance} {symbol}\nRequired: {minimum} {symbol}\n\n"
                f"Please send more {symbol} to {address} and try again."
            )
        return FundsCheck(
            balance_wei=balance_wei,
            balance=balance,
            min_required=str(minimum),
            ok=ok,
            state=state,
            message=message,
        )

    async def add_owner_address(self, owner_address: str) -> OwnerAdded:
        """Add a human owner.

        Raises ``InvalidAddress`` for a malformed address and
        ``SelfOwnershipRejected`` for the agent's own address.  Adding an
        address twice is a no-op.
        """
        agent_address = self._ensure_identity()
        candidate = owner_address.strip()
        if not Web3.is_address(candidate):
            raise InvalidAddress(owner_address)
        checksummed = Web3.to_checksum_address(candidate)
        if checksummed.lower() == agent_address.lower():
            raise SelfOwnershipRejected(checksummed)

        advance = None
        if self.store.onboarding_state.precedes(OnboardingState.READY_TO_DEPLOY):
            advance = OnboardingState.READY_TO_DEPLOY
        added = await self.store.add_owner_address(checksummed, onboarding_state=advance)

        total = len(self.store.owner_addresses) + 1
        if added:
            logger.info(f"Owner {checksummed} added ({total} owners incl. agent)")
            message = (
                f"Owner address added: {checksummed} (Total owners: {total})\n\n"
                "You can add more owners or deploy the vault."
            )
        else:
            message = f"Owner address {checksummed} is already listed (Total owners: {total})"
        return OwnerAdded(
            owner_address=checksummed, added=added, total_owners=total, message=message
        )

    def get_deploy_overview(self, threshold: Optional[int] = None) -> DeployOverview:
        """Owners, effective threshold and funding estimate. No side effects."""
        agent_address = self._ensure_identity()
        owners = self.store.owner_addresses
        if not owners:
            raise NoOwners()
        all_owners = [agent_address, *owners]
        return DeployOverview(
            network=self.profile.name,
            owners=all_owners,
            threshold=effective_threshold(threshold, len(all_owners)),
            deployer=agent_address,
            estimated_cost=f"~{self.min_deploy_native} {self.profile.native_symbol}",
        )

    async def deploy_vault(self, threshold: Optional[int] = None) -> DeployOutcome:
        """Deploy the vault with the agent plus every collected owner.

        Raises ``NotReady`` unless the state is exactly ``READY_TO_DEPLOY``.
        Not retried automatically; a failed chain transaction propagates and
        the call can be repeated.
        """
        agent_address = self._ensure_identity()
        state = self.store.onboarding_state
        if state != OnboardingState.READY_TO_DEPLOY:
            raise NotReady(f"Cannot deploy the vault in state '{state.value}'")
        if not self.store.owner_addresses:
            raise NoOwners()

        owners = [agent_address, *self.store.owner_addresses]
        effective = effective_threshold(threshold, len(owners))

        result = await self.sdk.deploy(owners, effective)
        record = VaultRecord(
            address=result.address,
            network_id=self.profile.network_id,
            network_name=self.profile.name,
            owners=owners,
            threshold=effective,
        )
        await self.store.record_deployment(record, result.tx_hash or None)
        await self.store.set_onboarding_state(OnboardingState.READY)
        logger.info(
            f"Vault {result.address} deployed on {self.profile.name} "
            f"({effective}-of-{len(owners)})"
        )

        instructions = "\n".join(
            [
                "Vault deployed successfully!",
                "",
                f"Vault Address: {result.address}",
                f"Deploy TX: {result.tx_hash or '(already deployed)'}",
                f"Network: {self.profile.name}",
                f"Owners: {len(owners)}",
                f"Threshold: {effective}",
                "",
                "Next steps:",
                "1. Deposit native asset or tokens to the vault address",
                f"2. Open the Safe app (app.safe.global), add {self.profile.name} "
                "and import the vault by address",
                "3. Check balances, then propose transactions",
                "4. Confirm pending transactions as a human owner",
                "5. Execute once the threshold is met",
            ]
        )
        return DeployOutcome(
            vault_address=result.address,
            deploy_tx_hash=result.tx_hash,
            owners=owners,
            threshold=effective,
            instructions=instructions,
        )
