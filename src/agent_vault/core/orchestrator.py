"""Propose / confirm / execute lifecycle for vault actions.

Every intent goes through the same pipeline:

1. build the underlying calls (plain transfer, or an integration builder);
2. compose them into one vault action;
3. hash the fully assembled action;
4. sign that hash with the agent key;
5. submit action, hash, agent address and signature to the coordination
   service;
6. record the proposal locally as ``PROPOSED``.

Intents that spend a token through a spender contract (swap, lending supply)
are a single two-call batch ``[approve(spender), action(spender)]``.

Local proposal status is a cache of the coordination service.  It is only
synchronised in :meth:`TransactionOrchestrator.check_proposal_status`, and
``execute_if_ready`` always re-queries the service before executing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from web3 import Web3

from agent_vault.assets import AssetResolver, ResolvedAsset, format_units, to_base_units
from agent_vault.chains import AssetConfig, NetworkProfile
from agent_vault.core.balances import VaultBalances, fetch_balances
from agent_vault.errors import (
    ActionHashMismatch,
    InvalidAddress,
    InvalidAmount,
    VaultNotDeployed,
)
from agent_vault.integrations.aave import LendingBuilder
from agent_vault.integrations.tokens import (
    native_transfer_call,
    token_transfer_call,
    unwrap_call,
    wrap_call,
)
from agent_vault.integrations.uniswap import SwapBuilder, SwapQuote, slippage_fraction
from agent_vault.integrations.yields import YieldService
from agent_vault.storage.models import Proposal, ProposalStatus, SwapDetails
from agent_vault.storage.store import StateStore
from agent_vault.vault.sdk import BaseVaultSDK, OwnerSignature, VaultCall
from agent_vault.vault.tx_service import BaseCoordinationService, RemoteConfirmation
from agent_vault.wallet.keystore import AgentKeyStore
from agent_vault.wallet.provider import ChainRPCClient

logger = logging.getLogger("agent_vault.core.orchestrator")


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass
class ProposeResult:
    action_hash: str
    nonce: int
    call_count: int
    summary: str
    instructions: str
    quote: Optional[SwapQuote] = None


@dataclass
class ProposalStatusReport:
    action_hash: str
    confirmations: list[RemoteConfirmation]
    confirmations_required: int
    confirmed_by_owner: bool
    ready_to_execute: bool
    is_executed: bool
    is_successful: Optional[bool]
    executed_tx_hash: Optional[str]
    local_status: Optional[ProposalStatus]
    message: str


@dataclass
class ExecutionResult:
    action_hash: str
    executed: bool
    message: str
    tx_hash: Optional[str] = None


@dataclass
class SignResult:
    action_hash: str
    signed: bool
    message: str


@dataclass
class FaucetResult:
    tx_hash: str
    message: str


@dataclass
class AssetAdded:
    added: bool
    asset: AssetConfig
    message: str


@dataclass
class SwapQuoteView:
    """A quote with amounts formatted for display."""

    quote: SwapQuote
    amount_in: str
    expected_out: str
    min_out: str


def _next_steps(action_hash: str) -> str:
    return (
        f"ActionHash: {action_hash}\n\n"
        "Next steps:\n"
        "1. Open the Safe app (app.safe.global)\n"
        "2. Go to Transactions -> Queue\n"
        "3. Find and confirm the pending transaction\n"
        f"4. Check status of {action_hash}\n"
        f"5. Execute {action_hash} once confirmed"
    )


class TransactionOrchestrator:
    """Turns intents into proposed, trackable, executable vault actions."""

    def __init__(
        self,
        store: StateStore,
        keystore: AgentKeyStore,
        rpc: ChainRPCClient,
        sdk: BaseVaultSDK,
        coordinator: BaseCoordinationService,
        profile: NetworkProfile,
        slippage_percent: Decimal | float | str = Decimal("0.5"),
        yields: Optional[YieldService] = None,
    ) -> None:
        self.store = store
        self.keystore = keystore
        self.rpc = rpc
        self.sdk = sdk
        self.coordinator = coordinator
        self.profile = profile
        self.slippage = slippage_fraction(slippage_percent)
        self.yields = yields or YieldService()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def vault_address(self) -> str:
        """Vault for the active network. Raises ``VaultNotDeployed``."""
        address = self.store.vault_address_for(self.profile.network_id)
        if address is None:
            raise VaultNotDeployed(self.profile.name)
        return address

    def assets(self) -> list[AssetConfig]:
        return self.store.assets_for(self.profile.network_id, self.profile.default_assets)

    def resolver(self) -> AssetResolver:
        return AssetResolver(self.profile, self.assets(), self.rpc)

    def _token_label(self, asset: ResolvedAsset) -> str:
        return f"W{asset.symbol}" if asset.is_native else asset.symbol

    @staticmethod
    def _checked_address(address: str) -> str:
        candidate = address.strip()
        if not Web3.is_address(candidate):
            raise InvalidAddress(address)
        return Web3.to_checksum_address(candidate)

    @staticmethod
    def _positive_units(amount: str | Decimal, decimals: int) -> int:
        raw = to_base_units(amount, decimals)
        if raw == 0:
            raise InvalidAmount(f"Amount must be greater than zero, got {amount}")
        return raw

    async def _next_nonce(self, vault: str) -> int:
        """On-chain nonce, or one past the highest queued proposal."""
        nonce = await self.sdk.get_nonce(vault)
        pending = await self.coordinator.get_pending_transactions(vault)
        queued = [tx.nonce for tx in pending if tx.nonce >= nonce]
        if queued:
            nonce = max(queued) + 1
        return nonce

    async def _propose(
        self,
        calls: list[VaultCall],
        description: str,
        swap_details: Optional[SwapDetails] = None,
    ) -> tuple[str, int]:
        vault = self.vault_address
        agent = self.keystore.address

        nonce = await self._next_nonce(vault)
        action = await self.sdk.build_action(vault, calls, nonce)
        action_hash = await self.sdk.hash_action(vault, action)
        signature = self.sdk.sign_hash(action_hash)
        await self.coordinator.propose(vault, action, action_hash, agent, signature)

        await self.store.add_proposal(
            Proposal(
                action_hash=action_hash,
                status=ProposalStatus.PROPOSED,
                description=description,
                to=action.to,
                value=action.value,
                data=action.data,
                nonce=nonce,
                network_id=self.profile.network_id,
                swap_details=swap_details,
            )
        )
        logger.info(f"Proposed {action_hash} (nonce {nonce}): {description}")
        return action_hash, nonce

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------

    async def propose_send_native(self, to: str, amount: str | Decimal) -> ProposeResult:
        """Propose sending *amount* of the native asset from the vault."""
        recipient = self._checked_address(to)
        value = self._positive_units(amount, 18)
        symbol = self.profile.native_symbol

        calls = [native_transfer_call(recipient, value)]
        description = f"Send {amount} {symbol} to {recipient}"
        action_hash, nonce = await self._propose(calls, description)
        return ProposeResult(
            action_hash=action_hash,
            nonce=nonce,
            call_count=1,
            summary=f"Proposed: {description}",
            instructions="Transaction proposed!\n\n" + _next_steps(action_hash),
        )

    async def propose_send_asset(
        self, asset: str, to: str, amount: str | Decimal
    ) -> ProposeResult:
        """Propose an ERC-20 transfer. The native alias sends the native asset."""
        recipient = self._checked_address(to)
        resolved = await self.resolver().resolve(asset)
        if resolved.is_native:
            return await self.propose_send_native(recipient, amount)

        raw = self._positive_units(amount, resolved.decimals)
        calls = [token_transfer_call(resolved.address, recipient, raw)]
        description = f"Send {amount} {resolved.symbol} to {recipient}"
        action_hash, nonce = await self._propose(calls, description)
        return ProposeResult(
            action_hash=action_hash,
            nonce=nonce,
            call_count=1,
            summary=f"Proposed: {description}",
            instructions="Transaction proposed!\n\n" + _next_steps(action_hash),
        )

    # ------------------------------------------------------------------
    # Swaps
    # ------------------------------------------------------------------

    async def get_swap_quote(
        self,
        asset_in: str,
        asset_out: str,
        amount: str | Decimal,
        fee: Optional[int] = None,
    ) -> SwapQuoteView:
        """Expected and minimum output for swapping *amount* of *asset_in*.

        A pure read.  Raises ``NoPoolExists`` when there is no pool for the
        pair.
        """
        builder = SwapBuilder(self.profile, self.rpc)
        resolver = self.resolver()
        token_in = await resolver.resolve(asset_in)
        token_out = await resolver.resolve(asset_out)
        amount_in = self._positive_units(amount, token_in.decimals)

        quote = await builder.quote(token_in, token_out, amount_in, self.slippage, fee)
        return SwapQuoteView(
            quote=quote,
            amount_in=format_units(quote.amount_in, token_in.decimals),
            expected_out=format_units(quote.expected_out, token_out.decimals),
            min_out=format_units(quote.min_out, token_out.decimals),
        )

    async def propose_swap(
        self,
        asset_in: str,
        asset_out: str,
        amount: str | Decimal,
        fee: Optional[int] = None,
    ) -> ProposeResult:
        """Quote, then propose the swap with the quoted minimum output.

        A token input becomes an approve + swap batch; a native input is a
        single call carrying the value.  Nothing is proposed if quoting fails.
        """
        vault = self.vault_address
        view = await self.get_swap_quote(asset_in, asset_out, amount, fee)
        quote = view.quote
        builder = SwapBuilder(self.profile, self.rpc)
        calls = builder.build_swap_calls(quote, vault)

        sym_in, sym_out = quote.asset_in.symbol, quote.asset_out.symbol
        prefix = "Swap" if quote.asset_in.is_native else "Approve + Swap"
        description = f"{prefix} {view.amount_in} {sym_in} -> {view.expected_out} {sym_out}"
        details = SwapDetails(
            symbol_in=sym_in,
            symbol_out=sym_out,
            amount_in=view.amount_in,
            expected_out=view.expected_out,
            min_out=view.min_out,
            fee=quote.fee,
        )
        action_hash, nonce = await self._propose(calls, description, swap_details=details)

        batch_note = "" if quote.asset_in.is_native else " (includes token approval)"
        return ProposeResult(
            action_hash=action_hash,
            nonce=nonce,
            call_count=len(calls),
            summary=(
                f"Proposed: Swap {view.amount_in} {sym_in} -> ~{view.expected_out} {sym_out} "
                f"(min: {view.min_out}){batch_note}"
            ),
            instructions=(
                f"Swap transaction proposed!{batch_note}\n\n"
                f"- From: {view.amount_in} {sym_in}\n"
                f"- To: ~{view.expected_out} {sym_out}\n"
                f"- Min Output: {view.min_out} {sym_out}\n\n" + _next_steps(action_hash)
            ),
            quote=quote,
        )

    # ------------------------------------------------------------------
    # Wrap / unwrap
    # ------------------------------------------------------------------

    async def propose_wrap(self, amount: str | Decimal) -> ProposeResult:
        value = self._positive_units(amount, 18)
        symbol = self.profile.native_symbol
        calls = [wrap_call(self.profile.wrapped_native, value)]
        description = f"Wrap {amount} {symbol} -> W{symbol}"
        action_hash, nonce = await self._propose(calls, description)
        return ProposeResult(
            action_hash=action_hash,
            nonce=nonce,
            call_count=1,
            summary=f"Proposed: {description}",
            instructions="Wrap proposed!\n\n" + _next_steps(action_hash),
        )

    async def propose_unwrap(self, amount: str | Decimal) -> ProposeResult:
        raw = self._positive_units(amount, 18)
        symbol = self.profile.native_symbol
        calls = [unwrap_call(self.profile.wrapped_native, raw)]
        description = f"Unwrap {amount} W{symbol} -> {symbol}"
        action_hash, nonce = await self._propose(calls, description)
        return ProposeResult(
            action_hash=action_hash,
            nonce=nonce,
            call_count=1,
            summary=f"Proposed: {description}",
            instructions="Unwrap proposed!\n\n" + _next_steps(action_hash),
        )

    # ------------------------------------------------------------------
    # Lending
    # ------------------------------------------------------------------

    async def propose_lending_supply(self, asset: str, amount: str | Decimal) -> ProposeResult:
        """Approve + supply *amount* of *asset* into the lending pool for the vault."""
        builder = LendingBuilder(self.profile)
        vault = self.vault_address
        resolved = await self.resolver().resolve(asset)
        raw = self._positive_units(amount, resolved.decimals)
        label = self._token_label(resolved)

        calls = builder.supply_calls(resolved.address, raw, vault)
        description = f"Approve + Supply {amount} {label} to lending pool"
        action_hash, nonce = await self._propose(calls, description)
        return ProposeResult(
            action_hash=action_hash,
            nonce=nonce,
            call_count=len(calls),
            summary=f"Proposed: Supply {amount} {label} (includes token approval)",
            instructions="Lending supply proposed!\n\n" + _next_steps(action_hash),
        )

    async def propose_lending_withdraw(
        self, asset: str, amount: str | Decimal = "max"
    ) -> ProposeResult:
        """Withdraw from the lending pool to the vault. ``"max"`` withdraws everything."""
        builder = LendingBuilder(self.profile)
        vault = self.vault_address
        resolved = await self.resolver().resolve(asset)
        label = self._token_label(resolved)

        is_max = str(amount).strip().lower() == "max"
        raw = None if is_max else self._positive_units(amount, resolved.decimals)
        shown = "all" if is_max else str(amount)

        calls = [builder.withdraw_call(resolved.address, raw, vault)]
        description = f"Withdraw {shown} {label} from lending pool"
        action_hash, nonce = await self._propose(calls, description)
        interest = " (including earned interest)" if is_max else ""
        return ProposeResult(
            action_hash=action_hash,
            nonce=nonce,
            call_count=1,
            summary=f"Proposed: {description}",
            instructions=f"Lending withdraw proposed{interest}!\n\n" + _next_steps(action_hash),
        )

    async def request_faucet(self, asset: str, amount: str | Decimal) -> FaucetResult:
        """Mint testnet tokens from the lending faucet straight to the vault.

        This is a transaction from the agent key, not a vault proposal.
        """
        builder = LendingBuilder(self.profile)
        vault = self.vault_address
        resolved = await self.resolver().resolve(asset)
        raw = self._positive_units(amount, resolved.decimals)

        faucet, data = builder.faucet_mint(resolved.address, vault, raw)
        tx_hash = await self.rpc.send_transaction(self.keystore.account, faucet, 0, data)
        logger.info(f"Faucet mint of {amount} {resolved.symbol} to {vault}: {tx_hash}")
        return FaucetResult(
            tx_hash=tx_hash,
            message=(
                f"Requested {amount} {self._token_label(resolved)} from the faucet.\n\n"
                f"Transaction Hash: {tx_hash}\n"
                f"Tokens are being minted directly to the vault: {vault}"
            ),
        )

    # ------------------------------------------------------------------
    # Confirmation / execution
    # ------------------------------------------------------------------

    async def check_proposal_status(self, action_hash: str) -> ProposalStatusReport:
        """Sync confirmation state for *action_hash* from the coordination service.

        Advances the local proposal to ``OWNER_CONFIRMED`` once the required
        confirmations are in, to ``EXECUTED`` once the service reports
        execution, or to ``FAILED`` if that execution was unsuccessful.
        Re-checking an already advanced proposal changes nothing locally.
        """
        remote = await self.coordinator.get_transaction(action_hash)
        count = len(remote.confirmations)
        required = remote.confirmations_required or await self.sdk.get_threshold(remote.safe)
        confirmed = count >= required
        ready = confirmed and not remote.is_executed

        local = self.store.get_proposal(action_hash)
        if local is not None:
            if confirmed:
                await self.store.update_proposal_status(
                    action_hash, ProposalStatus.OWNER_CONFIRMED
                )
            if remote.is_executed:
                final = (
                    ProposalStatus.FAILED
                    if remote.is_successful is False
                    else ProposalStatus.EXECUTED
                )
                await self.store.update_proposal_status(
                    action_hash, final, executed_tx_hash=remote.transaction_hash
                )
            local = self.store.get_proposal(action_hash)

        lines = [f"Confirmations: {count}/{required}"]
        for conf in remote.confirmations:
            when = conf.submission_date.isoformat() if conf.submission_date else "unknown"
            lines.append(f"- {conf.owner} ({when})")
        lines.append("")
        if remote.is_executed:
            outcome = "failed" if remote.is_successful is False else "executed"
            lines.append(f"Transaction already {outcome}: {remote.transaction_hash}")
        elif ready:
            lines.append(f"Ready to execute {action_hash}")
        else:
            lines.append("Waiting for more confirmations. Please confirm in the Safe app.")

        return ProposalStatusReport(
            action_hash=action_hash,
            confirmations=list(remote.confirmations),
            confirmations_required=required,
            confirmed_by_owner=confirmed,
            ready_to_execute=ready,
            is_executed=remote.is_executed,
            is_successful=remote.is_successful,
            executed_tx_hash=remote.transaction_hash,
            local_status=local.status if local else None,
            message="\n".join(lines),
        )

    async def execute_if_ready(self, action_hash: str) -> ExecutionResult:
        """Execute *action_hash* on-chain once it has enough confirmations.

        Not-ready and already-executed are reported, not raised.  An on-chain
        revert propagates and the proposal stays ``OWNER_CONFIRMED``.
        """
        status = await self.check_proposal_status(action_hash)
        if status.is_executed:
            return ExecutionResult(
                action_hash=action_hash,
                executed=False,
                tx_hash=status.executed_tx_hash,
                message=f"Transaction {action_hash} already executed.",
            )
        if not status.ready_to_execute:
            return ExecutionResult(
                action_hash=action_hash,
                executed=False,
                message=(
                    f"Not ready to execute {action_hash}. "
                    f"{len(status.confirmations)}/{status.confirmations_required} confirmations."
                ),
            )

        remote = await self.coordinator.get_transaction(action_hash)
        action = remote.to_action()
        rehashed = await self.sdk.hash_action(remote.safe, action)
        if rehashed.lower() != action_hash.lower():
            raise ActionHashMismatch(
                f"Service record for {action_hash} hashes to {rehashed}; refusing to execute"
            )

        signatures = sorted(
            (OwnerSignature(owner=c.owner, signature=c.signature) for c in remote.confirmations),
            key=lambda s: int(s.owner, 16),
        )
        tx_hash = await self.sdk.execute_action(remote.safe, action, signatures)
        await self.store.update_proposal_status(
            action_hash, ProposalStatus.EXECUTED, executed_tx_hash=tx_hash
        )
        logger.info(f"Executed {action_hash} in {tx_hash}")
        return ExecutionResult(
            action_hash=action_hash,
            executed=True,
            tx_hash=tx_hash,
            message=(
                f"Transaction executed!\n\nTx Hash: {tx_hash}\n\n"
                f"View on explorer: {self.profile.tx_url(tx_hash)}"
            ),
        )

    async def agent_sign_transaction(self, action_hash: str) -> SignResult:
        """Add the agent's confirmation to an action someone else proposed.

        A no-op (reported) when the agent has already confirmed; the check is
        by owner address, not by count.
        """
        status = await self.check_proposal_status(action_hash)
        if status.is_executed:
            return SignResult(
                action_hash=action_hash,
                signed=False,
                message=f"Transaction {action_hash} already executed.",
            )

        agent = self.keystore.address
        if any(c.owner.lower() == agent.lower() for c in status.confirmations):
            return SignResult(
                action_hash=action_hash,
                signed=False,
                message=(
                    "Agent has already signed this transaction. "
                    f"{len(status.confirmations)}/{status.confirmations_required} confirmations."
                ),
            )

        signature = self.sdk.sign_hash(action_hash)
        await self.coordinator.confirm(action_hash, signature)
        after = await self.check_proposal_status(action_hash)
        follow_up = (
            "Transaction is ready to execute!"
            if after.ready_to_execute
            else "Waiting for more signatures."
        )
        return SignResult(
            action_hash=action_hash,
            signed=True,
            message=(
                f"Agent signed transaction!\n\nActionHash: {action_hash}\n"
                f"Confirmations: {len(after.confirmations)}/{after.confirmations_required}\n\n"
                + follow_up
            ),
        )

    # ------------------------------------------------------------------
    # Ledger, assets, balances, yields
    # ------------------------------------------------------------------

    def pending_proposals(self) -> list[Proposal]:
        return self.store.pending_proposals()

    async def add_asset(self, symbol: str, address: str, decimals: int) -> AssetAdded:
        """Add a custom asset on the active network."""
        checksummed = self._checked_address(address)
        if not 0 <= int(decimals) <= 77:
            raise InvalidAmount(f"Invalid decimals: {decimals}")
        asset = AssetConfig(symbol=symbol.strip(), address=checksummed, decimals=int(decimals))
        added = await self.store.add_custom_asset(self.profile.network_id, asset)
        if added:
            message = f"Asset {asset.symbol} ({checksummed}) added on {self.profile.name}."
        else:
            message = f"Asset at {checksummed} is already listed on {self.profile.name}."
        return AssetAdded(added=added, asset=asset, message=message)

    async def get_balances(self) -> VaultBalances:
        return await fetch_balances(
            self.rpc, self.vault_address, self.assets(), self.profile.native_symbol
        )

    async def get_yield_summary(self) -> str:
        if not self.profile.yield_index:
            return "Yield data lookup not configured for this network."
        symbols = [a.symbol for a in self.assets()]
        return await self.yields.get_summary(self.profile.yield_index, symbols)
