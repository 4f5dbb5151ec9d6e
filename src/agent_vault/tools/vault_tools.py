"""Agent-facing vault tools.

These tools let an agent drive onboarding and propose, track and execute
vault actions.  The agent's signature alone never executes anything: every
action still needs the human owners' confirmations.
"""

from __future__ import annotations

import functools
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from agent_vault.errors import VaultError
from agent_vault.tools.registry import tool

if TYPE_CHECKING:
    from agent_vault.core.session import VaultSession

logger = logging.getLogger("agent_vault.tools.vault")

# Set at runtime by whoever opens the session
_session: VaultSession | None = None


def set_session(session: VaultSession | None) -> None:
    """Inject the open :class:`VaultSession`."""
    global _session
    _session = session


def _require_session() -> VaultSession:
    if _session is None:
        raise RuntimeError("Vault session not open. Call set_session() first.")
    return _session


def _reports_errors(func: Callable[..., Awaitable[str]]) -> Callable[..., Awaitable[str]]:
    """Turn domain faults into an ``Error: ...`` reply for the agent."""

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> str:
        try:
            return await func(*args, **kwargs)
        except VaultError as e:
            logger.warning(f"{func.__name__} failed: {e}")
            return f"Error: {e}"

    return wrapper


def _schema(properties: dict[str, tuple[str, str]], required: list[str]) -> dict:
    return {
        "type": "object",
        "properties": {
            name: {"type": json_type, "description": desc}
            for name, (json_type, desc) in properties.items()
        },
        "required": required,
    }


_HASH = {"action_hash": ("string", "Canonical action hash (0x...)")}


# ---------------------------------------------------------------------------
# Onboarding
# ---------------------------------------------------------------------------


@tool("wizard_start", "Create (or load) the agent's signing key.", _schema({}, []))
@_reports_errors
async def wizard_start() -> str:
    result = await _require_session().onboarding.start()
    return result.instructions


@tool(
    "wizard_check_agent_funds",
    "Check that the agent key holds enough native asset to pay for vault deployment.",
    _schema({"min_amount": ("string", "Minimum native amount (default from config)")}, []),
)
@_reports_errors
async def wizard_check_agent_funds(min_amount: str = "") -> str:
    minimum = min_amount if min_amount.strip() else None
    result = await _require_session().onboarding.check_agent_funds(minimum)
    return result.message


@tool(
    "wizard_add_owner_address",
    "Add a human owner address to the vault about to be deployed.",
    _schema({"owner_address": ("string", "Owner's wallet address (0x...)")}, ["owner_address"]),
)
@_reports_errors
async def wizard_add_owner_address(owner_address: str) -> str:
    result = await _require_session().onboarding.add_owner_address(owner_address)
    return result.message


@tool(
    "wizard_get_deploy_overview",
    "Show owners, threshold and estimated cost before deploying the vault.",
    _schema({"threshold": ("integer", "Signatures required (default: all owners)")}, []),
)
@_reports_errors
async def wizard_get_deploy_overview(threshold: int | None = None) -> str:
    overview = _require_session().onboarding.get_deploy_overview(threshold)
    owners = "\n".join(f"  - {o}" for o in overview.owners)
    return (
        f"Network: {overview.network}\n"
        f"Owners ({len(overview.owners)}):\n{owners}\n"
        f"Threshold: {overview.threshold}\n"
        f"Deployer: {overview.deployer}\n"
        f"Estimated cost: {overview.estimated_cost}"
    )


@tool(
    "wizard_deploy_vault",
    "Deploy the multisig vault with the agent and all collected owners.",
    _schema({"threshold": ("integer", "Signatures required (default: all owners)")}, []),
)
@_reports_errors
async def wizard_deploy_vault(threshold: int | None = None) -> str:
    result = await _require_session().onboarding.deploy_vault(threshold)
    return result.instructions


# ---------------------------------------------------------------------------
# Read-only
# ---------------------------------------------------------------------------


@tool("vault_get_balances", "Show the vault's native and token balances.", _schema({}, []))
@_reports_errors
async def vault_get_balances() -> str:
    balances = await _require_session().orchestrator.get_balances()
    return f"Vault {balances.address}:\n{balances.summary()}"


@tool("vault_get_yields", "Top yield opportunities for the vault's assets.", _schema({}, []))
@_reports_errors
async def vault_get_yields() -> str:
    return await _require_session().orchestrator.get_yield_summary()


@tool(
    "vault_get_swap_quote",
    "Quote a swap without proposing it.",
    _schema(
        {
            "asset_in": ("string", "Symbol or address to sell"),
            "asset_out": ("string", "Symbol or address to buy"),
            "amount": ("string", "Amount to sell, e.g. '0.1'"),
        },
        ["asset_in", "asset_out", "amount"],
    ),
)
@_reports_errors
async def vault_get_swap_quote(asset_in: str, asset_out: str, amount: str) -> str:
    view = await _require_session().orchestrator.get_swap_quote(asset_in, asset_out, amount)
    q = view.quote
    return (
        f"{view.amount_in} {q.asset_in.symbol} -> ~{view.expected_out} {q.asset_out.symbol}\n"
        f"Minimum output: {view.min_out} {q.asset_out.symbol}\n"
        f"Pool fee: {q.fee / 10000}%"
    )


@tool("vault_list_vaults", "List every vault this agent has deployed.", _schema({}, []))
@_reports_errors
async def vault_list_vaults() -> str:
    vaults = _require_session().list_vaults()
    if not vaults:
        return "No vaults deployed yet."
    return "\n".join(
        f"- {v.address} on {v.network_name} ({v.threshold}-of-{len(v.owners)})" for v in vaults
    )


@tool("vault_pending_proposals", "List proposals still awaiting execution.", _schema({}, []))
@_reports_errors
async def vault_pending_proposals() -> str:
    pending = _require_session().orchestrator.pending_proposals()
    if not pending:
        return "No pending proposals."
    return "\n".join(f"- {p.action_hash} [{p.status.value}] {p.description}" for p in pending)


# ---------------------------------------------------------------------------
# Proposals
# ---------------------------------------------------------------------------


@tool(
    "vault_propose_send_native",
    "Propose sending the native asset from the vault.",
    _schema(
        {"to": ("string", "Recipient address"), "amount": ("string", "Amount, e.g. '0.01'")},
        ["to", "amount"],
    ),
)
@_reports_errors
async def vault_propose_send_native(to: str, amount: str) -> str:
    result = await _require_session().orchestrator.propose_send_native(to, amount)
    return result.instructions


@tool(
    "vault_propose_send_asset",
    "Propose sending an ERC-20 asset from the vault.",
    _schema(
        {
            "asset": ("string", "Asset symbol or token address"),
            "to": ("string", "Recipient address"),
            "amount": ("string", "Amount, e.g. '10'"),
        },
        ["asset", "to", "amount"],
    ),
)
@_reports_errors
async def vault_propose_send_asset(asset: str, to: str, amount: str) -> str:
    result = await _require_session().orchestrator.propose_send_asset(asset, to, amount)
    return result.instructions


@tool(
    "vault_propose_swap",
    "Propose a swap (approve + swap batch for tokens).",
    _schema(
        {
            "asset_in": ("string", "Symbol or address to sell"),
            "asset_out": ("string", "Symbol or address to buy"),
            "amount": ("string", "Amount to sell"),
        },
        ["asset_in", "asset_out", "amount"],
    ),
)
@_reports_errors
async def vault_propose_swap(asset_in: str, asset_out: str, amount: str) -> str:
    result = await _require_session().orchestrator.propose_swap(asset_in, asset_out, amount)
    return f"{result.summary}\n\n{result.instructions}"


@tool(
    "vault_propose_wrap",
    "Propose wrapping native asset into its wrapped token.",
    _schema({"amount": ("string", "Amount to wrap")}, ["amount"]),
)
@_reports_errors
async def vault_propose_wrap(amount: str) -> str:
    result = await _require_session().orchestrator.propose_wrap(amount)
    return result.instructions


@tool(
    "vault_propose_unwrap",
    "Propose unwrapping the wrapped native token.",
    _schema({"amount": ("string", "Amount to unwrap")}, ["amount"]),
)
@_reports_errors
async def vault_propose_unwrap(amount: str) -> str:
    result = await _require_session().orchestrator.propose_unwrap(amount)
    return result.instructions


@tool(
    "vault_propose_lending_supply",
    "Propose supplying an asset to the lending pool (approve + supply batch).",
    _schema(
        {"asset": ("string", "Asset symbol or address"), "amount": ("string", "Amount")},
        ["asset", "amount"],
    ),
)
@_reports_errors
async def vault_propose_lending_supply(asset: str, amount: str) -> str:
    result = await _require_session().orchestrator.propose_lending_supply(asset, amount)
    return result.instructions


@tool(
    "vault_propose_lending_withdraw",
    "Propose withdrawing from the lending pool. Use amount 'max' for everything.",
    _schema(
        {"asset": ("string", "Asset symbol or address"), "amount": ("string", "Amount or 'max'")},
        ["asset"],
    ),
)
@_reports_errors
async def vault_propose_lending_withdraw(asset: str, amount: str = "max") -> str:
    result = await _require_session().orchestrator.propose_lending_withdraw(asset, amount)
    return result.instructions


@tool(
    "vault_lending_faucet",
    "Mint testnet tokens from the lending faucet into the vault.",
    _schema(
        {"asset": ("string", "Asset symbol or address"), "amount": ("string", "Amount")},
        ["asset", "amount"],
    ),
)
@_reports_errors
async def vault_lending_faucet(asset: str, amount: str) -> str:
    result = await _require_session().orchestrator.request_faucet(asset, amount)
    return result.message


# ---------------------------------------------------------------------------
# Confirmation / execution
# ---------------------------------------------------------------------------


@tool(
    "vault_check_proposal_status",
    "Check confirmations collected for a proposed action.",
    _schema(_HASH, ["action_hash"]),
)
@_reports_errors
async def vault_check_proposal_status(action_hash: str) -> str:
    report = await _require_session().orchestrator.check_proposal_status(action_hash)
    return f"ActionHash: {action_hash}\n{report.message}"


@tool(
    "vault_execute_if_ready",
    "Execute a proposed action once enough owners have confirmed it.",
    _schema(_HASH, ["action_hash"]),
)
@_reports_errors
async def vault_execute_if_ready(action_hash: str) -> str:
    result = await _require_session().orchestrator.execute_if_ready(action_hash)
    return result.message


@tool(
    "vault_agent_sign",
    "Add the agent's signature to an action a human proposed.",
    _schema(_HASH, ["action_hash"]),
)
@_reports_errors
async def vault_agent_sign(action_hash: str) -> str:
    result = await _require_session().orchestrator.agent_sign_transaction(action_hash)
    return result.message


# ---------------------------------------------------------------------------
# Registry management
# ---------------------------------------------------------------------------


@tool(
    "vault_add_asset",
    "Add a custom asset to the active network's asset list.",
    _schema(
        {
            "symbol": ("string", "Asset symbol"),
            "address": ("string", "Token contract address"),
            "decimals": ("integer", "Token decimals"),
        },
        ["symbol", "address", "decimals"],
    ),
)
@_reports_errors
async def vault_add_asset(symbol: str, address: str, decimals: int) -> str:
    result = await _require_session().orchestrator.add_asset(symbol, address, decimals)
    return result.message


@tool(
    "vault_select_vault",
    "Switch the active vault (and its network) by address.",
    _schema({"address": ("string", "Vault address")}, ["address"]),
)
@_reports_errors
async def vault_select_vault(address: str) -> str:
    record = await _require_session().select_vault(address)
    return (
        f"Active vault: {record.address} on {record.network_name}. "
        "Reopen the session to operate on it."
    )
