"""CLI for agent-vault - onboard and operate an agent co-managed vault."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from agent_vault.errors import VaultError

T = TypeVar("T")

app = typer.Typer(
    name="agent-vault",
    help="Propose, confirm and execute vault transactions together with human owners.",
    no_args_is_help=True,
)
console = Console()

_selected_network: Optional[int] = None
_config_path: Optional[Path] = None


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        console.print(f"agent-vault {version('agent-vault')}")
        raise typer.Exit()


@app.callback()
def main(
    network: Optional[int] = typer.Option(
        None,
        "--network",
        "-n",
        help="Network id to operate on (default: configured or last active)",
        envvar="CHAIN_ID",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config.yaml (default: $AGENT_VAULT_HOME/config.yaml)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
):
    """Propose, confirm and execute vault transactions together with human owners."""
    global _selected_network, _config_path
    _selected_network = network
    _config_path = config
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _run(coro: Awaitable[T]) -> T:
    """Run an async function synchronously."""
    return asyncio.run(coro)


def _with_session(action: Callable[..., Awaitable[T]]) -> T:
    """Open a session, run *action(session)*, and always close it.

    Domain faults are printed and turned into exit code 1.
    """
    from agent_vault.config import load_config
    from agent_vault.core.session import VaultSession

    async def _go() -> T:
        session = await VaultSession.open(load_config(_config_path), _selected_network)
        async with session:
            return await action(session)

    try:
        return _run(_go())
    except VaultError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


# ------------------------------------------------------------------
# networks
# ------------------------------------------------------------------


@app.command("networks")
def networks():
    """List supported networks and the integrations available on each."""
    from agent_vault.chains import NETWORKS

    table = Table(title="Supported Networks")
    table.add_column("ID", style="dim", justify="right")
    table.add_column("Name", style="cyan")
    table.add_column("Native")
    table.add_column("Integrations")
    table.add_column("Coordination")

    for network_id, profile in NETWORKS.items():
        caps = ", ".join(profile.capabilities) or "-"
        table.add_row(
            str(network_id),
            profile.name,
            profile.native_symbol,
            caps,
            "[green]yes[/green]" if profile.tx_service_url else "[red]no[/red]",
        )
    console.print(table)


# ------------------------------------------------------------------
# wizard sub-commands
# ------------------------------------------------------------------

wizard_app = typer.Typer(
    name="wizard",
    help="One-time setup: agent key, funding, owners, deployment.",
    no_args_is_help=True,
)
app.add_typer(wizard_app, name="wizard")


@wizard_app.command("start")
def wizard_start():
    """Create (or load) the agent's signing key."""
    result = _with_session(lambda s: s.onboarding.start())
    title = "Agent Key Created" if result.created else "Agent Key"
    console.print(Panel(result.instructions, title=title))


@wizard_app.command("check-funds")
def wizard_funds(
    minimum: Optional[str] = typer.Option(None, "--min", help="Minimum native amount"),
):
    """Check that the agent can pay for deployment gas."""
    min_amount = minimum or None
    result = _with_session(lambda s: s.onboarding.check_agent_funds(min_amount))
    color = "green" if result.ok else "yellow"
    console.print(f"[{color}]{result.message}[/{color}]")
    if not result.ok:
        raise typer.Exit(1)


@wizard_app.command("add-owner")
def wizard_add_owner(
    address: str = typer.Argument(help="Human owner address (0x...)"),
):
    """Add a human owner to the vault about to be deployed."""
    result = _with_session(lambda s: s.onboarding.add_owner_address(address))
    console.print(result.message)


@wizard_app.command("overview")
def wizard_overview(
    threshold: Optional[int] = typer.Option(None, "--threshold", "-t", help="Signatures required"),
):
    """Show what would be deployed."""

    async def _overview(session):
        return session.onboarding.get_deploy_overview(threshold)

    overview = _with_session(_overview)
    owners = "\n".join(f"  [cyan]{o}[/cyan]" for o in overview.owners)
    console.print(Panel(
        f"Network:   {overview.network}\n"
        f"Owners:\n{owners}\n"
        f"Threshold: [bold]{overview.threshold}-of-{len(overview.owners)}[/bold]\n"
        f"Deployer:  {overview.deployer}\n"
        f"Cost:      {overview.estimated_cost}",
        title="Deploy Overview",
    ))


@wizard_app.command("deploy")
def wizard_deploy(
    threshold: Optional[int] = typer.Option(None, "--threshold", "-t", help="Signatures required"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Deploy the vault with the agent and every collected owner."""
    if not yes:
        typer.confirm("Deploy the vault now? This sends an on-chain transaction.", abort=True)
    result = _with_session(lambda s: s.onboarding.deploy_vault(threshold))
    console.print(Panel(result.instructions, title="Vault Deployed"))


# ------------------------------------------------------------------
# vault sub-commands
# ------------------------------------------------------------------

vault_app = typer.Typer(
    name="vault",
    help="Operate the deployed vault.",
    no_args_is_help=True,
)
app.add_typer(vault_app, name="vault")


def _print_proposal(result) -> None:
    console.print(Panel(f"{result.summary}\n\n{result.instructions}", title="Proposal Submitted"))


@vault_app.command("balances")
def vault_balances():
    """Show native and token balances of the vault."""
    balances = _with_session(lambda s: s.orchestrator.get_balances())

    table = Table(title=f"Vault {balances.address}")
    table.add_column("Asset", style="cyan")
    table.add_column("Balance", justify="right")
    table.add_row(balances.native_symbol, balances.native)
    for token in balances.tokens:
        table.add_row(token.symbol, token.formatted)
    console.print(table)


@vault_app.command("yields")
def vault_yields():
    """Top yield opportunities for the vault's assets."""
    console.print(_with_session(lambda s: s.orchestrator.get_yield_summary()))


@vault_app.command("send")
def vault_send(
    amount: str = typer.Argument(help="Amount to send (e.g. 0.01)"),
    to: str = typer.Option(..., "--to", "-t", help="Recipient address (0x...)"),
):
    """Propose a native-asset transfer from the vault."""
    _print_proposal(_with_session(lambda s: s.orchestrator.propose_send_native(to, amount)))


@vault_app.command("send-asset")
def vault_send_asset(
    asset: str = typer.Argument(help="Asset symbol or token address"),
    amount: str = typer.Argument(help="Amount to send"),
    to: str = typer.Option(..., "--to", "-t", help="Recipient address (0x...)"),
):
    """Propose an ERC-20 transfer from the vault."""
    _print_proposal(_with_session(lambda s: s.orchestrator.propose_send_asset(asset, to, amount)))


@vault_app.command("quote")
def vault_quote(
    amount: str = typer.Argument(help="Amount to sell"),
    asset_in: str = typer.Option(..., "--from", help="Asset to sell"),
    asset_out: str = typer.Option(..., "--to", help="Asset to buy"),
    fee: Optional[int] = typer.Option(None, "--fee", help="Pool fee tier (e.g. 3000)"),
):
    """Quote a swap without proposing it."""
    view = _with_session(lambda s: s.orchestrator.get_swap_quote(asset_in, asset_out, amount, fee))
    q = view.quote
    console.print(Panel(
        f"Sell:     {view.amount_in} {q.asset_in.symbol}\n"
        f"Expected: [bold]{view.expected_out} {q.asset_out.symbol}[/bold]\n"
        f"Minimum:  {view.min_out} {q.asset_out.symbol}\n"
        f"Pool:     {q.pool} ({q.fee / 10000}%)",
        title="Swap Quote",
    ))


@vault_app.command("swap")
def vault_swap(
    amount: str = typer.Argument(help="Amount to sell"),
    asset_in: str = typer.Option(..., "--from", help="Asset to sell"),
    asset_out: str = typer.Option(..., "--to", help="Asset to buy"),
    fee: Optional[int] = typer.Option(None, "--fee", help="Pool fee tier (e.g. 3000)"),
):
    """Propose a swap with slippage protection."""
    _print_proposal(
        _with_session(lambda s: s.orchestrator.propose_swap(asset_in, asset_out, amount, fee))
    )


@vault_app.command("wrap")
def vault_wrap(amount: str = typer.Argument(help="Amount of native asset to wrap")):
    """Propose wrapping the native asset."""
    _print_proposal(_with_session(lambda s: s.orchestrator.propose_wrap(amount)))


@vault_app.command("unwrap")
def vault_unwrap(amount: str = typer.Argument(help="Amount of wrapped native to unwrap")):
    """Propose unwrapping the wrapped native token."""
    _print_proposal(_with_session(lambda s: s.orchestrator.propose_unwrap(amount)))


@vault_app.command("supply")
def vault_supply(
    asset: str = typer.Argument(help="Asset symbol or address"),
    amount: str = typer.Argument(help="Amount to supply"),
):
    """Propose supplying an asset to the lending pool."""
    _print_proposal(_with_session(lambda s: s.orchestrator.propose_lending_supply(asset, amount)))


@vault_app.command("withdraw")
def vault_withdraw(
    asset: str = typer.Argument(help="Asset symbol or address"),
    amount: str = typer.Argument("max", help="Amount to withdraw, or 'max'"),
):
    """Propose withdrawing from the lending pool."""
    _print_proposal(
        _with_session(lambda s: s.orchestrator.propose_lending_withdraw(asset, amount))
    )


@vault_app.command("faucet")
def vault_faucet(
    asset: str = typer.Argument(help="Asset symbol or address"),
    amount: str = typer.Argument(help="Amount to mint"),
):
    """Mint testnet tokens from the lending faucet into the vault."""
    result = _with_session(lambda s: s.orchestrator.request_faucet(asset, amount))
    console.print(Panel(result.message, title="Faucet"))


@vault_app.command("status")
def vault_status(action_hash: str = typer.Argument(help="Action hash (0x...)")):
    """Show confirmations collected for a proposal."""
    report = _with_session(lambda s: s.orchestrator.check_proposal_status(action_hash))
    title = f"Proposal {action_hash[:12]}..."
    if report.local_status is not None:
        title += f" [{report.local_status.value}]"
    console.print(Panel(report.message, title=title))


@vault_app.command("execute")
def vault_execute(action_hash: str = typer.Argument(help="Action hash (0x...)")):
    """Execute a proposal once enough owners have confirmed it."""
    result = _with_session(lambda s: s.orchestrator.execute_if_ready(action_hash))
    if result.executed:
        console.print(Panel(f"[bold green]{result.message}[/bold green]", title="Executed"))
    else:
        console.print(f"[yellow]{result.message}[/yellow]")


@vault_app.command("sign")
def vault_sign(action_hash: str = typer.Argument(help="Action hash (0x...)")):
    """Add the agent's confirmation to a proposal."""
    result = _with_session(lambda s: s.orchestrator.agent_sign_transaction(action_hash))
    console.print(result.message)


@vault_app.command("pending")
def vault_pending():
    """List locally tracked proposals awaiting execution."""

    async def _pending(session):
        return session.orchestrator.pending_proposals()

    proposals = _with_session(_pending)
    if not proposals:
        console.print("[dim]No pending proposals.[/dim]")
        return

    status_colors = {"proposed": "yellow", "owner_confirmed": "blue"}
    table = Table(title="Pending Proposals")
    table.add_column("Action Hash", style="dim")
    table.add_column("Nonce", justify="right")
    table.add_column("Status")
    table.add_column("Description")
    for p in proposals:
        color = status_colors.get(p.status.value, "white")
        table.add_row(
            p.action_hash[:18] + "...",
            str(p.nonce),
            f"[{color}]{p.status.value}[/{color}]",
            p.description[:60],
        )
    console.print(table)


@vault_app.command("list")
def vault_list():
    """List every vault this agent has deployed."""

    async def _list(session):
        return session.list_vaults(), session.store.vault_address_for(session.profile.network_id)

    vaults, active = _with_session(_list)
    if not vaults:
        console.print("[dim]No vaults deployed yet.[/dim] Run 'agent-vault wizard start' first.")
        return

    table = Table(title="Vaults")
    table.add_column("Address", style="cyan")
    table.add_column("Network")
    table.add_column("Threshold", justify="right")
    table.add_column("Active")
    for v in vaults:
        is_active = active is not None and v.address.lower() == active.lower()
        table.add_row(
            v.address,
            v.network_name,
            f"{v.threshold}-of-{len(v.owners)}",
            "[green]*[/green]" if is_active else "",
        )
    console.print(table)


@vault_app.command("select")
def vault_select(address: str = typer.Argument(help="Vault address (0x...)")):
    """Switch the active vault (and its network)."""
    record = _with_session(lambda s: s.select_vault(address))
    console.print(f"Active vault: [cyan]{record.address}[/cyan] on {record.network_name}")


@vault_app.command("add-asset")
def vault_add_asset(
    symbol: str = typer.Argument(help="Asset symbol"),
    address: str = typer.Argument(help="Token contract address"),
    decimals: int = typer.Argument(help="Token decimals"),
):
    """Add a custom asset on the active network."""
    result = _with_session(lambda s: s.orchestrator.add_asset(symbol, address, decimals))
    console.print(result.message)


if __name__ == "__main__":
    app()
