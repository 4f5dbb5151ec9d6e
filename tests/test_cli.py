"""Command-line surface."""

from __future__ import annotations

from typer.testing import CliRunner

from agent_vault.cli.app import app

runner = CliRunner()


def test_networks_table():
    result = runner.invoke(app, ["networks"])
    assert result.exit_code == 0
    assert "Base Sepolia" in result.output
    assert "84532" in result.output


def test_empty_vault_list(tmp_path, monkeypatch):
    monkeypatch.delenv("CHAIN_ID", raising=False)
    result = runner.invoke(app, ["--config", str(tmp_path / "config.yaml"), "vault", "list"])
    assert result.exit_code == 0
    assert "No vaults deployed yet" in result.output


def test_domain_fault_exits_nonzero(tmp_path, monkeypatch):
    monkeypatch.delenv("CHAIN_ID", raising=False)
    result = runner.invoke(
        app, ["--config", str(tmp_path / "config.yaml"), "vault", "select", "0x12"]
    )
    assert result.exit_code == 1
    assert "Invalid address format" in result.output


def test_overview_without_key(tmp_path, monkeypatch):
    monkeypatch.delenv("CHAIN_ID", raising=False)
    result = runner.invoke(app, ["--config", str(tmp_path / "config.yaml"), "wizard", "overview"])
    assert result.exit_code == 1
    assert "No agent key loaded" in result.output
