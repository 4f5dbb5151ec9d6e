"""Configuration system for agent-vault.

Loads ``<data_dir>/config.yaml``, supports ``${ENV_VAR}`` expansion and a
handful of environment overrides (``AGENT_VAULT_HOME``, ``CHAIN_ID``,
``MIN_DEPLOY_ETH``).
"""

from __future__ import annotations

import os
import re
from decimal import Decimal
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from agent_vault.assets import parse_amount


# ---------------------------------------------------------------------------
# Environment-variable expansion helper
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)\}")


def _expand_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with their environment values.

    If the variable is not set the placeholder is left as-is so that
    validation can catch it later.
    """

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        return os.environ.get(var_name, match.group(0))

    return _ENV_VAR_RE.sub(_replace, value)


def _expand_env_recursive(obj: object) -> object:
    """Walk an arbitrary nested structure and expand env vars in strings."""
    if isinstance(obj, str):
        return _expand_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _expand_env_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# Pydantic v2 models
# ---------------------------------------------------------------------------


class KeystoreConfig(BaseModel):
    """Agent key encryption."""

    password: str = "agent-vault"  # ${AGENT_VAULT_PASSWORD}
    kdf_iterations: int = 262144


class TxServiceConfig(BaseModel):
    """Coordination service client settings."""

    api_key: str = ""                 # ${SAFE_API_KEY}
    timeout_seconds: float = 30.0
    url_overrides: dict[int, str] = Field(default_factory=dict)


class RPCConfig(BaseModel):
    """Per-network RPC client settings."""

    timeout_seconds: float = 30.0
    receipt_timeout_seconds: float = 180.0
    url_overrides: dict[int, str] = Field(default_factory=dict)


class YieldsConfig(BaseModel):
    api_url: str = "https://yields.llama.fi/pools"
    timeout_seconds: float = 30.0
    top_n: int = 10


class AppConfig(BaseModel):
    """Root configuration object."""

    network_id: Optional[int] = None  # falls back to the persisted active network
    data_dir: Optional[Path] = None
    min_deploy_native: Decimal = Field(default=Decimal("0.0005"), ge=0)
    slippage_percent: Decimal = Field(default=Decimal("0.5"), ge=0, lt=100)
    keystore: KeystoreConfig = Field(default_factory=KeystoreConfig)
    tx_service: TxServiceConfig = Field(default_factory=TxServiceConfig)
    rpc: RPCConfig = Field(default_factory=RPCConfig)
    yields: YieldsConfig = Field(default_factory=YieldsConfig)

    @property
    def home(self) -> Path:
        return Path(self.data_dir) if self.data_dir else get_data_dir()


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def get_data_dir() -> Path:
    """Return the agent-vault data directory (no auto-create).

    ``AGENT_VAULT_HOME`` wins over the default ``~/.agent-vault``.
    """
    env = os.environ.get("AGENT_VAULT_HOME")
    if env:
        return Path(env).expanduser()
    return Path.home() / ".agent-vault"


def _apply_env_overrides(config: AppConfig) -> AppConfig:
    chain_id = os.environ.get("CHAIN_ID")
    if chain_id:
        config.network_id = int(chain_id)
    min_deploy = os.environ.get("MIN_DEPLOY_ETH")
    if min_deploy:
        config.min_deploy_native = parse_amount(min_deploy)
    return config


def load_config(path: Path | None = None) -> AppConfig:
    """Load and validate the configuration.

    Environment variable placeholders (``${VAR}``) are expanded before
    validation.  A missing file yields the defaults.
    """
    if path is None:
        path = get_data_dir() / "config.yaml"
    if path.exists():
        raw_data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        expanded = _expand_env_recursive(raw_data)
        config = AppConfig.model_validate(expanded)
    else:
        config = AppConfig()
    if config.data_dir is None:
        config.data_dir = path.parent
    return _apply_env_overrides(config)


def save_config(config: AppConfig, path: Path) -> None:
    """Serialize an :class:`AppConfig` to a YAML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(mode="json", exclude_none=True)
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump(data, fh, default_flow_style=False, sort_keys=False)
