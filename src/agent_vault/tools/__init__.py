"""agent-vault tools - agent-facing wrappers around the vault engines."""

from agent_vault.tools import vault_tools  # noqa: F401
from agent_vault.tools.registry import ToolRegistry, tool  # noqa: F401
