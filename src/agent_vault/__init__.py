"""agent-vault - an agent co-managed multisig vault."""

__version__ = "0.1.0"
