"""Vault account adapter and coordination service client."""
