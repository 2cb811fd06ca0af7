"""Vault-backed implementations of the core ports."""
