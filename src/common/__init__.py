"""Helpers shared across the workspace, registry and command modules."""
