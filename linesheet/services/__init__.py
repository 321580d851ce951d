"""Backends and collaborators behind the catalog store."""
