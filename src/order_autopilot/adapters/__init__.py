"""Adapters for host collaborators."""
