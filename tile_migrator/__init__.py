"""Tile registry migration: plan, copy, and verify records between registries."""

__version__ = "0.1.0"
