"""Core components for tile registry migration."""
