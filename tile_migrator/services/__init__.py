"""Service layer for tile migration runs."""

from .migration_orchestrator import MigrationOrchestrator, check_source  # noqa: F401

__all__ = ["MigrationOrchestrator", "check_source"]
