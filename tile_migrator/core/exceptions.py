"""Core exceptions for tile migration operations."""


class TileMigratorError(Exception):
    """Base exception for tile migration operations."""


class ConfigurationError(TileMigratorError):
    """Configuration validation or loading failed."""


class MigrationError(TileMigratorError):
    """Migration operation failed."""


class TransientError(MigrationError):
    """Network or provider hiccup; safe to retry."""


class NotFoundError(MigrationError):
    """Record key absent where presence was assumed."""

    def __init__(self, record_id: int, registry: str = "source"):
        super().__init__(f"Record {record_id} not found in {registry} registry")
        self.record_id = record_id
        self.registry = registry


class FatalError(MigrationError):
    """Write rejected or otherwise unrecoverable; aborts the run."""


class RetryExhaustedError(FatalError):
    """A transient failure persisted past the configured attempt budget."""

    def __init__(self, description: str, attempts: int, last_error: Exception):
        super().__init__(f"{description} failed after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error
