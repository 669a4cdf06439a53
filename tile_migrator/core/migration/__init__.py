"""Migration pipeline components: planner, batch executor, verifier."""

from .executor import BatchExecutor, partition_batches  # noqa: F401
from .planner import MigrationPlanner  # noqa: F401
from .verification import MigrationVerifier  # noqa: F401

__all__ = ["BatchExecutor", "MigrationPlanner", "MigrationVerifier", "partition_batches"]
