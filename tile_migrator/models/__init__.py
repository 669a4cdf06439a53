"""Data models for tile migration."""

from .enums import BatchStatus, RunState  # noqa: F401
from .record import RECORD_FIELDS, TileRecord  # noqa: F401
from .results import (  # noqa: F401
    BatchOutcome,
    MigrationOutcome,
    MigrationRunResult,
    RecordMismatch,
    VerificationReport,
)

__all__ = [
    "BatchOutcome",
    "BatchStatus",
    "MigrationOutcome",
    "MigrationRunResult",
    "RECORD_FIELDS",
    "RecordMismatch",
    "RunState",
    "TileRecord",
    "VerificationReport",
]
