"""Enum definitions for migration runs."""

from enum import Enum


class RunState(Enum):
    """States of a single orchestrated migration run."""

    IDLE = "idle"
    PLANNING = "planning"
    NOTHING_TO_MIGRATE = "nothing_to_migrate"
    EXECUTING_BATCHES = "executing_batches"
    ABORTED = "aborted"
    VERIFYING = "verifying"
    VERIFICATION_FAILED = "verification_failed"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES

    @property
    def is_success(self) -> bool:
        return self in (RunState.NOTHING_TO_MIGRATE, RunState.COMPLETED)


TERMINAL_STATES = frozenset(
    {
        RunState.NOTHING_TO_MIGRATE,
        RunState.ABORTED,
        RunState.VERIFICATION_FAILED,
        RunState.COMPLETED,
    }
)


class BatchStatus(Enum):
    """Outcome of one batch in the executor."""

    WRITTEN = "written"
    FETCH_FAILED = "fetch_failed"
    WRITE_FAILED = "write_failed"
