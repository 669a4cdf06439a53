"""Result models exposed by the migration pipeline."""

from typing import Any

from pydantic import BaseModel, Field

from .enums import BatchStatus, RunState
from .record import TileRecord


class BatchOutcome(BaseModel):
    """Result of one batch: its ids, status and retry activity."""

    index: int = Field(description="Zero-based batch index")
    ids: list[int] = Field(description="Ids assigned to the batch, in plan order")
    status: BatchStatus
    retries: int = Field(default=0, description="Transient fetch failures that were retried")
    error: str | None = None


class MigrationRunResult(BaseModel):
    """Outcome of one Batch Executor run."""

    requested_count: int = Field(description="Ids handed to the executor")
    written_ids: list[int] = Field(default_factory=list)
    batches_total: int = 0
    batches: list[BatchOutcome] = Field(default_factory=list)
    failed_batch_index: int | None = None
    retry_count: int = 0
    elapsed_seconds: float = 0.0
    cancelled: bool = False
    error: str | None = None

    @property
    def written_count(self) -> int:
        return len(self.written_ids)

    @property
    def batches_succeeded(self) -> int:
        return sum(1 for batch in self.batches if batch.status is BatchStatus.WRITTEN)

    @property
    def batches_failed(self) -> int:
        return sum(1 for batch in self.batches if batch.status is not BatchStatus.WRITTEN)

    @property
    def success(self) -> bool:
        return (
            self.failed_batch_index is None
            and not self.cancelled
            and self.written_count == self.requested_count
        )

    def summary(self) -> dict[str, Any]:
        """Compact, machine-readable view including the derived counters."""
        return {
            "requested_count": self.requested_count,
            "written_count": self.written_count,
            "batches_total": self.batches_total,
            "batches_succeeded": self.batches_succeeded,
            "batches_failed": self.batches_failed,
            "failed_batch_index": self.failed_batch_index,
            "retry_count": self.retry_count,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "cancelled": self.cancelled,
            "error": self.error,
        }


class RecordMismatch(BaseModel):
    """A record present on both sides whose fields differ."""

    id: int
    differing_fields: list[str] = Field(description="Names of the differing fields")
    source: TileRecord
    destination: TileRecord


class VerificationReport(BaseModel):
    """Structured comparison of source and destination after migration."""

    missing: list[int] = Field(
        default_factory=list, description="Source ids absent from the destination"
    )
    mismatches: list[RecordMismatch] = Field(default_factory=list)
    unexpected: list[int] = Field(
        default_factory=list, description="Destination ids absent from the source"
    )
    source_count: int = 0
    destination_count: int = 0
    source_ids_listed: int = 0
    destination_ids_listed: int = 0
    checked_count: int = Field(default=0, description="Records compared field by field")
    elapsed_seconds: float = 0.0

    @property
    def counts_match(self) -> bool:
        return self.source_count == self.destination_count

    @property
    def success(self) -> bool:
        return not self.missing and not self.mismatches and self.counts_match

    def summary(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "missing": self.missing,
            "mismatch_ids": [mismatch.id for mismatch in self.mismatches],
            "unexpected": self.unexpected,
            "source_count": self.source_count,
            "destination_count": self.destination_count,
            "counts_match": self.counts_match,
            "checked_count": self.checked_count,
        }


class MigrationOutcome(BaseModel):
    """Terminal result of an orchestrated run."""

    state: RunState
    message: str
    history: list[RunState] = Field(default_factory=list)
    plan_size: int = 0
    run: MigrationRunResult | None = None
    verification: VerificationReport | None = None
    elapsed_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.state.is_success

    @property
    def finalization_eligible(self) -> bool:
        """Only a verified migration may be finalized by the operator."""
        return self.state is RunState.COMPLETED

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "success": self.success,
            "finalization_eligible": self.finalization_eligible,
            "message": self.message,
            "history": [state.value for state in self.history],
            "plan_size": self.plan_size,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "run": self.run.summary() if self.run else None,
            "verification": (
                {**self.verification.model_dump(mode="json"), **self.verification.summary()}
                if self.verification
                else None
            ),
        }
