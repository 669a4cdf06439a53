"""Batch executor: fetch pending records from the source and write them in batches."""

import asyncio
from collections.abc import Sequence

import structlog

from ...models import BatchOutcome, BatchStatus, MigrationRunResult, TileRecord
from ..exceptions import MigrationError, TransientError
from ..pacing import Clock, Pacer, SystemClock
from ..registry import DestinationRegistry, SourceRegistry
from ..retry import RetryPolicy
from ..settings import MigrationSettings

logger = structlog.get_logger("migration")


def partition_batches(ids: Sequence[int], batch_size: int) -> list[list[int]]:
    """Split ids into contiguous, order-preserving batches of at most batch_size."""
    if batch_size < 1:
        raise ValueError(f"Batch size must be at least 1, got {batch_size}")
    return [list(ids[start : start + batch_size]) for start in range(0, len(ids), batch_size)]


class BatchExecutor:
    """Executes a migration plan one batch at a time.

    Batches run strictly in sequence. Within a batch, records are fetched one
    by one with pacing and retry, then written with a single destination
    call. The first fatal failure stops the run; there is no in-pipeline
    retry of a failed batch because re-planning excludes whatever was
    already written.
    """

    def __init__(
        self,
        source: SourceRegistry,
        destination: DestinationRegistry,
        settings: MigrationSettings | None = None,
        clock: Clock | None = None,
    ):
        self.source = source
        self.destination = destination
        self.settings = settings or MigrationSettings()
        self.clock = clock or SystemClock()
        self.retry_policy = RetryPolicy(
            attempts=self.settings.fetch_attempts,
            delay=self.settings.retry_delay,
            clock=self.clock,
        )
        self.logger = logger.bind(component="batch_executor")

    async def execute(
        self,
        plan: Sequence[int],
        batch_size: int | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> MigrationRunResult:
        """Migrate every id in the plan.

        Args:
            plan: Pending ids in source order
            batch_size: Records per write (defaults to the configured batch size)
            cancel_event: When set, the run stops before starting the next batch

        Returns:
            Run result with per-batch outcomes; ``failed_batch_index`` names
            the batch that aborted the run, if any
        """
        started = self.clock.monotonic()
        if batch_size is None:
            batch_size = self.settings.batch_size
        batches = partition_batches(plan, batch_size)
        batch_pacer = Pacer(self.settings.batch_delay, self.clock, name="batch")
        result = MigrationRunResult(requested_count=len(plan), batches_total=len(batches))

        self.logger.info(
            "Starting batch execution",
            requested=len(plan),
            batch_size=batch_size,
            batches=len(batches),
        )

        for index, batch_ids in enumerate(batches):
            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                result.error = (
                    f"Cancelled before batch {index + 1}/{len(batches)}; "
                    f"{result.batches_succeeded} batches written"
                )
                self.logger.warning("Run cancelled at batch boundary", batch=index + 1)
                break

            outcome = await self._run_batch(index, len(batches), batch_ids)
            result.batches.append(outcome)
            result.retry_count += outcome.retries

            if outcome.status is not BatchStatus.WRITTEN:
                result.failed_batch_index = index
                result.error = (
                    f"Batch {index + 1}/{len(batches)} failed ({outcome.status.value}): "
                    f"{outcome.error}; {result.batches_succeeded} earlier batches were written"
                )
                break

            result.written_ids.extend(batch_ids)

            if index < len(batches) - 1:
                self.logger.info(
                    "Waiting before next batch", delay=self.settings.batch_delay
                )
                await batch_pacer.pause()

        result.elapsed_seconds = self.clock.monotonic() - started
        log = self.logger.info if result.success else self.logger.error
        log("Batch execution finished", **result.summary())
        return result

    async def _run_batch(self, index: int, total: int, batch_ids: list[int]) -> BatchOutcome:
        """Fetch and write one batch, reporting failure instead of raising."""
        self.logger.info(
            "Processing batch", batch=index + 1, total=total, size=len(batch_ids)
        )
        retries = 0

        def count_retry(attempt: int, error: TransientError) -> None:
            nonlocal retries
            retries += 1

        try:
            records = await self._fetch_records(batch_ids, count_retry)
        except MigrationError as e:
            self.logger.error("Batch fetch failed", batch=index + 1, error=str(e))
            return BatchOutcome(
                index=index,
                ids=batch_ids,
                status=BatchStatus.FETCH_FAILED,
                retries=retries,
                error=str(e),
            )

        try:
            await self.destination.write_batch(records)
        except MigrationError as e:
            self.logger.error("Batch write failed", batch=index + 1, error=str(e))
            return BatchOutcome(
                index=index,
                ids=batch_ids,
                status=BatchStatus.WRITE_FAILED,
                retries=retries,
                error=str(e),
            )

        self.logger.info(
            "Batch written", batch=index + 1, total=total, records=len(records), retries=retries
        )
        return BatchOutcome(
            index=index, ids=batch_ids, status=BatchStatus.WRITTEN, retries=retries
        )

    async def _fetch_records(self, batch_ids: list[int], on_retry) -> list[TileRecord]:
        """Fetch a batch's records sequentially with pacing between fetches."""
        pacer = Pacer(self.settings.item_delay, self.clock, name="item")
        records: list[TileRecord] = []

        for position, record_id in enumerate(batch_ids, start=1):
            self.logger.debug(
                "Fetching record", record_id=record_id, position=position, size=len(batch_ids)
            )
            record = await self.retry_policy.call(
                lambda record_id=record_id: self.source.get_record(record_id),
                description=f"fetch record {record_id}",
                on_retry=on_retry,
            )
            records.append(record)

            if position < len(batch_ids):
                await pacer.pause()

        return records
