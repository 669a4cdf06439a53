"""Migration orchestrator: plan, execute and verify as one run."""

import asyncio
from typing import Any

import structlog
from structlog.stdlib import BoundLogger

from ..core.exceptions import MigrationError
from ..core.migration import BatchExecutor, MigrationPlanner, MigrationVerifier
from ..core.pacing import Clock, SystemClock
from ..core.registry import DestinationRegistry, SourceRegistry
from ..core.settings import MigrationSettings
from ..models import MigrationOutcome, MigrationRunResult, RunState, VerificationReport


class MigrationOrchestrator:
    """Orchestrates a tile migration from a source to a destination registry.

    Sequences planning, batch execution and verification, and decides whether
    the destination is eligible for finalization. Finalization itself is an
    external administrative step; this class never flips the flag.

    Only one run may target a given destination at a time.
    """

    def __init__(
        self,
        source: SourceRegistry,
        destination: DestinationRegistry,
        settings: MigrationSettings | None = None,
        clock: Clock | None = None,
    ):
        """Initialize orchestrator and its pipeline components."""
        self.source = source
        self.destination = destination
        self.settings = settings or MigrationSettings()
        self.clock = clock or SystemClock()
        self.planner = MigrationPlanner(self.settings, self.clock)
        self.executor = BatchExecutor(source, destination, self.settings, self.clock)
        self.verifier = MigrationVerifier(self.settings, self.clock)
        self.logger: BoundLogger = structlog.get_logger("migration").bind(
            component="migration_orchestrator"
        )
        self.state = RunState.IDLE
        self._history: list[RunState] = []

    async def run(
        self,
        batch_size: int | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> MigrationOutcome:
        """Run the full migrate-and-verify pipeline.

        Args:
            batch_size: Override for the configured batch size
            cancel_event: Checked at batch boundaries only

        Returns:
            MigrationOutcome in a terminal state. ``finalization_eligible``
            is true only for ``COMPLETED``.
        """
        started = self.clock.monotonic()
        self._history = []
        self._transition(RunState.IDLE)

        try:
            finalized = await self.destination.is_finalized()
        except MigrationError as e:
            return self._finish(
                RunState.ABORTED, f"Could not read destination finalize flag: {e}", started
            )
        if finalized:
            return self._finish(
                RunState.ABORTED,
                "Migration finalization already complete; destination rejects migration writes",
                started,
            )

        # Step 1: Plan
        self._transition(RunState.PLANNING)
        try:
            await self._preflight()
            plan = await self.planner.plan(self.source, self.destination)
        except MigrationError as e:
            return self._finish(RunState.ABORTED, f"Planning failed: {e}", started)

        if not plan:
            return self._finish(
                RunState.NOTHING_TO_MIGRATE, "All source records already migrated", started
            )

        # Step 2: Execute batches
        self._transition(RunState.EXECUTING_BATCHES)
        run_result = await self.executor.execute(plan, batch_size, cancel_event)
        if not run_result.success:
            return self._finish(
                RunState.ABORTED,
                self._abort_message(run_result),
                started,
                plan_size=len(plan),
                run=run_result,
            )

        # Step 3: Verify before anyone may finalize
        self._transition(RunState.VERIFYING)
        try:
            report = await self.verifier.verify(self.source, self.destination)
        except MigrationError as e:
            return self._finish(
                RunState.VERIFICATION_FAILED,
                f"Verification could not complete: {e}; do not finalize",
                started,
                plan_size=len(plan),
                run=run_result,
            )

        if not report.success:
            return self._finish(
                RunState.VERIFICATION_FAILED,
                self._verification_message(report),
                started,
                plan_size=len(plan),
                run=run_result,
                verification=report,
            )

        return self._finish(
            RunState.COMPLETED,
            f"Migrated {run_result.written_count} records and verified "
            f"{report.checked_count}; destination may be finalized",
            started,
            plan_size=len(plan),
            run=run_result,
            verification=report,
        )

    async def preview_plan(self) -> list[int]:
        """Compute the pending set without writing anything."""
        return await self.planner.plan(self.source, self.destination)

    async def verify(self) -> VerificationReport:
        """Run standalone verification against current registry state."""
        return await self.verifier.verify(self.source, self.destination)

    async def _preflight(self) -> None:
        """Log both registry counters before planning."""
        source_count = await self.source.total_count()
        destination_count = await self.destination.total_count()
        self.logger.info(
            "Registry state before planning",
            source_count=source_count,
            destination_count=destination_count,
        )
        if source_count == 0:
            self.logger.warning("Source registry reports zero records")
        if destination_count:
            self.logger.warning(
                "Destination already holds records; continuing with remaining ids",
                destination_count=destination_count,
            )

    def _transition(self, state: RunState) -> None:
        self.logger.debug("State transition", from_state=self.state.value, to_state=state.value)
        self.state = state
        self._history.append(state)

    def _finish(
        self,
        state: RunState,
        message: str,
        started: float,
        plan_size: int = 0,
        run: MigrationRunResult | None = None,
        verification: VerificationReport | None = None,
    ) -> MigrationOutcome:
        self._transition(state)
        outcome = MigrationOutcome(
            state=state,
            message=message,
            history=list(self._history),
            plan_size=plan_size,
            run=run,
            verification=verification,
            elapsed_seconds=self.clock.monotonic() - started,
        )
        log = self.logger.info if outcome.success else self.logger.error
        log(
            "Migration run finished",
            state=state.value,
            message=message,
            finalization_eligible=outcome.finalization_eligible,
        )
        return outcome

    @staticmethod
    def _abort_message(run_result: MigrationRunResult) -> str:
        detail = run_result.error or "batch execution did not complete"
        return (
            f"{detail}. {run_result.batches_succeeded}/{run_result.batches_total} batches "
            f"succeeded ({run_result.written_count} records written); re-running is safe "
            "because planning skips records already in the destination"
        )

    @staticmethod
    def _verification_message(report: VerificationReport) -> str:
        parts = []
        if report.missing:
            parts.append(f"{len(report.missing)} missing")
        if report.mismatches:
            parts.append(f"{len(report.mismatches)} mismatched")
        if not report.counts_match:
            parts.append(
                f"count {report.source_count} != {report.destination_count}"
            )
        return f"Verification failed ({', '.join(parts)}); do not finalize"


async def check_source(source: SourceRegistry, sample_size: int = 5) -> dict[str, Any]:
    """Probe a source registry: counter, id listing, and a sample read.

    Args:
        source: Registry to probe
        sample_size: Number of leading ids to include in the report

    Returns:
        Dictionary of probe results; each probe records its own error
    """
    logger = structlog.get_logger("migration").bind(component="source_check")
    report: dict[str, Any] = {"registry": source.get_registry_type(), "healthy": True}

    try:
        report["total_count"] = await source.total_count()
    except MigrationError as e:
        report["healthy"] = False
        report["total_count_error"] = str(e)

    ids: list[int] = []
    try:
        ids = await source.list_all_ids()
        report["listed_ids"] = len(ids)
        report["sample_ids"] = ids[:sample_size]
    except MigrationError as e:
        report["healthy"] = False
        report["list_error"] = str(e)

    if ids:
        try:
            record = await source.get_record(ids[0])
            report["sample_record"] = record.model_dump()
        except MigrationError as e:
            report["healthy"] = False
            report["sample_record_error"] = str(e)

    if "total_count" in report and "listed_ids" in report and report["total_count"] != report["listed_ids"]:
        report["healthy"] = False
        report["count_discrepancy"] = True

    logger.info("Source check finished", healthy=report["healthy"])
    return report
