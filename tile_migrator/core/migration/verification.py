"""Post-migration verification: field-level comparison of source and destination."""

import structlog

from ...models import RecordMismatch, VerificationReport
from ..pacing import Clock, Pacer, SystemClock
from ..registry import DestinationRegistry, SourceRegistry
from ..retry import RetryPolicy
from ..settings import MigrationSettings

logger = structlog.get_logger("migration")


class MigrationVerifier:
    """Handles verification of completed tile migrations.

    Verification only reads, so it is safe to repeat. It must not overlap a
    running batch executor on the same destination, or it may observe a
    half-applied run.
    """

    def __init__(self, settings: MigrationSettings | None = None, clock: Clock | None = None):
        self.settings = settings or MigrationSettings()
        self.clock = clock or SystemClock()
        self.retry_policy = RetryPolicy(
            attempts=self.settings.fetch_attempts,
            delay=self.settings.retry_delay,
            clock=self.clock,
        )
        self.logger = logger.bind(component="migration_verifier")

    async def verify(
        self, source: SourceRegistry, destination: DestinationRegistry
    ) -> VerificationReport:
        """Compare every source record against the destination.

        Args:
            source: Registry migrated from
            destination: Registry migrated to

        Returns:
            Report of missing ids, field mismatches and counter discrepancy.
            Read failures are raised, not reported.
        """
        started = self.clock.monotonic()

        source_ids = await source.list_all_ids()
        destination_ids = await destination.list_existing_ids()
        self.logger.info(
            "Starting verification",
            source_ids=len(source_ids),
            destination_ids=len(destination_ids),
        )

        source_id_set = set(source_ids)
        missing = [record_id for record_id in source_ids if record_id not in destination_ids]
        unexpected = sorted(destination_ids - source_id_set)
        shared = [record_id for record_id in source_ids if record_id in destination_ids]

        mismatches = await self._compare_records(shared, source, destination)

        source_count = await source.total_count()
        destination_count = await destination.total_count()

        report = VerificationReport(
            missing=missing,
            mismatches=mismatches,
            unexpected=unexpected,
            source_count=source_count,
            destination_count=destination_count,
            source_ids_listed=len(source_ids),
            destination_ids_listed=len(destination_ids),
            checked_count=len(shared),
            elapsed_seconds=self.clock.monotonic() - started,
        )
        self._log_report(report)
        return report

    async def _compare_records(
        self,
        record_ids: list[int],
        source: SourceRegistry,
        destination: DestinationRegistry,
    ) -> list[RecordMismatch]:
        """Fetch both sides of each shared id and collect field differences."""
        pacer = Pacer(self.settings.item_delay, self.clock, name="verify_item")
        mismatches: list[RecordMismatch] = []

        for position, record_id in enumerate(record_ids, start=1):
            source_record = await self.retry_policy.call(
                lambda record_id=record_id: source.get_record(record_id),
                description=f"verify source record {record_id}",
            )
            destination_record = await self.retry_policy.call(
                lambda record_id=record_id: destination.get_record(record_id),
                description=f"verify destination record {record_id}",
            )

            differing = source_record.diff(destination_record)
            if differing:
                self.logger.warning(
                    "Record mismatch", record_id=record_id, fields=differing
                )
                mismatches.append(
                    RecordMismatch(
                        id=record_id,
                        differing_fields=differing,
                        source=source_record,
                        destination=destination_record,
                    )
                )

            if position % self.settings.progress_interval == 0:
                self.logger.info("Verified records", checked=position, total=len(record_ids))

            if position < len(record_ids):
                await pacer.pause()

        return mismatches

    def _log_report(self, report: VerificationReport) -> None:
        if report.success:
            self.logger.info(
                "Verification passed: all records present and identical",
                records=report.checked_count,
                count=report.source_count,
            )
            return

        if not report.counts_match:
            self.logger.error(
                "Total count mismatch",
                source_count=report.source_count,
                destination_count=report.destination_count,
            )
        self.logger.error(
            "Verification failed",
            missing=len(report.missing),
            mismatches=len(report.mismatches),
            unexpected=len(report.unexpected),
        )
