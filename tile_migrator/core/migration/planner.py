"""Pending-set planning: which source records still need migrating."""

import structlog

from ..pacing import Clock, Pacer, SystemClock
from ..registry import DestinationRegistry, SourceRegistry
from ..settings import MigrationSettings

logger = structlog.get_logger("migration")


class MigrationPlanner:
    """Computes the ordered pending set from live registry state.

    The pending set is never cached: every call re-reads both registries, so
    ids written by an earlier (possibly partial) run are naturally excluded.
    """

    def __init__(self, settings: MigrationSettings | None = None, clock: Clock | None = None):
        self.settings = settings or MigrationSettings()
        self.clock = clock or SystemClock()
        self.logger = logger.bind(component="migration_planner")

    async def plan(self, source: SourceRegistry, destination: DestinationRegistry) -> list[int]:
        """Return source ids absent from the destination, in source order.

        Args:
            source: Registry being migrated from
            destination: Registry being migrated to

        Returns:
            Pending ids; an empty list means there is nothing to migrate
        """
        all_ids = await source.list_all_ids()
        self.logger.info("Fetched source ids", total=len(all_ids))

        if self.settings.planning_mode == "bulk":
            pending = await self._plan_bulk(all_ids, destination)
        else:
            pending = await self._plan_per_id(all_ids, destination)

        self.logger.info(
            "Planning complete",
            pending=len(pending),
            already_migrated=len(all_ids) - len(pending),
            mode=self.settings.planning_mode,
        )
        return pending

    async def _plan_per_id(self, all_ids: list[int], destination: DestinationRegistry) -> list[int]:
        """One paced existence check per id."""
        pacer = Pacer(self.settings.existence_check_delay, self.clock, name="existence_check")
        interval = self.settings.progress_interval
        pending: list[int] = []

        for position, record_id in enumerate(all_ids, start=1):
            if not await destination.exists(record_id):
                pending.append(record_id)

            if position % interval == 0 or position == len(all_ids):
                self.logger.info("Checked existing ids", checked=position, total=len(all_ids))

            if position < len(all_ids):
                await pacer.pause()

        return pending

    async def _plan_bulk(self, all_ids: list[int], destination: DestinationRegistry) -> list[int]:
        """Single listing call; for destinations where listing is cheap."""
        existing = await destination.list_existing_ids()
        return [record_id for record_id in all_ids if record_id not in existing]
