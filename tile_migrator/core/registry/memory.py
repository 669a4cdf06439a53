"""In-process registries backed by dictionaries.

Used for rehearsal runs against frozen snapshots and as fakes in tests.
"""

import asyncio
from collections.abc import Iterable, Sequence
from pathlib import Path

from ...models import TileRecord
from ..exceptions import FatalError, NotFoundError
from .base import DestinationRegistry, SourceRegistry
from .snapshot import dump_snapshot


class InMemorySourceRegistry(SourceRegistry):
    """Frozen source registry holding records in enumeration order."""

    def __init__(self, records: Iterable[TileRecord] = ()):
        super().__init__()
        self._records: dict[int, TileRecord] = {}
        for record in records:
            if record.id in self._records:
                raise ValueError(f"Duplicate record id in source: {record.id}")
            self._records[record.id] = record

    async def list_all_ids(self) -> list[int]:
        return list(self._records)

    async def get_record(self, record_id: int) -> TileRecord:
        try:
            return self._records[record_id]
        except KeyError:
            raise NotFoundError(record_id, "source") from None

    async def total_count(self) -> int:
        return len(self._records)


class InMemoryDestinationRegistry(DestinationRegistry):
    """Destination registry with all-or-nothing batch writes.

    When ``snapshot_path`` is set, the full state is rewritten to that file
    after every successful batch so a rehearsal can be resumed or inspected.
    """

    def __init__(
        self,
        records: Iterable[TileRecord] = (),
        finalized: bool = False,
        snapshot_path: Path | str | None = None,
    ):
        super().__init__()
        self._records: dict[int, TileRecord] = {record.id: record for record in records}
        self._finalized = finalized
        self.snapshot_path = Path(snapshot_path) if snapshot_path else None
        self.write_calls = 0
        self._lock = asyncio.Lock()

    async def list_existing_ids(self) -> set[int]:
        return set(self._records)

    async def exists(self, record_id: int) -> bool:
        return record_id in self._records

    async def get_record(self, record_id: int) -> TileRecord:
        try:
            return self._records[record_id]
        except KeyError:
            raise NotFoundError(record_id, "destination") from None

    async def write_batch(self, records: Sequence[TileRecord]) -> None:
        async with self._lock:
            if self._finalized:
                raise FatalError("Destination is finalized; migration writes are disabled")
            self._validate_batch(records)

            updated = {**self._records, **{record.id: record for record in records}}
            if self.snapshot_path is not None:
                try:
                    await asyncio.to_thread(
                        dump_snapshot,
                        self.snapshot_path,
                        list(updated.values()),
                        finalized=self._finalized,
                    )
                except OSError as e:
                    raise FatalError(
                        f"Failed to persist destination snapshot {self.snapshot_path}: {e}"
                    ) from e

            # State changes only once the snapshot is on disk
            self._records = updated
            self.write_calls += 1
            self.logger.debug("Batch written", records=len(records), total=len(self._records))

    def _validate_batch(self, records: Sequence[TileRecord]) -> None:
        """Reject the whole batch before touching state."""
        if not records:
            raise FatalError("Malformed batch: no records")
        seen: set[int] = set()
        for record in records:
            if record.id in seen:
                raise FatalError(f"Malformed batch: duplicate id {record.id}")
            if record.id in self._records:
                raise FatalError(f"Malformed batch: id {record.id} already exists")
            seen.add(record.id)

    async def is_finalized(self) -> bool:
        return self._finalized

    async def total_count(self) -> int:
        return len(self._records)

    def finalize(self) -> None:
        """Flip the one-way finalize flag (administrative collaborator only)."""
        self._finalized = True
