"""Shared pytest fixtures for tile migration tests."""

from collections.abc import Sequence

import pytest

from tile_migrator.core.exceptions import TransientError
from tile_migrator.core.registry import InMemoryDestinationRegistry, InMemorySourceRegistry
from tile_migrator.core.settings import MigrationSettings
from tile_migrator.models import TileRecord


def make_record(record_id: int, owner: str = "0xA11CE", **overrides) -> TileRecord:
    """Build a tile record with realistic defaults."""
    values = {
        "id": record_id,
        "owner": owner,
        "metadata_ref": f"ipfs://tile-{record_id}",
        "payment_flag": record_id % 2 == 0,
        "created_at": 1_700_000_000 + record_id,
        "original_buyer": "0xB0B",
    }
    values.update(overrides)
    return TileRecord(**values)


class FakeClock:
    """Clock that records sleeps and advances virtual time instantly."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FlakySourceRegistry(InMemorySourceRegistry):
    """Source that raises TransientError a configured number of times per id."""

    def __init__(self, records: Sequence[TileRecord], failures: dict[int, int] | None = None):
        super().__init__(records)
        self.failures = dict(failures or {})
        self.fetches: list[int] = []

    async def get_record(self, record_id: int) -> TileRecord:
        self.fetches.append(record_id)
        if self.failures.get(record_id, 0) > 0:
            self.failures[record_id] -= 1
            raise TransientError(f"RPC error while reading {record_id}")
        return await super().get_record(record_id)


class RecordingDestinationRegistry(InMemoryDestinationRegistry):
    """Destination that remembers the id layout of every accepted batch."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.batches: list[list[int]] = []

    async def write_batch(self, records: Sequence[TileRecord]) -> None:
        await super().write_batch(records)
        self.batches.append([record.id for record in records])


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> MigrationSettings:
    """Reference pacing and retry values, small batches."""
    return MigrationSettings(
        batch_size=2,
        fetch_attempts=3,
        retry_delay=2.0,
        item_delay=0.2,
        batch_delay=5.0,
        existence_check_delay=0.05,
    )


@pytest.fixture
def source_records() -> list[TileRecord]:
    return [make_record(record_id) for record_id in (10, 11, 12)]


@pytest.fixture
def source(source_records) -> FlakySourceRegistry:
    return FlakySourceRegistry(source_records)


@pytest.fixture
def destination() -> RecordingDestinationRegistry:
    return RecordingDestinationRegistry()
