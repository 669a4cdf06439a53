"""Tests for in-memory and snapshot registries."""

import json

import pytest

from tile_migrator.core.config_loader import RegistryEndpoint
from tile_migrator.core.exceptions import ConfigurationError, FatalError, NotFoundError
from tile_migrator.core.registry import (
    HttpDestinationRegistry,
    HttpSourceRegistry,
    InMemoryDestinationRegistry,
    InMemorySourceRegistry,
    build_destination,
    build_source,
    dump_snapshot,
    load_snapshot,
)

from .conftest import make_record


class TestInMemorySourceRegistry:
    """Test suite for InMemorySourceRegistry."""

    @pytest.mark.asyncio
    async def test_preserves_enumeration_order(self):
        """Test ids come back in insertion order, gaps included."""
        source = InMemorySourceRegistry([make_record(i) for i in (42, 7, 1000)])

        assert await source.list_all_ids() == [42, 7, 1000]
        assert await source.total_count() == 3

    @pytest.mark.asyncio
    async def test_missing_record_raises_not_found(self):
        """Test an unknown id raises NotFoundError."""
        source = InMemorySourceRegistry([make_record(1)])

        with pytest.raises(NotFoundError) as exc_info:
            await source.get_record(2)

        assert exc_info.value.record_id == 2
        assert exc_info.value.registry == "source"

    def test_duplicate_ids_rejected(self):
        """Test a source cannot hold two records with one id."""
        with pytest.raises(ValueError, match="Duplicate"):
            InMemorySourceRegistry([make_record(1), make_record(1)])


class TestInMemoryDestinationRegistry:
    """Test suite for InMemoryDestinationRegistry."""

    @pytest.mark.asyncio
    async def test_write_batch_lands_every_record(self):
        """Test a valid batch is written in one call."""
        destination = InMemoryDestinationRegistry()

        await destination.write_batch([make_record(1), make_record(2)])

        assert await destination.list_existing_ids() == {1, 2}
        assert await destination.exists(2)
        assert await destination.total_count() == 2
        assert destination.write_calls == 1

    @pytest.mark.asyncio
    async def test_batch_is_all_or_nothing(self):
        """Test a batch containing an existing id writes nothing."""
        destination = InMemoryDestinationRegistry([make_record(2)])

        with pytest.raises(FatalError, match="already exists"):
            await destination.write_batch([make_record(1), make_record(2)])

        assert await destination.list_existing_ids() == {2}

    @pytest.mark.asyncio
    async def test_duplicate_ids_in_batch_rejected(self):
        """Test a batch with a repeated id is malformed."""
        destination = InMemoryDestinationRegistry()

        with pytest.raises(FatalError, match="duplicate"):
            await destination.write_batch([make_record(1), make_record(1)])

        assert await destination.total_count() == 0

    @pytest.mark.asyncio
    async def test_empty_batch_rejected(self):
        """Test an empty batch is malformed."""
        with pytest.raises(FatalError, match="no records"):
            await InMemoryDestinationRegistry().write_batch([])

    @pytest.mark.asyncio
    async def test_finalized_destination_rejects_writes(self):
        """Test writes fail fast once the finalize flag is set."""
        destination = InMemoryDestinationRegistry()
        destination.finalize()

        assert await destination.is_finalized()
        with pytest.raises(FatalError, match="finalized"):
            await destination.write_batch([make_record(1)])
        assert destination.write_calls == 0

    @pytest.mark.asyncio
    async def test_persists_snapshot_after_write(self, tmp_path):
        """Test a snapshot-backed destination rewrites its file after each batch."""
        snapshot_file = tmp_path / "destination.yml"
        destination = InMemoryDestinationRegistry(snapshot_path=snapshot_file)

        await destination.write_batch([make_record(5), make_record(6)])

        snapshot = load_snapshot(snapshot_file)
        assert [record.id for record in snapshot.records] == [5, 6]
        assert snapshot.finalized is False
        # No temp files left behind
        assert [p.name for p in tmp_path.iterdir()] == ["destination.yml"]

    @pytest.mark.asyncio
    async def test_unwritable_snapshot_leaves_state_untouched(self, tmp_path):
        """Test a failed snapshot write rejects the batch as a whole."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        destination = InMemoryDestinationRegistry(snapshot_path=blocker / "destination.yml")

        with pytest.raises(FatalError, match="Failed to persist"):
            await destination.write_batch([make_record(1)])

        assert await destination.total_count() == 0
        assert not await destination.exists(1)
        assert destination.write_calls == 0


class TestSnapshots:
    """Test suite for snapshot files."""

    def test_load_json_list_with_wire_names(self, tmp_path):
        """Test a bare JSON list of registry-shaped records."""
        path = tmp_path / "source.json"
        path.write_text(json.dumps([make_record(3).to_wire(), make_record(1).to_wire()]))

        snapshot = load_snapshot(path)

        assert [record.id for record in snapshot.records] == [3, 1]
        assert snapshot.records[0] == make_record(3)

    def test_dump_then_load_keeps_finalize_flag(self, tmp_path):
        """Test the finalize flag is stored alongside records."""
        path = tmp_path / "dest.json"
        dump_snapshot(path, [make_record(1)], finalized=True)

        assert load_snapshot(path).finalized is True

    def test_invalid_record_raises_configuration_error(self, tmp_path):
        """Test a snapshot with a bad record is rejected."""
        path = tmp_path / "bad.yml"
        path.write_text("records:\n  - id: -4\n    owner: x\n")

        with pytest.raises(ConfigurationError, match="Invalid record"):
            load_snapshot(path)

    def test_unreadable_yaml_raises_configuration_error(self, tmp_path):
        """Test malformed YAML is reported as a configuration problem."""
        path = tmp_path / "broken.yml"
        path.write_text("records: [unclosed\n")

        with pytest.raises(ConfigurationError, match="Failed to load snapshot"):
            load_snapshot(path)


class TestRegistryFactories:
    """Test suite for build_source / build_destination."""

    @pytest.mark.asyncio
    async def test_snapshot_endpoints(self, tmp_path):
        """Test snapshot endpoints build in-memory registries."""
        source_file = tmp_path / "source.yml"
        dump_snapshot(source_file, [make_record(1), make_record(2)])

        source = build_source(RegistryEndpoint(kind="snapshot", snapshot_path=str(source_file)))
        destination = build_destination(
            RegistryEndpoint(kind="snapshot", snapshot_path=str(tmp_path / "new.yml"))
        )

        assert isinstance(source, InMemorySourceRegistry)
        assert await source.list_all_ids() == [1, 2]
        assert isinstance(destination, InMemoryDestinationRegistry)
        assert await destination.total_count() == 0

    @pytest.mark.asyncio
    async def test_http_endpoints(self):
        """Test http endpoints build gateway clients."""
        endpoint = RegistryEndpoint(kind="http", url="http://registry.test", api_token="t0ken")

        source = build_source(endpoint)
        destination = build_destination(endpoint)
        try:
            assert isinstance(source, HttpSourceRegistry)
            assert isinstance(destination, HttpDestinationRegistry)
            assert source.http.client.headers["Authorization"] == "Bearer t0ken"
        finally:
            await source.aclose()
            await destination.aclose()
