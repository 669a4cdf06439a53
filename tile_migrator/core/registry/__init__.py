"""Registry adapters for the migration pipeline."""

from pathlib import Path

from ..config_loader import RegistryEndpoint
from .base import DestinationRegistry, SourceRegistry  # noqa: F401
from .http import HttpDestinationRegistry, HttpSourceRegistry  # noqa: F401
from .memory import InMemoryDestinationRegistry, InMemorySourceRegistry  # noqa: F401
from .snapshot import Snapshot, dump_snapshot, load_snapshot  # noqa: F401


def build_source(endpoint: RegistryEndpoint) -> SourceRegistry:
    """Create the source adapter described by an endpoint."""
    if endpoint.kind == "snapshot":
        return InMemorySourceRegistry(load_snapshot(endpoint.snapshot_path).records)
    return HttpSourceRegistry(
        endpoint.url, api_token=endpoint.api_token, timeout=endpoint.timeout
    )


def build_destination(endpoint: RegistryEndpoint) -> DestinationRegistry:
    """Create the destination adapter described by an endpoint.

    A snapshot destination that does not exist yet starts empty and is
    created on the first successful batch.
    """
    if endpoint.kind == "snapshot":
        records, finalized = [], False
        if Path(endpoint.snapshot_path).exists():
            records, finalized = load_snapshot(endpoint.snapshot_path)
        return InMemoryDestinationRegistry(
            records, finalized=finalized, snapshot_path=endpoint.snapshot_path
        )
    return HttpDestinationRegistry(
        endpoint.url, api_token=endpoint.api_token, timeout=endpoint.timeout
    )


__all__ = [
    "DestinationRegistry",
    "HttpDestinationRegistry",
    "HttpSourceRegistry",
    "InMemoryDestinationRegistry",
    "InMemorySourceRegistry",
    "Snapshot",
    "SourceRegistry",
    "build_destination",
    "build_source",
    "dump_snapshot",
    "load_snapshot",
]
