"""Abstract registry ports for the migration pipeline."""

from abc import ABC, abstractmethod
from collections.abc import Sequence

import structlog

from ...models import TileRecord

logger = structlog.get_logger("migration")


class SourceRegistry(ABC):
    """Read-only view of the deprecated registry being migrated from."""

    def __init__(self):
        self.logger = logger.bind(component=self.__class__.__name__.lower())

    @abstractmethod
    async def list_all_ids(self) -> list[int]:
        """List every record id in enumeration order.

        Ids are not assumed to be contiguous.

        Returns:
            Ordered list of record ids
        """

    @abstractmethod
    async def get_record(self, record_id: int) -> TileRecord:
        """Fetch one record by id.

        Args:
            record_id: Record primary key

        Returns:
            The stored record

        Raises:
            TransientError: Network or provider fault; the call may be retried
            NotFoundError: The id does not exist in this registry
        """

    @abstractmethod
    async def total_count(self) -> int:
        """Get the registry's own record counter."""

    def get_registry_type(self) -> str:
        """Get the name/type of this registry implementation."""
        return self.__class__.__name__

    async def aclose(self) -> None:  # noqa: B027 - optional hook
        """Release any held connections."""


class DestinationRegistry(ABC):
    """Replacement registry receiving migrated records."""

    def __init__(self):
        self.logger = logger.bind(component=self.__class__.__name__.lower())

    @abstractmethod
    async def list_existing_ids(self) -> set[int]:
        """List every id already present in the destination."""

    @abstractmethod
    async def exists(self, record_id: int) -> bool:
        """Check whether one id is present in the destination."""

    @abstractmethod
    async def get_record(self, record_id: int) -> TileRecord:
        """Fetch one migrated record by id.

        Raises:
            TransientError: Network or provider fault; the call may be retried
            NotFoundError: The id does not exist in this registry
        """

    @abstractmethod
    async def write_batch(self, records: Sequence[TileRecord]) -> None:
        """Write a whole batch in a single atomic call.

        Either every record lands or none does. The write is not idempotent,
        so callers must never retry it blindly.

        Args:
            records: Ordered batch of records to insert

        Raises:
            FatalError: Destination finalized, batch malformed, or write rejected
        """

    @abstractmethod
    async def is_finalized(self) -> bool:
        """Read the one-way finalize flag."""

    @abstractmethod
    async def total_count(self) -> int:
        """Get the registry's own record counter."""

    def get_registry_type(self) -> str:
        """Get the name/type of this registry implementation."""
        return self.__class__.__name__

    async def aclose(self) -> None:  # noqa: B027 - optional hook
        """Release any held connections."""
