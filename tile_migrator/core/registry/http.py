"""Registries reached through an HTTP registry gateway.

Gateway endpoints (relative to the base URL):

    GET  /records/ids            -> {"ids": [...]}
    GET  /records/count          -> {"count": n}
    GET  /records/{id}           -> record (wire field names)
    GET  /records/{id}/exists    -> {"exists": bool}
    POST /records/batch          <- {"records": [...]}
    GET  /migration/status       -> {"finalized": bool}

Reads map timeouts, transport errors, 429 and 5xx to ``TransientError``.
The batch write is not idempotent, so every write failure is fatal: an
ambiguous outcome is resolved by re-planning, never by resending.
"""

from collections.abc import Sequence
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from ...models import TileRecord
from ..exceptions import FatalError, NotFoundError, TransientError
from .base import DestinationRegistry, SourceRegistry

logger = structlog.get_logger("migration")

RETRYABLE_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})


class RegistryHttpClient:
    """Thin JSON client with the registry error taxonomy applied."""

    def __init__(
        self,
        base_url: str,
        registry: str,
        api_token: str | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize registry client.

        Args:
            base_url: Gateway base URL
            registry: Role label ("source"/"destination") used in errors
            api_token: Optional bearer token
            timeout: Per-request timeout in seconds
            client: Pre-built client (tests inject one with a mock transport)
        """
        self.registry = registry
        self.logger = logger.bind(component=f"{registry}_http_client", base_url=base_url)
        headers = {"Accept": "application/json"}
        if api_token:
            headers["Authorization"] = f"Bearer {api_token}"
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(base_url=base_url, headers=headers, timeout=timeout)

    async def get_json(self, path: str, record_id: int | None = None) -> Any:
        """GET a JSON document, mapping failures to registry errors."""
        try:
            response = await self.client.get(path)
        except httpx.TimeoutException as e:
            raise TransientError(f"{self.registry} GET {path} timed out: {e}") from e
        except httpx.TransportError as e:
            raise TransientError(f"{self.registry} GET {path} transport error: {e}") from e

        if response.status_code == 404 and record_id is not None:
            raise NotFoundError(record_id, self.registry)
        if response.status_code in RETRYABLE_STATUS_CODES:
            raise TransientError(
                f"{self.registry} GET {path} returned HTTP {response.status_code}"
            )
        if response.is_error:
            raise FatalError(
                f"{self.registry} GET {path} returned HTTP {response.status_code}: {response.text}"
            )

        try:
            return response.json()
        except ValueError as e:
            raise TransientError(f"{self.registry} GET {path} returned invalid JSON") from e

    async def post_json(self, path: str, payload: dict[str, Any]) -> None:
        """POST a JSON document once; every failure is fatal."""
        try:
            response = await self.client.post(path, json=payload)
        except httpx.HTTPError as e:
            raise FatalError(
                f"{self.registry} POST {path} outcome unknown ({e.__class__.__name__}: {e}); "
                "re-plan before retrying"
            ) from e

        if response.is_error:
            raise FatalError(
                f"{self.registry} POST {path} rejected with HTTP {response.status_code}: "
                f"{response.text}"
            )

    def parse_record(self, payload: Any, record_id: int) -> TileRecord:
        try:
            record = TileRecord.model_validate(payload)
        except ValidationError as e:
            raise FatalError(f"{self.registry} returned malformed record {record_id}: {e}") from e
        if record.id != record_id:
            raise FatalError(
                f"{self.registry} returned record {record.id} when {record_id} was requested"
            )
        return record

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()


def _extract(payload: Any, key: str, registry: str) -> Any:
    if isinstance(payload, dict) and key in payload:
        return payload[key]
    raise FatalError(f"{registry} response is missing '{key}'")


def _as_int(value: Any, key: str, registry: str) -> int:
    if isinstance(value, bool):
        raise FatalError(f"{registry} response has non-integer '{key}': {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise FatalError(f"{registry} response has non-integer '{key}': {value!r}") from e


def _parse_ids(payload: Any, registry: str) -> list[int]:
    """Accept a bare id list or {"ids": [...]}."""
    ids = payload if isinstance(payload, list) else _extract(payload, "ids", registry)
    if not isinstance(ids, list):
        raise FatalError(f"{registry} response 'ids' is not a list")
    return [_as_int(record_id, "ids", registry) for record_id in ids]


class HttpSourceRegistry(SourceRegistry):
    """Source registry read through the gateway."""

    def __init__(self, base_url: str, **client_options: Any):
        super().__init__()
        self.http = RegistryHttpClient(base_url, "source", **client_options)

    async def list_all_ids(self) -> list[int]:
        return _parse_ids(await self.http.get_json("/records/ids"), "source")

    async def get_record(self, record_id: int) -> TileRecord:
        payload = await self.http.get_json(f"/records/{record_id}", record_id=record_id)
        return self.http.parse_record(payload, record_id)

    async def total_count(self) -> int:
        payload = await self.http.get_json("/records/count")
        return _as_int(_extract(payload, "count", "source"), "count", "source")

    async def aclose(self) -> None:
        await self.http.aclose()


class HttpDestinationRegistry(DestinationRegistry):
    """Destination registry written through the gateway."""

    def __init__(self, base_url: str, **client_options: Any):
        super().__init__()
        self.http = RegistryHttpClient(base_url, "destination", **client_options)

    async def list_existing_ids(self) -> set[int]:
        return set(_parse_ids(await self.http.get_json("/records/ids"), "destination"))

    async def exists(self, record_id: int) -> bool:
        payload = await self.http.get_json(f"/records/{record_id}/exists")
        return bool(_extract(payload, "exists", "destination"))

    async def get_record(self, record_id: int) -> TileRecord:
        payload = await self.http.get_json(f"/records/{record_id}", record_id=record_id)
        return self.http.parse_record(payload, record_id)

    async def write_batch(self, records: Sequence[TileRecord]) -> None:
        if not records:
            raise FatalError("Malformed batch: no records")
        if await self.is_finalized():
            raise FatalError("Destination is finalized; migration writes are disabled")

        await self.http.post_json(
            "/records/batch", {"records": [record.to_wire() for record in records]}
        )
        self.logger.debug("Batch accepted", records=len(records), first_id=records[0].id)

    async def is_finalized(self) -> bool:
        payload = await self.http.get_json("/migration/status")
        return bool(_extract(payload, "finalized", "destination"))

    async def total_count(self) -> int:
        payload = await self.http.get_json("/records/count")
        return _as_int(_extract(payload, "count", "destination"), "count", "destination")

    async def aclose(self) -> None:
        await self.http.aclose()
