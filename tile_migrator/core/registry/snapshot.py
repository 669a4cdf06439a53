"""Frozen registry snapshots stored as YAML or JSON files.

A snapshot file is either a bare list of records or a mapping::

    finalized: false
    records:
      - id: 10
        owner: "0xabc..."
        metadata_ref: "ipfs://..."
        payment_flag: true
        created_at: 1717171717
        original_buyer: "0xabc..."

Registry wire names (``tileId``, ``metadataUri`` ...) are accepted as well.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, NamedTuple

import structlog
import yaml
from pydantic import ValidationError

from ...models import TileRecord
from ..exceptions import ConfigurationError

logger = structlog.get_logger("migration")

JSON_SUFFIXES = {".json"}


class Snapshot(NamedTuple):
    records: list[TileRecord]
    finalized: bool


def load_snapshot(path: Path | str) -> Snapshot:
    """Read a snapshot file.

    Args:
        path: YAML (.yml/.yaml) or JSON (.json) snapshot file

    Returns:
        Snapshot with records in file order and the finalize flag

    Raises:
        ConfigurationError: If the file is unreadable or a record is invalid
    """
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
        data = json.loads(content) if path.suffix in JSON_SUFFIXES else yaml.safe_load(content)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to load snapshot from {path}: {e}") from e

    finalized = False
    if data is None:
        raw_records: list[Any] = []
    elif isinstance(data, list):
        raw_records = data
    elif isinstance(data, dict):
        raw_records = data.get("records") or []
        finalized = bool(data.get("finalized", False))
    else:
        raise ConfigurationError(f"Snapshot {path} must contain a list or mapping of records")

    try:
        records = [TileRecord.model_validate(item) for item in raw_records]
    except ValidationError as e:
        raise ConfigurationError(f"Invalid record in snapshot {path}: {e}") from e

    logger.debug("Snapshot loaded", path=str(path), records=len(records), finalized=finalized)
    return Snapshot(records=records, finalized=finalized)


def dump_snapshot(path: Path | str, records: list[TileRecord], finalized: bool = False) -> None:
    """Atomically write a snapshot file (temp file + rename).

    Args:
        path: Target file; the suffix picks JSON or YAML
        records: Records to persist, in order
        finalized: Finalize flag to store alongside the records
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "finalized": finalized,
        "records": [record.model_dump() for record in records],
    }
    if path.suffix in JSON_SUFFIXES:
        content = json.dumps(payload, indent=2)
    else:
        content = yaml.safe_dump(payload, default_flow_style=False, sort_keys=False)

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
