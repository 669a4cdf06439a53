"""Pacing and retry settings for tile migration runs.

Provides centralized pipeline tuning using Pydantic BaseSettings
with environment variable support for operational overrides.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PlanningMode = Literal["per_id", "bulk"]


class MigrationSettings(BaseSettings):
    """Batch sizing, retry and pacing configuration for the migration pipeline."""

    batch_size: int = Field(
        25, ge=1, alias="MIGRATION_BATCH_SIZE", description="Records per destination write"
    )

    fetch_attempts: int = Field(
        3, ge=1, alias="MIGRATION_FETCH_ATTEMPTS", description="Attempts per source record fetch"
    )

    retry_delay: float = Field(
        2.0, ge=0, alias="MIGRATION_RETRY_DELAY", description="Seconds between fetch attempts"
    )

    item_delay: float = Field(
        0.2, ge=0, alias="MIGRATION_ITEM_DELAY", description="Seconds between record fetches"
    )

    batch_delay: float = Field(
        5.0, ge=0, alias="MIGRATION_BATCH_DELAY", description="Seconds between batch writes"
    )

    existence_check_delay: float = Field(
        0.05,
        ge=0,
        alias="MIGRATION_EXISTENCE_CHECK_DELAY",
        description="Seconds between destination existence checks while planning",
    )

    planning_mode: PlanningMode = Field(
        "per_id",
        alias="MIGRATION_PLANNING_MODE",
        description="per_id: one exists() call per id; bulk: one listing call",
    )

    progress_interval: int = Field(
        50, ge=1, alias="MIGRATION_PROGRESS_INTERVAL", description="Log planning progress every N ids"
    )

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

