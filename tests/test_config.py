"""Tests for configuration management."""

from unittest.mock import patch

import pytest

from tile_migrator.core.config_loader import (
    MigratorConfig,
    RegistryEndpoint,
    load_config,
    load_config_async,
)
from tile_migrator.core.exceptions import ConfigurationError
from tile_migrator.core.settings import MigrationSettings

ENV_VARS = [
    "LOG_LEVEL",
    "MIGRATION_CONFIG",
    "MIGRATION_BATCH_SIZE",
    "MIGRATION_FETCH_ATTEMPTS",
    "MIGRATION_RETRY_DELAY",
    "MIGRATION_PLANNING_MODE",
    "SOURCE_REGISTRY_URL",
    "DESTINATION_REGISTRY_URL",
    "REGISTRY_API_TOKEN",
    "MIGRATION_SNAPSHOT_DIR",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate each test from the caller's environment and .env file."""
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    with patch("tile_migrator.core.config_loader.load_dotenv"):
        yield


def write_config(tmp_path, content: str):
    path = tmp_path / "migration.yml"
    path.write_text(content)
    return path


def test_default_config():
    """Test default configuration creation."""
    config = MigratorConfig()

    assert config.source is None
    assert config.destination is None
    assert config.log_level == "INFO"
    assert config.migration.batch_size == 25
    assert config.migration.fetch_attempts == 3
    assert config.migration.retry_delay == 2.0
    assert config.migration.item_delay == 0.2
    assert config.migration.batch_delay == 5.0
    assert config.migration.existence_check_delay == 0.05
    assert config.migration.planning_mode == "per_id"


def test_settings_read_environment(monkeypatch):
    """Test pipeline settings pick up MIGRATION_* variables."""
    monkeypatch.setenv("MIGRATION_BATCH_SIZE", "7")
    monkeypatch.setenv("MIGRATION_PLANNING_MODE", "bulk")

    settings = MigrationSettings()

    assert settings.batch_size == 7
    assert settings.planning_mode == "bulk"


def test_settings_reject_zero_batch_size():
    """Test batch size must be positive."""
    with pytest.raises(ValueError):
        MigrationSettings(batch_size=0)


def test_load_yaml_config(tmp_path):
    """Test loading endpoints and tuning from a YAML file."""
    path = write_config(
        tmp_path,
        """
source:
  kind: http
  url: https://old-registry.example.com
  timeout: 10
  description: "Legacy registry"
destination:
  kind: snapshot
  snapshot_path: snapshots/destination.yml
migration:
  batch_size: 10
  batch_delay: 1.5
log_level: DEBUG
""",
    )

    config = load_config(str(path))

    assert config.source.kind == "http"
    assert config.source.url == "https://old-registry.example.com"
    assert config.source.timeout == 10
    assert config.destination.kind == "snapshot"
    assert config.destination.snapshot_path == "snapshots/destination.yml"
    assert config.migration.batch_size == 10
    assert config.migration.batch_delay == 1.5
    # Untouched settings keep their defaults
    assert config.migration.item_delay == 0.2
    assert config.log_level == "DEBUG"
    assert config.config_file == str(path)


def test_environment_wins_over_yaml(tmp_path, monkeypatch):
    """Test MIGRATION_* and LOG_LEVEL override values from the file."""
    monkeypatch.setenv("MIGRATION_BATCH_SIZE", "3")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    path = write_config(tmp_path, "migration:\n  batch_size: 10\nlog_level: DEBUG\n")

    config = load_config(str(path))

    assert config.migration.batch_size == 3
    assert config.log_level == "WARNING"


def test_unknown_migration_setting_is_ignored(tmp_path):
    """Test unknown tuning keys are skipped rather than rejected."""
    path = write_config(tmp_path, "migration:\n  gas_limit: 500000\n  batch_size: 4\n")

    config = load_config(str(path))

    assert config.migration.batch_size == 4


def test_registry_url_env_overrides(tmp_path, monkeypatch):
    """Test registry URL variables replace or create http endpoints."""
    monkeypatch.setenv("SOURCE_REGISTRY_URL", "https://env-source.example.com")
    monkeypatch.setenv("DESTINATION_REGISTRY_URL", "https://env-dest.example.com")
    monkeypatch.setenv("REGISTRY_API_TOKEN", "secret-token")
    path = write_config(
        tmp_path,
        """
source:
  url: https://yaml-source.example.com
destination:
  kind: snapshot
  snapshot_path: destination.yml
""",
    )

    config = load_config(str(path))

    assert config.source.url == "https://env-source.example.com"
    assert config.source.api_token == "secret-token"
    assert config.destination.kind == "http"
    assert config.destination.url == "https://env-dest.example.com"
    assert config.destination.api_token == "secret-token"


def test_allowlisted_variables_are_expanded(tmp_path, monkeypatch):
    """Test ${VAR} expansion honours the allowlist."""
    monkeypatch.setenv("MIGRATION_SNAPSHOT_DIR", "/srv/snapshots")
    monkeypatch.setenv("NOT_ALLOWED", "leak")
    path = write_config(
        tmp_path,
        """
source:
  kind: snapshot
  snapshot_path: ${MIGRATION_SNAPSHOT_DIR}/source.yml
destination:
  kind: snapshot
  snapshot_path: ${NOT_ALLOWED}/destination.yml
""",
    )

    config = load_config(str(path))

    assert config.source.snapshot_path == "/srv/snapshots/source.yml"
    assert config.destination.snapshot_path == "${NOT_ALLOWED}/destination.yml"


def test_missing_explicit_config_file():
    """Test an explicit path that does not exist is an error."""
    with pytest.raises(ConfigurationError, match="Config file not found"):
        load_config("missing.yml")


def test_missing_default_config_file_uses_defaults():
    """Test the default config location is optional."""
    config = load_config()

    assert config.source is None
    assert config.migration.batch_size == 25


def test_invalid_yaml(tmp_path):
    """Test unparsable YAML is reported as a configuration error."""
    path = write_config(tmp_path, "source: [unclosed\n")

    with pytest.raises(ConfigurationError, match="Failed to load config"):
        load_config(str(path))


def test_invalid_setting_value(tmp_path):
    """Test validation errors are wrapped as configuration errors."""
    path = write_config(tmp_path, "migration:\n  batch_size: 0\n")

    with pytest.raises(ConfigurationError, match="Invalid config"):
        load_config(str(path))


def test_endpoint_requires_location():
    """Test each endpoint kind requires its location field."""
    with pytest.raises(ValueError, match="requires 'url'"):
        RegistryEndpoint(kind="http")
    with pytest.raises(ValueError, match="requires 'snapshot_path'"):
        RegistryEndpoint(kind="snapshot")


def test_require_endpoints():
    """Test missing endpoints are named in the error."""
    config = MigratorConfig(source=RegistryEndpoint(url="https://old.example.com"))

    with pytest.raises(ConfigurationError, match="destination"):
        config.require_endpoints()


@pytest.mark.asyncio
async def test_sync_loader_rejects_running_loop(tmp_path):
    """Test load_config refuses to nest event loops."""
    with pytest.raises(RuntimeError, match="async context"):
        load_config()

    config = await load_config_async()
    assert config.source is None
