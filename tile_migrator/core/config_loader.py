"""Configuration management for tile migration runs."""

import asyncio
import os
import re
from pathlib import Path
from typing import Any, Literal

import structlog
import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings

from .exceptions import ConfigurationError
from .settings import MigrationSettings

logger = structlog.get_logger()

DEFAULT_CONFIG_FILE = "config/migration.yml"


class RegistryEndpoint(BaseModel):
    """Connection parameters for one registry."""

    kind: Literal["http", "snapshot"] = "http"
    url: str | None = None  # Base URL of the registry gateway (http)
    snapshot_path: str | None = None  # YAML/JSON snapshot file (snapshot)
    api_token: str | None = None
    timeout: float = Field(default=30.0, gt=0)
    description: str = ""

    @model_validator(mode="after")
    def _check_location(self) -> "RegistryEndpoint":
        if self.kind == "http" and not self.url:
            raise ValueError("http registry requires 'url'")
        if self.kind == "snapshot" and not self.snapshot_path:
            raise ValueError("snapshot registry requires 'snapshot_path'")
        return self


class MigratorConfig(BaseSettings):
    """Main configuration for a migration run."""

    source: RegistryEndpoint | None = None
    destination: RegistryEndpoint | None = None
    migration: MigrationSettings = Field(default_factory=MigrationSettings)
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    config_file: str = Field(default=DEFAULT_CONFIG_FILE, alias="MIGRATION_CONFIG")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }

    def require_endpoints(self) -> tuple[RegistryEndpoint, RegistryEndpoint]:
        """Return (source, destination), failing if either is unconfigured."""
        missing = [
            name for name, endpoint in (("source", self.source), ("destination", self.destination))
            if endpoint is None
        ]
        if missing:
            raise ConfigurationError(f"Missing registry configuration: {', '.join(missing)}")
        return self.source, self.destination  # type: ignore[return-value]


def load_config(config_path: str | None = None) -> MigratorConfig:
    """Load configuration from multiple sources (synchronous interface).

    Args:
        config_path: Optional path to YAML config file

    Returns:
        Loaded configuration

    Note:
        Must not be called from inside a running event loop;
        use load_config_async() there instead.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(load_config_async(config_path))
    raise RuntimeError(
        "load_config() cannot be called from within an async context. "
        "Use 'await load_config_async()' instead."
    )


async def load_config_async(config_path: str | None = None) -> MigratorConfig:
    """Load configuration from multiple sources (async interface).

    Precedence, lowest to highest: defaults, YAML file, environment.

    Args:
        config_path: Optional path to YAML config file

    Returns:
        Loaded configuration

    Raises:
        ConfigurationError: If the file cannot be parsed or fails validation
    """
    load_dotenv()

    config = MigratorConfig()
    project_config_path = Path(config_path or os.getenv("MIGRATION_CONFIG", DEFAULT_CONFIG_FILE))

    if project_config_path.exists():
        yaml_config = await _load_yaml_config(project_config_path)
        try:
            _apply_registry_config(config, yaml_config)
            _apply_migration_config(config, yaml_config)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid config in {project_config_path}: {e}") from e
    elif config_path:
        raise ConfigurationError(f"Config file not found: {project_config_path}")

    config.config_file = str(project_config_path)

    _apply_env_overrides(config)

    return config


def _apply_registry_config(config: MigratorConfig, yaml_config: dict[str, Any]) -> None:
    """Apply source/destination endpoints from YAML data."""
    for role in ("source", "destination"):
        if yaml_config.get(role):
            setattr(config, role, RegistryEndpoint(**yaml_config[role]))


def _apply_migration_config(config: MigratorConfig, yaml_config: dict[str, Any]) -> None:
    """Apply pipeline tuning from YAML data; environment values still win."""
    overrides = yaml_config.get("migration") or {}
    if not overrides:
        return
    merged = config.migration.model_dump()
    for key, value in overrides.items():
        if key not in merged:
            logger.warning("Ignoring unknown migration setting", setting=key)
            continue
        field = MigrationSettings.model_fields[key]
        if field.alias and os.getenv(field.alias) is not None:
            continue
        merged[key] = value
    config.migration = MigrationSettings(**merged)
    if "log_level" in yaml_config and not os.getenv("LOG_LEVEL"):
        config.log_level = str(yaml_config["log_level"])


def _apply_env_overrides(config: MigratorConfig) -> None:
    """Apply environment variable overrides for registry locations."""
    for role, env_var in (("source", "SOURCE_REGISTRY_URL"), ("destination", "DESTINATION_REGISTRY_URL")):
        url = os.getenv(env_var)
        if not url:
            continue
        endpoint: RegistryEndpoint | None = getattr(config, role)
        if endpoint is None or endpoint.kind != "http":
            setattr(config, role, RegistryEndpoint(kind="http", url=url))
        else:
            endpoint.url = url

    if token := os.getenv("REGISTRY_API_TOKEN"):
        for endpoint in (config.source, config.destination):
            if endpoint is not None and endpoint.kind == "http" and not endpoint.api_token:
                endpoint.api_token = token


async def _load_yaml_config(config_path: Path) -> dict[str, Any]:
    """Load YAML configuration file."""
    try:
        content = await asyncio.to_thread(config_path.read_text)
        content = _expand_yaml_config(content)
        loaded = yaml.safe_load(content)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to load config from {config_path}: {e}") from e
    # yaml.safe_load can return None, str, list, etc.
    if not isinstance(loaded, dict):
        return {}
    return loaded


def _expand_yaml_config(content: str) -> str:
    """Securely expand environment variables with allowlist."""
    allowed_env_vars = {
        "HOME",
        "USER",
        "SOURCE_REGISTRY_URL",
        "DESTINATION_REGISTRY_URL",
        "REGISTRY_API_TOKEN",
        "MIGRATION_SNAPSHOT_DIR",
    }

    def replace_var(match: re.Match[str]) -> str:
        var_name = match.group(1)
        if var_name in allowed_env_vars:
            return os.getenv(var_name, match.group(0))  # Keep original if not found
        logger.warning(
            "Environment variable not in allowlist, skipping expansion",
            variable=var_name,
        )
        return match.group(0)

    return re.sub(r"\$\{([^}]+)\}", replace_var, content)
