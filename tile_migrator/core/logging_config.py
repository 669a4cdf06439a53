"""Structured logging for migration runs.

Pipeline events are written as JSON lines to ``migration.log`` and echoed to
stderr. Stdout stays reserved for the CLI's JSON result.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog
from structlog.stdlib import BoundLogger, LoggerFactory, ProcessorFormatter

MIGRATION_LOGGER = "migration"
LOG_FILE_NAME = "migration.log"


def setup_logging(
    log_dir: Path | str = Path("logs"),
    log_level: str | None = None,
    max_file_size_mb: int = 10,
) -> None:
    """Route structlog events to stderr and a size-capped ``migration.log``.

    Args:
        log_dir: Directory for the log file (created if missing)
        log_level: Log level (defaults to LOG_LEVEL env var or INFO)
        max_file_size_mb: Size at which the file is truncated; no backups are kept
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_level = log_level or os.getenv("LOG_LEVEL", "INFO")
    level = getattr(logging, log_level.upper(), logging.INFO)

    console_renderer = (
        structlog.dev.ConsoleRenderer()
        if sys.stderr.isatty()
        else structlog.processors.JSONRenderer()
    )
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(ProcessorFormatter(processor=console_renderer))

    log_file = log_dir / LOG_FILE_NAME
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_file_size_mb * 1024 * 1024,
        backupCount=0,
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(ProcessorFormatter(processor=structlog.processors.JSONRenderer()))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level)
    root_logger.addHandler(console_handler)

    # The file only sees pipeline events; they still propagate to stderr
    migration_logger = logging.getLogger(MIGRATION_LOGGER)
    migration_logger.handlers.clear()
    migration_logger.addHandler(file_handler)
    migration_logger.propagate = True

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.TimeStamper(fmt="iso"),
            ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=LoggerFactory(),
        wrapper_class=BoundLogger,
        cache_logger_on_first_use=True,
    )

    get_migration_logger().info(
        "Logging system initialized",
        log_file=str(log_file.absolute()),
        log_level=log_level,
        max_file_size_mb=max_file_size_mb,
    )


def get_migration_logger() -> Any:
    """Get the logger whose events land in migration.log."""
    return structlog.get_logger(MIGRATION_LOGGER)
