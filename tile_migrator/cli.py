"""Command line entry point for tile registry migrations.

Prints the machine-readable result as JSON on stdout; logs go to stderr and
to ``migration.log``. Finalizing the destination is a separate administrative
step, to be taken only after ``run`` reports ``completed``.
"""

import argparse
import asyncio
import json
import os
import signal
import sys
from typing import Any

import structlog
from dotenv import load_dotenv

from .core.config_loader import DEFAULT_CONFIG_FILE, MigratorConfig, load_config
from .core.exceptions import ConfigurationError, MigrationError
from .core.logging_config import get_migration_logger, setup_logging
from .core.registry import build_destination, build_source
from .services import MigrationOrchestrator, check_source

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG_ERROR = 2


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    load_dotenv()

    default_log_level = os.getenv("LOG_LEVEL", "INFO")
    default_config = os.getenv("MIGRATION_CONFIG", DEFAULT_CONFIG_FILE)
    default_log_dir = os.getenv("LOG_DIR", "logs")

    parser = argparse.ArgumentParser(
        prog="tile-migrator",
        description="Migrate tile records between registries and verify the result",
    )
    parser.add_argument("--config", default=default_config, help="Configuration file path")
    parser.add_argument(
        "--log-level",
        default=default_log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    parser.add_argument("--log-dir", default=default_log_dir, help="Directory for migration.log")

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Plan, migrate and verify")
    run_parser.add_argument("--batch-size", type=int, help="Records per destination write")

    subparsers.add_parser("plan", help="List pending ids without writing")
    subparsers.add_parser("verify", help="Compare source and destination records")

    check_parser = subparsers.add_parser("check-source", help="Probe the source registry")
    check_parser.add_argument(
        "--sample-size", type=int, default=5, help="Number of leading ids to report"
    )

    args = parser.parse_args(argv)
    if getattr(args, "batch_size", None) is not None and args.batch_size < 1:
        parser.error("--batch-size must be at least 1")
    return args


def main(argv: list[str] | None = None) -> int:
    """Main entry point; returns the process exit code."""
    args = parse_args(argv)
    setup_logging(log_dir=args.log_dir, log_level=args.log_level)
    logger = get_migration_logger()

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        logger.error("Configuration error", error=str(e))
        return EXIT_CONFIG_ERROR

    try:
        payload, ok = asyncio.run(_dispatch(args, config))
    except ConfigurationError as e:
        logger.error("Configuration error", error=str(e))
        return EXIT_CONFIG_ERROR
    except MigrationError as e:
        logger.error("Command failed", command=args.command, error=str(e))
        payload, ok = {"command": args.command, "success": False, "error": str(e)}, False

    print(json.dumps(payload, indent=2, default=str))
    return EXIT_OK if ok else EXIT_FAILED


async def _dispatch(args: argparse.Namespace, config: MigratorConfig) -> tuple[dict[str, Any], bool]:
    """Build registries for the configured endpoints and run one command."""
    logger = structlog.get_logger("migration").bind(component="cli", command=args.command)

    if args.command == "check-source":
        if config.source is None:
            raise ConfigurationError("Missing registry configuration: source")
        source = build_source(config.source)
        try:
            report = await check_source(source, sample_size=args.sample_size)
        finally:
            await source.aclose()
        return report, bool(report["healthy"])

    source_endpoint, destination_endpoint = config.require_endpoints()
    source = build_source(source_endpoint)
    destination = build_destination(destination_endpoint)
    orchestrator = MigrationOrchestrator(source, destination, config.migration)
    logger.info(
        "Registries configured",
        source=source.get_registry_type(),
        destination=destination.get_registry_type(),
    )

    try:
        if args.command == "plan":
            pending = await orchestrator.preview_plan()
            return {"pending_count": len(pending), "pending_ids": pending}, True

        if args.command == "verify":
            report = await orchestrator.verify()
            return {**report.model_dump(mode="json"), **report.summary()}, report.success

        cancel_event = asyncio.Event()
        _install_cancel_handler(cancel_event, logger)
        outcome = await orchestrator.run(batch_size=args.batch_size, cancel_event=cancel_event)
        return outcome.to_dict(), outcome.success
    finally:
        await source.aclose()
        await destination.aclose()


def _install_cancel_handler(cancel_event: asyncio.Event, logger) -> None:
    """Stop at the next batch boundary on SIGINT/SIGTERM instead of mid-batch."""
    loop = asyncio.get_running_loop()

    def request_cancel() -> None:
        logger.warning("Cancellation requested; stopping after the current batch")
        cancel_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, request_cancel)
        except (NotImplementedError, RuntimeError):
            # Signal handlers unavailable (non-main thread or unsupported platform)
            return


def cli() -> None:
    """Console script wrapper."""
    sys.exit(main())


if __name__ == "__main__":
    cli()
