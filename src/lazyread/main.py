#!/usr/bin/env python
"""Maintenance entry point for a Lazy Read store."""
import argparse
import logging
import os
import sys
from pathlib import Path

from lazyread import __version__, observability
from lazyread.config import LOG_LEVELS, config
from lazyread.exceptions import InitializationError
from lazyread.storage.database import Database
from lazyread.storage.stats_repository import StatsRepository


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Lazy Read store maintenance")
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument(
        "--database-path",
        help="SQLite database file path",
        type=str,
        default=os.environ.get("LAZYREAD_DATABASE_PATH")
    )
    parser.add_argument(
        "--log-level",
        help="Logging level",
        choices=LOG_LEVELS,
        default=config.log_level
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("migrate", help="Create or upgrade the store schema")
    subparsers.add_parser("stats", help="Print book, note and entry counts")
    return parser.parse_args(argv)


def update_config(args):
    """Update the global config with command line arguments."""
    if args.database_path:
        config.database_path = Path(args.database_path)
    config.log_level = args.log_level


def run_migrate(database: Database) -> int:
    report = database.open()
    print(f"created tables: {', '.join(report.created_tables) or '-'}")
    print(f"applied steps:  {', '.join(report.applied_steps) or '-'}")
    for failure in report.failed_steps:
        print(f"FAILED: {failure}")
    return 0 if report.ok else 2


def run_stats(database: Database) -> int:
    stats = StatsRepository(database).get_stats()
    print(f"books:   {stats.books_count}")
    print(f"notes:   {stats.notes_count}")
    print(f"entries: {stats.images_count}")
    return 0


def main(argv=None) -> int:
    """Run one maintenance command against the configured store."""
    args = parse_args(argv)
    update_config(args)

    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    try:
        observability.configure_logging(config.log_dir, level=log_level, console=True)
    except OSError as e:
        # Fall back to basic console logging if file logging fails
        logging.basicConfig(level=log_level)
        logging.getLogger(__name__).warning(f"Failed to configure file logging: {e}")

    logger = logging.getLogger(__name__)
    database = Database(config)
    try:
        if args.command == "migrate":
            return run_migrate(database)
        return run_stats(database)
    except InitializationError as e:
        logger.error(f"Store unavailable: {e}")
        return 1
    finally:
        database.close()
        for operation, stats in observability.metrics.get_metrics().items():
            logger.debug(
                f"{operation}: {stats['count']} calls, "
                f"{stats['error_count']} failed, avg {stats['avg_duration_ms']}ms"
            )


if __name__ == "__main__":
    sys.exit(main())
