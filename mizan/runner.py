"""
Runner script for Mizan maintenance.

Loads configuration, runs the startup maintenance passes and optionally
keeps the maintenance scheduler running.
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from mizan.config import (
    DEFAULT_DB_PATH,
    DEFAULT_PREFERENCES_PATH,
    DEFAULT_USER_ID,
    LOG_DIR,
    LOG_FILE,
    LOG_FORMAT,
    PROJECT_ROOT,
    ensure_directories,
    get_log_level,
)
from mizan.db import Database
from mizan.errors import SchemaError
from mizan.maintenance import MaintenanceRunner
from mizan.scheduler import MaintenanceScheduler
from mizan.services import DuplicateFilter, PreferenceStore

logger = logging.getLogger(__name__)


def setup_logging():
    """Configure logging to the log file and stdout."""
    ensure_directories()
    logging.basicConfig(
        level=get_log_level(),
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(LOG_DIR / LOG_FILE),
            logging.StreamHandler(sys.stdout),
        ],
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mizan", description="Run ledger maintenance on the Mizan database."
    )
    parser.add_argument(
        "--db",
        default=None,
        help=f"Path to the SQLite database (default: $MIZAN_DB_PATH or {DEFAULT_DB_PATH})",
    )
    parser.add_argument(
        "--preferences", default=None, help="Path to the preferences JSON file"
    )
    parser.add_argument("--user", default=DEFAULT_USER_ID, help="Owner of the data")
    parser.add_argument(
        "--reconcile",
        action="store_true",
        help="Remove duplicate transactions after the startup passes",
    )
    parser.add_argument(
        "--migrate-currency",
        action="store_true",
        help="Relabel all amounts to the canonical currency",
    )
    parser.add_argument(
        "--watch",
        action="store_true",
        help="Keep running and repeat maintenance on a timer",
    )
    return parser


async def watch(scheduler: MaintenanceScheduler):
    """Keep the scheduler alive until the process is interrupted."""
    scheduler.start()
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.stop()


def run(argv=None):
    """Run startup maintenance with comprehensive error handling."""
    args = build_parser().parse_args(argv)

    env_path = PROJECT_ROOT / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    setup_logging()
    if env_path.exists():
        logger.info(f"Loaded environment from {env_path}")

    db_path = Path(args.db or os.environ.get("MIZAN_DB_PATH") or DEFAULT_DB_PATH)
    preferences_path = Path(args.preferences or DEFAULT_PREFERENCES_PATH)

    db = Database(db_path)
    try:
        runner = MaintenanceRunner(db, PreferenceStore(preferences_path), user_id=args.user)
        try:
            report = runner.run_startup()
        except SchemaError as e:
            logger.critical(f"Database schema could not be created: {e}", exc_info=True)
            print(f"\nError: {e}")
            print(f"The database at {db_path} may be damaged. Restore a backup or reset it.")
            sys.exit(2)

        print(report.summary())

        if args.reconcile:
            result = runner.reconciler.reconcile_duplicates(DuplicateFilter(user_id=args.user))
            print(
                f"Removed {result.deleted} duplicate transactions, "
                f"reversed {result.refunded:.2f}"
            )

        if args.migrate_currency:
            migration = runner.currency.migrate_all_data_to_mad(args.user)
            print(f"Relabelled {migration.total} rows to {migration.currency}")

        if args.watch:
            logger.info("Watching: maintenance will repeat on a timer")
            try:
                asyncio.run(watch(MaintenanceScheduler(runner)))
            except KeyboardInterrupt:
                logger.info("Received keyboard interrupt, shutting down...")
                print("\nShutting down...")
    except Exception as e:
        logger.critical(f"Critical error in run(): {e}", exc_info=True)
        print(f"\nCritical error: {e}")
        print(f"Check {LOG_DIR / LOG_FILE} for more details.")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    run()
