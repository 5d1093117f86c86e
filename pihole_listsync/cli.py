"""Command line entry point."""

import argparse
import logging
import math
import os
import signal
import sys
import time
from typing import List, Optional

from pihole_listsync import __version__, gravity
from pihole_listsync.config import DEFAULT_CONFIG_FILE, Config, load_config
from pihole_listsync.exceptions import ConfigError, LockError
from pihole_listsync.fetcher import HTTPClient
from pihole_listsync.lock import ProcessLock
from pihole_listsync.stats import Stats
from pihole_listsync.store import GravityStore
from pihole_listsync.updater import Updater

logger = logging.getLogger("pihole_listsync")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_LOCKED = 6

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


# ============================================================================
# HELPERS
# ============================================================================

def format_bytes(size: int, precision: int = 2) -> str:
    units = ['B', 'KB', 'MB', 'GB', 'TB']
    size = max(size, 0)
    power = min(int(math.log(size, 1024)) if size else 0, len(units) - 1)
    return f"{round(size / (1024 ** power), precision)} {units[power]}"


def setup_logging(config: Config) -> None:
    """Configure the package logger: console plus optional log file."""
    logger.handlers.clear()
    formatter = logging.Formatter(LOG_FORMAT)

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    if config.log_file:
        try:
            file_handler = logging.FileHandler(config.log_file)
        except OSError as e:
            logger.warning(f"Cannot open log file {config.log_file}: {e}")
        else:
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    if config.debug:
        logger.setLevel(logging.DEBUG)
    elif config.quiet:
        logger.setLevel(logging.ERROR)
    else:
        logger.setLevel(logging.INFO)


def _terminate(signum, frame):
    raise KeyboardInterrupt(f"signal {signum}")


# ============================================================================
# RUN
# ============================================================================

def run(config: Config) -> Stats:
    """Synchronize all sections, then apply the post-run Pi-hole actions."""
    if not os.path.isfile(config.gravity_db):
        raise ConfigError(f"Gravity database not found: {config.gravity_db}")

    fetcher = HTTPClient(timeout=config.timeout, user_agent=config.user_agent)
    try:
        with GravityStore(config.gravity_db) as store:
            logger.info(f"Opened gravity database: {config.gravity_db} ({format_bytes(store.size())})")
            updater = Updater(store, fetcher, config.sections, dry_run=config.dry_run,
                              verbose=config.verbose, progress=config.progress)
            stats = updater.run()
    finally:
        fetcher.close()

    if config.dry_run:
        logger.info("[DRY RUN] All changes were rolled back, skipping post-run actions")
        return stats

    if config.update_gravity:
        if not gravity.update_gravity():
            stats.increment('errors')

    if config.vacuum_database:
        with GravityStore(config.gravity_db) as store:
            if not gravity.vacuum_database(store):
                stats.increment('errors')
            elif config.verbose:
                logger.info(f"Database size: {format_bytes(store.size())}")

    if not config.update_gravity and config.reload_lists:
        if not gravity.reload_lists():
            stats.increment('errors')

    return stats


def print_summary(stats: Stats, elapsed: float) -> None:
    print("\n" + "=" * 60)
    print(" " * 25 + "SUMMARY")
    print("=" * 60)
    print(f"Inserted:           {stats['inserted']:,}")
    print(f"Enabled:            {stats['enabled']:,}")
    print(f"Disabled:           {stats['disabled']:,}")
    print(f"Migrated:           {stats['migrated']:,}")
    print(f"Exists:             {stats['exists']:,}")
    print(f"Ignored:            {stats['ignored']:,}")
    if stats['invalid'] > 0:
        noun = 'entry' if stats['invalid'] == 1 else 'entries'
        print(f"Invalid:            {stats['invalid']:,} {noun} skipped")
    if stats['conflict'] > 0:
        noun = 'entry' if stats['conflict'] == 1 else 'entries'
        print(f"Conflicts:          {stats['conflict']:,} {noun} across your lists")
    print(f"Warnings:           {stats['warnings']}")
    print(f"Errors:             {stats['errors']}")
    print(f"Runtime:            {elapsed:.2f} seconds")
    print("=" * 60 + "\n")


# ============================================================================
# CLI
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pihole-listsync",
        description="Update Pi-hole lists from remote sources",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument("-c", "--config", default=None,
                        help=f"Configuration file (default: {DEFAULT_CONFIG_FILE})")
    parser.add_argument("--dry-run", action="store_true",
                        help="Roll back every change instead of committing it")
    parser.add_argument("--no-gravity", action="store_true",
                        help="Do not run 'pihole updateGravity'")
    parser.add_argument("--no-vacuum", action="store_true",
                        help="Do not vacuum the database")
    parser.add_argument("--no-reload", action="store_true",
                        help="Do not signal pihole-FTL to reload lists")
    parser.add_argument("--progress", action="store_true",
                        help="Show progress bars while fetching")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Verbose output")
    parser.add_argument("--debug", action="store_true",
                        help="Debug logging")
    parser.add_argument("-q", "--quiet", action="store_true",
                        help="Quiet mode")
    parser.add_argument("--version", action="version", version=f"pihole-listsync v{__version__}")
    return parser


def parse_arguments(argv: Optional[List[str]] = None) -> Config:
    """Parse command line arguments and load the configuration they point to."""
    args = build_parser().parse_args(argv)

    config_file = args.config or DEFAULT_CONFIG_FILE
    config = load_config(config_file, required=args.config is not None)

    config.dry_run = args.dry_run
    config.progress = args.progress
    config.quiet = args.quiet
    config.verbose = config.verbose or args.verbose
    config.debug = config.debug or args.debug
    if args.no_gravity:
        config.update_gravity = False
    if args.no_vacuum:
        config.vacuum_database = False
    if args.no_reload:
        config.reload_lists = False

    return config


def main(argv: Optional[List[str]] = None) -> int:
    """Main function."""
    try:
        config = parse_arguments(argv)
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_ERROR

    setup_logging(config)

    if not config.quiet:
        print("\n" + "=" * 60)
        print(" " * 14 + f"PI-HOLE LIST SYNC v{__version__}")
        print("=" * 60 + "\n")

    signal.signal(signal.SIGTERM, _terminate)
    start_time = time.time()

    try:
        with ProcessLock(config.lock_file):
            stats = run(config)
    except LockError as e:
        logger.error(str(e))
        return EXIT_LOCKED if e.held else EXIT_ERROR
    except ConfigError as e:
        logger.error(str(e))
        return EXIT_ERROR
    except KeyboardInterrupt:
        logger.info("Operation cancelled.")
        return EXIT_ERROR
    except Exception as e:
        logger.error(f"An error occurred: {e}")
        if config.debug:
            import traceback
            traceback.print_exc()
        return EXIT_ERROR

    if not config.quiet:
        print_summary(stats, time.time() - start_time)

    if stats.failed:
        logger.error(f"Finished with {stats['errors']} error(s).")
        return EXIT_ERROR

    if stats['warnings'] > 0:
        logger.info(f"Finished successfully with {stats['warnings']} warning(s).")
    else:
        logger.info("Finished successfully.")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
