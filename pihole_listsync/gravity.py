"""Post-run Pi-hole actions: gravity update, vacuum and DNS list reload."""

import logging
import os
import signal
import sqlite3
import subprocess
from typing import List, Optional

logger = logging.getLogger(__name__)

UPDATE_GRAVITY_COMMAND = ['pihole', 'updateGravity']
FTL_PROCESS = 'pihole-FTL'


def update_gravity(command: Optional[List[str]] = None) -> bool:
    """Run ``pihole updateGravity``; returns False on failure."""
    command = command or UPDATE_GRAVITY_COMMAND
    logger.info("Updating Pi-hole's gravity...")
    try:
        result = subprocess.run(command, check=False)
    except OSError as e:
        logger.error(f"Failed to run '{' '.join(command)}': {e}")
        return False

    if result.returncode != 0:
        logger.error(f"Error occurred while updating gravity (exit code {result.returncode})")
        return False
    return True


def vacuum_database(store) -> bool:
    logger.info("Vacuuming database...")
    try:
        store.vacuum()
    except sqlite3.Error as e:
        logger.error(f"Failed to vacuum database: {e}")
        return False
    return True


def find_ftl_pid(process: str = FTL_PROCESS) -> Optional[int]:
    """PID of the running FTL process (the last one when several match)."""
    try:
        result = subprocess.run(['pidof', process], capture_output=True, text=True, check=False)
    except OSError as e:
        logger.error(f"Failed to run pidof: {e}")
        return None

    pids = result.stdout.split()
    if result.returncode != 0 or not pids:
        return None
    return int(pids[-1])


def reload_lists(process: str = FTL_PROCESS) -> bool:
    """Signal FTL to reload its lists without a full gravity rebuild."""
    logger.info("Reloading Pi-hole's DNS lists...")
    pid = find_ftl_pid(process)
    if pid is None:
        logger.error(f"Failed to find {process} process PID")
        return False

    try:
        os.kill(pid, signal.SIGRTMIN)
    except OSError as e:
        logger.error(f"Failed to send signal to {process} ({pid}): {e}")
        return False
    return True
