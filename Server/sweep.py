#!/usr/bin/env python3
"""
LabQueue Server - Expiry Sweep

External periodic trigger for expiring overdue workstation holds and
auto-completing long-paused sessions, so queue state does not depend on
incoming traffic alone. Safe to run alongside the server.

Usage:
    python sweep.py                      # one sweep, then exit
    python sweep.py --loop --interval 60 # sweep every minute
"""

import argparse
import logging
import sys
import time
from datetime import timedelta
from pathlib import Path

# Ensure we can import from the same directory
sys.path.insert(0, str(Path(__file__).parent))

from managers.database_manager import DatabaseManager
from lab_service import LabService
from models.database import QueueEntryState
from server import DEFAULT_DB_PATH

# Warn about holds expiring within this window
EXPIRY_WARNING_WINDOW = timedelta(minutes=1)

logger = logging.getLogger("sweep")


def RunSweep(lab_service: LabService) -> int:
    """
    Run one sweep and log the resulting state

    Args:
        lab_service: Service bound to the database

    Returns:
        int: Number of entries and sessions transitioned
    """
    transitioned = lab_service.SweepExpired()
    logger.info(f"Sweep complete: {transitioned} entries/sessions transitioned")

    statistics = lab_service.GetQueueStatistics()
    queue = statistics["queue"]
    resources = statistics["resources"]
    logger.info(
        f"Queue: {queue[QueueEntryState.WAITING]} waiting, {queue[QueueEntryState.ASSIGNED]} assigned | "
        f"Workstations: {resources['free']} free, {resources['held']} held, {resources['occupied']} occupied | "
        f"Live sessions: {statistics['live_sessions']}"
    )

    now = lab_service.Now()
    for entry in lab_service.GetQueueMonitor()["assigned"]:
        expires_at = entry["expires_at_utc"]
        if expires_at is not None and expires_at - now <= EXPIRY_WARNING_WINDOW:
            logger.warning(
                f"Hold on {entry['assigned_resource_name']} for student {entry['student_id']} "
                f"expires in {entry['formatted_remaining_time']}"
            )

    return transitioned


def main():
    """Main entry point for the script."""
    parser = argparse.ArgumentParser(
        description="Expire overdue holds and auto-complete long-paused sessions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument(
        "--db",
        type=str,
        default=DEFAULT_DB_PATH,
        help=f"Path to the SQLite database (default: {DEFAULT_DB_PATH})"
    )

    parser.add_argument(
        "--loop",
        action="store_true",
        help="Keep sweeping every --interval seconds until interrupted"
    )

    parser.add_argument(
        "--interval",
        type=int,
        default=60,
        help="Seconds between sweeps with --loop (default: 60)"
    )

    args = parser.parse_args()

    if args.interval <= 0:
        parser.error("--interval must be positive")

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    db_manager = DatabaseManager(args.db)
    db_manager.InitializeDatabase()
    lab_service = LabService(db_manager)

    if not args.loop:
        RunSweep(lab_service)
        return

    logger.info(f"Sweeping every {args.interval}s (Ctrl+C to stop)")
    try:
        while True:
            try:
                RunSweep(lab_service)
            except Exception:
                # Keep the loop alive across transient database errors
                logger.exception("Sweep failed")
            time.sleep(args.interval)
    except KeyboardInterrupt:
        logger.info("Sweep loop stopped")


if __name__ == "__main__":
    main()
