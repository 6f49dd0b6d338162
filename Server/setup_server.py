#!/usr/bin/env python3
"""
LabQueue Server - Setup Script

This script initializes the LabQueue server for deployment:
1. Creates the SQLite database with schema
2. Optionally registers a numbered set of workstations

Re-running it is safe: existing tables and workstations are kept.

Usage:
    python setup_server.py
    python setup_server.py --workstations 12 --location "Room 204"
"""

import argparse
import sys
from pathlib import Path

# Ensure we can import from the same directory
sys.path.insert(0, str(Path(__file__).parent))

from managers.database_manager import DatabaseManager
from server import DEFAULT_DB_PATH, DEFAULT_HOST, DEFAULT_PORT


def print_header():
    """Print script header"""
    print("=" * 70)
    print("LabQueue Server - Setup Script")
    print("=" * 70)
    print()


def print_section(title):
    """Print section header"""
    print()
    print("-" * 70)
    print(f"  {title}")
    print("-" * 70)


def initialize_database(db_path: str) -> DatabaseManager:
    """
    Create the database schema

    Args:
        db_path: Path to the SQLite database file

    Returns:
        DatabaseManager: Manager bound to the database
    """
    print_section("Database Initialization")

    path = Path(db_path)
    if path.exists():
        print(f"[OK] Database file found at: {path.absolute()}")
        print("  Existing database will be updated with any missing tables.")
    else:
        print(f"-> Creating new database at: {path.absolute()}")

    try:
        db_manager = DatabaseManager(db_path)
        db_manager.InitializeDatabase()
    except Exception as e:
        print(f"[ERROR] Database initialization failed: {str(e)}")
        raise

    print("[OK] Database initialization complete!")
    return db_manager


def seed_workstations(db_manager: DatabaseManager, count: int, prefix: str, location: str = None):
    """
    Register workstations named '<prefix> 1' .. '<prefix> N'

    Args:
        db_manager: Database manager
        count: Number of workstations
        prefix: Display name prefix
        location: Optional room label for all of them
    """
    print_section("Workstations")

    names = [f"{prefix} {number}" for number in range(1, count + 1)]
    created = db_manager.SeedResources(names, location)

    print(f"[OK] {len(created)} workstation(s) added, {count - len(created)} already present")
    for resource in created:
        print(f"  - {resource.display_name}")


def print_next_steps():
    """Print next steps for server deployment"""
    print_section("Next Steps")

    print(f"""
1. Start the server:

   python server.py

   Or with uvicorn directly:

   uvicorn server:app --host {DEFAULT_HOST} --port {DEFAULT_PORT}

2. Schedule the expiry sweep (holds and long pauses are otherwise only
   expired when someone reads the queue):

   python sweep.py --loop --interval 60

   Or from cron, once a minute:

   * * * * * cd /path/to/Server && python sweep.py

3. Add more workstations later with POST /resources or by re-running
   this script with a larger --workstations count.
""")


def main():
    """Main setup script entry point"""
    parser = argparse.ArgumentParser(
        description="Initialize the LabQueue server database",
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
        "--workstations",
        type=int,
        default=0,
        help="Number of workstations to register (default: 0)"
    )

    parser.add_argument(
        "--prefix",
        type=str,
        default="Workstation",
        help="Display name prefix for registered workstations (default: Workstation)"
    )

    parser.add_argument(
        "--location",
        type=str,
        help="Room or area label for registered workstations"
    )

    args = parser.parse_args()

    if args.workstations < 0:
        parser.error("--workstations must not be negative")

    print_header()

    try:
        db_manager = initialize_database(args.db)
    except Exception:
        print("\n[ERROR] Setup failed during database initialization")
        sys.exit(1)

    if args.workstations:
        try:
            seed_workstations(db_manager, args.workstations, args.prefix, args.location)
        except Exception as e:
            print(f"\n[ERROR] Setup failed while adding workstations: {str(e)}")
            sys.exit(1)

    print()
    print("=" * 70)
    print("[OK] LabQueue Server Setup Complete!")
    print("=" * 70)

    print_next_steps()


if __name__ == "__main__":
    main()
