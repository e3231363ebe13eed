#!/usr/bin/env python3
"""Command line access to the database migration service.

Uses the same services as the admin API. The source database is read from
DATABASE_URL (backend/.env is loaded if present).

Usage:
    python scripts/migrate_database.py test TARGET_URL       # Check the target answers
    python scripts/migrate_database.py migrate TARGET_URL    # DESTRUCTIVE: recreate and copy
    python scripts/migrate_database.py stats                 # Source row counts
    python scripts/migrate_database.py export -o dump.sql    # Write a SQL script

Exit code is 0 on success and 1 on any failure.
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add backend to path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Load environment variables from .env
from dotenv import load_dotenv  # noqa: E402

load_dotenv(backend_dir / ".env")


def print_migration_result(result) -> None:
    status = "OK" if result.success else "FAILED"
    print(f"\n{'=' * 60}")
    print(f"  Migration {status}")
    print(f"{'=' * 60}")
    for table in result.tables:
        line = f"    {table.name:20s}  count={table.count:>6}  {table.status.value}"
        if table.error:
            line += f"  ({table.error})"
        print(line)
    print(f"\n    {'Total':20s}  count={result.total_records:>6}")
    if result.error:
        print(f"\n  ERROR: {result.error}")


async def run(args: argparse.Namespace) -> int:
    # Import after dotenv load
    from app.core.config import get_settings
    from app.core.database import db_manager
    from app.core.logging import setup_logging
    from app.services.migration import MigrationService
    from app.services.sql_export import ExportError, SQLExportService

    setup_logging()
    settings = get_settings()
    db_manager.init_db()

    try:
        if args.command == "test":
            service = MigrationService(db_manager.engine, settings)
            test_result = await service.test_connection(args.target_url)
            if test_result.success:
                print("Connection OK")
                return 0
            print(f"Connection failed: {test_result.error}")
            return 1

        if args.command == "migrate":
            if not args.yes:
                answer = input(
                    "This drops and recreates all migration tables on the target. "
                    "Continue? [y/N] "
                )
                if answer.strip().lower() != "y":
                    print("Aborted")
                    return 1
            service = MigrationService(db_manager.engine, settings)
            result = await service.execute_migration(args.target_url)
            print_migration_result(result)
            return 0 if result.success else 1

        exporter = SQLExportService(db_manager.engine, settings)
        try:
            if args.command == "stats":
                stats = await exporter.get_stats()
                for table in stats.tables:
                    print(f"    {table.name:20s}  {table.count:>6}")
                print(f"    {'Total':20s}  {stats.total_records:>6}")
                return 0

            script = await exporter.export_sql()
        except ExportError as e:
            print(f"Export failed: {e}")
            return 1

        output = Path(args.output or exporter.export_filename)
        output.write_text(script, encoding="utf-8")
        print(f"Wrote {len(script.encode('utf-8'))} bytes to {output}")
        return 0
    finally:
        await db_manager.close()


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Migrate the surebet tracker database to another PostgreSQL server"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    test_parser = subparsers.add_parser("test", help="Test a target connection")
    test_parser.add_argument("target_url", help="Target database connection string")

    migrate_parser = subparsers.add_parser(
        "migrate", help="Recreate the schema on a target and copy all data"
    )
    migrate_parser.add_argument("target_url", help="Target database connection string")
    migrate_parser.add_argument(
        "-y", "--yes", action="store_true", help="Skip the confirmation prompt"
    )

    subparsers.add_parser("stats", help="Show source row counts")

    export_parser = subparsers.add_parser("export", help="Write the source as a SQL script")
    export_parser.add_argument(
        "-o", "--output", help="Output file (default: MIGRATION_EXPORT_FILENAME)"
    )

    args = parser.parse_args()
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
