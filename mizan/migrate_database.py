#!/usr/bin/env python
"""
Migration script bringing an existing Mizan database up to date.

Backs the file up, applies every pending versioned migration, repairs any
missing canonical column and prints a diagnosis of every table. Safe to run
repeatedly: a database already up to date is left unchanged.
"""

import shutil
import sys
from pathlib import Path

from mizan.config import DEFAULT_DB_PATH
from mizan.db import Database, SchemaManager, current_version, pending_migrations


def migrate_database(db_path: str) -> None:
    """
    Apply pending migrations and repair the schema of one database file.

    Args:
        db_path: Path to the SQLite database file
    """
    print(f"Migrating database: {db_path}")

    with Database(Path(db_path)) as db:
        manager = SchemaManager(db)
        before = current_version(db)
        pending = pending_migrations(db)

        if pending:
            print(f"Schema version {before}, {len(pending)} migration(s) pending:")
            for migration in pending:
                print(f"  {migration.version}. {migration.description}")
        else:
            print(f"Schema version {before}, no migration pending")

        report = manager.ensure_schema()

        after = current_version(db)
        if after != before:
            print(f"✓ Schema upgraded from version {before} to {after}")
        expected = pending[-1].version if pending else before
        if after != expected:
            raise Exception(f"Migration stopped at version {after}, expected {expected}")

        for repair in report.repairs:
            if repair.created:
                print(f"  Created missing table {repair.table}")
            if repair.added:
                print(f"  Added to {repair.table}: {', '.join(repair.added)}")
            if repair.failed:
                print(f"  ✗ Could not add to {repair.table}: {', '.join(repair.failed)}")

        print()
        print("Diagnosis:")
        diagnosis = manager.diagnose_all()
        print(f"  Integrity check: {diagnosis.integrity}")
        for table in diagnosis.tables:
            status = "✓" if table.is_healthy else "✗"
            line = f"  {status} {table.table}: {table.row_count} rows"
            if table.missing:
                line += f", missing {', '.join(table.missing)}"
            if table.duplicate_ids:
                line += f", duplicate ids {table.duplicate_ids}"
            print(line)

        if not diagnosis.is_healthy:
            raise Exception("Database still has problems after repair")

    print("✓ Migration completed successfully!")


def main():
    """Main entry point."""
    db_path = sys.argv[1] if len(sys.argv) > 1 else str(DEFAULT_DB_PATH)

    if not Path(db_path).exists():
        print(f"✗ Database not found: {db_path}")
        print("\nUsage: python -m mizan.migrate_database [db_path]")
        print(f"  Default: {DEFAULT_DB_PATH}")
        sys.exit(1)

    print("=" * 60)
    print("Mizan Database Migration")
    print("=" * 60)
    print()

    backup_path = f"{db_path}.backup"
    print(f"Creating backup: {backup_path}")
    shutil.copy2(db_path, backup_path)
    print("✓ Backup created")
    print()

    try:
        migrate_database(db_path)
        print()
        print("=" * 60)
        print("Migration completed successfully! ✓")
        print(f"Backup saved at: {backup_path}")
        print("=" * 60)
    except Exception as e:
        print()
        print("=" * 60)
        print("Migration failed! ✗")
        print(f"Error: {e}")
        print(f"Your original database is backed up at: {backup_path}")
        print("=" * 60)
        sys.exit(1)


if __name__ == "__main__":
    main()
