"""
Schema manager: creation, diagnosis and additive repair of the store.

Repair only ever adds what is missing. Columns are never dropped or renamed,
so running ensure_schema() any number of times leaves the same column set
as running it once.
"""

import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Optional

from mizan.errors import ColumnRepairError, SchemaError

from .base import BaseRepository, Database, quote_identifier
from .ddl import INDEXES, REQUIRED_COLUMNS, TABLES, UNIQUE_INDEXES, add_column
from .migrations import apply_migrations

logger = logging.getLogger(__name__)


@dataclass
class TableDiagnosis:
    """Read-only snapshot of one table against its canonical definition."""

    table: str
    exists: bool
    columns: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    duplicate_ids: list = field(default_factory=list)
    row_count: int = 0

    @property
    def is_healthy(self) -> bool:
        return self.exists and not self.missing and not self.duplicate_ids

    def to_dict(self) -> dict:
        return {
            "table": self.table,
            "exists": self.exists,
            "columns": self.columns,
            "missing": self.missing,
            "duplicate_ids": self.duplicate_ids,
            "row_count": self.row_count,
        }


@dataclass
class RepairResult:
    table: str
    created: bool = False
    added: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


@dataclass
class SchemaReport:
    """What one ensure_schema() call changed."""

    migrations_applied: list[int] = field(default_factory=list)
    repairs: list[RepairResult] = field(default_factory=list)
    failed_indexes: list[str] = field(default_factory=list)

    @property
    def columns_added(self) -> int:
        return sum(len(r.added) for r in self.repairs)


@dataclass
class DatabaseDiagnosis:
    integrity: str
    tables: list[TableDiagnosis]

    @property
    def is_healthy(self) -> bool:
        return self.integrity == "ok" and all(t.is_healthy for t in self.tables)


class SchemaManager(BaseRepository):
    """Creates, inspects and repairs the tables the ledger relies on."""

    def ensure_schema(self) -> SchemaReport:
        """
        Bring the store up to the current schema.

        Creates every table, applies pending migrations, adds missing
        canonical columns and creates indexes, with foreign keys disabled
        for the duration.

        Returns:
            SchemaReport describing the changes

        Raises:
            SchemaError: If a table cannot be created
        """
        report = SchemaReport()
        with self.db.foreign_keys_disabled() as conn:
            for table, ddl in TABLES.items():
                try:
                    conn.execute(ddl)
                except sqlite3.Error as e:
                    logger.error(f"Failed to create table {table}: {e}", exc_info=True)
                    raise SchemaError(table, str(e)) from e

            report.migrations_applied = apply_migrations(self.db)
            report.repairs = self.repair_all()
            report.failed_indexes = self._create_indexes(conn)

        logger.info(
            f"Schema ready: {len(report.migrations_applied)} migrations applied, "
            f"{report.columns_added} columns added"
        )
        return report

    def _create_indexes(self, conn: sqlite3.Connection) -> list[str]:
        """Create indexes. Failures are logged and skipped."""
        failed = []
        statements = [
            (
                name,
                f"CREATE INDEX IF NOT EXISTS {name} ON {table}({columns})",
            )
            for name, table, columns in INDEXES
        ]
        for name, table, columns, where in UNIQUE_INDEXES:
            sql = f"CREATE UNIQUE INDEX IF NOT EXISTS {name} ON {table}({columns})"
            if where:
                sql += f" WHERE {where}"
            statements.append((name, sql))

        for name, sql in statements:
            try:
                conn.execute(sql)
            except sqlite3.Error as e:
                logger.warning(f"Could not create index {name}: {e}")
                failed.append(name)
        return failed

    # =========================================================================
    # Diagnosis
    # =========================================================================

    def diagnose(self, table: str) -> TableDiagnosis:
        """
        Compare a table with its canonical definition. Writes nothing.

        Args:
            table: Table name

        Returns:
            TableDiagnosis for the table
        """
        required = [name for name, _ in REQUIRED_COLUMNS.get(table, [])]
        if not self.db.table_exists(table):
            return TableDiagnosis(table=table, exists=False, missing=required)

        conn = self._conn()
        quoted = quote_identifier(table)
        columns = self.db.table_columns(table)
        missing = [name for name in required if name not in columns]

        duplicate_ids = []
        if "id" in columns:
            rows = conn.execute(
                f"SELECT id, COUNT(*) AS count FROM {quoted} "
                f"GROUP BY id HAVING count > 1"
            ).fetchall()
            duplicate_ids = [row["id"] for row in rows]

        row_count = conn.execute(f"SELECT COUNT(*) AS count FROM {quoted}").fetchone()[
            "count"
        ]

        return TableDiagnosis(
            table=table,
            exists=True,
            columns=columns,
            missing=missing,
            duplicate_ids=duplicate_ids,
            row_count=row_count,
        )

    def integrity_check(self) -> str:
        rows = self._conn().execute("PRAGMA integrity_check").fetchall()
        return "; ".join(str(row[0]) for row in rows)

    def diagnose_all(self) -> DatabaseDiagnosis:
        """Diagnose every known table and run SQLite's integrity check."""
        tables = [self.diagnose(table) for table in TABLES]
        diagnosis = DatabaseDiagnosis(integrity=self.integrity_check(), tables=tables)
        for item in tables:
            if not item.is_healthy:
                logger.warning(
                    f"Table {item.table}: exists={item.exists}, "
                    f"missing={item.missing}, duplicate ids={item.duplicate_ids}"
                )
        return diagnosis

    # =========================================================================
    # Repair
    # =========================================================================

    def repair(self, table: str) -> RepairResult:
        """
        Create a missing table and add any canonical column it lacks.

        Failures are logged and reported in the result, never raised.

        Args:
            table: Table name

        Returns:
            RepairResult listing added and failed columns
        """
        result = RepairResult(table=table)
        if table not in TABLES:
            logger.warning(f"No canonical definition for table {table}, skipping repair")
            return result

        conn = self._conn()
        if not self.db.table_exists(table):
            try:
                conn.execute(TABLES[table])
                result.created = True
                logger.info(f"Created missing table {table}")
            except sqlite3.Error as e:
                logger.error(f"Failed to create table {table}: {e}", exc_info=True)
                result.failed.append("*")
                return result

        existing = set(self.db.table_columns(table))
        for column, definition in REQUIRED_COLUMNS[table]:
            if column in existing:
                continue
            try:
                if self._add_column(table, column, definition):
                    result.added.append(column)
            except ColumnRepairError as e:
                logger.error(str(e), exc_info=True)
                result.failed.append(column)

        if result.added:
            logger.info(f"Repaired {table}: added {', '.join(result.added)}")
        return result

    def _add_column(self, table: str, column: str, definition: str) -> bool:
        try:
            return add_column(self._conn(), table, column, definition)
        except sqlite3.Error as e:
            raise ColumnRepairError(table, column, str(e)) from e

    def repair_all(self) -> list[RepairResult]:
        return [self.repair(table) for table in TABLES]


def ensure_schema(db: Database) -> SchemaReport:
    """Shortcut for SchemaManager(db).ensure_schema()."""
    return SchemaManager(db).ensure_schema()


def diagnose(db: Database, table: Optional[str] = None):
    """Diagnose one table, or the whole database when no table is given."""
    manager = SchemaManager(db)
    if table is None:
        return manager.diagnose_all()
    return manager.diagnose(table)
