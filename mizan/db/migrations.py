"""
Versioned migration ledger.

Each step runs once, in order, inside one SQL transaction together with the
schema_version row recording it. Every step is written so that running it
against a database that already has its changes is harmless.
"""

import logging
import sqlite3
from dataclasses import dataclass
from typing import Callable

from .base import Database
from .ddl import TABLES, add_column_if_missing

logger = logging.getLogger(__name__)

SCHEMA_VERSION_DDL = """
    CREATE TABLE IF NOT EXISTS schema_version (
        version INTEGER PRIMARY KEY,
        description TEXT NOT NULL,
        applied_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
"""


@dataclass(frozen=True)
class Migration:
    version: int
    description: str
    apply: Callable[[sqlite3.Connection], None]


# =========================================================================
# Steps
# =========================================================================


def _baseline(conn: sqlite3.Connection) -> None:
    for ddl in TABLES.values():
        conn.execute(ddl)


def _currency_columns(conn: sqlite3.Connection) -> None:
    for table in ("transactions", "budgets", "savings_goals", "debts"):
        add_column_if_missing(conn, table, "currency", "TEXT NOT NULL DEFAULT 'MAD'")


def _recurrence_columns(conn: sqlite3.Connection) -> None:
    columns = [
        ("is_recurring", "INTEGER NOT NULL DEFAULT 0"),
        ("recurrence_type", "TEXT"),
        ("recurrence_end_date", "TEXT"),
        ("parent_transaction_id", "INTEGER"),
        ("next_occurrence", "TEXT"),
    ]
    for column, definition in columns:
        add_column_if_missing(conn, "transactions", column, definition)


def _debt_auto_pay_columns(conn: sqlite3.Connection) -> None:
    columns = [
        ("auto_pay", "INTEGER NOT NULL DEFAULT 0"),
        ("payment_account_id", "INTEGER"),
        ("start_payment_next_month", "INTEGER NOT NULL DEFAULT 0"),
    ]
    for column, definition in columns:
        add_column_if_missing(conn, "debts", column, definition)

    add_column_if_missing(conn, "debt_payments", "payment_month", "TEXT")
    add_column_if_missing(conn, "debt_payments", "transaction_id", "INTEGER")
    conn.execute("""
        UPDATE debt_payments
        SET payment_month = substr(payment_date, 1, 7)
        WHERE (payment_month IS NULL OR payment_month = '')
          AND payment_date IS NOT NULL
    """)


def _opening_balance(conn: sqlite3.Connection) -> None:
    add_column_if_missing(conn, "accounts", "opening_balance", "REAL NOT NULL DEFAULT 0")
    # Legacy balances already include every posted amount. Accounts whose
    # opening balance was never derived still hold the column default.
    conn.execute("""
        UPDATE accounts
        SET opening_balance = ROUND(balance - (
            SELECT SUM(t.amount) FROM transactions t WHERE t.account_id = accounts.id
        ), 2)
        WHERE opening_balance = 0
          AND EXISTS (SELECT 1 FROM transactions t WHERE t.account_id = accounts.id)
    """)


MIGRATIONS: list[Migration] = [
    Migration(1, "Baseline tables", _baseline),
    Migration(2, "Currency column on transactions, budgets, goals and debts", _currency_columns),
    Migration(3, "Recurrence columns on transactions", _recurrence_columns),
    Migration(4, "Debt auto-pay columns and payment month backfill", _debt_auto_pay_columns),
    Migration(5, "Account opening balance", _opening_balance),
]


# =========================================================================
# Ledger
# =========================================================================


def ensure_version_table(db: Database) -> None:
    db.connect().execute(SCHEMA_VERSION_DDL)


def current_version(db: Database) -> int:
    """Highest applied migration version, 0 for a fresh database."""
    ensure_version_table(db)
    row = db.connect().execute("SELECT MAX(version) AS version FROM schema_version").fetchone()
    return row["version"] or 0


def pending_migrations(db: Database) -> list[Migration]:
    version = current_version(db)
    return [m for m in MIGRATIONS if m.version > version]


def apply_migrations(db: Database) -> list[int]:
    """
    Apply every pending migration in order.

    A failing step is rolled back and stops the run, so later steps never
    apply on top of a missing one.

    Returns:
        Versions applied by this call
    """
    applied = []
    for migration in pending_migrations(db):
        try:
            with db.transaction() as conn:
                migration.apply(conn)
                conn.execute(
                    "INSERT INTO schema_version (version, description) VALUES (?, ?)",
                    (migration.version, migration.description),
                )
        except sqlite3.Error as e:
            logger.error(
                f"Migration {migration.version} ({migration.description}) failed: {e}",
                exc_info=True,
            )
            break
        logger.info(f"Applied migration {migration.version}: {migration.description}")
        applied.append(migration.version)
    return applied
