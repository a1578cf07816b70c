"""
Table definitions for the Mizan store.

TABLES holds the CREATE statements for a fresh database. REQUIRED_COLUMNS is
the canonical column list used to repair tables created by older builds:
every definition there must be accepted by ALTER TABLE ADD COLUMN, so it
carries no PRIMARY KEY/UNIQUE and only constant defaults.
"""

import logging
import sqlite3

from .base import quote_identifier

logger = logging.getLogger(__name__)

TABLES: dict[str, str] = {
    "users": """
        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY NOT NULL,
            email TEXT,
            first_name TEXT,
            last_name TEXT,
            currency TEXT NOT NULL DEFAULT 'MAD',
            language TEXT NOT NULL DEFAULT 'fr',
            is_active INTEGER NOT NULL DEFAULT 1 CHECK(is_active IN (0, 1)),
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
    """,
    "accounts": """
        CREATE TABLE IF NOT EXISTS accounts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL DEFAULT 'default-user' CHECK(length(user_id) > 0),
            name TEXT NOT NULL,
            type TEXT NOT NULL DEFAULT 'cash' CHECK(
                type IN ('cash', 'bank', 'card', 'savings')
            ),
            balance REAL NOT NULL DEFAULT 0,
            opening_balance REAL NOT NULL DEFAULT 0,
            currency TEXT NOT NULL DEFAULT 'MAD',
            color TEXT NOT NULL DEFAULT '#007AFF',
            is_active INTEGER NOT NULL DEFAULT 1 CHECK(is_active IN (0, 1)),
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
    """,
    "categories": """
        CREATE TABLE IF NOT EXISTS categories (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            slug TEXT NOT NULL,
            user_id TEXT NOT NULL DEFAULT 'default-user',
            name TEXT NOT NULL,
            type TEXT NOT NULL CHECK(type IN ('income', 'expense')),
            color TEXT NOT NULL DEFAULT '#666666',
            icon TEXT NOT NULL DEFAULT 'help-circle',
            parent_id INTEGER REFERENCES categories(id) ON DELETE SET NULL,
            level INTEGER NOT NULL DEFAULT 0 CHECK(level IN (0, 1)),
            sort_order INTEGER NOT NULL DEFAULT 0,
            is_active INTEGER NOT NULL DEFAULT 1 CHECK(is_active IN (0, 1)),
            budget REAL NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(slug, user_id)
        )
    """,
    "transactions": """
        CREATE TABLE IF NOT EXISTS transactions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL DEFAULT 'default-user',
            account_id INTEGER NOT NULL REFERENCES accounts(id),
            amount REAL NOT NULL,
            type TEXT NOT NULL CHECK(type IN ('income', 'expense', 'transfer')),
            category TEXT,
            description TEXT,
            date TEXT NOT NULL,
            currency TEXT NOT NULL DEFAULT 'MAD',
            is_recurring INTEGER NOT NULL DEFAULT 0 CHECK(is_recurring IN (0, 1)),
            recurrence_type TEXT,
            recurrence_end_date TEXT,
            parent_transaction_id INTEGER,
            next_occurrence TEXT,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
    """,
    # Superseded by recurring templates in transactions; kept for old data
    "recurring_transactions": """
        CREATE TABLE IF NOT EXISTS recurring_transactions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL DEFAULT 'default-user',
            description TEXT NOT NULL,
            amount REAL NOT NULL,
            type TEXT NOT NULL,
            category TEXT,
            account_id INTEGER,
            frequency TEXT NOT NULL,
            start_date TEXT NOT NULL,
            end_date TEXT,
            last_processed TEXT,
            next_date TEXT,
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
    """,
    "budgets": """
        CREATE TABLE IF NOT EXISTS budgets (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL DEFAULT 'default-user',
            name TEXT NOT NULL,
            category TEXT,
            amount REAL NOT NULL CHECK(amount >= 0),
            spent REAL NOT NULL DEFAULT 0,
            period TEXT NOT NULL DEFAULT 'monthly',
            start_date TEXT NOT NULL,
            end_date TEXT,
            currency TEXT NOT NULL DEFAULT 'MAD',
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
    """,
    "debts": """
        CREATE TABLE IF NOT EXISTS debts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL DEFAULT 'default-user',
            name TEXT NOT NULL,
            creditor TEXT NOT NULL DEFAULT '',
            type TEXT NOT NULL DEFAULT 'personal',
            initial_amount REAL NOT NULL CHECK(initial_amount >= 0),
            current_amount REAL NOT NULL CHECK(current_amount >= 0),
            interest_rate REAL NOT NULL DEFAULT 0,
            monthly_payment REAL NOT NULL DEFAULT 0,
            due_date TEXT NOT NULL,
            payment_account_id INTEGER REFERENCES accounts(id) ON DELETE SET NULL,
            auto_pay INTEGER NOT NULL DEFAULT 0 CHECK(auto_pay IN (0, 1)),
            start_payment_next_month INTEGER NOT NULL DEFAULT 0,
            status TEXT NOT NULL DEFAULT 'active' CHECK(
                status IN ('active', 'paid', 'overdue')
            ),
            currency TEXT NOT NULL DEFAULT 'MAD',
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
    """,
    "debt_payments": """
        CREATE TABLE IF NOT EXISTS debt_payments (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            debt_id INTEGER NOT NULL REFERENCES debts(id) ON DELETE CASCADE,
            user_id TEXT NOT NULL DEFAULT 'default-user',
            amount REAL NOT NULL CHECK(amount > 0),
            payment_date TEXT NOT NULL,
            payment_month TEXT NOT NULL,
            from_account_id INTEGER REFERENCES accounts(id) ON DELETE SET NULL,
            transaction_id INTEGER,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(debt_id, payment_month)
        )
    """,
    "savings_goals": """
        CREATE TABLE IF NOT EXISTS savings_goals (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL DEFAULT 'default-user',
            name TEXT NOT NULL,
            target_amount REAL NOT NULL,
            current_amount REAL NOT NULL DEFAULT 0,
            target_date TEXT,
            monthly_contribution REAL NOT NULL DEFAULT 0,
            category TEXT NOT NULL DEFAULT 'other',
            currency TEXT NOT NULL DEFAULT 'MAD',
            is_completed INTEGER NOT NULL DEFAULT 0,
            savings_account_id INTEGER REFERENCES accounts(id) ON DELETE SET NULL,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
    """,
    "alerts": """
        CREATE TABLE IF NOT EXISTS alerts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL DEFAULT 'default-user',
            type TEXT NOT NULL,
            title TEXT NOT NULL,
            message TEXT NOT NULL,
            priority TEXT NOT NULL DEFAULT 'medium',
            is_read INTEGER NOT NULL DEFAULT 0,
            data TEXT,
            action_url TEXT,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
    """,
}

# (column, ALTER-safe definition) per table
REQUIRED_COLUMNS: dict[str, list[tuple[str, str]]] = {
    "users": [
        ("id", "TEXT"),
        ("email", "TEXT"),
        ("first_name", "TEXT"),
        ("last_name", "TEXT"),
        ("currency", "TEXT NOT NULL DEFAULT 'MAD'"),
        ("language", "TEXT NOT NULL DEFAULT 'fr'"),
        ("is_active", "INTEGER NOT NULL DEFAULT 1"),
        ("created_at", "TEXT"),
    ],
    "accounts": [
        ("id", "INTEGER"),
        ("user_id", "TEXT NOT NULL DEFAULT 'default-user'"),
        ("name", "TEXT NOT NULL DEFAULT ''"),
        ("type", "TEXT NOT NULL DEFAULT 'cash'"),
        ("balance", "REAL NOT NULL DEFAULT 0"),
        ("opening_balance", "REAL NOT NULL DEFAULT 0"),
        ("currency", "TEXT NOT NULL DEFAULT 'MAD'"),
        ("color", "TEXT NOT NULL DEFAULT '#007AFF'"),
        ("is_active", "INTEGER NOT NULL DEFAULT 1"),
        ("created_at", "TEXT"),
    ],
    "categories": [
        ("id", "INTEGER"),
        ("slug", "TEXT NOT NULL DEFAULT ''"),
        ("user_id", "TEXT NOT NULL DEFAULT 'default-user'"),
        ("name", "TEXT NOT NULL DEFAULT ''"),
        ("type", "TEXT NOT NULL DEFAULT 'expense'"),
        ("color", "TEXT NOT NULL DEFAULT '#666666'"),
        ("icon", "TEXT NOT NULL DEFAULT 'help-circle'"),
        ("parent_id", "INTEGER"),
        ("level", "INTEGER NOT NULL DEFAULT 0"),
        ("sort_order", "INTEGER NOT NULL DEFAULT 0"),
        ("is_active", "INTEGER NOT NULL DEFAULT 1"),
        ("budget", "REAL NOT NULL DEFAULT 0"),
        ("created_at", "TEXT"),
    ],
    "transactions": [
        ("id", "INTEGER"),
        ("user_id", "TEXT NOT NULL DEFAULT 'default-user'"),
        ("account_id", "INTEGER"),
        ("amount", "REAL NOT NULL DEFAULT 0"),
        ("type", "TEXT NOT NULL DEFAULT 'expense'"),
        ("category", "TEXT"),
        ("description", "TEXT"),
        ("date", "TEXT"),
        ("currency", "TEXT NOT NULL DEFAULT 'MAD'"),
        ("is_recurring", "INTEGER NOT NULL DEFAULT 0"),
        ("recurrence_type", "TEXT"),
        ("recurrence_end_date", "TEXT"),
        ("parent_transaction_id", "INTEGER"),
        ("next_occurrence", "TEXT"),
        ("created_at", "TEXT"),
    ],
    "recurring_transactions": [
        ("id", "INTEGER"),
        ("user_id", "TEXT NOT NULL DEFAULT 'default-user'"),
        ("description", "TEXT NOT NULL DEFAULT ''"),
        ("amount", "REAL NOT NULL DEFAULT 0"),
        ("type", "TEXT NOT NULL DEFAULT 'expense'"),
        ("category", "TEXT"),
        ("account_id", "INTEGER"),
        ("frequency", "TEXT NOT NULL DEFAULT 'monthly'"),
        ("start_date", "TEXT"),
        ("end_date", "TEXT"),
        ("last_processed", "TEXT"),
        ("next_date", "TEXT"),
        ("is_active", "INTEGER NOT NULL DEFAULT 1"),
        ("created_at", "TEXT"),
    ],
    "budgets": [
        ("id", "INTEGER"),
        ("user_id", "TEXT NOT NULL DEFAULT 'default-user'"),
        ("name", "TEXT NOT NULL DEFAULT ''"),
        ("category", "TEXT"),
        ("amount", "REAL NOT NULL DEFAULT 0"),
        ("spent", "REAL NOT NULL DEFAULT 0"),
        ("period", "TEXT NOT NULL DEFAULT 'monthly'"),
        ("start_date", "TEXT"),
        ("end_date", "TEXT"),
        ("currency", "TEXT NOT NULL DEFAULT 'MAD'"),
        ("is_active", "INTEGER NOT NULL DEFAULT 1"),
        ("created_at", "TEXT"),
    ],
    "debts": [
        ("id", "INTEGER"),
        ("user_id", "TEXT NOT NULL DEFAULT 'default-user'"),
        ("name", "TEXT NOT NULL DEFAULT ''"),
        ("creditor", "TEXT NOT NULL DEFAULT ''"),
        ("type", "TEXT NOT NULL DEFAULT 'personal'"),
        ("initial_amount", "REAL NOT NULL DEFAULT 0"),
        ("current_amount", "REAL NOT NULL DEFAULT 0"),
        ("interest_rate", "REAL NOT NULL DEFAULT 0"),
        ("monthly_payment", "REAL NOT NULL DEFAULT 0"),
        ("due_date", "TEXT"),
        ("payment_account_id", "INTEGER"),
        ("auto_pay", "INTEGER NOT NULL DEFAULT 0"),
        ("start_payment_next_month", "INTEGER NOT NULL DEFAULT 0"),
        ("status", "TEXT NOT NULL DEFAULT 'active'"),
        ("currency", "TEXT NOT NULL DEFAULT 'MAD'"),
        ("created_at", "TEXT"),
    ],
    "debt_payments": [
        ("id", "INTEGER"),
        ("debt_id", "INTEGER"),
        ("user_id", "TEXT NOT NULL DEFAULT 'default-user'"),
        ("amount", "REAL NOT NULL DEFAULT 0"),
        ("payment_date", "TEXT"),
        ("payment_month", "TEXT"),
        ("from_account_id", "INTEGER"),
        ("transaction_id", "INTEGER"),
        ("created_at", "TEXT"),
    ],
    "savings_goals": [
        ("id", "INTEGER"),
        ("user_id", "TEXT NOT NULL DEFAULT 'default-user'"),
        ("name", "TEXT NOT NULL DEFAULT ''"),
        ("target_amount", "REAL NOT NULL DEFAULT 0"),
        ("current_amount", "REAL NOT NULL DEFAULT 0"),
        ("target_date", "TEXT"),
        ("monthly_contribution", "REAL NOT NULL DEFAULT 0"),
        ("category", "TEXT NOT NULL DEFAULT 'other'"),
        ("currency", "TEXT NOT NULL DEFAULT 'MAD'"),
        ("is_completed", "INTEGER NOT NULL DEFAULT 0"),
        ("savings_account_id", "INTEGER"),
        ("created_at", "TEXT"),
    ],
    "alerts": [
        ("id", "INTEGER"),
        ("user_id", "TEXT NOT NULL DEFAULT 'default-user'"),
        ("type", "TEXT NOT NULL DEFAULT 'info'"),
        ("title", "TEXT NOT NULL DEFAULT ''"),
        ("message", "TEXT NOT NULL DEFAULT ''"),
        ("priority", "TEXT NOT NULL DEFAULT 'medium'"),
        ("is_read", "INTEGER NOT NULL DEFAULT 0"),
        ("data", "TEXT"),
        ("action_url", "TEXT"),
        ("created_at", "TEXT"),
    ],
}

INDEXES = [
    ("idx_accounts_user_id", "accounts", "user_id"),
    ("idx_categories_user_id", "categories", "user_id"),
    ("idx_categories_parent_id", "categories", "parent_id"),
    ("idx_transactions_user_date", "transactions", "user_id, date"),
    ("idx_transactions_account_id", "transactions", "account_id"),
    ("idx_transactions_parent_id", "transactions", "parent_transaction_id"),
    ("idx_debts_user_id", "debts", "user_id"),
    ("idx_debt_payments_debt_id", "debt_payments", "debt_id"),
]

# Guards backing the materializer and auto-pay idempotency checks
UNIQUE_INDEXES = [
    (
        "ux_transactions_occurrence",
        "transactions",
        "parent_transaction_id, date",
        "parent_transaction_id IS NOT NULL",
    ),
    ("ux_debt_payments_month", "debt_payments", "debt_id, payment_month", None),
]


def add_column(
    conn: sqlite3.Connection, table: str, column: str, definition: str
) -> bool:
    """
    Add a column with ALTER TABLE.

    Returns:
        True if the column was added, False if it already existed.

    Raises:
        sqlite3.Error: For any failure other than a duplicate column
    """
    try:
        conn.execute(
            f"ALTER TABLE {quote_identifier(table)} "
            f"ADD COLUMN {quote_identifier(column)} {definition}"
        )
        return True
    except sqlite3.OperationalError as e:
        if "duplicate column name" in str(e).lower():
            logger.debug(f"Column {table}.{column} already exists")
            return False
        raise


def add_column_if_missing(
    conn: sqlite3.Connection, table: str, column: str, definition: str
) -> bool:
    """Add a column only if the table exists and lacks it."""
    rows = conn.execute(f"PRAGMA table_info({quote_identifier(table)})").fetchall()
    if not rows:
        return False
    if column in {row["name"] for row in rows}:
        return False
    return add_column(conn, table, column, definition)
