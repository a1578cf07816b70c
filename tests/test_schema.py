"""Tests for schema creation, migrations, diagnosis and repair."""

import pytest

from conftest import count_rows

from mizan.db import (
    MIGRATIONS,
    Database,
    LedgerStore,
    SchemaManager,
    current_version,
    pending_migrations,
)
from mizan.db.ddl import REQUIRED_COLUMNS, TABLES, add_column
from mizan.db.migrations import SCHEMA_VERSION_DDL
from mizan.errors import SchemaError


def column_sets(db: Database) -> dict:
    return {table: set(db.table_columns(table)) for table in TABLES}


class TestEnsureSchema:
    """Test schema creation and idempotency."""

    def test_creates_all_tables(self, db: Database):
        tables = set(db.list_tables())
        assert set(TABLES) | {"schema_version"} <= tables

    def test_creates_guard_indexes(self, db: Database):
        indexes = {
            row["name"]
            for row in db.connect()
            .execute("SELECT name FROM sqlite_master WHERE type = 'index'")
            .fetchall()
        }
        assert {"ux_transactions_occurrence", "ux_debt_payments_month"} <= indexes
        assert "idx_transactions_user_date" in indexes

    def test_fresh_tables_have_every_canonical_column(self, db: Database):
        manager = SchemaManager(db)
        for table in TABLES:
            diagnosis = manager.diagnose(table)
            assert diagnosis.exists
            assert diagnosis.missing == [], table

    def test_repeated_calls_yield_same_columns(self, db: Database):
        manager = SchemaManager(db)
        before = column_sets(db)

        for _ in range(3):
            report = manager.ensure_schema()
            assert report.migrations_applied == []
            assert report.columns_added == 0

        assert column_sets(db) == before

    def test_all_migrations_recorded(self, db: Database):
        assert current_version(db) == MIGRATIONS[-1].version
        assert pending_migrations(db) == []
        assert count_rows(db, "schema_version") == len(MIGRATIONS)

    def test_uncreatable_table_raises_schema_error(self, raw_db: Database, monkeypatch):
        monkeypatch.setitem(TABLES, "alerts", "CREATE TABLE alerts (")
        with pytest.raises(SchemaError) as excinfo:
            SchemaManager(raw_db).ensure_schema()
        assert excinfo.value.table == "alerts"

    def test_foreign_keys_enabled_afterwards(self, db: Database):
        row = db.connect().execute("PRAGMA foreign_keys").fetchone()
        assert row[0] == 1


class TestLegacyUpgrade:
    """Test upgrading databases created by older builds."""

    def test_missing_columns_added_and_rows_kept(self, raw_db: Database):
        conn = raw_db.connect()
        conn.execute("""
            CREATE TABLE accounts (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                name TEXT NOT NULL,
                type TEXT NOT NULL,
                balance REAL NOT NULL DEFAULT 0,
                currency TEXT NOT NULL DEFAULT 'MAD',
                is_active INTEGER NOT NULL DEFAULT 1,
                created_at TEXT
            )
        """)
        conn.execute("""
            CREATE TABLE transactions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                account_id INTEGER NOT NULL,
                amount REAL NOT NULL,
                type TEXT NOT NULL,
                category TEXT,
                description TEXT,
                date TEXT NOT NULL,
                created_at TEXT
            )
        """)
        conn.execute(
            "INSERT INTO accounts (user_id, name, type, balance) "
            "VALUES ('default-user', 'Old', 'bank', 500)"
        )
        conn.execute(
            "INSERT INTO transactions (user_id, account_id, amount, type, date) "
            "VALUES ('default-user', 1, -100, 'expense', '2024-05-01')"
        )

        report = SchemaManager(raw_db).ensure_schema()

        assert report.migrations_applied == [m.version for m in MIGRATIONS]
        manager = SchemaManager(raw_db)
        assert manager.diagnose("accounts").missing == []
        assert manager.diagnose("transactions").missing == []

        tx = conn.execute("SELECT * FROM transactions").fetchone()
        assert tx["currency"] == "MAD"
        assert tx["is_recurring"] == 0

        account = conn.execute("SELECT * FROM accounts").fetchone()
        assert account["balance"] == 500
        assert account["opening_balance"] == 600

    def test_payment_month_backfilled(self, raw_db: Database):
        conn = raw_db.connect()
        conn.execute("""
            CREATE TABLE debt_payments (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                debt_id INTEGER NOT NULL,
                user_id TEXT NOT NULL DEFAULT 'default-user',
                amount REAL NOT NULL,
                payment_date TEXT NOT NULL,
                created_at TEXT
            )
        """)
        conn.execute(
            "INSERT INTO debt_payments (debt_id, amount, payment_date) VALUES (1, 250, '2025-03-14')"
        )

        SchemaManager(raw_db).ensure_schema()

        row = conn.execute("SELECT payment_month FROM debt_payments").fetchone()
        assert row["payment_month"] == "2025-03"

    def test_opening_balance_derived_when_column_already_repaired(self, raw_db: Database):
        conn = raw_db.connect()
        conn.execute(SCHEMA_VERSION_DDL)
        for migration in MIGRATIONS[:-1]:
            conn.execute(
                "INSERT INTO schema_version (version, description) VALUES (?, ?)",
                (migration.version, migration.description),
            )
        manager = SchemaManager(raw_db)
        manager.repair("accounts")
        manager.repair("transactions")
        conn.execute(
            "INSERT INTO accounts (user_id, name, type, balance) "
            "VALUES ('default-user', 'Old', 'bank', 500)"
        )
        conn.execute(
            "INSERT INTO transactions (user_id, account_id, amount, type, date) "
            "VALUES ('default-user', 1, -100, 'expense', '2024-05-01')"
        )

        report = manager.ensure_schema()

        assert report.migrations_applied == [MIGRATIONS[-1].version]
        account = conn.execute("SELECT * FROM accounts").fetchone()
        assert account["opening_balance"] == 600
        assert LedgerStore(raw_db).verify_account_balances() == []

    def test_opening_balance_left_alone_without_history(self, raw_db: Database):
        conn = raw_db.connect()
        conn.execute(SCHEMA_VERSION_DDL)
        for migration in MIGRATIONS[:-1]:
            conn.execute(
                "INSERT INTO schema_version (version, description) VALUES (?, ?)",
                (migration.version, migration.description),
            )
        SchemaManager(raw_db).repair("accounts")
        conn.execute(
            "INSERT INTO accounts (user_id, name, type, balance, opening_balance) "
            "VALUES ('default-user', 'Fresh', 'cash', 40, 40)"
        )

        SchemaManager(raw_db).ensure_schema()

        account = conn.execute("SELECT * FROM accounts").fetchone()
        assert account["opening_balance"] == 40


class TestDiagnose:
    """Test read-only diagnosis."""

    def test_missing_table(self, db: Database):
        db.connect().execute("DROP TABLE alerts")
        diagnosis = SchemaManager(db).diagnose("alerts")

        assert diagnosis.exists is False
        assert diagnosis.missing == [name for name, _ in REQUIRED_COLUMNS["alerts"]]
        assert diagnosis.row_count == 0

    def test_reports_missing_columns_and_rows(self, raw_db: Database):
        conn = raw_db.connect()
        conn.execute("CREATE TABLE budgets (id INTEGER, user_id TEXT, name TEXT, amount REAL)")
        conn.execute("INSERT INTO budgets VALUES (1, 'default-user', 'Food', 100)")
        conn.execute("INSERT INTO budgets VALUES (1, 'default-user', 'Food copy', 100)")

        diagnosis = SchemaManager(raw_db).diagnose("budgets")

        assert diagnosis.exists
        assert "currency" in diagnosis.missing
        assert diagnosis.duplicate_ids == [1]
        assert diagnosis.row_count == 2
        assert not diagnosis.is_healthy

    def test_diagnose_writes_nothing(self, raw_db: Database):
        SchemaManager(raw_db).diagnose("accounts")
        assert raw_db.list_tables() == []

    def test_diagnose_all_includes_integrity_check(self, db: Database):
        diagnosis = SchemaManager(db).diagnose_all()
        assert diagnosis.integrity == "ok"
        assert {t.table for t in diagnosis.tables} == set(TABLES)
        assert diagnosis.is_healthy


class TestRepair:
    """Test additive repair."""

    def test_creates_missing_table(self, db: Database):
        db.connect().execute("DROP TABLE savings_goals")
        result = SchemaManager(db).repair("savings_goals")

        assert result.created
        assert db.table_exists("savings_goals")
        assert result.failed == []

    def test_adds_missing_columns(self, raw_db: Database):
        raw_db.connect().execute("CREATE TABLE alerts (id INTEGER PRIMARY KEY, title TEXT)")
        result = SchemaManager(raw_db).repair("alerts")

        assert "message" in result.added
        assert "title" not in result.added
        assert SchemaManager(raw_db).diagnose("alerts").missing == []

    def test_repair_twice_is_noop(self, db: Database):
        manager = SchemaManager(db)
        assert manager.repair("debts").added == []
        assert manager.repair("debts").added == []

    def test_unknown_table_is_skipped(self, db: Database):
        result = SchemaManager(db).repair("no_such_table")
        assert result.added == [] and result.failed == []
        assert not db.table_exists("no_such_table")

    def test_column_failure_is_swallowed(self, raw_db: Database, monkeypatch):
        raw_db.connect().execute("CREATE TABLE alerts (id INTEGER PRIMARY KEY)")
        bad = [("id", "INTEGER"), ("title", "TEXT PRIMARY KEY"), ("message", "TEXT")]
        monkeypatch.setitem(REQUIRED_COLUMNS, "alerts", bad)

        result = SchemaManager(raw_db).repair("alerts")

        assert result.failed == ["title"]
        assert result.added == ["message"]

    def test_duplicate_column_is_noop(self, db: Database):
        assert add_column(db.connect(), "accounts", "balance", "REAL") is False
