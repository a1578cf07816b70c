"""Tests for the maintenance orchestrator and scheduler."""

import asyncio
from datetime import date, datetime

import pytest

from conftest import balance_of, count_rows, make_tx

from mizan.config import FEATURE_FLAGS_KEY
from mizan.db import MIGRATIONS, Database
from mizan.db.ddl import TABLES
from mizan.errors import SchemaError
from mizan.maintenance import MaintenanceRunner
from mizan.models import AccountType, RecurrenceUnit
from mizan.scheduler import MaintenanceScheduler
from mizan.services import PreferenceStore


@pytest.fixture
def runner(raw_db: Database, preferences: PreferenceStore) -> MaintenanceRunner:
    return MaintenanceRunner(raw_db, preferences)


def seed_ledger(runner: MaintenanceRunner):
    """A bank account with a monthly template and an auto-paid debt."""
    account = runner.accounts.create_account("Main bank", AccountType.BANK, 1000.0)
    runner.ledger.post_transaction(
        make_tx(
            account.id,
            200,
            on=date(2025, 11, 2),
            is_recurring=True,
            recurrence_type=RecurrenceUnit.MONTHLY,
        )
    )
    runner.debts.create_debt(
        "Car loan",
        1500,
        500,
        date(2025, 12, 14),
        payment_account_id=account.id,
        auto_pay=True,
        created_at=datetime(2025, 10, 15, 9, 30),
    )
    return account


class TestRunStartup:
    """Test the full startup sequence."""

    def test_fresh_database(self, raw_db: Database, runner: MaintenanceRunner):
        report = runner.run_startup(today=date(2025, 12, 15))

        assert report.ok
        assert report.schema.migrations_applied == [m.version for m in MIGRATIONS]
        assert report.categories_installed == 50
        assert report.recurrence.processed == 0
        assert report.auto_pay.paid == 0
        assert report.currency.is_consistent
        assert report.currency_migration is None

    def test_passes_run_in_order(self, raw_db: Database, runner: MaintenanceRunner):
        runner.schema.ensure_schema()
        account = seed_ledger(runner)

        report = runner.run_startup(today=date(2025, 12, 15))

        assert report.recurrence.processed == 1
        assert report.auto_pay.paid == 1
        assert balance_of(raw_db, account.id) == 1000 - 200 - 200 - 500
        assert "occurrences created: 1" in report.summary()

    def test_second_startup_posts_nothing(self, raw_db: Database, runner: MaintenanceRunner):
        runner.schema.ensure_schema()
        account = seed_ledger(runner)

        runner.run_startup(today=date(2025, 12, 15))
        report = runner.run_startup(today=date(2025, 12, 15))

        assert report.categories_installed == 0
        assert report.recurrence.processed == 0
        assert report.auto_pay.paid == 0
        assert balance_of(raw_db, account.id) == 100

    def test_failed_pass_does_not_stop_others(
        self, raw_db: Database, runner: MaintenanceRunner, monkeypatch
    ):
        runner.schema.ensure_schema()
        seed_ledger(runner)

        def broken(*args, **kwargs):
            raise RuntimeError("disk full")

        monkeypatch.setattr(runner.recurrence, "process_recurring_transactions", broken)

        report = runner.run_startup(today=date(2025, 12, 15))

        assert not report.ok
        assert report.errors == {"recurrence": "disk full"}
        assert report.recurrence is None
        assert report.auto_pay.paid == 1
        assert report.currency is not None

    def test_schema_failure_is_fatal(self, runner: MaintenanceRunner, monkeypatch):
        monkeypatch.setitem(TABLES, "alerts", "CREATE TABLE alerts (")
        with pytest.raises(SchemaError):
            runner.run_startup(today=date(2025, 12, 15))

    def test_feature_flags_disable_passes(
        self, raw_db: Database, runner: MaintenanceRunner, preferences: PreferenceStore
    ):
        runner.schema.ensure_schema()
        account = seed_ledger(runner)
        preferences.set_json(
            FEATURE_FLAGS_KEY, {"process_recurring_on_start": False, "debt_auto_pay": False}
        )

        report = runner.run_startup(today=date(2025, 12, 15))

        assert report.recurrence is None
        assert report.auto_pay is None
        assert report.statuses_changed == 0
        assert balance_of(raw_db, account.id) == 800

    def test_enforced_currency_migrates(
        self, raw_db: Database, runner: MaintenanceRunner, preferences: PreferenceStore
    ):
        runner.schema.ensure_schema()
        runner.accounts.create_account("Euros", AccountType.BANK, 10.0, currency="EUR")
        preferences.set_json(FEATURE_FLAGS_KEY, {"enforce_canonical_currency": True})

        report = runner.run_startup(today=date(2025, 12, 15))

        assert report.currency_migration.total == 1
        assert count_rows(raw_db, "accounts", "currency = 'MAD'") == 1

    def test_currency_migration_failure_recorded(
        self, runner: MaintenanceRunner, preferences: PreferenceStore, monkeypatch
    ):
        runner.schema.ensure_schema()
        runner.accounts.create_account("Euros", AccountType.BANK, 10.0, currency="EUR")
        preferences.set_json(FEATURE_FLAGS_KEY, {"enforce_canonical_currency": True})

        def broken(*args, **kwargs):
            raise RuntimeError("locked")

        monkeypatch.setattr(runner.currency, "migrate_all_data_to_mad", broken)

        report = runner.run_startup(today=date(2025, 12, 15))

        assert "currency_migration" in report.errors
        assert report.currency_migration is None


class TestRunPeriodic:
    """Test the timer-driven subset."""

    def test_only_time_driven_passes(self, runner: MaintenanceRunner):
        runner.schema.ensure_schema()
        seed_ledger(runner)

        report = runner.run_periodic(today=date(2025, 12, 15))

        assert report.schema is None
        assert report.categories_installed is None
        assert report.currency is None
        assert report.recurrence.processed == 1
        assert report.auto_pay.paid == 1


class TestMaintenanceScheduler:
    """Test the periodic task wrapper."""

    def test_run_once(self, runner: MaintenanceRunner):
        runner.schema.ensure_schema()
        seed_ledger(runner)
        scheduler = MaintenanceScheduler(runner)

        report = scheduler.run_once(date(2025, 12, 15))

        assert scheduler.ticks == 1
        assert scheduler.last_report is report
        assert report.auto_pay.paid == 1

    def test_run_once_survives_failure(self, runner: MaintenanceRunner, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(runner, "run_periodic", broken)
        scheduler = MaintenanceScheduler(runner)

        assert scheduler.run_once() is None
        assert scheduler.ticks == 1
        assert scheduler.last_report is None

    def test_loop_ticks_immediately(self, runner: MaintenanceRunner):
        runner.schema.ensure_schema()
        scheduler = MaintenanceScheduler(runner, interval_hours=1)

        async def drive():
            scheduler.start()
            assert scheduler.is_running
            for _ in range(200):
                if scheduler.ticks:
                    break
                await asyncio.sleep(0.01)
            scheduler.stop()

        asyncio.run(drive())

        assert scheduler.ticks >= 1
        assert scheduler.last_report is not None
