"""
Startup maintenance orchestrator.

Runs the maintenance passes in a fixed order against one store. Only schema
creation is fatal; every later pass is isolated so its failure is logged and
recorded while the remaining passes still run.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Optional

from mizan.config import DEFAULT_USER_ID
from mizan.dates import DateLike, parse_date
from mizan.db import (
    AccountRepository,
    CategoryRepository,
    Database,
    DebtRepository,
    LedgerStore,
    SchemaManager,
    SchemaReport,
)
from mizan.services import (
    AutoPayResult,
    CurrencyMigrationResult,
    CurrencyMigrator,
    CurrencyReport,
    DebtAutoPayEvaluator,
    DuplicateReconciler,
    PreferenceStore,
    RecurrenceMaterializer,
    RecurrenceResult,
)

logger = logging.getLogger(__name__)


@dataclass
class StartupReport:
    """Outcome of one maintenance run. Passes that did not run stay None."""

    today: date
    schema: Optional[SchemaReport] = None
    categories_installed: Optional[int] = None
    recurrence: Optional[RecurrenceResult] = None
    statuses_changed: Optional[int] = None
    auto_pay: Optional[AutoPayResult] = None
    currency: Optional[CurrencyReport] = None
    currency_migration: Optional[CurrencyMigrationResult] = None
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def summary(self) -> str:
        parts = [f"Maintenance for {self.today.isoformat()}"]
        if self.schema is not None:
            parts.append(
                f"schema: {len(self.schema.migrations_applied)} migrations, "
                f"{self.schema.columns_added} columns added"
            )
        if self.categories_installed is not None:
            parts.append(f"categories installed: {self.categories_installed}")
        if self.recurrence is not None:
            parts.append(f"occurrences created: {self.recurrence.processed}")
        if self.statuses_changed is not None:
            parts.append(f"debt statuses changed: {self.statuses_changed}")
        if self.auto_pay is not None:
            parts.append(f"debts auto-paid: {self.auto_pay.paid}")
        if self.currency is not None:
            parts.append(f"currency consistent: {self.currency.is_consistent}")
        if self.errors:
            parts.append(f"failed passes: {', '.join(self.errors)}")
        return "; ".join(parts)


class MaintenanceRunner:
    """Wires the repositories and services over one store and runs the passes."""

    def __init__(
        self,
        db: Database,
        preferences: Optional[PreferenceStore] = None,
        user_id: str = DEFAULT_USER_ID,
    ):
        """
        Initialize the runner.

        Args:
            db: The store owning the connection
            preferences: Preference store, defaults to data/preferences.json
            user_id: Owner whose data is maintained
        """
        self.db = db
        self.user_id = user_id
        self.preferences = preferences or PreferenceStore()

        self.schema = SchemaManager(db)
        self.categories = CategoryRepository(db)
        self.accounts = AccountRepository(db)
        self.debts = DebtRepository(db)
        self.ledger = LedgerStore(db, category_repo=self.categories)
        self.recurrence = RecurrenceMaterializer(db, self.ledger)
        self.auto_pay = DebtAutoPayEvaluator(db, self.debts, self.ledger)
        self.reconciler = DuplicateReconciler(db, self.ledger)
        self.currency = CurrencyMigrator(db, self.preferences)

    def _run_pass(self, report: StartupReport, name: str, func: Callable[[], Any]) -> Any:
        try:
            return func()
        except Exception as e:
            logger.error(f"Maintenance pass '{name}' failed: {e}", exc_info=True)
            report.errors[name] = str(e)
            return None

    def _run_ledger_passes(self, report: StartupReport, flags: dict[str, bool]) -> None:
        today = report.today
        if flags.get("process_recurring_on_start", True):
            report.recurrence = self._run_pass(
                report,
                "recurrence",
                lambda: self.recurrence.process_recurring_transactions(self.user_id, today),
            )
        report.statuses_changed = self._run_pass(
            report,
            "debt_statuses",
            lambda: self.auto_pay.refresh_debt_statuses(self.user_id, today),
        )
        if flags.get("debt_auto_pay", True):
            report.auto_pay = self._run_pass(
                report,
                "auto_pay",
                lambda: self.auto_pay.evaluate_debt_auto_pay(self.user_id, today),
            )

    def run_startup(self, today: Optional[DateLike] = None) -> StartupReport:
        """
        Run every maintenance pass once, as at process start.

        Args:
            today: Processing date, defaults to the current date

        Returns:
            StartupReport with each pass's result and any pass errors

        Raises:
            SchemaError: If the schema cannot be created
        """
        report = StartupReport(today=parse_date(today) or date.today())
        logger.info(f"Starting maintenance for user {self.user_id}")

        report.schema = self.schema.ensure_schema()
        flags = self.preferences.feature_flags()

        report.categories_installed = self._run_pass(
            report,
            "categories",
            lambda: self.categories.initialize_default_categories(self.user_id),
        )
        self._run_ledger_passes(report, flags)

        report.currency = self._run_pass(
            report,
            "currency_check",
            lambda: self.currency.check_currency_consistency(self.user_id),
        )
        if (
            flags.get("enforce_canonical_currency", False)
            and report.currency is not None
            and not report.currency.is_consistent
        ):
            report.currency_migration = self._run_pass(
                report,
                "currency_migration",
                lambda: self.currency.migrate_all_data_to_mad(self.user_id),
            )

        logger.info(report.summary())
        return report

    def run_periodic(self, today: Optional[DateLike] = None) -> StartupReport:
        """Run only the time-driven passes: recurrence, debt statuses and auto-pay."""
        report = StartupReport(today=parse_date(today) or date.today())
        self._run_ledger_passes(report, self.preferences.feature_flags())
        logger.info(report.summary())
        return report
