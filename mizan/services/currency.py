"""
Currency consistency checks and migration to a single currency.

Amounts are relabelled, never converted: the migration rewrites currency
codes only. Tables or columns missing from an older database are skipped.
"""

import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Optional

from mizan.config import (
    BASE_CURRENCY_KEY,
    CANONICAL_CURRENCY,
    CANONICAL_CURRENCY_DESCRIPTOR,
    CURRENCY_TABLES,
    DEFAULT_USER_ID,
    SELECTED_CURRENCY_KEY,
)
from mizan.db import Database
from mizan.db.base import quote_identifier

from .preferences import PreferenceStore

logger = logging.getLogger(__name__)


@dataclass
class CurrencyDetail:
    table: str
    total: int = 0
    canonical_count: int = 0
    other_count: int = 0
    other_currencies: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "table": self.table,
            "total": self.total,
            "canonical_count": self.canonical_count,
            "other_count": self.other_count,
            "other_currencies": self.other_currencies,
        }


@dataclass
class CurrencyReport:
    currency: str
    details: list[CurrencyDetail] = field(default_factory=list)
    issues: list[str] = field(default_factory=list)

    @property
    def is_consistent(self) -> bool:
        return not self.issues


@dataclass
class CurrencyMigrationResult:
    currency: str
    migrated: dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.migrated.values())


def currency_descriptor(code: str) -> dict:
    """Display descriptor stored under the selected-currency preference."""
    if code == CANONICAL_CURRENCY:
        return dict(CANONICAL_CURRENCY_DESCRIPTOR)
    return {"code": code, "symbol": f"{code} ", "name": code, "locale": "fr-FR"}


class CurrencyMigrator:
    """Reports and removes mixed currencies across the money-bearing tables."""

    def __init__(self, db: Database, preferences: PreferenceStore):
        self.db = db
        self.preferences = preferences

    def _has_currency(self, table: str) -> bool:
        columns = self.db.table_columns(table)
        return "currency" in columns and "user_id" in columns

    def check_currency_consistency(
        self, user_id: str = DEFAULT_USER_ID, currency: str = CANONICAL_CURRENCY
    ) -> CurrencyReport:
        """
        Count rows per currency in every money-bearing table.

        Args:
            user_id: Owner
            currency: The expected currency code

        Returns:
            CurrencyReport; consistent when no row uses another currency
        """
        report = CurrencyReport(currency=currency)
        for table in CURRENCY_TABLES:
            if not self._has_currency(table):
                logger.info(f"Table {table} has no currency column, skipping")
                continue
            try:
                rows = (
                    self.db.connect()
                    .execute(
                        f"SELECT currency, COUNT(*) AS count FROM {quote_identifier(table)} "
                        f"WHERE user_id = ? GROUP BY currency",
                        (user_id,),
                    )
                    .fetchall()
                )
            except sqlite3.Error as e:
                logger.warning(f"Could not check currencies in {table}: {e}")
                continue

            detail = CurrencyDetail(table=table)
            for row in rows:
                detail.total += row["count"]
                if row["currency"] == currency:
                    detail.canonical_count += row["count"]
                else:
                    detail.other_count += row["count"]
                    detail.other_currencies.append(row["currency"] or "(none)")
            report.details.append(detail)

            if detail.other_count:
                report.issues.append(
                    f"{table} uses currencies other than {currency}: "
                    f"{', '.join(sorted(detail.other_currencies))}"
                )

        if report.issues:
            logger.warning(f"Currency inconsistencies: {'; '.join(report.issues)}")
        return report

    def migrate_all_data_to(
        self,
        currency: str,
        user_id: str = DEFAULT_USER_ID,
        descriptor: Optional[dict] = None,
    ) -> CurrencyMigrationResult:
        """
        Relabel every row of the owner to one currency, then store it as the selection.

        All table updates share one SQL transaction. Running it again changes
        no rows.

        Args:
            currency: Target currency code
            user_id: Owner
            descriptor: Selected-currency preference value, derived from the code if omitted

        Returns:
            CurrencyMigrationResult with the number of rows changed per table
        """
        if not currency or not currency.strip():
            raise ValueError("Currency code cannot be empty")
        currency = currency.strip().upper()
        result = CurrencyMigrationResult(currency=currency)

        with self.db.transaction() as conn:
            for table in CURRENCY_TABLES:
                if not self._has_currency(table):
                    logger.info(f"Table {table} has no currency column, skipping")
                    continue
                cursor = conn.execute(
                    f"UPDATE {quote_identifier(table)} SET currency = ? "
                    f"WHERE user_id = ? AND (currency IS NULL OR currency != ?)",
                    (currency, user_id, currency),
                )
                result.migrated[table] = cursor.rowcount

        self.preferences.set_json(SELECTED_CURRENCY_KEY, descriptor or currency_descriptor(currency))
        self.preferences.set(BASE_CURRENCY_KEY, currency)

        logger.info(f"Migrated {result.total} rows to {currency}: {result.migrated}")
        return result

    def migrate_all_data_to_mad(self, user_id: str = DEFAULT_USER_ID) -> CurrencyMigrationResult:
        return self.migrate_all_data_to(CANONICAL_CURRENCY, user_id)
