"""
Recurrence materializer.

Turns recurring template transactions into dated occurrences. A template is
a posted transaction with is_recurring set and a recurrence unit; each
occurrence is a plain transaction pointing back at it through
parent_transaction_id.
"""

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional

from mizan.config import DEFAULT_USER_ID
from mizan.dates import DateLike, parse_date
from mizan.db import Database, LedgerStore
from mizan.errors import DuplicateGuardViolation, TemplateNotFoundError
from mizan.models import RecurrenceUnit, Transaction

logger = logging.getLogger(__name__)


def _add_months(value: date, months: int) -> date:
    """
    Add calendar months keeping the day of month.

    When the target month is too short the surplus days roll over into the
    following month: Jan 31 + 1 month is Mar 3 (Mar 2 in a leap year).
    """
    total = value.year * 12 + (value.month - 1) + months
    year, month = divmod(total, 12)
    month += 1
    days_in_month = calendar.monthrange(year, month)[1]
    if value.day <= days_in_month:
        return value.replace(year=year, month=month)
    return date(year, month, days_in_month) + timedelta(days=value.day - days_in_month)


def add_period(value: DateLike, unit: RecurrenceUnit) -> date:
    """
    Add exactly one recurrence period to a date.

    Args:
        value: Start date
        unit: daily, weekly, monthly or yearly

    Returns:
        The date one period later
    """
    value = parse_date(value)
    unit = RecurrenceUnit(unit)
    if unit == RecurrenceUnit.DAILY:
        return value + timedelta(days=1)
    if unit == RecurrenceUnit.WEEKLY:
        return value + timedelta(weeks=1)
    if unit == RecurrenceUnit.MONTHLY:
        return _add_months(value, 1)
    return _add_months(value, 12)


def next_occurrence_date(template: Transaction, last_processed: Optional[DateLike] = None) -> date:
    """
    One period after the last materialized occurrence, or after the template date.

    Raises:
        ValueError: If the template has no recurrence unit
    """
    if template.recurrence_type is None:
        raise ValueError(f"Transaction {template.id} has no recurrence unit")
    base = parse_date(last_processed) if last_processed else template.date
    return add_period(base, template.recurrence_type)


@dataclass
class RecurrenceResult:
    processed: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"processed": self.processed, "skipped": self.skipped, "errors": self.errors}


class RecurrenceMaterializer:
    """Creates due occurrences of recurring templates through the ledger store."""

    def __init__(self, db: Database, ledger: LedgerStore):
        self.db = db
        self.ledger = ledger

    def _active_templates(self, user_id: str, today: date) -> list[Transaction]:
        rows = (
            self.db.connect()
            .execute(
                """
                SELECT * FROM transactions
                WHERE user_id = ?
                  AND is_recurring = 1
                  AND recurrence_type IS NOT NULL
                  AND parent_transaction_id IS NULL
                  AND (recurrence_end_date IS NULL OR recurrence_end_date >= ?)
                ORDER BY date, id
                """,
                (user_id, today.isoformat()),
            )
            .fetchall()
        )
        return [Transaction.from_row(row) for row in rows]

    def last_occurrence_date(self, template_id: int) -> Optional[date]:
        row = (
            self.db.connect()
            .execute(
                "SELECT MAX(date) AS last FROM transactions WHERE parent_transaction_id = ?",
                (template_id,),
            )
            .fetchone()
        )
        return parse_date(row["last"])

    def due_date(self, template: Transaction, today: date) -> Optional[date]:
        """
        The single date to materialize today, or None when nothing is due.

        Missed periods are not backfilled: only the most recent due date is
        returned, and the periods skipped over are lost permanently since
        later runs count from the newest occurrence.
        """
        due = next_occurrence_date(template, self.last_occurrence_date(template.id))
        if due > today:
            return None
        following = add_period(due, template.recurrence_type)
        while following <= today:
            due = following
            following = add_period(due, template.recurrence_type)
        if template.recurrence_end_date and due > template.recurrence_end_date:
            return None
        return due

    def _set_next_occurrence(self, template_id: int, value: date) -> None:
        self.db.connect().execute(
            "UPDATE transactions SET next_occurrence = ? WHERE id = ?",
            (value.isoformat(), template_id),
        )

    def _materialize(self, template: Transaction, due: date) -> Transaction:
        with self.db.transaction() as conn:
            exists = conn.execute(
                "SELECT 1 FROM transactions WHERE parent_transaction_id = ? AND date = ?",
                (template.id, due.isoformat()),
            ).fetchone()
            if exists:
                raise DuplicateGuardViolation(f"template {template.id} on {due.isoformat()}")

            occurrence = self.ledger.post_transaction(
                Transaction(
                    id=None,
                    account_id=template.account_id,
                    amount=template.amount,
                    transaction_type=template.transaction_type,
                    date=due,
                    description=template.description,
                    category=template.category,
                    user_id=template.user_id,
                    currency=template.currency,
                    parent_transaction_id=template.id,
                )
            )
            self._set_next_occurrence(template.id, add_period(due, template.recurrence_type))
        return occurrence

    def process_recurring_transactions(
        self, user_id: str = DEFAULT_USER_ID, today: Optional[DateLike] = None
    ) -> RecurrenceResult:
        """
        Materialize the currently due occurrence of every active template.

        Safe to call any number of times: an occurrence already present for
        (template, date) is skipped, never duplicated.

        Args:
            user_id: Owner of the templates
            today: Processing date, defaults to the current date

        Returns:
            RecurrenceResult with processed/skipped counts and error messages
        """
        today = parse_date(today) or date.today()
        result = RecurrenceResult()
        templates = self._active_templates(user_id, today)
        logger.info(f"Processing {len(templates)} recurring templates for {today.isoformat()}")

        for template in templates:
            if template.recurrence_type is None:
                logger.warning(f"Template {template.id} has an unknown recurrence unit")
                result.skipped += 1
                continue
            try:
                due = self.due_date(template, today)
                if due is None:
                    upcoming = next_occurrence_date(
                        template, self.last_occurrence_date(template.id)
                    )
                    if template.next_occurrence != upcoming:
                        self._set_next_occurrence(template.id, upcoming)
                    result.skipped += 1
                    continue

                occurrence = self._materialize(template, due)
                result.processed += 1
                logger.info(
                    f"Created occurrence {occurrence.id} of template {template.id} "
                    f"for {due.isoformat()}"
                )
            except DuplicateGuardViolation as e:
                result.skipped += 1
                logger.info(f"Skipping template {template.id}: {e}")
            except Exception as e:
                message = f"Template {template.id} ({template.description}): {e}"
                result.errors.append(message)
                logger.error(f"Failed to materialize {message}", exc_info=True)

        logger.info(
            f"Recurring processing done: {result.processed} created, "
            f"{result.skipped} skipped, {len(result.errors)} errors"
        )
        return result

    # =========================================================================
    # Template management
    # =========================================================================

    def disable_recurrence(self, template_id: int, user_id: str = DEFAULT_USER_ID) -> None:
        """Stop a template from producing further occurrences. Past occurrences stay."""
        cursor = self.db.connect().execute(
            """
            UPDATE transactions
            SET is_recurring = 0, recurrence_type = NULL,
                recurrence_end_date = NULL, next_occurrence = NULL
            WHERE id = ? AND user_id = ?
            """,
            (template_id, user_id),
        )
        if cursor.rowcount == 0:
            raise TemplateNotFoundError(template_id, user_id)
        logger.info(f"Disabled recurrence of transaction {template_id}")

    def get_occurrences(self, template_id: int, user_id: str = DEFAULT_USER_ID) -> list[Transaction]:
        rows = (
            self.db.connect()
            .execute(
                """
                SELECT * FROM transactions
                WHERE user_id = ? AND parent_transaction_id = ?
                ORDER BY date DESC
                """,
                (user_id, template_id),
            )
            .fetchall()
        )
        return [Transaction.from_row(row) for row in rows]

    def recurrence_stats(self, user_id: str = DEFAULT_USER_ID) -> dict[str, int]:
        """Count active templates per recurrence unit."""
        stats = {"total": 0}
        stats.update({unit.value: 0 for unit in RecurrenceUnit})
        rows = (
            self.db.connect()
            .execute(
                """
                SELECT recurrence_type, COUNT(*) AS count FROM transactions
                WHERE user_id = ? AND is_recurring = 1 AND recurrence_type IS NOT NULL
                GROUP BY recurrence_type
                """,
                (user_id,),
            )
            .fetchall()
        )
        for row in rows:
            unit = RecurrenceUnit.parse(row["recurrence_type"])
            if unit is not None:
                stats[unit.value] += row["count"]
            stats["total"] += row["count"]
        return stats
