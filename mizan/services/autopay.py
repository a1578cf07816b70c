"""
Debt auto-pay evaluator.

Posts the monthly installment of every eligible debt. The debt_payments row
for (debt, month) is the idempotency guard: a debt is charged at most once
per calendar month however many times the evaluator runs.
"""

import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from mizan.config import DEBT_PAYMENT_PREFIX, DEFAULT_USER_ID, MONEY_PRECISION
from mizan.dates import DateLike, month_key, parse_date
from mizan.db import Database, DebtRepository, LedgerStore
from mizan.errors import DuplicateGuardViolation
from mizan.models import Debt, DebtPayment, DebtStatus, Transaction, TransactionType

logger = logging.getLogger(__name__)


@dataclass
class PaymentEligibility:
    is_eligible: bool
    reason: str


@dataclass
class AutoPayResult:
    paid: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)
    payments: list[DebtPayment] = field(default_factory=list)

    @property
    def total_paid(self) -> float:
        return round(sum(p.amount for p in self.payments), MONEY_PRECISION)

    def to_dict(self) -> dict:
        return {
            "paid": self.paid,
            "skipped": self.skipped,
            "errors": self.errors,
            "total_paid": self.total_paid,
        }


def payment_description(debt: Debt) -> str:
    return f"{DEBT_PAYMENT_PREFIX} {debt.name}"


def check_eligibility(debt: Debt, today: Optional[DateLike] = None) -> PaymentEligibility:
    """
    Decide whether a debt's installment should be posted today.

    A debt qualifies when auto-pay is on, a payment account and a positive
    monthly payment are set, and it is due. With start_payment_next_month
    it is due once the creation month is over and the due date has been
    reached; otherwise as soon as the due month is the current month or
    the due date has passed.

    Args:
        debt: The debt to check
        today: Evaluation date, defaults to the current date

    Returns:
        PaymentEligibility with the decision and its reason
    """
    today = parse_date(today) or date.today()
    current_month = month_key(today)

    if debt.status == DebtStatus.PAID:
        return PaymentEligibility(False, "Debt is already paid off")
    if not debt.auto_pay:
        return PaymentEligibility(False, "Auto-pay is disabled")
    if not debt.payment_account_id:
        return PaymentEligibility(False, "No payment account set")
    if not debt.monthly_payment or debt.monthly_payment <= 0:
        return PaymentEligibility(False, "No monthly payment set")
    if debt.current_amount <= 0:
        return PaymentEligibility(False, "Nothing left to pay")

    if debt.start_payment_next_month:
        created_month = month_key(debt.created_at.date()) if debt.created_at else None
        if created_month == current_month:
            return PaymentEligibility(False, "Payments start next month")
        if today < debt.due_date:
            return PaymentEligibility(False, f"Due date {debt.due_date.isoformat()} not reached")
    elif debt.due_month != current_month and debt.due_date > today:
        return PaymentEligibility(False, f"Due date {debt.due_date.isoformat()} not reached")

    return PaymentEligibility(True, "Eligible for automatic payment")


class DebtAutoPayEvaluator:
    """Charges eligible debts to their payment accounts through the ledger store."""

    def __init__(self, db: Database, debts: DebtRepository, ledger: LedgerStore):
        self.db = db
        self.debts = debts
        self.ledger = ledger

    def _pay(self, debt: Debt, today: date) -> DebtPayment:
        payment_month = month_key(today)
        with self.db.transaction():
            if self.debts.get_payment(debt.id, payment_month) is not None:
                raise DuplicateGuardViolation(f"debt {debt.id} in {payment_month}")

            amount = round(min(debt.monthly_payment, debt.current_amount), MONEY_PRECISION)
            try:
                payment = self.debts.insert_payment(debt, amount, today)
            except sqlite3.IntegrityError as e:
                raise DuplicateGuardViolation(f"debt {debt.id} in {payment_month}") from e

            tx = self.ledger.post_transaction(
                Transaction(
                    id=None,
                    account_id=debt.payment_account_id,
                    amount=amount,
                    transaction_type=TransactionType.EXPENSE,
                    date=today,
                    description=payment_description(debt),
                    user_id=debt.user_id,
                    currency=debt.currency,
                )
            )
            self.debts.link_transaction(payment.id, tx.id)
            payment.transaction_id = tx.id
            remaining = self.debts.reduce_balance(debt.id, amount)

        logger.info(
            f"Auto-paid {amount:.2f} on debt '{debt.name}' from account "
            f"{debt.payment_account_id}, {remaining.current_amount:.2f} left"
        )
        return payment

    def evaluate_debt_auto_pay(
        self, user_id: str = DEFAULT_USER_ID, today: Optional[DateLike] = None
    ) -> AutoPayResult:
        """
        Post this month's installment for every eligible debt.

        Each debt is paid in its own SQL transaction; a failing debt is
        rolled back and reported without stopping the others.

        Args:
            user_id: Owner of the debts
            today: Evaluation date, defaults to the current date

        Returns:
            AutoPayResult with counts, errors and the payments made
        """
        today = parse_date(today) or date.today()
        result = AutoPayResult()

        for debt in self.debts.list_unpaid(user_id):
            eligibility = check_eligibility(debt, today)
            if not eligibility.is_eligible:
                logger.debug(f"Debt {debt.id} ({debt.name}) not paid: {eligibility.reason}")
                result.skipped += 1
                continue

            try:
                result.payments.append(self._pay(debt, today))
                result.paid += 1
            except DuplicateGuardViolation as e:
                logger.info(f"Skipping debt {debt.id}: {e}")
                result.skipped += 1
            except Exception as e:
                message = f"Debt {debt.id} ({debt.name}): {e}"
                result.errors.append(message)
                logger.error(f"Auto-pay failed for {message}", exc_info=True)

        logger.info(
            f"Auto-pay done: {result.paid} paid ({result.total_paid:.2f}), "
            f"{result.skipped} skipped, {len(result.errors)} errors"
        )
        return result

    def refresh_debt_statuses(
        self, user_id: str = DEFAULT_USER_ID, today: Optional[DateLike] = None
    ) -> int:
        """
        Recompute debt statuses from amounts and due dates.

        Returns:
            Number of debts whose status changed
        """
        today = parse_date(today) or date.today()
        current_month = month_key(today)
        changed = 0

        with self.db.transaction():
            for debt in self.debts.list_debts(user_id):
                status = debt.status
                if debt.current_amount <= 0:
                    status = DebtStatus.PAID
                elif (
                    debt.status == DebtStatus.ACTIVE
                    and debt.due_date < today
                    and debt.due_month != current_month
                ):
                    status = DebtStatus.OVERDUE
                elif debt.status == DebtStatus.OVERDUE and (
                    debt.due_month == current_month or debt.due_date >= today
                ):
                    status = DebtStatus.ACTIVE

                if status != debt.status:
                    self.debts.set_status(debt.id, status)
                    logger.info(
                        f"Debt {debt.id} ({debt.name}): {debt.status.value} -> {status.value}"
                    )
                    changed += 1
        return changed
