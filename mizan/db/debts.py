"""
Debts repository module.

Handles debts and their monthly payment rows. The auto-pay evaluator drives
the balance-bearing writes; the methods here that take part in them expect
to be called inside the caller's SQL transaction.
"""

import logging
from datetime import date, datetime
from typing import Optional

from mizan.config import CANONICAL_CURRENCY, DEFAULT_USER_ID, MONEY_PRECISION
from mizan.dates import DateLike, month_key, parse_date, utc_now
from mizan.errors import DebtNotFoundError
from mizan.models import Debt, DebtPayment, DebtStatus

from .base import BaseRepository

logger = logging.getLogger(__name__)


class DebtRepository(BaseRepository):
    """Repository for debts and debt payments."""

    # =========================================================================
    # Debts
    # =========================================================================

    def create_debt(
        self,
        name: str,
        initial_amount: float,
        monthly_payment: float,
        due_date: DateLike,
        payment_account_id: Optional[int] = None,
        auto_pay: bool = False,
        start_payment_next_month: bool = False,
        creditor: str = "",
        interest_rate: float = 0.0,
        current_amount: Optional[float] = None,
        user_id: str = DEFAULT_USER_ID,
        currency: str = CANONICAL_CURRENCY,
        created_at: Optional[datetime] = None,
    ) -> Debt:
        """
        Record a new debt.

        Args:
            name: Display name
            initial_amount: Amount originally owed
            monthly_payment: Installment amount
            due_date: Installment due date
            payment_account_id: Account debited by auto-pay
            auto_pay: Post installments automatically
            start_payment_next_month: Skip the creation month
            creditor: Who is owed
            interest_rate: Yearly rate in percent
            current_amount: Amount still owed, defaults to initial_amount
            user_id: Owner
            currency: ISO currency code
            created_at: Creation timestamp, defaults to now

        Returns:
            The created Debt

        Raises:
            ValueError: If inputs are invalid
        """
        if not name or not name.strip():
            raise ValueError("Debt name cannot be empty")
        if initial_amount is None or initial_amount < 0:
            raise ValueError(f"Invalid initial amount: {initial_amount}")
        if monthly_payment is None or monthly_payment < 0:
            raise ValueError(f"Invalid monthly payment: {monthly_payment}")
        if current_amount is None:
            current_amount = initial_amount
        if current_amount < 0:
            raise ValueError(f"Invalid current amount: {current_amount}")

        due = parse_date(due_date)
        if due is None:
            raise ValueError("Debt needs a due date")
        created_at = created_at or utc_now()
        status = DebtStatus.PAID if current_amount == 0 else DebtStatus.ACTIVE

        with self.db.transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO debts
                    (user_id, name, creditor, initial_amount, current_amount, interest_rate,
                     monthly_payment, due_date, payment_account_id, auto_pay,
                     start_payment_next_month, status, currency, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    name.strip(),
                    creditor,
                    round(initial_amount, MONEY_PRECISION),
                    round(current_amount, MONEY_PRECISION),
                    interest_rate,
                    round(monthly_payment, MONEY_PRECISION),
                    due.isoformat(),
                    payment_account_id,
                    1 if auto_pay else 0,
                    1 if start_payment_next_month else 0,
                    status.value,
                    currency,
                    created_at.isoformat(),
                ),
            )
            debt_id = cursor.lastrowid

        logger.info(f"Created debt '{name.strip()}' ({current_amount:.2f}) for user {user_id}")
        return self.require_debt(debt_id)

    def get_debt(self, debt_id: int, user_id: Optional[str] = None) -> Optional[Debt]:
        sql = "SELECT * FROM debts WHERE id = ?"
        params: list = [debt_id]
        if user_id is not None:
            sql += " AND user_id = ?"
            params.append(user_id)
        row = self._conn().execute(sql, params).fetchone()
        return Debt.from_row(row) if row else None

    def require_debt(self, debt_id: int, user_id: Optional[str] = None) -> Debt:
        debt = self.get_debt(debt_id, user_id)
        if debt is None:
            raise DebtNotFoundError(debt_id, user_id)
        return debt

    def list_debts(
        self, user_id: str = DEFAULT_USER_ID, status: Optional[DebtStatus] = None
    ) -> list[Debt]:
        sql = "SELECT * FROM debts WHERE user_id = ?"
        params: list = [user_id]
        if status is not None:
            sql += " AND status = ?"
            params.append(DebtStatus(status).value)
        sql += " ORDER BY due_date ASC, id ASC"
        rows = self._conn().execute(sql, params).fetchall()
        return [Debt.from_row(row) for row in rows]

    def list_unpaid(self, user_id: str = DEFAULT_USER_ID) -> list[Debt]:
        rows = (
            self._conn()
            .execute(
                "SELECT * FROM debts WHERE user_id = ? AND status != 'paid' "
                "ORDER BY due_date ASC, id ASC",
                (user_id,),
            )
            .fetchall()
        )
        return [Debt.from_row(row) for row in rows]

    def set_status(self, debt_id: int, status: DebtStatus) -> None:
        cursor = self._conn().execute(
            "UPDATE debts SET status = ? WHERE id = ?", (DebtStatus(status).value, debt_id)
        )
        if cursor.rowcount == 0:
            raise DebtNotFoundError(debt_id)

    def reduce_balance(self, debt_id: int, amount: float) -> Debt:
        """
        Decrement the amount owed, flipping the status to paid at zero.

        Call inside the caller's SQL transaction.
        """
        conn = self._conn()
        cursor = conn.execute(
            """
            UPDATE debts
            SET current_amount = MAX(0, ROUND(current_amount - ?, ?)),
                status = CASE
                    WHEN ROUND(current_amount - ?, ?) <= 0 THEN 'paid'
                    ELSE status
                END
            WHERE id = ?
            """,
            (amount, MONEY_PRECISION, amount, MONEY_PRECISION, debt_id),
        )
        if cursor.rowcount == 0:
            raise DebtNotFoundError(debt_id)
        return self.require_debt(debt_id)

    # =========================================================================
    # Payments
    # =========================================================================

    def get_payment(self, debt_id: int, payment_month: str) -> Optional[DebtPayment]:
        row = (
            self._conn()
            .execute(
                "SELECT * FROM debt_payments WHERE debt_id = ? AND payment_month = ?",
                (debt_id, payment_month),
            )
            .fetchone()
        )
        return DebtPayment.from_row(row) if row else None

    def list_payments(self, debt_id: int) -> list[DebtPayment]:
        rows = (
            self._conn()
            .execute(
                "SELECT * FROM debt_payments WHERE debt_id = ? ORDER BY payment_date, id",
                (debt_id,),
            )
            .fetchall()
        )
        return [DebtPayment.from_row(row) for row in rows]

    def insert_payment(
        self,
        debt: Debt,
        amount: float,
        payment_date: date,
        transaction_id: Optional[int] = None,
    ) -> DebtPayment:
        """
        Insert the payment row for the month of payment_date.

        Raises:
            sqlite3.IntegrityError: If the month already has a payment
        """
        created_at = utc_now()
        payment = DebtPayment(
            id=None,
            debt_id=debt.id,
            amount=round(amount, MONEY_PRECISION),
            payment_date=payment_date,
            payment_month=month_key(payment_date),
            from_account_id=debt.payment_account_id,
            transaction_id=transaction_id,
            user_id=debt.user_id,
            created_at=created_at,
        )
        cursor = self._conn().execute(
            """
            INSERT INTO debt_payments
                (debt_id, user_id, amount, payment_date, payment_month,
                 from_account_id, transaction_id, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                payment.debt_id,
                payment.user_id,
                payment.amount,
                payment.payment_date.isoformat(),
                payment.payment_month,
                payment.from_account_id,
                payment.transaction_id,
                created_at.isoformat(),
            ),
        )
        payment.id = cursor.lastrowid
        return payment

    def link_transaction(self, payment_id: int, transaction_id: int) -> None:
        self._conn().execute(
            "UPDATE debt_payments SET transaction_id = ? WHERE id = ?",
            (transaction_id, payment_id),
        )
