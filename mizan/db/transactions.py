"""
Ledger store: transaction CRUD bound to account balances.

Handles:
- Posting a transaction and applying its balance delta
- Deleting a transaction and reversing its delta
- Edits as delete + recreate
- Transfers between two accounts
- Read-only balance drift checks

Every write here runs inside one SQL transaction, so a transaction row and
its balance effect are either both present or both absent.
"""

import logging
import math
import sqlite3
from dataclasses import dataclass, replace
from datetime import date
from typing import Optional

from mizan.config import DEFAULT_USER_ID, MAX_DESCRIPTION_LENGTH, MONEY_PRECISION
from mizan.dates import DateLike, parse_date, utc_now
from mizan.errors import (
    AccountNotFoundError,
    DuplicateGuardViolation,
    IntegrityViolation,
    TransactionNotFoundError,
)
from mizan.models import Transaction, TransactionType, signed_delta

from .base import BaseRepository

logger = logging.getLogger(__name__)

__all__ = ["BalanceDrift", "LedgerStore", "signed_delta"]


@dataclass
class BalanceDrift:
    """Cached balance of an account versus what its history implies."""

    account_id: int
    name: str
    cached: float
    expected: float

    @property
    def drift(self) -> float:
        return round(self.cached - self.expected, MONEY_PRECISION)

    def to_dict(self) -> dict:
        return {
            "account_id": self.account_id,
            "name": self.name,
            "cached": self.cached,
            "expected": self.expected,
            "drift": self.drift,
        }


class LedgerStore(BaseRepository):
    """
    Repository for posted transactions.

    This is the only code that changes accounts.balance after creation.
    """

    def __init__(self, db, category_repo=None):
        """
        Initialize the ledger store.

        Args:
            db: The store owning the connection
            category_repo: Optional CategoryRepository used to warn about
                unknown category slugs
        """
        super().__init__(db)
        self._category_repo = category_repo

    # =========================================================================
    # Create Operations
    # =========================================================================

    def _validate(self, tx: Transaction) -> None:
        if tx.account_id is None:
            raise ValueError("Transaction has no account")
        if not tx.user_id:
            raise ValueError(f"Invalid user_id: {tx.user_id}")
        if not isinstance(tx.amount, (int, float)) or math.isnan(tx.amount):
            raise ValueError(f"Invalid amount: {tx.amount}")
        if round(tx.amount, MONEY_PRECISION) == 0:
            raise ValueError("Amount cannot be zero")
        if not isinstance(tx.date, date):
            raise ValueError(f"Invalid date: {tx.date}")
        if tx.description and len(tx.description) > MAX_DESCRIPTION_LENGTH:
            raise ValueError(
                f"Description longer than {MAX_DESCRIPTION_LENGTH} characters"
            )

    def post_transaction(self, tx: Transaction) -> Transaction:
        """
        Insert a transaction and apply its signed delta to the account balance.

        Args:
            tx: The transaction to post; its id is ignored

        Returns:
            The stored transaction, with id and signed amount

        Raises:
            ValueError: If the transaction is malformed
            AccountNotFoundError: If the account is missing, inactive or not the owner's
            DuplicateGuardViolation: If an occurrence already exists for that template and date
            IntegrityViolation: If the balance update touched no row
        """
        self._validate(tx)
        tx = tx.normalized()
        created_at = utc_now()

        with self.db.transaction() as conn:
            account = conn.execute(
                "SELECT id FROM accounts WHERE id = ? AND user_id = ? AND is_active = 1",
                (tx.account_id, tx.user_id),
            ).fetchone()
            if account is None:
                raise AccountNotFoundError(tx.account_id, tx.user_id)

            if (
                tx.category
                and self._category_repo is not None
                and not self._category_repo.category_exists(tx.category, tx.user_id)
            ):
                logger.warning(
                    f"Transaction references unknown category '{tx.category}'"
                )

            try:
                cursor = conn.execute(
                    """
                    INSERT INTO transactions
                        (user_id, account_id, amount, type, category, description, date,
                         currency, is_recurring, recurrence_type, recurrence_end_date,
                         parent_transaction_id, next_occurrence, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        tx.user_id,
                        tx.account_id,
                        tx.amount,
                        tx.transaction_type.value,
                        tx.category,
                        tx.description,
                        tx.date.isoformat(),
                        tx.currency,
                        1 if tx.is_recurring else 0,
                        tx.recurrence_type.value if tx.recurrence_type else None,
                        tx.recurrence_end_date.isoformat() if tx.recurrence_end_date else None,
                        tx.parent_transaction_id,
                        tx.next_occurrence.isoformat() if tx.next_occurrence else None,
                        created_at.isoformat(),
                    ),
                )
            except sqlite3.IntegrityError as e:
                if tx.parent_transaction_id is not None and "UNIQUE" in str(e).upper():
                    raise DuplicateGuardViolation(
                        f"template {tx.parent_transaction_id} on {tx.date.isoformat()}"
                    ) from e
                raise

            self._apply_delta(conn, tx.account_id, tx.amount)

        stored = replace(tx, id=cursor.lastrowid, created_at=created_at)
        logger.info(
            f"Posted {stored.transaction_type.value} {stored.amount:+.2f} "
            f"on account {stored.account_id} (transaction {stored.id})"
        )
        return stored

    def _apply_delta(self, conn: sqlite3.Connection, account_id: int, delta: float) -> None:
        cursor = conn.execute(
            "UPDATE accounts SET balance = ROUND(balance + ?, ?) WHERE id = ?",
            (delta, MONEY_PRECISION, account_id),
        )
        if cursor.rowcount != 1:
            raise IntegrityViolation(
                f"Balance update for account {account_id} touched {cursor.rowcount} rows"
            )

    def post_transfer(
        self,
        from_account_id: int,
        to_account_id: int,
        amount: float,
        on: DateLike,
        description: str = "",
        user_id: str = DEFAULT_USER_ID,
    ) -> tuple[Transaction, Transaction]:
        """
        Move money between two accounts as a pair of transfer legs.

        Both legs are posted in one SQL transaction.

        Returns:
            (outgoing leg, incoming leg)

        Raises:
            ValueError: If the amount is not positive or both accounts are the same
        """
        if amount is None or amount <= 0:
            raise ValueError(f"Invalid transfer amount: {amount}")
        if from_account_id == to_account_id:
            raise ValueError("Cannot transfer to the same account")

        on = parse_date(on)
        with self.db.transaction():
            outgoing = self.post_transaction(
                Transaction(
                    id=None,
                    account_id=from_account_id,
                    amount=-abs(amount),
                    transaction_type=TransactionType.TRANSFER,
                    date=on,
                    description=description,
                    user_id=user_id,
                )
            )
            incoming = self.post_transaction(
                Transaction(
                    id=None,
                    account_id=to_account_id,
                    amount=abs(amount),
                    transaction_type=TransactionType.TRANSFER,
                    date=on,
                    description=description,
                    user_id=user_id,
                )
            )
        return outgoing, incoming

    # =========================================================================
    # Delete / Update Operations
    # =========================================================================

    def delete_transaction(self, transaction_id: int, user_id: str = DEFAULT_USER_ID) -> Transaction:
        """
        Reverse a transaction's delta and remove it.

        Args:
            transaction_id: Transaction ID
            user_id: Owner (for authorization)

        Returns:
            The deleted transaction

        Raises:
            TransactionNotFoundError: If no such transaction belongs to the owner
            IntegrityViolation: If its account no longer exists
        """
        with self.db.transaction() as conn:
            row = conn.execute(
                "SELECT * FROM transactions WHERE id = ? AND user_id = ?",
                (transaction_id, user_id),
            ).fetchone()
            if row is None:
                raise TransactionNotFoundError(transaction_id, user_id)

            tx = Transaction.from_row(row)
            self._apply_delta(conn, tx.account_id, -tx.amount)
            conn.execute("DELETE FROM transactions WHERE id = ?", (transaction_id,))

        logger.info(
            f"Deleted transaction {transaction_id}, reversed {-tx.amount:+.2f} "
            f"on account {tx.account_id}"
        )
        return tx

    def replace_transaction(self, transaction_id: int, tx: Transaction) -> Transaction:
        """
        Edit a transaction as delete + recreate in one SQL transaction.

        The replacement gets a new id. If posting it fails, the original
        is restored by the rollback.
        """
        with self.db.transaction():
            self.delete_transaction(transaction_id, tx.user_id)
            return self.post_transaction(tx)

    # =========================================================================
    # Read Operations
    # =========================================================================

    def get_transaction(
        self, transaction_id: int, user_id: Optional[str] = None
    ) -> Optional[Transaction]:
        sql = "SELECT * FROM transactions WHERE id = ?"
        params: list = [transaction_id]
        if user_id is not None:
            sql += " AND user_id = ?"
            params.append(user_id)
        row = self._conn().execute(sql, params).fetchone()
        return Transaction.from_row(row) if row else None

    def list_transactions(
        self,
        user_id: str = DEFAULT_USER_ID,
        account_id: Optional[int] = None,
        transaction_type: Optional[TransactionType] = None,
        date_from: Optional[DateLike] = None,
        date_to: Optional[DateLike] = None,
        limit: Optional[int] = None,
    ) -> list[Transaction]:
        """
        List an owner's transactions, newest first.

        Args:
            user_id: Owner
            account_id: Filter by account
            transaction_type: Filter by type
            date_from: Inclusive lower date bound
            date_to: Inclusive upper date bound
            limit: Maximum number of rows

        Returns:
            List of transactions
        """
        sql = "SELECT * FROM transactions WHERE user_id = ?"
        params: list = [user_id]
        if account_id is not None:
            sql += " AND account_id = ?"
            params.append(account_id)
        if transaction_type is not None:
            sql += " AND type = ?"
            params.append(TransactionType(transaction_type).value)
        if date_from is not None:
            sql += " AND date >= ?"
            params.append(parse_date(date_from).isoformat())
        if date_to is not None:
            sql += " AND date <= ?"
            params.append(parse_date(date_to).isoformat())
        sql += " ORDER BY date DESC, id DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))

        rows = self._conn().execute(sql, params).fetchall()
        return [Transaction.from_row(row) for row in rows]

    def verify_account_balances(self, user_id: str = DEFAULT_USER_ID) -> list[BalanceDrift]:
        """
        Compare cached balances with opening balance plus posted amounts.

        Writes nothing; a drift is reported, never corrected.

        Returns:
            One entry per account whose cached balance has drifted
        """
        rows = self._conn().execute(
            """
            SELECT a.id, a.name, a.balance, a.opening_balance,
                   COALESCE(SUM(t.amount), 0) AS posted
            FROM accounts a
            LEFT JOIN transactions t ON t.account_id = a.id
            WHERE a.user_id = ?
            GROUP BY a.id
            ORDER BY a.id
            """,
            (user_id,),
        ).fetchall()

        drifts = []
        for row in rows:
            expected = round((row["opening_balance"] or 0) + row["posted"], MONEY_PRECISION)
            cached = round(row["balance"] or 0, MONEY_PRECISION)
            if cached != expected:
                drift = BalanceDrift(
                    account_id=row["id"], name=row["name"], cached=cached, expected=expected
                )
                logger.warning(
                    f"Account {drift.account_id} ({drift.name}) drifted by {drift.drift:+.2f}"
                )
                drifts.append(drift)
        return drifts
