"""
Duplicate reconciler.

Finds transactions posted more than once (same account, same type, same
signed amount, same date) and deletes the extras through the ledger store,
so every deletion reverses exactly the balance effect of the row it removes.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from mizan.config import DEBT_PAYMENT_PREFIX, DEFAULT_USER_ID, MONEY_PRECISION
from mizan.dates import DateLike, parse_date
from mizan.db import Database, LedgerStore
from mizan.models import Transaction, TransactionType

logger = logging.getLogger(__name__)


@dataclass
class DuplicateFilter:
    """Narrows which transactions are considered for reconciliation."""

    user_id: str = DEFAULT_USER_ID
    account_id: Optional[int] = None
    transaction_type: Optional[TransactionType] = None
    category: Optional[str] = None
    description_contains: Optional[str] = None
    date_from: Optional[DateLike] = None
    date_to: Optional[DateLike] = None
    keep_marker: Optional[str] = DEBT_PAYMENT_PREFIX  # rows containing it survive first


@dataclass
class DuplicateGroup:
    account_id: int
    amount: float
    date: str
    keep: Transaction
    remove: list[Transaction] = field(default_factory=list)


@dataclass
class ReconcileResult:
    deleted: int = 0
    refunded: float = 0.0
    groups: int = 0

    def to_dict(self) -> dict:
        return {"deleted": self.deleted, "refunded": self.refunded, "groups": self.groups}


def _created_key(tx: Transaction) -> datetime:
    if tx.created_at is None:
        return datetime.max
    if tx.created_at.tzinfo is not None:
        return tx.created_at.astimezone(timezone.utc).replace(tzinfo=None)
    return tx.created_at


class DuplicateReconciler:
    """Detects and removes duplicate postings."""

    def __init__(self, db: Database, ledger: LedgerStore):
        self.db = db
        self.ledger = ledger

    def _candidates(self, criteria: DuplicateFilter) -> list[Transaction]:
        sql = "SELECT * FROM transactions WHERE user_id = ?"
        params: list = [criteria.user_id]
        if criteria.account_id is not None:
            sql += " AND account_id = ?"
            params.append(criteria.account_id)
        if criteria.transaction_type is not None:
            sql += " AND type = ?"
            params.append(TransactionType(criteria.transaction_type).value)
        if criteria.category is not None:
            sql += " AND category = ?"
            params.append(criteria.category)
        if criteria.description_contains:
            sql += " AND description LIKE ?"
            params.append(f"%{criteria.description_contains}%")
        if criteria.date_from is not None:
            sql += " AND date >= ?"
            params.append(parse_date(criteria.date_from).isoformat())
        if criteria.date_to is not None:
            sql += " AND date <= ?"
            params.append(parse_date(criteria.date_to).isoformat())
        sql += " ORDER BY date, id"

        rows = self.db.connect().execute(sql, params).fetchall()
        return [Transaction.from_row(row) for row in rows]

    def find_duplicates(self, criteria: Optional[DuplicateFilter] = None) -> list[DuplicateGroup]:
        """
        Group matching transactions and pick which row of each group survives.

        The survivor is a row whose description contains the keep marker if
        there is one, else the earliest created, then the lowest id. Writes
        nothing.
        """
        criteria = criteria or DuplicateFilter()
        buckets: dict[tuple, list[Transaction]] = {}
        for tx in self._candidates(criteria):
            key = (
                tx.account_id,
                tx.transaction_type,
                round(tx.amount, MONEY_PRECISION),
                tx.date.isoformat(),
            )
            buckets.setdefault(key, []).append(tx)

        marker = criteria.keep_marker
        groups = []
        for (account_id, _, amount, on), txs in buckets.items():
            if len(txs) < 2:
                continue
            ordered = sorted(
                txs,
                key=lambda t: (
                    0 if marker and marker in (t.description or "") else 1,
                    _created_key(t),
                    t.id,
                ),
            )
            groups.append(
                DuplicateGroup(
                    account_id=account_id,
                    amount=abs(amount),
                    date=on,
                    keep=ordered[0],
                    remove=ordered[1:],
                )
            )
        return groups

    def reconcile_duplicates(self, criteria: Optional[DuplicateFilter] = None) -> ReconcileResult:
        """
        Delete the extra rows of every duplicate group in one SQL transaction.

        Each deleted row's signed amount is reversed on its account; for an
        expense that refunds abs(amount). Any failure rolls the whole pass back.

        Args:
            criteria: Which transactions to consider, defaults to all of the owner's

        Returns:
            ReconcileResult with deleted count, refunded total and group count
        """
        groups = self.find_duplicates(criteria)
        result = ReconcileResult(groups=len(groups))
        if not groups:
            logger.info("No duplicate transactions found")
            return result

        with self.db.transaction() as conn:
            for group in groups:
                logger.info(
                    f"Duplicate group on account {group.account_id}, {group.date}, "
                    f"{group.amount:.2f}: keeping {group.keep.id}"
                )
                for tx in group.remove:
                    self.ledger.delete_transaction(tx.id, tx.user_id)
                    conn.execute(
                        "UPDATE debt_payments SET transaction_id = NULL WHERE transaction_id = ?",
                        (tx.id,),
                    )
                    result.deleted += 1
                    result.refunded += abs(tx.amount)

        result.refunded = round(result.refunded, MONEY_PRECISION)
        logger.info(
            f"Removed {result.deleted} duplicates in {result.groups} groups, "
            f"reversed {result.refunded:.2f}"
        )
        return result
