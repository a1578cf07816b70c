from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum
from typing import Optional

from mizan.config import CANONICAL_CURRENCY, DEFAULT_USER_ID, MONEY_PRECISION
from mizan.dates import parse_date, parse_datetime


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


class RecurrenceUnit(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["RecurrenceUnit"]:
        """Return the unit for a stored value, or None when it is not a known unit."""
        if not value:
            return None
        try:
            return cls(str(value).lower())
        except ValueError:
            return None


def signed_delta(transaction_type: TransactionType, amount: float) -> float:
    """
    The balance delta a transaction applies to its account.

    Income always credits and expense always debits, whatever sign the
    caller used. A transfer leg keeps the sign it was given.
    """
    if transaction_type == TransactionType.INCOME:
        delta = abs(amount)
    elif transaction_type == TransactionType.EXPENSE:
        delta = -abs(amount)
    else:
        delta = amount
    return round(delta, MONEY_PRECISION)


@dataclass
class Transaction:
    """
    A posted (or about to be posted) ledger transaction.

    The stored amount is the signed balance delta. Recurring templates have
    is_recurring set and a recurrence_type; occurrences point back to their
    template through parent_transaction_id.
    """

    id: Optional[int]
    account_id: int
    amount: float
    transaction_type: TransactionType
    date: date
    description: str = ""
    category: Optional[str] = None  # category slug, informational only
    user_id: str = DEFAULT_USER_ID
    currency: str = CANONICAL_CURRENCY
    is_recurring: bool = False
    recurrence_type: Optional[RecurrenceUnit] = None
    recurrence_end_date: Optional[date] = None
    parent_transaction_id: Optional[int] = None
    next_occurrence: Optional[date] = None
    created_at: Optional[datetime] = None

    @property
    def delta(self) -> float:
        return signed_delta(self.transaction_type, self.amount)

    @property
    def is_template(self) -> bool:
        return self.is_recurring and self.recurrence_type is not None

    def normalized(self) -> "Transaction":
        """Return a copy whose amount is the signed delta."""
        return replace(self, amount=self.delta)

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "account_id": self.account_id,
            "amount": self.amount,
            "type": self.transaction_type.value,
            "date": self.date.isoformat(),
            "description": self.description,
            "category": self.category,
            "user_id": self.user_id,
            "currency": self.currency,
            "is_recurring": self.is_recurring,
            "recurrence_type": (
                self.recurrence_type.value if self.recurrence_type else None
            ),
            "recurrence_end_date": (
                self.recurrence_end_date.isoformat()
                if self.recurrence_end_date
                else None
            ),
            "parent_transaction_id": self.parent_transaction_id,
            "next_occurrence": (
                self.next_occurrence.isoformat() if self.next_occurrence else None
            ),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_row(cls, row) -> "Transaction":
        """Create a Transaction from a database row."""
        keys = row.keys()

        def optional(column):
            return row[column] if column in keys else None

        return cls(
            id=row["id"],
            account_id=row["account_id"],
            amount=row["amount"],
            transaction_type=TransactionType(row["type"]),
            date=parse_date(row["date"]),
            description=row["description"] or "",
            category=row["category"],
            user_id=row["user_id"],
            currency=optional("currency") or CANONICAL_CURRENCY,
            is_recurring=bool(row["is_recurring"]),
            recurrence_type=RecurrenceUnit.parse(optional("recurrence_type")),
            recurrence_end_date=parse_date(optional("recurrence_end_date")),
            parent_transaction_id=optional("parent_transaction_id"),
            next_occurrence=parse_date(optional("next_occurrence")),
            created_at=parse_datetime(row["created_at"]),
        )
