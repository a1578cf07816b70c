"""
Debt models.

A Debt is repaid in monthly installments; each accepted installment leaves
exactly one DebtPayment row for its calendar month.
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional

from mizan.config import CANONICAL_CURRENCY, DEFAULT_USER_ID
from mizan.dates import month_key, parse_date, parse_datetime


class DebtStatus(str, Enum):
    ACTIVE = "active"
    PAID = "paid"
    OVERDUE = "overdue"


@dataclass
class Debt:
    """
    Represents a debt tracked by the user.

    Attributes:
        id: Database ID
        name: Display name
        initial_amount: Amount originally owed
        current_amount: Amount still owed
        monthly_payment: Installment posted by auto-pay
        due_date: Installment due date
        payment_account_id: Account debited by auto-pay
        auto_pay: Whether installments are posted automatically
        start_payment_next_month: Skip the month the debt was created in
        status: active, paid or overdue
        creditor: Who is owed
        interest_rate: Yearly rate in percent, informational
        currency: ISO currency code
        user_id: Owner
        created_at: When the debt was recorded
    """

    id: Optional[int]
    name: str
    initial_amount: float
    current_amount: float
    monthly_payment: float
    due_date: date
    payment_account_id: Optional[int] = None
    auto_pay: bool = False
    start_payment_next_month: bool = False
    status: DebtStatus = DebtStatus.ACTIVE
    creditor: str = ""
    interest_rate: float = 0.0
    currency: str = CANONICAL_CURRENCY
    user_id: str = DEFAULT_USER_ID
    created_at: Optional[datetime] = None

    @property
    def due_month(self) -> str:
        """YYYY-MM of the due date. Derived so it can never go stale."""
        return month_key(self.due_date)

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "name": self.name,
            "initial_amount": self.initial_amount,
            "current_amount": self.current_amount,
            "monthly_payment": self.monthly_payment,
            "due_date": self.due_date.isoformat(),
            "due_month": self.due_month,
            "payment_account_id": self.payment_account_id,
            "auto_pay": self.auto_pay,
            "start_payment_next_month": self.start_payment_next_month,
            "status": self.status.value,
            "creditor": self.creditor,
            "interest_rate": self.interest_rate,
            "currency": self.currency,
            "user_id": self.user_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_row(cls, row) -> "Debt":
        """Create a Debt from a database row."""
        keys = row.keys()
        return cls(
            id=row["id"],
            name=row["name"],
            initial_amount=row["initial_amount"],
            current_amount=row["current_amount"],
            monthly_payment=row["monthly_payment"] or 0.0,
            due_date=parse_date(row["due_date"]),
            payment_account_id=row["payment_account_id"],
            auto_pay=bool(row["auto_pay"]),
            start_payment_next_month=bool(row["start_payment_next_month"]),
            status=DebtStatus(row["status"]),
            creditor=row["creditor"] or "",
            interest_rate=row["interest_rate"] or 0.0,
            currency=(row["currency"] if "currency" in keys else None)
            or CANONICAL_CURRENCY,
            user_id=row["user_id"],
            created_at=parse_datetime(row["created_at"]),
        )


@dataclass
class DebtPayment:
    """One installment of a debt; unique per (debt_id, payment_month)."""

    id: Optional[int]
    debt_id: int
    amount: float
    payment_date: date
    payment_month: str
    from_account_id: Optional[int] = None
    transaction_id: Optional[int] = None
    user_id: str = DEFAULT_USER_ID
    created_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "debt_id": self.debt_id,
            "amount": self.amount,
            "payment_date": self.payment_date.isoformat(),
            "payment_month": self.payment_month,
            "from_account_id": self.from_account_id,
            "transaction_id": self.transaction_id,
            "user_id": self.user_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_row(cls, row) -> "DebtPayment":
        """Create a DebtPayment from a database row."""
        return cls(
            id=row["id"],
            debt_id=row["debt_id"],
            amount=row["amount"],
            payment_date=parse_date(row["payment_date"]),
            payment_month=row["payment_month"],
            from_account_id=row["from_account_id"],
            transaction_id=row["transaction_id"],
            user_id=row["user_id"],
            created_at=parse_datetime(row["created_at"]),
        )
