"""
Account model.

An account's balance is a cached projection of its posted transactions:
it only ever moves together with a transaction insert or delete.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from mizan.config import CANONICAL_CURRENCY, DEFAULT_USER_ID
from mizan.dates import parse_datetime


class AccountType(str, Enum):
    """Kinds of money holders a user can track."""

    CASH = "cash"
    BANK = "bank"
    CARD = "card"
    SAVINGS = "savings"


@dataclass
class Account:
    """
    Represents a user account.

    Attributes:
        id: Database ID
        name: Display name
        account_type: Kind of account
        balance: Cached balance, moved only by posted transactions
        opening_balance: Balance before any posted transaction
        currency: ISO currency code
        user_id: Owner
        is_active: False once soft-deleted
        created_at: When the account was created
    """

    id: Optional[int]
    name: str
    account_type: AccountType
    balance: float = 0.0
    opening_balance: float = 0.0
    currency: str = CANONICAL_CURRENCY
    user_id: str = DEFAULT_USER_ID
    is_active: bool = True
    created_at: Optional[datetime] = None

    def __post_init__(self):
        """Normalize the display name."""
        if self.name:
            self.name = self.name.strip()

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "name": self.name,
            "account_type": self.account_type.value,
            "balance": self.balance,
            "opening_balance": self.opening_balance,
            "currency": self.currency,
            "user_id": self.user_id,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_row(cls, row) -> "Account":
        """Create an Account from a database row."""
        keys = row.keys()
        return cls(
            id=row["id"],
            name=row["name"],
            account_type=AccountType(row["type"]),
            balance=row["balance"] or 0.0,
            opening_balance=(
                row["opening_balance"] or 0.0 if "opening_balance" in keys else 0.0
            ),
            currency=row["currency"] or CANONICAL_CURRENCY,
            user_id=row["user_id"],
            is_active=bool(row["is_active"]),
            created_at=parse_datetime(row["created_at"]),
        )
