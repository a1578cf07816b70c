from .account import Account, AccountType
from .category import Category, CategoryType
from .debt import Debt, DebtPayment, DebtStatus
from .transaction import RecurrenceUnit, Transaction, TransactionType, signed_delta

__all__ = [
    "Account",
    "AccountType",
    "Category",
    "CategoryType",
    "Debt",
    "DebtPayment",
    "DebtStatus",
    "RecurrenceUnit",
    "Transaction",
    "TransactionType",
    "signed_delta",
]
