"""
Mizan - Ledger consistency and maintenance engine

Keeps a local personal-finance SQLite ledger consistent: schema repair,
category installation, balance-safe posting, recurring transactions,
debt auto-pay, duplicate cleanup and currency normalization.
"""

from .db import (
    AccountRepository,
    CategoryRepository,
    Database,
    DebtRepository,
    LedgerStore,
    SchemaManager,
    ensure_schema,
)
from .errors import (
    AccountNotFoundError,
    ColumnRepairError,
    DuplicateGuardViolation,
    IntegrityViolation,
    MizanError,
    SchemaError,
    TransactionNotFoundError,
)
from .maintenance import MaintenanceRunner, StartupReport
from .models import Account, Category, Debt, DebtPayment, Transaction, TransactionType

__version__ = "0.1.0"

__all__ = [
    # Store
    "AccountRepository",
    "CategoryRepository",
    "Database",
    "DebtRepository",
    "LedgerStore",
    "SchemaManager",
    "ensure_schema",
    # Maintenance
    "MaintenanceRunner",
    "StartupReport",
    # Models
    "Account",
    "Category",
    "Debt",
    "DebtPayment",
    "Transaction",
    "TransactionType",
    # Errors
    "AccountNotFoundError",
    "ColumnRepairError",
    "DuplicateGuardViolation",
    "IntegrityViolation",
    "MizanError",
    "SchemaError",
    "TransactionNotFoundError",
]
