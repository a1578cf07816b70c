"""
Database module for the Mizan ledger.

Structure:
- base.py: Store owning the connection, explicit transactions
- ddl.py: Table definitions and canonical column lists
- migrations.py: Versioned migration ledger
- schema.py: Schema creation, diagnosis and repair
- taxonomy.py / categories.py: Default categories and their installer
- accounts.py: Accounts
- transactions.py: Ledger store bound to account balances
- debts.py: Debts and monthly debt payments
"""

from .accounts import AccountRepository
from .base import BaseRepository, Database
from .categories import CategoryRepository
from .debts import DebtRepository
from .migrations import MIGRATIONS, apply_migrations, current_version, pending_migrations
from .schema import (
    DatabaseDiagnosis,
    RepairResult,
    SchemaManager,
    SchemaReport,
    TableDiagnosis,
    diagnose,
    ensure_schema,
)
from .transactions import BalanceDrift, LedgerStore

__all__ = [
    # Store
    "BaseRepository",
    "Database",
    # Schema
    "DatabaseDiagnosis",
    "MIGRATIONS",
    "RepairResult",
    "SchemaManager",
    "SchemaReport",
    "TableDiagnosis",
    "apply_migrations",
    "current_version",
    "diagnose",
    "ensure_schema",
    "pending_migrations",
    # Repositories
    "AccountRepository",
    "BalanceDrift",
    "CategoryRepository",
    "DebtRepository",
    "LedgerStore",
]
