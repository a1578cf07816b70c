"""Test fixtures for the Mizan ledger engine tests."""

from datetime import date
from typing import Optional

import pytest

from mizan.db import (
    AccountRepository,
    CategoryRepository,
    Database,
    DebtRepository,
    LedgerStore,
    SchemaManager,
)
from mizan.models import AccountType, Transaction, TransactionType
from mizan.services import PreferenceStore


@pytest.fixture
def raw_db() -> Database:
    """In-memory database without any schema."""
    database = Database(":memory:")
    database.connect()
    yield database
    database.close()


@pytest.fixture
def db(raw_db: Database) -> Database:
    """In-memory database with the full schema."""
    SchemaManager(raw_db).ensure_schema()
    return raw_db


@pytest.fixture
def preferences(tmp_path) -> PreferenceStore:
    return PreferenceStore(tmp_path / "preferences.json")


@pytest.fixture
def accounts(db: Database) -> AccountRepository:
    return AccountRepository(db)


@pytest.fixture
def categories(db: Database) -> CategoryRepository:
    return CategoryRepository(db)


@pytest.fixture
def debts(db: Database) -> DebtRepository:
    return DebtRepository(db)


@pytest.fixture
def ledger(db: Database, categories: CategoryRepository) -> LedgerStore:
    return LedgerStore(db, category_repo=categories)


@pytest.fixture
def account(accounts: AccountRepository):
    """Bank account opened with 1000."""
    return accounts.create_account("Main bank", AccountType.BANK, opening_balance=1000.0)


@pytest.fixture
def cash_account(accounts: AccountRepository):
    """Cash account opened with 200."""
    return accounts.create_account("Wallet", AccountType.CASH, opening_balance=200.0)


def make_tx(
    account_id: int,
    amount: float,
    transaction_type: TransactionType = TransactionType.EXPENSE,
    on: date = date(2025, 1, 1),
    description: str = "",
    category: Optional[str] = None,
    **kwargs,
) -> Transaction:
    """Build an unposted transaction."""
    return Transaction(
        id=None,
        account_id=account_id,
        amount=amount,
        transaction_type=transaction_type,
        date=on,
        description=description,
        category=category,
        **kwargs,
    )


def balance_of(db: Database, account_id: int) -> float:
    row = db.connect().execute("SELECT balance FROM accounts WHERE id = ?", (account_id,)).fetchone()
    return row["balance"]


def count_rows(db: Database, table: str, where: str = "1 = 1", params: tuple = ()) -> int:
    row = db.connect().execute(f"SELECT COUNT(*) AS count FROM {table} WHERE {where}", params).fetchone()
    return row["count"]
