"""Tests for duplicate detection and reconciliation."""

from datetime import date

import pytest

from conftest import balance_of, count_rows, make_tx

from mizan.config import DEBT_PAYMENT_PREFIX
from mizan.db import Database, DebtRepository, LedgerStore
from mizan.models import TransactionType
from mizan.services import DuplicateFilter, DuplicateReconciler


@pytest.fixture
def reconciler(db: Database, ledger: LedgerStore) -> DuplicateReconciler:
    return DuplicateReconciler(db, ledger)


def post_copies(ledger, account_id, count, amount=100.0, on=date(2025, 1, 1), **kwargs):
    return [ledger.post_transaction(make_tx(account_id, amount, on=on, **kwargs)) for _ in range(count)]


class TestFindDuplicates:
    """Test grouping and survivor choice."""

    def test_groups_same_account_amount_and_date(
        self, ledger: LedgerStore, reconciler: DuplicateReconciler, account
    ):
        copies = post_copies(ledger, account.id, 3)
        post_copies(ledger, account.id, 1, amount=99)
        post_copies(ledger, account.id, 1, on=date(2025, 1, 2))

        groups = reconciler.find_duplicates()

        assert len(groups) == 1
        assert groups[0].keep.id == copies[0].id
        assert [t.id for t in groups[0].remove] == [copies[1].id, copies[2].id]

    def test_different_accounts_not_grouped(
        self, ledger: LedgerStore, reconciler: DuplicateReconciler, account, cash_account
    ):
        post_copies(ledger, account.id, 1)
        post_copies(ledger, cash_account.id, 1)
        assert reconciler.find_duplicates() == []

    def test_marker_row_survives(self, ledger: LedgerStore, reconciler: DuplicateReconciler, account):
        post_copies(ledger, account.id, 2, description="Car loan")
        marked = ledger.post_transaction(
            make_tx(account.id, 100, description="Debt payment: Car loan")
        )

        group = reconciler.find_duplicates()[0]

        assert group.keep.id == marked.id
        assert len(group.remove) == 2

    def test_default_marker_is_debt_payment_prefix(self):
        assert DuplicateFilter().keep_marker == DEBT_PAYMENT_PREFIX

    def test_income_and_expense_of_same_size_not_grouped(
        self, ledger: LedgerStore, reconciler: DuplicateReconciler, account
    ):
        post_copies(ledger, account.id, 1, transaction_type=TransactionType.INCOME)
        post_copies(ledger, account.id, 1)
        assert reconciler.find_duplicates() == []

    def test_find_writes_nothing(
        self, db: Database, ledger: LedgerStore, reconciler: DuplicateReconciler, account
    ):
        post_copies(ledger, account.id, 3)
        reconciler.find_duplicates()
        assert count_rows(db, "transactions") == 3
        assert balance_of(db, account.id) == 700


class TestReconcileDuplicates:
    """Test deletion with balance reversal."""

    def test_mixed_income_and_expense_survive(
        self, db: Database, ledger: LedgerStore, reconciler: DuplicateReconciler, account
    ):
        post_copies(ledger, account.id, 1, transaction_type=TransactionType.INCOME)
        post_copies(ledger, account.id, 1)

        result = reconciler.reconcile_duplicates()

        assert result.deleted == 0
        assert count_rows(db, "transactions") == 2
        assert balance_of(db, account.id) == 1000

    def test_extra_expenses_refunded(
        self, db: Database, ledger: LedgerStore, reconciler: DuplicateReconciler, account
    ):
        post_copies(ledger, account.id, 3)
        assert balance_of(db, account.id) == 700

        result = reconciler.reconcile_duplicates()

        assert result.deleted == 2
        assert result.refunded == 200
        assert result.groups == 1
        assert balance_of(db, account.id) == 900
        assert count_rows(db, "transactions") == 1

    def test_duplicate_income_reversed(
        self, db: Database, ledger: LedgerStore, reconciler: DuplicateReconciler, account
    ):
        post_copies(ledger, account.id, 2, amount=300, transaction_type=TransactionType.INCOME)
        assert balance_of(db, account.id) == 1600

        result = reconciler.reconcile_duplicates()

        assert result.refunded == 300
        assert balance_of(db, account.id) == 1300

    def test_second_pass_finds_nothing(
        self, ledger: LedgerStore, reconciler: DuplicateReconciler, account
    ):
        post_copies(ledger, account.id, 3)
        reconciler.reconcile_duplicates()

        result = reconciler.reconcile_duplicates()

        assert result.deleted == 0
        assert result.refunded == 0

    def test_filter_limits_scope(
        self, db: Database, ledger: LedgerStore, reconciler: DuplicateReconciler, account, cash_account
    ):
        post_copies(ledger, account.id, 2)
        post_copies(ledger, cash_account.id, 2, amount=20)

        result = reconciler.reconcile_duplicates(DuplicateFilter(account_id=cash_account.id))

        assert result.deleted == 1
        assert balance_of(db, cash_account.id) == 180
        assert balance_of(db, account.id) == 800

    def test_date_filter(self, db: Database, ledger: LedgerStore, reconciler: DuplicateReconciler, account):
        post_copies(ledger, account.id, 2, on=date(2025, 1, 1))
        post_copies(ledger, account.id, 2, on=date(2025, 3, 1))

        result = reconciler.reconcile_duplicates(DuplicateFilter(date_from="2025-02-01"))

        assert result.deleted == 1
        assert count_rows(db, "transactions", "date = ?", ("2025-01-01",)) == 2

    def test_payment_link_cleared(
        self, db: Database, ledger: LedgerStore, debts: DebtRepository, reconciler: DuplicateReconciler, account
    ):
        first, second = post_copies(ledger, account.id, 2)
        debt = debts.create_debt("Phone", 1200, 100, date(2025, 1, 1), payment_account_id=account.id)
        payment = debts.insert_payment(debt, 100, date(2025, 1, 1), transaction_id=second.id)

        reconciler.reconcile_duplicates(DuplicateFilter(keep_marker=None))

        assert ledger.get_transaction(second.id) is None
        assert debts.get_payment(debt.id, "2025-01").transaction_id is None
        assert payment.id == debts.list_payments(debt.id)[0].id
