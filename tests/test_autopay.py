"""Tests for debt auto-pay."""

from datetime import date, datetime

import pytest

from conftest import balance_of, count_rows, make_tx

from mizan.config import DEBT_PAYMENT_PREFIX
from mizan.db import AccountRepository, Database, DebtRepository, LedgerStore
from mizan.models import DebtStatus
from mizan.services import DebtAutoPayEvaluator, check_eligibility, payment_description


@pytest.fixture
def evaluator(db: Database, debts: DebtRepository, ledger: LedgerStore) -> DebtAutoPayEvaluator:
    return DebtAutoPayEvaluator(db, debts, ledger)


def add_debt(debts: DebtRepository, account_id, **overrides):
    values = dict(
        name="Car loan",
        initial_amount=6000.0,
        monthly_payment=500.0,
        current_amount=1500.0,
        due_date=date(2025, 12, 14),
        payment_account_id=account_id,
        auto_pay=True,
        created_at=datetime(2025, 10, 15, 9, 30),
    )
    values.update(overrides)
    return debts.create_debt(**values)


class TestCheckEligibility:
    """Test the eligibility rules."""

    def test_due_yesterday_is_eligible(self, debts: DebtRepository, account):
        debt = add_debt(debts, account.id)
        assert check_eligibility(debt, date(2025, 12, 15)).is_eligible

    def test_due_later_this_month_is_eligible(self, debts: DebtRepository, account):
        debt = add_debt(debts, account.id, due_date=date(2025, 12, 28))
        assert check_eligibility(debt, date(2025, 12, 15)).is_eligible

    def test_due_next_month_is_not(self, debts: DebtRepository, account):
        debt = add_debt(debts, account.id, due_date=date(2026, 1, 14))
        eligibility = check_eligibility(debt, date(2025, 12, 15))
        assert not eligibility.is_eligible
        assert "not reached" in eligibility.reason

    @pytest.mark.parametrize(
        "overrides, reason",
        [
            ({"auto_pay": False}, "Auto-pay is disabled"),
            ({"payment_account_id": None}, "No payment account set"),
            ({"monthly_payment": 0.0}, "No monthly payment set"),
            ({"current_amount": 0.0}, "Debt is already paid off"),
        ],
    )
    def test_ineligible_reasons(self, debts: DebtRepository, account, overrides, reason):
        debt = add_debt(debts, account.id, **overrides)
        eligibility = check_eligibility(debt, date(2025, 12, 15))
        assert not eligibility.is_eligible
        assert eligibility.reason == reason

    def test_start_next_month_skips_creation_month(self, debts: DebtRepository, account):
        debt = add_debt(
            debts,
            account.id,
            start_payment_next_month=True,
            created_at=datetime(2025, 12, 1, 8, 0),
            due_date=date(2025, 12, 10),
        )
        eligibility = check_eligibility(debt, date(2025, 12, 20))
        assert not eligibility.is_eligible
        assert eligibility.reason == "Payments start next month"

    def test_start_next_month_pays_once_due_date_reached(self, debts: DebtRepository, account):
        debt = add_debt(
            debts,
            account.id,
            start_payment_next_month=True,
            created_at=datetime(2025, 12, 1, 8, 0),
            due_date=date(2025, 12, 10),
        )
        assert check_eligibility(debt, date(2026, 1, 5)).is_eligible

    def test_start_next_month_waits_for_due_date(self, debts: DebtRepository, account):
        debt = add_debt(
            debts,
            account.id,
            start_payment_next_month=True,
            created_at=datetime(2025, 12, 1, 8, 0),
            due_date=date(2026, 1, 20),
        )
        assert not check_eligibility(debt, date(2026, 1, 5)).is_eligible


class TestEvaluateDebtAutoPay:
    """Test posting installments."""

    def test_final_installment_pays_off_debt(
        self, db: Database, debts: DebtRepository, evaluator: DebtAutoPayEvaluator, account
    ):
        debt = add_debt(debts, account.id, current_amount=500.0)

        result = evaluator.evaluate_debt_auto_pay(today=date(2025, 12, 15))

        assert result.paid == 1
        assert result.total_paid == 500
        paid = debts.require_debt(debt.id)
        assert paid.current_amount == 0
        assert paid.status == DebtStatus.PAID
        assert balance_of(db, account.id) == 500

        payments = debts.list_payments(debt.id)
        assert len(payments) == 1
        assert payments[0].payment_month == "2025-12"
        assert payments[0].transaction_id is not None

    def test_payment_is_an_expense_with_marker(
        self, debts: DebtRepository, ledger: LedgerStore, evaluator: DebtAutoPayEvaluator, account
    ):
        debt = add_debt(debts, account.id)
        payment = evaluator.evaluate_debt_auto_pay(today=date(2025, 12, 15)).payments[0]

        tx = ledger.get_transaction(payment.transaction_id)
        assert tx.amount == -500
        assert tx.description == payment_description(debt) == "Debt payment: Car loan"
        assert tx.description.startswith(DEBT_PAYMENT_PREFIX)

    def test_second_run_same_month_pays_nothing(
        self, db: Database, debts: DebtRepository, evaluator: DebtAutoPayEvaluator, account
    ):
        debt = add_debt(debts, account.id)

        first = evaluator.evaluate_debt_auto_pay(today=date(2025, 12, 15))
        second = evaluator.evaluate_debt_auto_pay(today=date(2025, 12, 28))

        assert first.paid == 1
        assert second.paid == 0
        assert second.skipped == 1
        assert debts.require_debt(debt.id).current_amount == 1000
        assert count_rows(db, "debt_payments") == 1
        assert balance_of(db, account.id) == 500

    def test_next_month_pays_again(
        self, debts: DebtRepository, evaluator: DebtAutoPayEvaluator, account
    ):
        debt = add_debt(debts, account.id)

        evaluator.evaluate_debt_auto_pay(today=date(2025, 12, 15))
        evaluator.evaluate_debt_auto_pay(today=date(2026, 1, 15))

        assert [p.payment_month for p in debts.list_payments(debt.id)] == ["2025-12", "2026-01"]

    def test_installment_capped_at_amount_owed(
        self, db: Database, debts: DebtRepository, evaluator: DebtAutoPayEvaluator, account
    ):
        add_debt(debts, account.id, current_amount=120.0)

        result = evaluator.evaluate_debt_auto_pay(today=date(2025, 12, 15))

        assert result.total_paid == 120
        assert balance_of(db, account.id) == 880

    def test_failing_debt_does_not_stop_others(
        self,
        db: Database,
        debts: DebtRepository,
        accounts: AccountRepository,
        ledger: LedgerStore,
        evaluator: DebtAutoPayEvaluator,
        account,
        cash_account,
    ):
        broken = add_debt(debts, cash_account.id, name="Phone")
        healthy = add_debt(debts, account.id, name="Car loan", due_date=date(2025, 12, 15))
        ledger.post_transaction(make_tx(cash_account.id, 5))
        accounts.delete_account(cash_account.id)

        result = evaluator.evaluate_debt_auto_pay(today=date(2025, 12, 15))

        assert result.paid == 1
        assert len(result.errors) == 1
        assert debts.list_payments(broken.id) == []
        assert debts.require_debt(broken.id).current_amount == 1500
        assert len(debts.list_payments(healthy.id)) == 1

    def test_ineligible_debts_are_skipped(
        self, debts: DebtRepository, evaluator: DebtAutoPayEvaluator, account
    ):
        add_debt(debts, account.id, auto_pay=False)
        result = evaluator.evaluate_debt_auto_pay(today=date(2025, 12, 15))
        assert result.paid == 0
        assert result.skipped == 1


class TestRefreshDebtStatuses:
    """Test status recomputation."""

    def test_past_due_month_becomes_overdue(
        self, debts: DebtRepository, evaluator: DebtAutoPayEvaluator, account
    ):
        debt = add_debt(debts, account.id, due_date=date(2025, 11, 14))

        assert evaluator.refresh_debt_statuses(today=date(2025, 12, 15)) == 1
        assert debts.require_debt(debt.id).status == DebtStatus.OVERDUE

    def test_overdue_back_to_active_when_due_again(
        self, debts: DebtRepository, evaluator: DebtAutoPayEvaluator, account
    ):
        debt = add_debt(debts, account.id, due_date=date(2025, 12, 20))
        debts.set_status(debt.id, DebtStatus.OVERDUE)

        assert evaluator.refresh_debt_statuses(today=date(2025, 12, 15)) == 1
        assert debts.require_debt(debt.id).status == DebtStatus.ACTIVE

    def test_unchanged_statuses_not_counted(
        self, debts: DebtRepository, evaluator: DebtAutoPayEvaluator, account
    ):
        add_debt(debts, account.id)
        assert evaluator.refresh_debt_statuses(today=date(2025, 12, 15)) == 0
