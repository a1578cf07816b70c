from .autopay import (
    AutoPayResult,
    DebtAutoPayEvaluator,
    PaymentEligibility,
    check_eligibility,
    payment_description,
)
from .currency import (
    CurrencyDetail,
    CurrencyMigrationResult,
    CurrencyMigrator,
    CurrencyReport,
    currency_descriptor,
)
from .preferences import PreferenceStore
from .reconcile import DuplicateFilter, DuplicateGroup, DuplicateReconciler, ReconcileResult
from .recurrence import RecurrenceMaterializer, RecurrenceResult, add_period, next_occurrence_date

__all__ = [
    "AutoPayResult",
    "CurrencyDetail",
    "CurrencyMigrationResult",
    "CurrencyMigrator",
    "CurrencyReport",
    "DebtAutoPayEvaluator",
    "DuplicateFilter",
    "DuplicateGroup",
    "DuplicateReconciler",
    "PaymentEligibility",
    "PreferenceStore",
    "ReconcileResult",
    "RecurrenceMaterializer",
    "RecurrenceResult",
    "add_period",
    "check_eligibility",
    "currency_descriptor",
    "next_occurrence_date",
    "payment_description",
]
