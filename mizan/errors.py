"""
Exception hierarchy for the ledger engine.

Anything that touches a balance rolls back its SQL transaction before one of
these propagates. Maintenance passes (column repair, diagnostics) log and
swallow their errors instead.
"""

from typing import Optional


class MizanError(Exception):
    """Base class for all ledger engine errors."""


class SchemaError(MizanError):
    """A table could not be created; the store is unusable."""

    def __init__(self, table: str, message: str):
        self.table = table
        super().__init__(f"Cannot create table '{table}': {message}")


class ColumnRepairError(MizanError):
    """Adding a canonical column failed. Logged and swallowed by repair()."""

    def __init__(self, table: str, column: str, message: str):
        self.table = table
        self.column = column
        super().__init__(f"Cannot add column '{column}' to '{table}': {message}")


class NotFoundError(MizanError):
    """A referenced row does not exist."""

    entity = "Record"

    def __init__(self, record_id, user_id: Optional[str] = None):
        self.record_id = record_id
        self.user_id = user_id
        owner = f" for user {user_id}" if user_id else ""
        super().__init__(f"{self.entity} {record_id} not found{owner}")


class AccountNotFoundError(NotFoundError):
    entity = "Account"


class TransactionNotFoundError(NotFoundError):
    entity = "Transaction"


class DebtNotFoundError(NotFoundError):
    entity = "Debt"


class TemplateNotFoundError(NotFoundError):
    entity = "Recurring template"


class DuplicateGuardViolation(MizanError):
    """
    An occurrence or a debt payment already exists for the period.

    Raised inside the materializer and the auto-pay evaluator only; callers
    count it as a skip and never see it.
    """

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Already processed: {key}")


class IntegrityViolation(MizanError):
    """The operation would leave a dangling balance delta or a broken invariant."""
