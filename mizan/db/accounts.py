"""
Accounts repository module.

Handles account creation, lookups and deletion. Balances are never written
here after creation; only the ledger store moves them.
"""

import logging
from typing import Optional

from mizan.config import CANONICAL_CURRENCY, DEFAULT_USER_ID, MAX_ACCOUNT_NAME_LENGTH, MONEY_PRECISION
from mizan.dates import utc_now
from mizan.errors import AccountNotFoundError
from mizan.models import Account, AccountType

from .base import BaseRepository

logger = logging.getLogger(__name__)


class AccountRepository(BaseRepository):
    """Repository for managing user accounts."""

    def create_account(
        self,
        name: str,
        account_type: AccountType = AccountType.CASH,
        opening_balance: float = 0.0,
        user_id: str = DEFAULT_USER_ID,
        currency: str = CANONICAL_CURRENCY,
    ) -> Account:
        """
        Create a new account.

        Args:
            name: Display name
            account_type: Kind of account
            opening_balance: Starting balance, also the initial cached balance
            user_id: Owner
            currency: ISO currency code

        Returns:
            The created Account

        Raises:
            ValueError: If inputs are invalid or the name is taken
        """
        if not name or not name.strip():
            raise ValueError("Account name cannot be empty")
        if len(name.strip()) > MAX_ACCOUNT_NAME_LENGTH:
            raise ValueError(f"Account name longer than {MAX_ACCOUNT_NAME_LENGTH} characters")
        if not user_id:
            raise ValueError("User ID cannot be empty")

        name = name.strip()
        account_type = AccountType(account_type)
        opening_balance = round(opening_balance, MONEY_PRECISION)
        created_at = utc_now()

        with self.db.transaction() as conn:
            cursor = conn.execute(
                """
                SELECT id FROM accounts
                WHERE LOWER(name) = LOWER(?) AND user_id = ? AND is_active = 1
                """,
                (name, user_id),
            )
            if cursor.fetchone():
                raise ValueError(f"Account '{name}' already exists")

            cursor = conn.execute(
                """
                INSERT INTO accounts
                    (user_id, name, type, balance, opening_balance, currency, is_active, created_at)
                VALUES (?, ?, ?, ?, ?, ?, 1, ?)
                """,
                (
                    user_id,
                    name,
                    account_type.value,
                    opening_balance,
                    opening_balance,
                    currency,
                    created_at.isoformat(),
                ),
            )
            account_id = cursor.lastrowid

        logger.info(f"Created account '{name}' ({account_type.value}) for user {user_id}")
        return Account(
            id=account_id,
            name=name,
            account_type=account_type,
            balance=opening_balance,
            opening_balance=opening_balance,
            currency=currency,
            user_id=user_id,
            created_at=created_at,
        )

    def get_account(self, account_id: int, user_id: Optional[str] = None) -> Optional[Account]:
        """Get an account by ID, optionally restricted to an owner."""
        sql = "SELECT * FROM accounts WHERE id = ?"
        params: list = [account_id]
        if user_id is not None:
            sql += " AND user_id = ?"
            params.append(user_id)
        row = self._conn().execute(sql, params).fetchone()
        return Account.from_row(row) if row else None

    def require_account(self, account_id: int, user_id: Optional[str] = None) -> Account:
        """
        Get an active account or fail.

        Raises:
            AccountNotFoundError: If the account is missing or soft-deleted
        """
        account = self.get_account(account_id, user_id)
        if account is None or not account.is_active:
            raise AccountNotFoundError(account_id, user_id)
        return account

    def list_accounts(
        self, user_id: str = DEFAULT_USER_ID, include_inactive: bool = False
    ) -> list[Account]:
        sql = "SELECT * FROM accounts WHERE user_id = ?"
        if not include_inactive:
            sql += " AND is_active = 1"
        sql += " ORDER BY name"
        rows = self._conn().execute(sql, (user_id,)).fetchall()
        return [Account.from_row(row) for row in rows]

    def delete_account(self, account_id: int, user_id: str = DEFAULT_USER_ID) -> bool:
        """
        Delete an account.

        An account still referenced by transactions is only deactivated, so
        its history and balance stay consistent.

        Returns:
            True if the row was removed, False if it was soft-deleted

        Raises:
            AccountNotFoundError: If the account does not exist
        """
        with self.db.transaction() as conn:
            row = conn.execute(
                "SELECT id FROM accounts WHERE id = ? AND user_id = ?",
                (account_id, user_id),
            ).fetchone()
            if row is None:
                raise AccountNotFoundError(account_id, user_id)

            referenced = conn.execute(
                "SELECT 1 FROM transactions WHERE account_id = ? LIMIT 1", (account_id,)
            ).fetchone()
            if referenced:
                conn.execute("UPDATE accounts SET is_active = 0 WHERE id = ?", (account_id,))
                logger.info(f"Deactivated account {account_id} (has transactions)")
                return False

            conn.execute("DELETE FROM accounts WHERE id = ?", (account_id,))
            logger.info(f"Deleted account {account_id}")
            return True
