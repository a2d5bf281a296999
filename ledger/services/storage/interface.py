"""
Abstract Storage Interface

The managers talk to the store only through `LedgerQueriesInterface`. An
instance is always bound to one open store transaction: everything done
through it commits or rolls back together. Implementations obtain one
from `LedgerDatabaseInterface.transaction()`.

Conventions shared by every implementation:
- Reads scoped by owner return None when the row is missing OR belongs to
  another user; the managers turn that into NotFoundError.
- Conditional writes return the number of affected rows; the managers
  decide whether zero means NotFound or EditConflict.
- Every successful write increments the row's `version`.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import date, datetime
from typing import Optional

from ledger.models.ledger import (
    Account,
    Category,
    RecurringTransaction,
    Transaction,
    User,
)


class LedgerQueriesInterface(ABC):
    """Row-level operations available inside one store transaction."""

    # -------------------------------------------------------------------------
    # Users and tokens
    # -------------------------------------------------------------------------

    @abstractmethod
    def create_user(self, username: str, name: str, password_hash: str) -> User:
        """
        Insert a user.

        Raises:
            DuplicateIdentifierError: If the username is taken (on commit or insert)
        """
        pass

    @abstractmethod
    def get_user_by_id(self, user_id: int) -> Optional[User]:
        pass

    @abstractmethod
    def get_user_by_username(self, username: str) -> Optional[User]:
        pass

    @abstractmethod
    def update_user(
        self,
        user_id: int,
        version: int,
        name: str,
        password_hash: str,
    ) -> int:
        """Conditional write keyed on version. Returns affected rows."""
        pass

    @abstractmethod
    def delete_user(self, user_id: int) -> int:
        pass

    @abstractmethod
    def create_token(self, token_hash: bytes, user_id: int, expiry: datetime) -> None:
        pass

    @abstractmethod
    def get_user_for_token(self, token_hash: bytes, now: datetime) -> Optional[User]:
        """Return the user owning an unexpired token with this hash."""
        pass

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    @abstractmethod
    def create_category(
        self,
        user_id: int,
        name: str,
        color: str,
        icon: str,
        is_initial: bool = False,
    ) -> Category:
        pass

    @abstractmethod
    def list_categories(self, user_ids: list[int]) -> list[Category]:
        """Categories owned by any of `user_ids`, in insertion order."""
        pass

    @abstractmethod
    def get_category_by_id(self, category_id: int, user_id: int) -> Optional[Category]:
        pass

    @abstractmethod
    def get_initial_category(self, user_id: int) -> Optional[Category]:
        pass

    @abstractmethod
    def update_category(
        self,
        category_id: int,
        user_id: int,
        version: int,
        name: str,
        color: str,
        icon: str,
    ) -> int:
        """Conditional write keyed on version. Returns affected rows."""
        pass

    @abstractmethod
    def delete_category(self, category_id: int, user_id: int) -> int:
        pass

    @abstractmethod
    def count_category_references(self, category_id: int) -> int:
        """Number of transactions and recurring templates using the category."""
        pass

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    @abstractmethod
    def create_account(self, user_id: int, name: str, account_type: str) -> Account:
        """Insert an account with a zero balance."""
        pass

    @abstractmethod
    def list_accounts(self, user_id: int) -> list[Account]:
        pass

    @abstractmethod
    def get_account_by_id(self, account_id: int, user_id: int) -> Optional[Account]:
        pass

    @abstractmethod
    def get_account_balance(self, account_id: int, user_id: int) -> Optional[int]:
        """The cached balance, never a recomputation."""
        pass

    @abstractmethod
    def update_account(
        self,
        account_id: int,
        user_id: int,
        version: int,
        name: str,
        account_type: str,
    ) -> int:
        """Conditional write keyed on version. Returns affected rows."""
        pass

    @abstractmethod
    def delete_account(self, account_id: int, user_id: int) -> int:
        pass

    @abstractmethod
    def adjust_balance(self, account_id: int, user_id: int, delta_cents: int) -> int:
        """
        Add `delta_cents` to the cached balance.

        Returns affected rows (0 if the account is gone or not owned).
        """
        pass

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @abstractmethod
    def create_transaction(
        self,
        user_id: int,
        account_id: int,
        category_id: int,
        amount_cents: int,
        title: str,
        date: Optional[datetime] = None,
        attachment: Optional[str] = None,
        note: Optional[str] = None,
    ) -> Transaction:
        """
        Insert a transaction row. Does NOT touch the account balance.

        Raises:
            InvalidReferenceError: If the account or category does not exist
        """
        pass

    @abstractmethod
    def list_transactions(self, user_id: int) -> list[Transaction]:
        pass

    @abstractmethod
    def list_account_transactions(self, account_id: int, user_id: int) -> list[Transaction]:
        pass

    @abstractmethod
    def get_transaction_by_id(self, transaction_id: int, user_id: int) -> Optional[Transaction]:
        pass

    @abstractmethod
    def update_transaction(self, transaction: Transaction, version: int) -> int:
        """
        Write every mutable field of `transaction` where id, owner and
        `version` match. Returns affected rows.
        """
        pass

    @abstractmethod
    def delete_transaction(self, transaction_id: int, user_id: int, version: int) -> int:
        """Delete where id, owner and `version` match. Returns affected rows."""
        pass

    # -------------------------------------------------------------------------
    # Recurring transactions
    # -------------------------------------------------------------------------

    @abstractmethod
    def create_recurring_transaction(
        self,
        user_id: int,
        account_id: int,
        category_id: int,
        title: str,
        amount_cents: int,
        note: Optional[str],
        frequency: str,
        interval: int,
        start_date: date,
        end_date: Optional[date],
        day_of_month: Optional[int],
        day_of_week: Optional[int],
        max_occurrences: Optional[int],
        is_active: bool,
    ) -> RecurringTransaction:
        pass

    @abstractmethod
    def list_recurring_transactions(self, user_id: int) -> list[RecurringTransaction]:
        pass


class LedgerDatabaseInterface(ABC):
    """Hands out transaction-bound query objects."""

    @abstractmethod
    def transaction(self) -> AbstractContextManager[LedgerQueriesInterface]:
        """
        Open a store transaction.

        Commits when the block exits normally; rolls back on any exception.
        Store failures leave the block as LedgerError subclasses:
        integrity violations classified by constraint name, anything else
        as InternalError.
        """
        pass
