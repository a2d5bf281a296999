"""
Account Manager

An account's `balance_cents` is the authoritative cached sum of its
transactions. It is only ever changed by the managers, in the same store
transaction as the transaction rows it reflects, and is never recomputed.

Opening an account writes three rows atomically: the account, its opening
transaction in the user's initial category, and the balance adjustment.
"""

from typing import Optional

from ledger.errors import NotFoundError
from ledger.models.ledger import (
    ACCOUNT_TYPES,
    OPENING_TRANSACTION_TITLE,
    Account,
    AccountPatch,
    AccountType,
)
from ledger.services.base import BaseManager, require_ids
from ledger.services.category_service import ensure_initial_category
from ledger.services.transaction_service import AMOUNT_OUT_OF_RANGE
from ledger.validation import Validator, in_int64, max_length, non_zero, permitted_value


def validate_account(v: Validator, name: str, account_type: str, user_id: int) -> None:
    v.check(non_zero(name), "name", "Must be provided")
    v.check(max_length(name, 50), "name", "Must not be more than 50 bytes long")

    v.check(non_zero(account_type), "type", "Must be provided")
    v.check(
        permitted_value(account_type, *ACCOUNT_TYPES),
        "type",
        "Invalid account type. Valid types are credit, debit, and cash",
    )

    v.check(non_zero(user_id), "user_id", "Must be provided")


def _type_value(account_type) -> Optional[str]:
    if isinstance(account_type, AccountType):
        return account_type.value
    return account_type


class AccountManager(BaseManager):
    """Open, list, rename and close a user's accounts."""

    def create(
        self,
        user_id: int,
        account_type: str,
        name: str,
        initial_balance_cents: int = 0,
    ) -> Account:
        """
        Open an account with an opening transaction for `initial_balance_cents`.

        Raises:
            ValidationFailedError: If the name or type is invalid
            NotFoundError: If the user does not exist
        """
        account_type = _type_value(account_type)

        v = Validator()
        validate_account(v, name, account_type, user_id)
        v.check(in_int64(initial_balance_cents), "initial_balance_cents", AMOUNT_OUT_OF_RANGE)
        v.raise_if_invalid()

        with self._db.transaction() as q:
            initial = ensure_initial_category(q, user_id)
            account = q.create_account(user_id, name, account_type)
            opening = q.create_transaction(
                user_id,
                account.id,
                initial.id,
                initial_balance_cents,
                OPENING_TRANSACTION_TITLE,
            )
            self._adjust_balance(q, account.id, user_id, initial_balance_cents)
            account = q.get_account_by_id(account.id, user_id)

        if self._audit_logger:
            self._audit_logger.log_account_created(
                account_id=account.id,
                user_id=user_id,
                name=name,
                account_type=account_type,
                initial_balance_cents=initial_balance_cents,
            )
            self._audit_logger.log_transaction_created(
                transaction_id=opening.id,
                user_id=user_id,
                account_id=account.id,
                amount_cents=initial_balance_cents,
            )
        return account

    def get_all(self, user_id: int) -> list[Account]:
        with self._db.transaction() as q:
            return q.list_accounts(user_id)

    def get_by_id(self, account_id: int, user_id: int) -> Account:
        require_ids(account_id, user_id)

        with self._db.transaction() as q:
            account = q.get_account_by_id(account_id, user_id)
        if account is None:
            raise NotFoundError()
        return account

    def get_sum_balance(self, account_id: int, user_id: int) -> int:
        """The cached balance in cents."""
        require_ids(account_id, user_id)

        with self._db.transaction() as q:
            balance = q.get_account_balance(account_id, user_id)
        if balance is None:
            raise NotFoundError()
        return balance

    def delete_by_id(self, account_id: int, user_id: int) -> None:
        """Close an account; its transactions go with it."""
        require_ids(account_id, user_id)

        with self._db.transaction() as q:
            if q.delete_account(account_id, user_id) == 0:
                raise NotFoundError()

        if self._audit_logger:
            self._audit_logger.log_account_deleted(account_id, user_id)

    def update_by_id(
        self,
        account_id: int,
        user_id: int,
        patch: AccountPatch,
        expected_version: Optional[int] = None,
    ) -> Account:
        require_ids(account_id, user_id)

        with self._db.transaction() as q:
            account = q.get_account_by_id(account_id, user_id)
            if account is None:
                raise NotFoundError()

            version = account.version if expected_version is None else expected_version
            updated = patch.apply(account)
            account_type = _type_value(updated.type)

            v = Validator()
            validate_account(v, updated.name, account_type, user_id)
            v.raise_if_invalid()

            rows = q.update_account(account_id, user_id, version, updated.name, account_type)
            if rows == 0:
                raise self._conflict("account", account_id, user_id, version)

            account = q.get_account_by_id(account_id, user_id)

        if self._audit_logger:
            self._audit_logger.log_account_updated(account_id, user_id, account.version)
        return account
