"""
Transaction Manager

Every mutating call follows the same protocol inside ONE store transaction:

    begin -> read / validate -> ownership check -> write(s)
          -> balance adjustment(s) -> commit

Any exception rolls back everything, so an account's cached balance and
its transaction rows can never disagree.

A transfer between accounts is simply an update that changes
`account_id`: the old amount is reversed on the old account and the new
amount applied to the new one.
"""

from typing import Optional

from ledger.audit import AuditLogger
from ledger.errors import InvalidReferenceError, NotFoundError
from ledger.models.ledger import (
    REFUND_TITLE_FORMAT,
    Transaction,
    TransactionCreate,
    TransactionPatch,
)
from ledger.services.base import BaseManager, require_ids
from ledger.services.category_service import initial_category_id, visible_category
from ledger.services.storage import LedgerDatabaseInterface
from ledger.validation import Validator, in_int64, non_zero

AMOUNT_OUT_OF_RANGE = "Must fit in a signed 64-bit integer"


def validate_transaction(
    v: Validator,
    account_id: Optional[int],
    category_id: Optional[int],
    title: Optional[str],
    amount_cents: Optional[int],
) -> None:
    v.check(non_zero(account_id), "account_id", "Must be provided")
    v.check(non_zero(category_id), "category_id", "Must be provided")
    v.check(non_zero(title), "title", "Must be provided")
    v.check(amount_cents is not None, "amount_cents", "Must be provided")
    v.check(in_int64(amount_cents), "amount_cents", AMOUNT_OUT_OF_RANGE)


class TransactionManager(BaseManager):
    """Record, edit, move, refund and remove transactions."""

    def __init__(
        self,
        db: LedgerDatabaseInterface,
        audit_logger: Optional[AuditLogger] = None,
        system_user_id: Optional[int] = None,
    ):
        super().__init__(db, audit_logger)
        self._system_user_id = system_user_id

    def create(self, user_id: int, params: TransactionCreate) -> Transaction:
        """
        Record a transaction and apply its amount to the account balance.

        Raises:
            ProtectedEntityError: If the category is the initial category
            NotFoundError: If the account is missing or not owned
            InvalidReferenceError: If the category is not visible to the user
            ValidationFailedError: If a required field is missing
        """
        require_ids(user_id)

        with self._db.transaction() as q:
            if params.category_id == initial_category_id(q, user_id):
                raise self._reject(
                    "category", params.category_id, user_id, "create_transaction",
                    "Can't create transaction with initial category",
                )
            if params.category_id <= 0:
                raise NotFoundError()

            v = Validator()
            validate_transaction(
                v, params.account_id, params.category_id, params.title, params.amount_cents
            )
            v.raise_if_invalid()

            account = q.get_account_by_id(params.account_id, user_id)
            if account is None:
                raise NotFoundError()

            category = visible_category(q, params.category_id, user_id, self._system_user_id)
            if category is None:
                raise InvalidReferenceError("category")
            if category.is_initial:
                raise self._reject(
                    "category", category.id, user_id, "create_transaction",
                    "Can't create transaction with initial category",
                )

            transaction = q.create_transaction(
                account.user_id,
                account.id,
                category.id,
                params.amount_cents,
                params.title,
                date=params.date,
                attachment=params.attachment,
                note=params.note,
            )
            self._adjust_balance(q, account.id, user_id, transaction.amount_cents)

        if self._audit_logger:
            self._audit_logger.log_transaction_created(
                transaction_id=transaction.id,
                user_id=user_id,
                account_id=transaction.account_id,
                amount_cents=transaction.amount_cents,
            )
        return transaction

    def get_all(self, user_id: int) -> list[Transaction]:
        with self._db.transaction() as q:
            return q.list_transactions(user_id)

    def get_all_for_account(self, account_id: int, user_id: int) -> list[Transaction]:
        """
        Transactions of one account.

        Every account holds at least its opening transaction, so an empty
        result means the account is missing or not owned.
        """
        require_ids(account_id, user_id)

        with self._db.transaction() as q:
            transactions = q.list_account_transactions(account_id, user_id)
        if not transactions:
            raise NotFoundError()
        return transactions

    def get_by_id(self, transaction_id: int, user_id: int) -> Transaction:
        require_ids(transaction_id, user_id)

        with self._db.transaction() as q:
            transaction = q.get_transaction_by_id(transaction_id, user_id)
        if transaction is None:
            raise NotFoundError()
        return transaction

    def delete_by_id(self, transaction_id: int, user_id: int) -> None:
        """
        Remove a transaction and reverse its amount on the account.

        Raises:
            NotFoundError: If the transaction is missing or not owned
            ProtectedEntityError: For an opening transaction
            EditConflictError: If the row changed after it was read
        """
        require_ids(transaction_id, user_id)

        with self._db.transaction() as q:
            transaction = q.get_transaction_by_id(transaction_id, user_id)
            if transaction is None:
                raise NotFoundError()

            if transaction.category_id == initial_category_id(q, user_id):
                raise self._reject(
                    "transaction", transaction_id, user_id, "delete",
                    "Can't delete initial transaction",
                )

            if q.delete_transaction(transaction_id, user_id, transaction.version) == 0:
                raise self._conflict("transaction", transaction_id, user_id, transaction.version)

            self._adjust_balance(q, transaction.account_id, user_id, -transaction.amount_cents)

        if self._audit_logger:
            self._audit_logger.log_transaction_deleted(
                transaction_id=transaction_id,
                user_id=user_id,
                account_id=transaction.account_id,
                amount_cents=transaction.amount_cents,
            )

    def update_by_id(
        self,
        transaction_id: int,
        user_id: int,
        patch: TransactionPatch,
        expected_version: Optional[int] = None,
    ) -> Transaction:
        """
        Apply `patch` to a transaction, moving money between balances as needed.

        The old amount is reversed on the old account and the new amount
        applied to the new account, so a changed amount, a changed account,
        or both are all handled the same way.

        Raises:
            NotFoundError: If the transaction or the new account is not owned
            ProtectedEntityError: If the patch moves a transaction into the
                initial category, or the opening transaction out of it or
                onto another account
            InvalidReferenceError: If the new category is not visible
            ValidationFailedError: If the patched transaction is invalid
            EditConflictError: If the version no longer matches
        """
        require_ids(transaction_id, user_id)

        with self._db.transaction() as q:
            transaction = q.get_transaction_by_id(transaction_id, user_id)
            if transaction is None:
                raise NotFoundError()

            old_account_id = transaction.account_id
            old_amount_cents = transaction.amount_cents
            version = transaction.version if expected_version is None else expected_version

            updated = patch.apply(transaction)

            initial_id = initial_category_id(q, user_id)
            if transaction.category_id == initial_id and updated.category_id != initial_id:
                raise self._reject(
                    "transaction", transaction_id, user_id, "update",
                    "Can't change the category of the initial transaction",
                )
            if transaction.category_id == initial_id and updated.account_id != old_account_id:
                raise self._reject(
                    "transaction", transaction_id, user_id, "update",
                    "Can't move the initial transaction to another account",
                )
            if transaction.category_id != initial_id and updated.category_id == initial_id:
                raise self._reject(
                    "transaction", transaction_id, user_id, "update",
                    "Can't move transaction to initial category",
                )

            v = Validator()
            validate_transaction(
                v, updated.account_id, updated.category_id, updated.title, updated.amount_cents
            )
            v.check(updated.date is not None, "date", "Must be provided")
            v.raise_if_invalid()

            if updated.account_id != old_account_id:
                if q.get_account_by_id(updated.account_id, user_id) is None:
                    raise NotFoundError()

            if updated.category_id != transaction.category_id:
                category = visible_category(q, updated.category_id, user_id, self._system_user_id)
                if category is None:
                    raise InvalidReferenceError("category")
                if category.is_initial:
                    raise self._reject(
                        "transaction", transaction_id, user_id, "update",
                        "Can't move transaction to initial category",
                    )

            if q.update_transaction(updated, version) == 0:
                raise self._conflict("transaction", transaction_id, user_id, version)

            self._adjust_balance(q, old_account_id, user_id, -old_amount_cents)
            self._adjust_balance(q, updated.account_id, user_id, updated.amount_cents)

            transaction = q.get_transaction_by_id(transaction_id, user_id)

        if self._audit_logger:
            self._audit_logger.log_transaction_updated(
                transaction_id=transaction_id,
                user_id=user_id,
                old_account_id=old_account_id,
                old_amount_cents=old_amount_cents,
                new_account_id=transaction.account_id,
                new_amount_cents=transaction.amount_cents,
            )
        return transaction

    def refund_by_id(
        self,
        transaction_id: int,
        user_id: int,
        reason: Optional[str] = None,
    ) -> Transaction:
        """
        Record a compensating transaction for `transaction_id`.

        The refund carries the negated amount and the original's category,
        attachment and note; the original row is left untouched. `reason`
        is recorded in the audit trail only.
        """
        require_ids(transaction_id, user_id)

        with self._db.transaction() as q:
            original = q.get_transaction_by_id(transaction_id, user_id)
            if original is None:
                raise NotFoundError()

            if original.category_id == initial_category_id(q, user_id):
                raise self._reject(
                    "transaction", transaction_id, user_id, "refund",
                    "Can't refund initial transaction",
                )

            v = Validator()
            v.check(in_int64(-original.amount_cents), "amount_cents", AMOUNT_OUT_OF_RANGE)
            v.raise_if_invalid()

            refund = q.create_transaction(
                original.user_id,
                original.account_id,
                original.category_id,
                -original.amount_cents,
                REFUND_TITLE_FORMAT.format(id=original.id, title=original.title),
                attachment=original.attachment,
                note=original.note,
            )
            self._adjust_balance(q, refund.account_id, user_id, refund.amount_cents)

        if self._audit_logger:
            self._audit_logger.log_transaction_refunded(
                refund_id=refund.id,
                original_id=original.id,
                user_id=user_id,
                amount_cents=refund.amount_cents,
                reason=reason,
            )
        return refund
