"""
Recurring Transaction Manager

Stores templates from which an external scheduler later materializes
concrete transactions. Templates never touch account balances.
"""

from typing import Optional

from ledger.audit import AuditLogger
from ledger.errors import InvalidReferenceError, NotFoundError
from ledger.models.ledger import (
    FREQUENCIES,
    RecurringTransaction,
    RecurringTransactionCreate,
)
from ledger.services.base import BaseManager, require_ids
from ledger.services.category_service import initial_category_id, visible_category
from ledger.services.storage import LedgerDatabaseInterface
from ledger.services.transaction_service import AMOUNT_OUT_OF_RANGE
from ledger.validation import Validator, in_int64, non_zero, permitted_value


def validate_recurring_transaction(v: Validator, params: RecurringTransactionCreate) -> None:
    v.check(non_zero(params.account_id), "account_id", "Must be provided")
    v.check(non_zero(params.category_id), "category_id", "Must be provided")
    v.check(non_zero(params.title), "title", "Must be provided")
    v.check(in_int64(params.amount_cents), "amount_cents", AMOUNT_OUT_OF_RANGE)

    v.check(
        permitted_value(params.frequency, *FREQUENCIES),
        "frequency",
        "Invalid frequency. Valid values are daily, weekly, monthly, and yearly",
    )
    v.check(params.interval >= 1, "interval", "Must be at least 1")

    v.check(params.start_date is not None, "start_date", "Must be provided")
    if params.start_date is not None and params.end_date is not None:
        v.check(params.end_date >= params.start_date, "end_date", "Must not be before start_date")

    if params.day_of_month is not None:
        v.check(1 <= params.day_of_month <= 31, "day_of_month", "Must be between 1 and 31")
    if params.day_of_week is not None:
        v.check(0 <= params.day_of_week <= 6, "day_of_week", "Must be between 0 and 6")
    if params.max_occurrences is not None:
        v.check(params.max_occurrences >= 1, "max_occurrences", "Must be at least 1")


class RecurringTransactionManager(BaseManager):

    def __init__(
        self,
        db: LedgerDatabaseInterface,
        audit_logger: Optional[AuditLogger] = None,
        system_user_id: Optional[int] = None,
    ):
        super().__init__(db, audit_logger)
        self._system_user_id = system_user_id

    def create(self, user_id: int, params: RecurringTransactionCreate) -> RecurringTransaction:
        """
        Store a recurring template for one of the user's accounts.

        Raises:
            ProtectedEntityError: If the category is the initial category
            InvalidReferenceError: If the category is missing or not visible
            NotFoundError: If the account is missing or not owned
            ValidationFailedError: If any template field is invalid
        """
        require_ids(user_id)

        with self._db.transaction() as q:
            if params.category_id == initial_category_id(q, user_id):
                raise self._reject(
                    "category", params.category_id, user_id, "create_recurring",
                    "Can't create transaction with initial category",
                )
            if params.category_id < 1:
                raise InvalidReferenceError("category")

            v = Validator()
            validate_recurring_transaction(v, params)
            v.raise_if_invalid()

            account = q.get_account_by_id(params.account_id, user_id)
            if account is None:
                raise NotFoundError()

            category = visible_category(q, params.category_id, user_id, self._system_user_id)
            if category is None:
                raise InvalidReferenceError("category")
            if category.is_initial:
                raise self._reject(
                    "category", category.id, user_id, "create_recurring",
                    "Can't create transaction with initial category",
                )

            recurring = q.create_recurring_transaction(
                user_id=user_id,
                account_id=account.id,
                category_id=category.id,
                title=params.title,
                amount_cents=params.amount_cents,
                note=params.note,
                frequency=params.frequency,
                interval=params.interval,
                start_date=params.start_date,
                end_date=params.end_date,
                day_of_month=params.day_of_month,
                day_of_week=params.day_of_week,
                max_occurrences=params.max_occurrences,
                is_active=params.is_active,
            )

        if self._audit_logger:
            self._audit_logger.log_recurring_transaction_created(
                recurring_id=recurring.id,
                user_id=user_id,
                frequency=recurring.frequency.value,
                interval=recurring.interval,
            )
        return recurring

    def get_all(self, user_id: int) -> list[RecurringTransaction]:
        with self._db.transaction() as q:
            return q.list_recurring_transactions(user_id)
