"""
Category Manager

Categories label transactions. Every user owns exactly one initial
category, created the first time it is needed (when the user's first
account is opened) and flagged `is_initial`. It holds the opening-balance
transactions and can never be deleted, updated, or picked manually.

The initial category is looked up per request inside the caller's store
transaction; nothing about it is cached at module level.
"""

from typing import Optional

import structlog

from ledger.audit import AuditLogger
from ledger.errors import NotFoundError
from ledger.models.ledger import (
    INITIAL_CATEGORY_COLOR,
    INITIAL_CATEGORY_ICON,
    INITIAL_CATEGORY_NAME,
    Category,
    CategoryPatch,
)
from ledger.services.base import BaseManager, require_ids
from ledger.services.storage import LedgerDatabaseInterface, LedgerQueriesInterface
from ledger.validation import Validator, hex_color, max_length, non_zero


logger = structlog.get_logger(__name__)


def validate_category(v: Validator, name: str, color: str, icon: str, user_id: int) -> None:
    v.check(non_zero(name), "name", "Must be provided")
    v.check(max_length(name, 20), "name", "Must not be more than 20 bytes long")

    v.check(non_zero(color), "color", "Must be provided")
    v.check(hex_color(color), "color", "Must be valid Hex Color")

    v.check(non_zero(icon), "icon", "Must be provided")

    v.check(non_zero(user_id), "user_id", "Must be provided")


def initial_category_id(q: LedgerQueriesInterface, user_id: int) -> Optional[int]:
    """Id of the user's initial category, or None if it was never created."""
    category = q.get_initial_category(user_id)
    return category.id if category else None


def ensure_initial_category(q: LedgerQueriesInterface, user_id: int) -> Category:
    """Return the user's initial category, creating it in this transaction if needed."""
    category = q.get_initial_category(user_id)
    if category is None:
        category = q.create_category(
            user_id,
            INITIAL_CATEGORY_NAME,
            INITIAL_CATEGORY_COLOR,
            INITIAL_CATEGORY_ICON,
            is_initial=True,
        )
        logger.info("initial_category_created", user_id=user_id, category_id=category.id)
    return category


def visible_category(
    q: LedgerQueriesInterface,
    category_id: int,
    user_id: int,
    system_user_id: Optional[int] = None,
) -> Optional[Category]:
    """A category the user owns, or one owned by the shared system user."""
    category = q.get_category_by_id(category_id, user_id)
    if category is None and system_user_id and system_user_id != user_id:
        category = q.get_category_by_id(category_id, system_user_id)
    return category


class CategoryManager(BaseManager):
    """Create, list, update and delete a user's categories."""

    def __init__(
        self,
        db: LedgerDatabaseInterface,
        audit_logger: Optional[AuditLogger] = None,
        system_user_id: Optional[int] = None,
    ):
        super().__init__(db, audit_logger)
        self._system_user_id = system_user_id

    def create(self, user_id: int, name: str, color: str, icon: str) -> Category:
        """
        Create a category owned by `user_id`.

        Raises:
            ValidationFailedError: If any field is invalid
            NotFoundError: If the user does not exist
        """
        v = Validator()
        validate_category(v, name, color, icon, user_id)
        v.raise_if_invalid()

        with self._db.transaction() as q:
            category = q.create_category(user_id, name, color, icon)

        if self._audit_logger:
            self._audit_logger.log_category_created(category.id, user_id, name)
        return category

    def get_all(self, user_id: int) -> list[Category]:
        user_ids = [user_id]
        if self._system_user_id and self._system_user_id != user_id:
            user_ids.append(self._system_user_id)

        with self._db.transaction() as q:
            return q.list_categories(user_ids)

    def get_by_id(self, user_id: int, category_id: int) -> Category:
        require_ids(user_id, category_id)

        with self._db.transaction() as q:
            category = q.get_category_by_id(category_id, user_id)
        if category is None:
            raise NotFoundError()
        return category

    def delete_by_id(self, user_id: int, category_id: int) -> None:
        """
        Delete a category the user owns.

        Raises:
            NotFoundError: If the category is missing or owned by someone else
            ProtectedEntityError: For the initial category, or one still in use
        """
        require_ids(user_id, category_id)

        with self._db.transaction() as q:
            if category_id == initial_category_id(q, user_id):
                raise self._reject(
                    "category", category_id, user_id, "delete",
                    "Can't delete initial category",
                )

            category = q.get_category_by_id(category_id, user_id)
            if category is None:
                raise NotFoundError()

            if q.count_category_references(category_id) > 0:
                raise self._reject(
                    "category", category_id, user_id, "delete",
                    "Can't delete a category that is still in use",
                )

            if q.delete_category(category_id, user_id) == 0:
                raise self._conflict("category", category_id, user_id, category.version)

        if self._audit_logger:
            self._audit_logger.log_category_deleted(category_id, user_id)

    def update_by_id(
        self,
        user_id: int,
        category_id: int,
        patch: CategoryPatch,
        expected_version: Optional[int] = None,
    ) -> Category:
        """
        Apply `patch` to a category.

        The write is conditional on the version read (or `expected_version`
        when the caller holds an older copy); a mismatch is EditConflict.
        """
        require_ids(user_id, category_id)

        with self._db.transaction() as q:
            if category_id == initial_category_id(q, user_id):
                raise self._reject(
                    "category", category_id, user_id, "update",
                    "Can't update initial category",
                )

            category = q.get_category_by_id(category_id, user_id)
            if category is None:
                raise NotFoundError()

            version = category.version if expected_version is None else expected_version
            updated = patch.apply(category)

            v = Validator()
            validate_category(v, updated.name, updated.color, updated.icon, user_id)
            v.raise_if_invalid()

            rows = q.update_category(
                category_id,
                user_id,
                version,
                updated.name,
                updated.color,
                updated.icon,
            )
            if rows == 0:
                raise self._conflict("category", category_id, user_id, version)

            category = q.get_category_by_id(category_id, user_id)

        if self._audit_logger:
            self._audit_logger.log_category_updated(category_id, user_id, category.version)
        return category
