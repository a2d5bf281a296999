"""
Shared plumbing for the ledger managers.

Each manager owns a LedgerDatabaseInterface and an optional AuditLogger.
Rejections (protected entities, edit conflicts) are logged at the point
they are raised; the enclosing store transaction then rolls back.
"""

from typing import Optional

from ledger.audit import AuditLogger
from ledger.errors import EditConflictError, NotFoundError, ProtectedEntityError
from ledger.services.storage import LedgerDatabaseInterface, LedgerQueriesInterface


def require_ids(*ids: int) -> None:
    """Non-positive ids can never match a row."""
    for value in ids:
        if value is None or value <= 0:
            raise NotFoundError()


class BaseManager:

    def __init__(
        self,
        db: LedgerDatabaseInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._db = db
        self._audit_logger = audit_logger

    def _reject(
        self,
        entity_type: str,
        entity_id: int,
        user_id: int,
        operation: str,
        message: str,
    ) -> ProtectedEntityError:
        if self._audit_logger:
            self._audit_logger.log_protected_rejected(
                entity_type=entity_type,
                entity_id=entity_id,
                user_id=user_id,
                operation=operation,
                reason=message,
            )
        return ProtectedEntityError(message)

    def _conflict(
        self,
        entity_type: str,
        entity_id: int,
        user_id: int,
        version: int,
    ) -> EditConflictError:
        if self._audit_logger:
            self._audit_logger.log_edit_conflict(entity_type, entity_id, user_id, version)
        return EditConflictError()

    def _adjust_balance(
        self,
        q: LedgerQueriesInterface,
        account_id: int,
        user_id: int,
        delta_cents: int,
    ) -> None:
        # The account was read earlier in this transaction; losing it now
        # means a concurrent writer removed it.
        if q.adjust_balance(account_id, user_id, delta_cents) == 0:
            raise self._conflict("account", account_id, user_id, 0)
