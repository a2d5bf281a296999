"""
Audit Logger

Every committed ledger mutation is logged as a structured event, as is
every rejected protected-entity access and every edit conflict.

The audit logger:
- Logs mutations only after their store transaction has committed, so a
  logged mutation always matches state; rejections are logged as they are
  raised, and the enclosing transaction always rolls back
- Never raises: a logging failure must not turn a committed write into an error
"""

import logging
from datetime import datetime
from typing import Optional

import structlog

from ledger.models.audit import AuditEvent, AuditEventBuilder


structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route structlog output through stdlib logging at `level`."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper(), logging.INFO))


class AuditLogger:
    """Central audit logging service."""

    def __init__(self, logger_name: str = "ledger.audit"):
        self._logger = structlog.get_logger(logger_name)

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if the event could not be emitted.
        """
        try:
            log_dict = event.to_log_dict()

            if event.severity.value in ("error", "critical"):
                self._logger.error("audit_event", **log_dict)
            elif event.severity.value == "warning":
                self._logger.warning("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            logging.getLogger(__name__).error("audit logging failed: %s", e)
            return False

        return True

    def log_category_created(self, category_id: int, user_id: int, name: str) -> None:
        self.log(AuditEventBuilder.category_created(category_id, user_id, name))

    def log_category_updated(self, category_id: int, user_id: int, version: int) -> None:
        self.log(AuditEventBuilder.category_updated(category_id, user_id, version))

    def log_category_deleted(self, category_id: int, user_id: int) -> None:
        self.log(AuditEventBuilder.category_deleted(category_id, user_id))

    def log_account_created(
        self,
        account_id: int,
        user_id: int,
        name: str,
        account_type: str,
        initial_balance_cents: int,
    ) -> None:
        """Log account creation together with its opening balance."""
        event = AuditEventBuilder.account_created(
            account_id=account_id,
            user_id=user_id,
            name=name,
            account_type=account_type,
            initial_balance_cents=initial_balance_cents,
        )
        self.log(event)

    def log_account_updated(self, account_id: int, user_id: int, version: int) -> None:
        self.log(AuditEventBuilder.account_updated(account_id, user_id, version))

    def log_account_deleted(self, account_id: int, user_id: int) -> None:
        self.log(AuditEventBuilder.account_deleted(account_id, user_id))

    def log_transaction_created(
        self,
        transaction_id: int,
        user_id: int,
        account_id: int,
        amount_cents: int,
    ) -> None:
        event = AuditEventBuilder.transaction_created(
            transaction_id=transaction_id,
            user_id=user_id,
            account_id=account_id,
            amount_cents=amount_cents,
        )
        self.log(event)

    def log_transaction_updated(
        self,
        transaction_id: int,
        user_id: int,
        old_account_id: int,
        old_amount_cents: int,
        new_account_id: int,
        new_amount_cents: int,
    ) -> None:
        """Log a transaction update with both sides of the balance move."""
        event = AuditEventBuilder.transaction_updated(
            transaction_id=transaction_id,
            user_id=user_id,
            old_account_id=old_account_id,
            old_amount_cents=old_amount_cents,
            new_account_id=new_account_id,
            new_amount_cents=new_amount_cents,
        )
        self.log(event)

    def log_transaction_deleted(
        self,
        transaction_id: int,
        user_id: int,
        account_id: int,
        amount_cents: int,
    ) -> None:
        event = AuditEventBuilder.transaction_deleted(
            transaction_id=transaction_id,
            user_id=user_id,
            account_id=account_id,
            amount_cents=amount_cents,
        )
        self.log(event)

    def log_transaction_refunded(
        self,
        refund_id: int,
        original_id: int,
        user_id: int,
        amount_cents: int,
        reason: Optional[str],
    ) -> None:
        event = AuditEventBuilder.transaction_refunded(
            refund_id=refund_id,
            original_id=original_id,
            user_id=user_id,
            amount_cents=amount_cents,
            reason=reason,
        )
        self.log(event)

    def log_recurring_transaction_created(
        self,
        recurring_id: int,
        user_id: int,
        frequency: str,
        interval: int,
    ) -> None:
        event = AuditEventBuilder.recurring_transaction_created(
            recurring_id=recurring_id,
            user_id=user_id,
            frequency=frequency,
            interval=interval,
        )
        self.log(event)

    def log_user_created(self, user_id: int, username: str) -> None:
        self.log(AuditEventBuilder.user_created(user_id, username))

    def log_user_updated(self, user_id: int, version: int) -> None:
        self.log(AuditEventBuilder.user_updated(user_id, version))

    def log_user_deleted(self, user_id: int) -> None:
        self.log(AuditEventBuilder.user_deleted(user_id))

    def log_token_issued(self, user_id: int, expiry: datetime) -> None:
        self.log(AuditEventBuilder.token_issued(user_id, expiry))

    def log_protected_rejected(
        self,
        entity_type: str,
        entity_id: int,
        user_id: int,
        operation: str,
        reason: str,
    ) -> None:
        """Log a refused operation on an initial category or opening transaction."""
        event = AuditEventBuilder.protected_entity_rejected(
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            operation=operation,
            reason=reason,
        )
        self.log(event)

    def log_edit_conflict(
        self,
        entity_type: str,
        entity_id: int,
        user_id: int,
        version: int,
    ) -> None:
        self.log(AuditEventBuilder.edit_conflict(entity_type, entity_id, user_id, version))
