"""
Audit Models for the Ledger

Every committed mutation of ledger state produces one audit event, and so
does every rejected attempt to touch a protected record or to write with
a stale version. Events are emitted as structured logs by
`ledger.audit.AuditLogger`.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Categories
    CATEGORY_CREATED = "category_created"
    CATEGORY_UPDATED = "category_updated"
    CATEGORY_DELETED = "category_deleted"

    # Accounts
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_UPDATED = "account_updated"
    ACCOUNT_DELETED = "account_deleted"

    # Transactions
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    TRANSACTION_REFUNDED = "transaction_refunded"
    RECURRING_TRANSACTION_CREATED = "recurring_transaction_created"

    # Users and credentials
    USER_CREATED = "user_created"
    USER_UPDATED = "user_updated"
    USER_DELETED = "user_deleted"
    TOKEN_ISSUED = "token_issued"

    # Rejections
    PROTECTED_ENTITY_REJECTED = "protected_entity_rejected"
    EDIT_CONFLICT = "edit_conflict"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEvent(BaseModel):
    """A single audit event."""

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about and who asked?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'account', 'transaction')"
    )
    entity_id: Optional[int] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    user_id: Optional[int] = Field(
        default=None,
        description="Caller on whose behalf the operation ran"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "user_id": self.user_id,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.account_created(account_id, user_id, "Wallet", "cash", 0)
        event = AuditEventBuilder.edit_conflict("transaction", transaction_id, user_id, 3)
    """

    @staticmethod
    def category_created(category_id: int, user_id: int, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_CREATED,
            entity_type="category",
            entity_id=category_id,
            user_id=user_id,
            description=f"Category created: {name}",
            details={"name": name},
        )

    @staticmethod
    def category_updated(category_id: int, user_id: int, version: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_UPDATED,
            entity_type="category",
            entity_id=category_id,
            user_id=user_id,
            description="Category updated",
            details={"version": version},
        )

    @staticmethod
    def category_deleted(category_id: int, user_id: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_DELETED,
            entity_type="category",
            entity_id=category_id,
            user_id=user_id,
            description="Category deleted",
        )

    @staticmethod
    def account_created(
        account_id: int,
        user_id: int,
        name: str,
        account_type: str,
        initial_balance_cents: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_CREATED,
            entity_type="account",
            entity_id=account_id,
            user_id=user_id,
            description=f"Account created: {name} ({account_type})",
            details={
                "name": name,
                "type": account_type,
                "initial_balance_cents": initial_balance_cents,
            },
        )

    @staticmethod
    def account_updated(account_id: int, user_id: int, version: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_UPDATED,
            entity_type="account",
            entity_id=account_id,
            user_id=user_id,
            description="Account updated",
            details={"version": version},
        )

    @staticmethod
    def account_deleted(account_id: int, user_id: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_DELETED,
            entity_type="account",
            entity_id=account_id,
            user_id=user_id,
            description="Account deleted",
        )

    @staticmethod
    def transaction_created(
        transaction_id: int,
        user_id: int,
        account_id: int,
        amount_cents: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            entity_type="transaction",
            entity_id=transaction_id,
            user_id=user_id,
            description=f"Transaction of {amount_cents} cents recorded on account {account_id}",
            details={
                "account_id": account_id,
                "amount_cents": amount_cents,
            },
        )

    @staticmethod
    def transaction_updated(
        transaction_id: int,
        user_id: int,
        old_account_id: int,
        old_amount_cents: int,
        new_account_id: int,
        new_amount_cents: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            entity_type="transaction",
            entity_id=transaction_id,
            user_id=user_id,
            description="Transaction updated",
            details={
                "old_account_id": old_account_id,
                "old_amount_cents": old_amount_cents,
                "new_account_id": new_account_id,
                "new_amount_cents": new_amount_cents,
            },
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: int,
        user_id: int,
        account_id: int,
        amount_cents: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            user_id=user_id,
            description="Transaction deleted",
            details={
                "account_id": account_id,
                "reversed_amount_cents": -amount_cents,
            },
        )

    @staticmethod
    def transaction_refunded(
        refund_id: int,
        original_id: int,
        user_id: int,
        amount_cents: int,
        reason: Optional[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_REFUNDED,
            entity_type="transaction",
            entity_id=refund_id,
            user_id=user_id,
            description=f"Transaction {original_id} refunded",
            details={
                "original_id": original_id,
                "amount_cents": amount_cents,
                "reason": reason or "No reason provided",
            },
        )

    @staticmethod
    def recurring_transaction_created(
        recurring_id: int,
        user_id: int,
        frequency: str,
        interval: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_TRANSACTION_CREATED,
            entity_type="recurring_transaction",
            entity_id=recurring_id,
            user_id=user_id,
            description=f"Recurring transaction created: every {interval} {frequency}",
            details={"frequency": frequency, "interval": interval},
        )

    @staticmethod
    def user_created(user_id: int, username: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_CREATED,
            entity_type="user",
            entity_id=user_id,
            user_id=user_id,
            description=f"User created: {username}",
            details={"username": username},
        )

    @staticmethod
    def user_updated(user_id: int, version: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_UPDATED,
            entity_type="user",
            entity_id=user_id,
            user_id=user_id,
            description="User updated",
            details={"version": version},
        )

    @staticmethod
    def user_deleted(user_id: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_DELETED,
            entity_type="user",
            entity_id=user_id,
            user_id=user_id,
            description="User deleted",
        )

    @staticmethod
    def token_issued(user_id: int, expiry: datetime) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TOKEN_ISSUED,
            entity_type="token",
            user_id=user_id,
            description="Authentication token issued",
            details={"expiry": expiry.isoformat()},
        )

    @staticmethod
    def protected_entity_rejected(
        entity_type: str,
        entity_id: int,
        user_id: int,
        operation: str,
        reason: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROTECTED_ENTITY_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            description=f"Rejected {operation} of protected {entity_type}",
            details={"operation": operation},
            error_code="protected_entity",
            error_message=reason,
        )

    @staticmethod
    def edit_conflict(
        entity_type: str,
        entity_id: int,
        user_id: int,
        version: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EDIT_CONFLICT,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            description=f"Edit conflict on {entity_type}",
            details={"version": version},
            error_code="edit_conflict",
        )
