"""
Data Models Package

Pydantic models for ledger rows, create parameters, patches and audit events.
"""

from ledger.models.ledger import (
    ACCOUNT_TYPES,
    FREQUENCIES,
    INITIAL_CATEGORY_NAME,
    OPENING_TRANSACTION_TITLE,
    REFUND_TITLE_FORMAT,
    Account,
    AccountPatch,
    AccountType,
    Category,
    CategoryPatch,
    Frequency,
    RecurringTransaction,
    RecurringTransactionCreate,
    Token,
    Transaction,
    TransactionCreate,
    TransactionPatch,
    User,
    UserPatch,
)
from ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "ACCOUNT_TYPES",
    "FREQUENCIES",
    "INITIAL_CATEGORY_NAME",
    "OPENING_TRANSACTION_TITLE",
    "REFUND_TITLE_FORMAT",
    "Account",
    "AccountPatch",
    "AccountType",
    "Category",
    "CategoryPatch",
    "Frequency",
    "RecurringTransaction",
    "RecurringTransactionCreate",
    "Token",
    "Transaction",
    "TransactionCreate",
    "TransactionPatch",
    "User",
    "UserPatch",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
