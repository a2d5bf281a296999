"""
Error taxonomy for the ledger engine.

Every failure leaving a manager is one of the kinds below. The boundary
layer (HTTP handlers, CLI) matches on `LedgerError.kind` to pick a status
code; it never needs to inspect messages.
"""

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Closed set of failure kinds."""
    NOT_FOUND = "not_found"
    VALIDATION_FAILED = "validation_failed"
    EDIT_CONFLICT = "edit_conflict"
    INVALID_REFERENCE = "invalid_reference"
    PROTECTED_ENTITY = "protected_entity"
    DUPLICATE_IDENTIFIER = "duplicate_identifier"
    INVALID_CREDENTIALS = "invalid_credentials"
    INTERNAL = "internal"


class LedgerError(Exception):
    """Base exception for all ledger failures."""

    kind: ErrorKind = ErrorKind.INTERNAL
    default_message = "internal error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message}


class NotFoundError(LedgerError):
    """Entity absent, id non-positive, or owned by another user."""
    kind = ErrorKind.NOT_FOUND
    default_message = "record not found"


class ValidationFailedError(LedgerError):
    """
    One or more field-level rule violations.

    Carries the complete field -> message map, never just the first failure.
    """
    kind = ErrorKind.VALIDATION_FAILED
    default_message = "validation failed"

    def __init__(self, errors: dict[str, str]):
        self.errors = dict(errors)
        if self.errors:
            detail = "; ".join(f"{field}: {msg}" for field, msg in self.errors.items())
            message = f"{self.default_message}: {detail}"
        else:
            message = self.default_message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["errors"] = dict(self.errors)
        return data


class EditConflictError(LedgerError):
    """Optimistic-version mismatch: another writer committed first."""
    kind = ErrorKind.EDIT_CONFLICT
    default_message = "unable to update the record due to an edit conflict, please try again"


class InvalidReferenceError(LedgerError):
    """A referenced category or account does not exist at write time."""
    kind = ErrorKind.INVALID_REFERENCE
    default_message = "reference does not exist"

    def __init__(
        self,
        reference: Optional[str] = None,
        constraint: Optional[str] = None,
        message: Optional[str] = None,
    ):
        self.reference = reference
        self.constraint = constraint
        if message is None:
            if reference:
                message = f"This {reference} does not exist"
            elif constraint:
                message = f"reference does not exist: {constraint}"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["reference"] = self.reference
        return data


class ProtectedEntityError(LedgerError):
    """Attempt to touch the initial category or an opening transaction."""
    kind = ErrorKind.PROTECTED_ENTITY
    default_message = "this record is protected"


class DuplicateIdentifierError(LedgerError):
    """Unique-constraint violation surfaced as a domain conflict."""
    kind = ErrorKind.DUPLICATE_IDENTIFIER
    default_message = "duplicate identifier"

    def __init__(self, field: Optional[str] = None, message: Optional[str] = None):
        self.field = field
        if message is None and field:
            message = f"duplicate {field}"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["field"] = self.field
        return data


class InvalidCredentialsError(LedgerError):
    kind = ErrorKind.INVALID_CREDENTIALS
    default_message = "invalid authentication credentials"


class InternalError(LedgerError):
    """Any unclassified store or I/O failure."""
    kind = ErrorKind.INTERNAL
