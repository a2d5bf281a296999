"""
Core Data Models for the Ledger

These models describe the rows the engine reads and writes, the parameters
accepted by create operations, and the patch types used by updates.

Field-level business rules (lengths, colors, enums) are NOT enforced here:
they are checked by `ledger.validation.Validator` inside each manager so
that every violation is reported together.

Patches: a patch only carries the fields the caller actually supplied.
Pydantic tracks them in `model_fields_set`, so "absent" and "explicitly
set to None" stay distinct when a patch is applied onto a fetched row.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


INITIAL_CATEGORY_NAME = "InitialBalance"
INITIAL_CATEGORY_COLOR = "#123"
INITIAL_CATEGORY_ICON = "B"
OPENING_TRANSACTION_TITLE = "Initial balance"
REFUND_TITLE_FORMAT = "[REFUND #{id}] {title}"


# =============================================================================
# ENUMS
# =============================================================================

class AccountType(str, Enum):
    """Supported account types."""
    DEBIT = "debit"
    CASH = "cash"
    CREDIT = "credit"


ACCOUNT_TYPES = tuple(t.value for t in AccountType)


class Frequency(str, Enum):
    """How often a recurring transaction repeats."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


FREQUENCIES = tuple(f.value for f in Frequency)


# =============================================================================
# ROWS
# =============================================================================

class LedgerModel(BaseModel):
    """Base for stored rows."""
    model_config = ConfigDict(from_attributes=True)


class User(LedgerModel):
    id: int
    username: str
    name: str
    password_hash: str = Field(exclude=True, repr=False)
    created_at: datetime
    version: int = 1


class Category(LedgerModel):
    id: int
    user_id: int
    name: str
    color: str
    icon: str
    is_initial: bool = False
    created_at: datetime
    version: int = 1


class Account(LedgerModel):
    id: int
    user_id: int
    name: str
    type: AccountType
    balance_cents: int = 0
    created_at: datetime
    version: int = 1


class Transaction(LedgerModel):
    """
    A signed monetary movement.

    Negative amounts are outflows, positive amounts are inflows.
    `user_id` is the owner of the account and is used for ownership filters.
    """
    id: int
    account_id: int
    category_id: int
    user_id: int
    amount_cents: int
    title: str
    date: datetime
    attachment: Optional[str] = None
    note: Optional[str] = None
    created_at: datetime
    version: int = 1


class RecurringTransaction(LedgerModel):
    """Template from which concrete transactions are later materialized."""
    id: int
    user_id: int
    account_id: int
    category_id: int
    title: str
    amount_cents: int
    note: Optional[str] = None
    frequency: Frequency
    interval: int
    start_date: date
    end_date: Optional[date] = None
    day_of_month: Optional[int] = None
    day_of_week: Optional[int] = None
    max_occurrences: Optional[int] = None
    is_active: bool = True
    created_at: datetime
    version: int = 1


class Token(BaseModel):
    """
    Authentication token.

    The plaintext is handed to the caller once; only the hash is stored.
    """
    plaintext: str = Field(serialization_alias="token")
    hash: bytes = Field(exclude=True, repr=False)
    user_id: int = Field(exclude=True)
    expiry: datetime


# =============================================================================
# CREATE PARAMETERS
# =============================================================================

class TransactionCreate(BaseModel):
    account_id: int = 0
    category_id: int = 0
    amount_cents: int = 0
    title: str = ""
    date: Optional[datetime] = None
    attachment: Optional[str] = None
    note: Optional[str] = None


class RecurringTransactionCreate(BaseModel):
    account_id: int = 0
    category_id: int = 0
    title: str = ""
    amount_cents: int = 0
    note: Optional[str] = None
    frequency: str = ""
    interval: int = 1
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    day_of_month: Optional[int] = None
    day_of_week: Optional[int] = None
    max_occurrences: Optional[int] = None
    is_active: bool = True


# =============================================================================
# PATCHES
# =============================================================================

class Patch(BaseModel):
    """Partial update; only explicitly supplied fields are applied."""

    model_config = ConfigDict(extra="forbid")

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)

    def apply(self, row: BaseModel) -> Any:
        """Return a copy of `row` with the supplied fields replaced."""
        return row.model_copy(update=self.changes())


class CategoryPatch(Patch):
    name: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None


class AccountPatch(Patch):
    name: Optional[str] = None
    type: Optional[str] = None


class TransactionPatch(Patch):
    amount_cents: Optional[int] = None
    account_id: Optional[int] = None
    category_id: Optional[int] = None
    title: Optional[str] = None
    date: Optional[datetime] = None
    attachment: Optional[str] = None
    note: Optional[str] = None


class UserPatch(Patch):
    name: Optional[str] = None
    password: Optional[str] = None
