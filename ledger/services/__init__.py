"""Services package."""

from ledger.services.account_service import AccountManager
from ledger.services.category_service import (
    CategoryManager,
    ensure_initial_category,
    initial_category_id,
)
from ledger.services.recurring_service import RecurringTransactionManager
from ledger.services.storage import (
    LedgerDatabase,
    LedgerDatabaseInterface,
    LedgerQueriesInterface,
    SQLLedgerQueries,
)
from ledger.services.token_service import (
    TokenManager,
    hash_token,
    validate_token_plaintext,
)
from ledger.services.transaction_service import TransactionManager
from ledger.services.user_service import AuthManager, UserManager

__all__ = [
    # Managers
    "AccountManager",
    "AuthManager",
    "CategoryManager",
    "RecurringTransactionManager",
    "TokenManager",
    "TransactionManager",
    "UserManager",
    # Helpers
    "ensure_initial_category",
    "hash_token",
    "initial_category_id",
    "validate_token_plaintext",
    # Storage
    "LedgerDatabase",
    "LedgerDatabaseInterface",
    "LedgerQueriesInterface",
    "SQLLedgerQueries",
]
