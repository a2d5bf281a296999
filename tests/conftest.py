"""
Shared fixtures.

Every test gets a fresh in-memory SQLite database with the full schema
(including the foreign-key triggers) and a mocked AuditLogger, so tests
can assert on the audit trail without capturing log output.
"""

from unittest.mock import MagicMock

import pytest

from ledger.audit import AuditLogger
from ledger.models import TransactionCreate
from ledger.services import (
    AccountManager,
    AuthManager,
    CategoryManager,
    LedgerDatabase,
    RecurringTransactionManager,
    TokenManager,
    TransactionManager,
    UserManager,
)


@pytest.fixture
def db():
    database = LedgerDatabase("sqlite://").connect()
    yield database
    database.dispose()


@pytest.fixture
def audit_logger():
    return MagicMock(spec=AuditLogger)


def _insert_user(db, username: str) -> int:
    with db.transaction() as q:
        return q.create_user(username, username.title(), "not-a-real-hash").id


@pytest.fixture
def alice(db) -> int:
    return _insert_user(db, "alice")


@pytest.fixture
def bob(db) -> int:
    return _insert_user(db, "bob")


@pytest.fixture
def categories(db, audit_logger):
    return CategoryManager(db, audit_logger)


@pytest.fixture
def accounts(db, audit_logger):
    return AccountManager(db, audit_logger)


@pytest.fixture
def transactions(db, audit_logger):
    return TransactionManager(db, audit_logger)


@pytest.fixture
def recurring(db, audit_logger):
    return RecurringTransactionManager(db, audit_logger)


@pytest.fixture
def users(db, audit_logger):
    return UserManager(db, audit_logger)


@pytest.fixture
def tokens(db, audit_logger):
    return TokenManager(db, audit_logger)


@pytest.fixture
def auth(db, audit_logger):
    return AuthManager(db, audit_logger)


@pytest.fixture
def wallet(accounts, alice):
    """Alice's cash account opened with 100.00."""
    return accounts.create(alice, "cash", "Wallet", 10_000)


@pytest.fixture
def groceries(categories, alice):
    return categories.create(alice, "Groceries", "#00ff00", "cart")


@pytest.fixture
def make_transaction(transactions):
    """Record a transaction with sensible defaults."""

    def _make(user_id, account_id, category_id, amount_cents, title="Purchase", **kwargs):
        params = TransactionCreate(
            account_id=account_id,
            category_id=category_id,
            amount_cents=amount_cents,
            title=title,
            **kwargs,
        )
        return transactions.create(user_id, params)

    return _make
