"""Tests for the SQLAlchemy store: transactions, triggers and error classification."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from ledger.errors import (
    DuplicateIdentifierError,
    InternalError,
    InvalidReferenceError,
    NotFoundError,
)
from ledger.services import LedgerDatabase
from ledger.services.storage import classify_integrity_error, constraint_name
from ledger.services.storage.schema import foreign_key_trigger_ddl, transactions


class FakePgError(Exception):
    """Stands in for a psycopg error carrying diagnostics."""

    def __init__(self, constraint, sqlstate):
        super().__init__(f"violates constraint {constraint}")
        self.diag = SimpleNamespace(constraint_name=constraint)
        self.sqlstate = sqlstate


def _integrity_error(orig):
    return IntegrityError("INSERT ...", {}, orig)


class TestClassification:
    """Tests for constraint-name based error classification."""

    def test_postgres_category_fkey(self):
        exc = _integrity_error(FakePgError("transactions_category_id_fkey", "23503"))
        assert constraint_name(exc) == "transactions_category_id_fkey"

        error = classify_integrity_error(exc)
        assert isinstance(error, InvalidReferenceError)
        assert error.reference == "category"

    def test_postgres_user_fkey_is_not_found(self):
        exc = _integrity_error(FakePgError("accounts_user_id_fkey", "23503"))
        assert isinstance(classify_integrity_error(exc), NotFoundError)

    def test_postgres_username_unique(self):
        exc = _integrity_error(FakePgError("users_username_key", "23505"))
        error = classify_integrity_error(exc)
        assert isinstance(error, DuplicateIdentifierError)
        assert error.field == "username"

    def test_unknown_foreign_key_is_generic_invalid_reference(self):
        exc = _integrity_error(FakePgError("budgets_owner_fkey", "23503"))
        error = classify_integrity_error(exc)
        assert isinstance(error, InvalidReferenceError)
        assert error.constraint == "budgets_owner_fkey"

    def test_unknown_unique_is_duplicate(self):
        exc = _integrity_error(FakePgError("budgets_name_key", "23505"))
        assert isinstance(classify_integrity_error(exc), DuplicateIdentifierError)

    def test_sqlite_trigger_message_is_constraint_name(self):
        exc = _integrity_error(Exception("transactions_account_id_fkey"))
        error = classify_integrity_error(exc)
        assert isinstance(error, InvalidReferenceError)
        assert error.reference == "account"

    def test_sqlite_unique_columns(self):
        exc = _integrity_error(Exception("UNIQUE constraint failed: users.username"))
        assert constraint_name(exc) == "users_username_key"
        assert isinstance(classify_integrity_error(exc), DuplicateIdentifierError)

    def test_anything_else_is_internal(self):
        exc = _integrity_error(Exception("NOT NULL constraint failed: accounts.name"))
        assert isinstance(classify_integrity_error(exc), InternalError)


class TestForeignKeyTriggers:
    """Tests for the SQLite triggers that name violated foreign keys."""

    def test_ddl_covers_insert_and_update(self):
        ddl = foreign_key_trigger_ddl(transactions)
        # three foreign keys, two triggers each
        assert len(ddl) == 6
        assert any("RAISE(ABORT, 'transactions_category_id_fkey')" in s for s in ddl)
        assert any("UPDATE OF account_id" in s for s in ddl)

    def test_unknown_category_on_insert(self, db, alice):
        with pytest.raises(InvalidReferenceError) as exc_info:
            with db.transaction() as q:
                account = q.create_account(alice, "Wallet", "cash")
                q.create_transaction(alice, account.id, 999, 100, "Ghost")
        assert exc_info.value.reference == "category"

    def test_unknown_user_on_insert(self, db):
        with pytest.raises(NotFoundError):
            with db.transaction() as q:
                q.create_category(999, "Food", "#fff", "f")

    def test_duplicate_username(self, db, alice):
        with pytest.raises(DuplicateIdentifierError) as exc_info:
            with db.transaction() as q:
                q.create_user("alice", "Another Alice", "hash")
        assert exc_info.value.field == "username"

    def test_one_initial_category_per_user(self, db, alice):
        with db.transaction() as q:
            q.create_category(alice, "InitialBalance", "#123", "B", is_initial=True)

        with pytest.raises(DuplicateIdentifierError):
            with db.transaction() as q:
                q.create_category(alice, "InitialBalance", "#123", "B", is_initial=True)

        # ordinary categories are unaffected by the partial index
        with db.transaction() as q:
            q.create_category(alice, "Food", "#fff", "f")
            q.create_category(alice, "Rent", "#000", "r")
            assert len(q.list_categories([alice])) == 3


class TestStoreTransactions:
    """Tests for commit/rollback semantics."""

    def test_exception_rolls_back_every_write(self, db, alice):
        with pytest.raises(RuntimeError):
            with db.transaction() as q:
                q.create_account(alice, "Wallet", "cash")
                raise RuntimeError("abort")

        with db.transaction() as q:
            assert q.list_accounts(alice) == []

    def test_domain_errors_pass_through(self, db):
        with pytest.raises(NotFoundError):
            with db.transaction():
                raise NotFoundError()

    def test_version_increments_on_write(self, db, alice):
        with db.transaction() as q:
            account = q.create_account(alice, "Wallet", "cash")
            assert account.version == 1

            assert q.adjust_balance(account.id, alice, 250) == 1
            assert q.update_account(account.id, alice, 2, "Purse", "cash") == 1
            # stale version matches nothing
            assert q.update_account(account.id, alice, 2, "Bag", "cash") == 0

            account = q.get_account_by_id(account.id, alice)
        assert account.version == 3
        assert account.name == "Purse"
        assert account.balance_cents == 250

    def test_delete_requires_current_version(self, db, alice):
        with db.transaction() as q:
            category = q.create_category(alice, "Food", "#0f0", "f")
            account = q.create_account(alice, "Wallet", "cash")
            row = q.create_transaction(alice, account.id, category.id, -100, "Lunch")
            q.update_transaction(row.model_copy(update={"amount_cents": -500}), row.version)

            assert q.delete_transaction(row.id, alice, row.version) == 0
            assert q.delete_transaction(row.id, alice, row.version + 1) == 1

    def test_expired_tokens_are_ignored(self, db, alice):
        now = datetime.now(timezone.utc)
        with db.transaction() as q:
            q.create_token(b"a" * 32, alice, now + timedelta(hours=1))
            q.create_token(b"b" * 32, alice, now - timedelta(hours=1))

            assert q.get_user_for_token(b"a" * 32, now).id == alice
            assert q.get_user_for_token(b"b" * 32, now) is None


class TestConnect:
    """Tests for store bootstrap."""

    def test_connect_creates_schema(self):
        database = LedgerDatabase("sqlite://").connect()
        try:
            with database.transaction() as q:
                assert q.get_user_by_id(1) is None
        finally:
            database.dispose()

    def test_unreachable_store_is_internal_error(self, monkeypatch):
        database = LedgerDatabase("sqlite://", connect_attempts=1)

        def _fail():
            raise OperationalError("SELECT 1", {}, Exception("unreachable"))

        monkeypatch.setattr(database, "_ping", _fail)
        with pytest.raises(InternalError):
            database.connect()
        database.dispose()
