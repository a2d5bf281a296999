"""
SQLAlchemy Storage Implementation

Runs on PostgreSQL in production and on SQLite for local use and tests.
Each `LedgerDatabase.transaction()` block is one store transaction; the
`SQLLedgerQueries` object it yields issues plain SQLAlchemy Core
statements on that transaction's connection.

Integrity errors are classified by constraint name through the tables in
`ledger.services.storage.schema`; any other SQLAlchemy failure becomes
InternalError.
"""

from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Iterator, Optional, Type, TypeVar

import structlog
from pydantic import BaseModel
from sqlalchemy import create_engine, delete, event, func, insert, select, text, true, update
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.pool import StaticPool
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ledger.config import DatabaseSettings
from ledger.errors import (
    DuplicateIdentifierError,
    InternalError,
    InvalidReferenceError,
    LedgerError,
)
from ledger.models.ledger import (
    Account,
    Category,
    RecurringTransaction,
    Transaction,
    User,
)
from ledger.services.storage.interface import (
    LedgerDatabaseInterface,
    LedgerQueriesInterface,
)
from ledger.services.storage.schema import (
    FOREIGN_KEY_ERRORS,
    SQLITE_UNIQUE_COLUMNS,
    UNIQUE_ERRORS,
    accounts,
    categories,
    metadata,
    recurring_transactions,
    tokens,
    transactions,
    users,
)


logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

FOREIGN_KEY_VIOLATION = "23503"
UNIQUE_VIOLATION = "23505"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _value(v):
    """Plain value of an Enum member, anything else unchanged."""
    return getattr(v, "value", v)


def _to_model(model: Type[ModelT], row) -> Optional[ModelT]:
    if row is None:
        return None
    return model.model_validate(dict(row._mapping))


# =============================================================================
# INTEGRITY ERROR CLASSIFICATION
# =============================================================================

def _sqlstate(exc: IntegrityError) -> Optional[str]:
    # psycopg 3 exposes `sqlstate`, psycopg2 `pgcode`
    return getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)


def constraint_name(exc: IntegrityError) -> Optional[str]:
    """
    Name of the constraint an IntegrityError violated.

    PostgreSQL drivers report it in the error diagnostics. On SQLite the
    foreign-key triggers abort with the constraint name as the message, and
    unique violations are mapped from their "table.column" list.
    """
    diag = getattr(exc.orig, "diag", None)
    name = getattr(diag, "constraint_name", None)
    if name:
        return name

    message = str(exc.orig)
    prefix = "UNIQUE constraint failed: "
    if message.startswith(prefix):
        columns = message[len(prefix):]
        return SQLITE_UNIQUE_COLUMNS.get(columns, columns)
    return message


def classify_integrity_error(exc: IntegrityError) -> LedgerError:
    name = constraint_name(exc)

    if name in FOREIGN_KEY_ERRORS:
        return FOREIGN_KEY_ERRORS[name]()
    if name in UNIQUE_ERRORS:
        return UNIQUE_ERRORS[name]()

    state = _sqlstate(exc)
    message = str(exc.orig)
    if state == FOREIGN_KEY_VIOLATION or "FOREIGN KEY constraint failed" in message:
        return InvalidReferenceError(constraint=name)
    if state == UNIQUE_VIOLATION or message.startswith("UNIQUE constraint failed"):
        return DuplicateIdentifierError(message=f"duplicate value violates {name}")

    return InternalError(f"integrity violation: {name}")


# =============================================================================
# QUERIES
# =============================================================================

class SQLLedgerQueries(LedgerQueriesInterface):
    """LedgerQueriesInterface bound to one open SQLAlchemy connection."""

    def __init__(self, connection: Connection):
        self._conn = connection

    # -------------------------------------------------------------------------
    # Users and tokens
    # -------------------------------------------------------------------------

    def create_user(self, username: str, name: str, password_hash: str) -> User:
        result = self._conn.execute(
            insert(users).values(
                username=username,
                name=name,
                password_hash=password_hash,
                created_at=_utcnow(),
                version=1,
            )
        )
        return self.get_user_by_id(result.inserted_primary_key[0])

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        row = self._conn.execute(select(users).where(users.c.id == user_id)).first()
        return _to_model(User, row)

    def get_user_by_username(self, username: str) -> Optional[User]:
        row = self._conn.execute(select(users).where(users.c.username == username)).first()
        return _to_model(User, row)

    def update_user(self, user_id: int, version: int, name: str, password_hash: str) -> int:
        result = self._conn.execute(
            update(users)
            .where(users.c.id == user_id, users.c.version == version)
            .values(name=name, password_hash=password_hash, version=users.c.version + 1)
        )
        return result.rowcount

    def delete_user(self, user_id: int) -> int:
        return self._conn.execute(delete(users).where(users.c.id == user_id)).rowcount

    def create_token(self, token_hash: bytes, user_id: int, expiry: datetime) -> None:
        self._conn.execute(
            insert(tokens).values(hash=token_hash, user_id=user_id, expiry=expiry)
        )

    def get_user_for_token(self, token_hash: bytes, now: datetime) -> Optional[User]:
        row = self._conn.execute(
            select(users)
            .join(tokens, tokens.c.user_id == users.c.id)
            .where(tokens.c.hash == token_hash, tokens.c.expiry > now)
        ).first()
        return _to_model(User, row)

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    def create_category(
        self,
        user_id: int,
        name: str,
        color: str,
        icon: str,
        is_initial: bool = False,
    ) -> Category:
        result = self._conn.execute(
            insert(categories).values(
                user_id=user_id,
                name=name,
                color=color,
                icon=icon,
                is_initial=is_initial,
                created_at=_utcnow(),
                version=1,
            )
        )
        return self.get_category_by_id(result.inserted_primary_key[0], user_id)

    def list_categories(self, user_ids: list[int]) -> list[Category]:
        rows = self._conn.execute(
            select(categories)
            .where(categories.c.user_id.in_(user_ids))
            .order_by(categories.c.id)
        )
        return [_to_model(Category, row) for row in rows]

    def get_category_by_id(self, category_id: int, user_id: int) -> Optional[Category]:
        row = self._conn.execute(
            select(categories).where(
                categories.c.id == category_id,
                categories.c.user_id == user_id,
            )
        ).first()
        return _to_model(Category, row)

    def get_initial_category(self, user_id: int) -> Optional[Category]:
        row = self._conn.execute(
            select(categories).where(
                categories.c.user_id == user_id,
                categories.c.is_initial == true(),
            )
        ).first()
        return _to_model(Category, row)

    def update_category(
        self,
        category_id: int,
        user_id: int,
        version: int,
        name: str,
        color: str,
        icon: str,
    ) -> int:
        result = self._conn.execute(
            update(categories)
            .where(
                categories.c.id == category_id,
                categories.c.user_id == user_id,
                categories.c.version == version,
            )
            .values(name=name, color=color, icon=icon, version=categories.c.version + 1)
        )
        return result.rowcount

    def delete_category(self, category_id: int, user_id: int) -> int:
        result = self._conn.execute(
            delete(categories).where(
                categories.c.id == category_id,
                categories.c.user_id == user_id,
            )
        )
        return result.rowcount

    def count_category_references(self, category_id: int) -> int:
        used_by_transactions = self._conn.execute(
            select(func.count())
            .select_from(transactions)
            .where(transactions.c.category_id == category_id)
        ).scalar_one()
        used_by_templates = self._conn.execute(
            select(func.count())
            .select_from(recurring_transactions)
            .where(recurring_transactions.c.category_id == category_id)
        ).scalar_one()
        return used_by_transactions + used_by_templates

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    def create_account(self, user_id: int, name: str, account_type: str) -> Account:
        result = self._conn.execute(
            insert(accounts).values(
                user_id=user_id,
                name=name,
                type=_value(account_type),
                balance_cents=0,
                created_at=_utcnow(),
                version=1,
            )
        )
        return self.get_account_by_id(result.inserted_primary_key[0], user_id)

    def list_accounts(self, user_id: int) -> list[Account]:
        rows = self._conn.execute(
            select(accounts).where(accounts.c.user_id == user_id).order_by(accounts.c.id)
        )
        return [_to_model(Account, row) for row in rows]

    def get_account_by_id(self, account_id: int, user_id: int) -> Optional[Account]:
        row = self._conn.execute(
            select(accounts).where(accounts.c.id == account_id, accounts.c.user_id == user_id)
        ).first()
        return _to_model(Account, row)

    def get_account_balance(self, account_id: int, user_id: int) -> Optional[int]:
        return self._conn.execute(
            select(accounts.c.balance_cents).where(
                accounts.c.id == account_id,
                accounts.c.user_id == user_id,
            )
        ).scalar_one_or_none()

    def update_account(
        self,
        account_id: int,
        user_id: int,
        version: int,
        name: str,
        account_type: str,
    ) -> int:
        result = self._conn.execute(
            update(accounts)
            .where(
                accounts.c.id == account_id,
                accounts.c.user_id == user_id,
                accounts.c.version == version,
            )
            .values(name=name, type=_value(account_type), version=accounts.c.version + 1)
        )
        return result.rowcount

    def delete_account(self, account_id: int, user_id: int) -> int:
        result = self._conn.execute(
            delete(accounts).where(accounts.c.id == account_id, accounts.c.user_id == user_id)
        )
        return result.rowcount

    def adjust_balance(self, account_id: int, user_id: int, delta_cents: int) -> int:
        result = self._conn.execute(
            update(accounts)
            .where(accounts.c.id == account_id, accounts.c.user_id == user_id)
            .values(
                balance_cents=accounts.c.balance_cents + delta_cents,
                version=accounts.c.version + 1,
            )
        )
        return result.rowcount

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def _owned_transactions(self, user_id: int):
        return (
            select(transactions)
            .join(accounts, accounts.c.id == transactions.c.account_id)
            .where(accounts.c.user_id == user_id)
        )

    def create_transaction(
        self,
        user_id: int,
        account_id: int,
        category_id: int,
        amount_cents: int,
        title: str,
        date: Optional[datetime] = None,
        attachment: Optional[str] = None,
        note: Optional[str] = None,
    ) -> Transaction:
        now = _utcnow()
        result = self._conn.execute(
            insert(transactions).values(
                account_id=account_id,
                category_id=category_id,
                user_id=user_id,
                amount_cents=amount_cents,
                title=title,
                date=date or now,
                attachment=attachment,
                note=note,
                created_at=now,
                version=1,
            )
        )
        return self.get_transaction_by_id(result.inserted_primary_key[0], user_id)

    def list_transactions(self, user_id: int) -> list[Transaction]:
        rows = self._conn.execute(self._owned_transactions(user_id).order_by(transactions.c.id))
        return [_to_model(Transaction, row) for row in rows]

    def list_account_transactions(self, account_id: int, user_id: int) -> list[Transaction]:
        rows = self._conn.execute(
            self._owned_transactions(user_id)
            .where(transactions.c.account_id == account_id)
            .order_by(transactions.c.id)
        )
        return [_to_model(Transaction, row) for row in rows]

    def get_transaction_by_id(self, transaction_id: int, user_id: int) -> Optional[Transaction]:
        row = self._conn.execute(
            self._owned_transactions(user_id).where(transactions.c.id == transaction_id)
        ).first()
        return _to_model(Transaction, row)

    def update_transaction(self, transaction: Transaction, version: int) -> int:
        result = self._conn.execute(
            update(transactions)
            .where(
                transactions.c.id == transaction.id,
                transactions.c.user_id == transaction.user_id,
                transactions.c.version == version,
            )
            .values(
                amount_cents=transaction.amount_cents,
                account_id=transaction.account_id,
                category_id=transaction.category_id,
                title=transaction.title,
                date=transaction.date,
                attachment=transaction.attachment,
                note=transaction.note,
                version=transactions.c.version + 1,
            )
        )
        return result.rowcount

    def delete_transaction(self, transaction_id: int, user_id: int, version: int) -> int:
        result = self._conn.execute(
            delete(transactions).where(
                transactions.c.id == transaction_id,
                transactions.c.user_id == user_id,
                transactions.c.version == version,
            )
        )
        return result.rowcount

    # -------------------------------------------------------------------------
    # Recurring transactions
    # -------------------------------------------------------------------------

    def create_recurring_transaction(
        self,
        user_id: int,
        account_id: int,
        category_id: int,
        title: str,
        amount_cents: int,
        note: Optional[str],
        frequency: str,
        interval: int,
        start_date: date,
        end_date: Optional[date],
        day_of_month: Optional[int],
        day_of_week: Optional[int],
        max_occurrences: Optional[int],
        is_active: bool,
    ) -> RecurringTransaction:
        result = self._conn.execute(
            insert(recurring_transactions).values(
                user_id=user_id,
                account_id=account_id,
                category_id=category_id,
                title=title,
                amount_cents=amount_cents,
                note=note,
                frequency=_value(frequency),
                interval=interval,
                start_date=start_date,
                end_date=end_date,
                day_of_month=day_of_month,
                day_of_week=day_of_week,
                max_occurrences=max_occurrences,
                is_active=is_active,
                created_at=_utcnow(),
                version=1,
            )
        )
        row = self._conn.execute(
            select(recurring_transactions).where(
                recurring_transactions.c.id == result.inserted_primary_key[0]
            )
        ).first()
        return _to_model(RecurringTransaction, row)

    def list_recurring_transactions(self, user_id: int) -> list[RecurringTransaction]:
        rows = self._conn.execute(
            select(recurring_transactions)
            .where(recurring_transactions.c.user_id == user_id)
            .order_by(recurring_transactions.c.id)
        )
        return [_to_model(RecurringTransaction, row) for row in rows]


# =============================================================================
# DATABASE
# =============================================================================

def _sqlite_on_connect(dbapi_connection, connection_record):
    # Let SQLAlchemy emit BEGIN itself so reads share the write transaction.
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _sqlite_on_begin(conn):
    conn.exec_driver_sql("BEGIN")


def create_ledger_engine(url: str, echo: bool = False) -> Engine:
    """Create an engine configured for the ledger's transactional needs."""
    if not url.startswith("sqlite"):
        return create_engine(url, echo=echo, pool_pre_ping=True)

    kwargs = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection, otherwise every checkout sees an empty database
        kwargs["poolclass"] = StaticPool

    engine = create_engine(url, echo=echo, **kwargs)
    event.listen(engine, "connect", _sqlite_on_connect)
    event.listen(engine, "begin", _sqlite_on_begin)
    return engine


class LedgerDatabase(LedgerDatabaseInterface):
    """
    Connection pool plus transaction factory for the ledger store.

    Usage:
        db = LedgerDatabase("sqlite://")
        db.connect()
        with db.transaction() as q:
            q.create_account(...)
    """

    def __init__(
        self,
        url: str = "sqlite:///./ledger.db",
        echo: bool = False,
        connect_attempts: int = 3,
        engine: Optional[Engine] = None,
    ):
        self._engine = engine or create_ledger_engine(url, echo=echo)
        self._connect_attempts = connect_attempts

    @classmethod
    def from_settings(cls, settings: DatabaseSettings) -> "LedgerDatabase":
        return cls(
            url=settings.url,
            echo=settings.echo,
            connect_attempts=settings.connect_attempts,
        )

    def _ping(self) -> None:
        with self._engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def connect(self) -> "LedgerDatabase":
        """
        Reach the store and make sure the schema exists.

        Retries with exponential backoff while the store is unreachable.
        """
        try:
            for attempt in Retrying(
                stop=stop_after_attempt(self._connect_attempts),
                wait=wait_exponential(multiplier=1, min=2, max=10),
                retry=retry_if_exception_type(OperationalError),
                reraise=True,
            ):
                with attempt:
                    self._ping()
        except OperationalError as e:
            raise InternalError(f"Failed to connect to the ledger store: {e}") from e

        metadata.create_all(self._engine)
        logger.info("ledger_store_ready", dialect=self._engine.dialect.name)
        return self

    def dispose(self) -> None:
        self._engine.dispose()

    @contextmanager
    def transaction(self) -> Iterator[SQLLedgerQueries]:
        try:
            with self._engine.begin() as conn:
                yield SQLLedgerQueries(conn)
        except IntegrityError as e:
            error = classify_integrity_error(e)
            logger.info(
                "integrity_violation",
                constraint=constraint_name(e),
                kind=error.kind.value,
            )
            raise error from e
        except SQLAlchemyError as e:
            logger.error("store_failure", error=str(e))
            raise InternalError(f"store failure: {e}") from e
