"""
Relational schema for the ledger store.

Constraint names follow PostgreSQL's defaults (`<table>_<column>_fkey`,
`<table>_<column>_key`) and are spelled out explicitly, because integrity
errors are classified by constraint name through the tables at the bottom
of this module. Adding a constraint means adding its entry there.
"""

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    LargeBinary,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    event,
    true,
)

from ledger.errors import (
    DuplicateIdentifierError,
    InvalidReferenceError,
    LedgerError,
    NotFoundError,
)


metadata = MetaData()


users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", Text, nullable=False),
    Column("name", Text, nullable=False),
    Column("password_hash", Text, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("version", Integer, nullable=False, default=1),
    UniqueConstraint("username", name="users_username_key"),
)

tokens = Table(
    "tokens",
    metadata,
    Column("hash", LargeBinary(32), primary_key=True),
    Column(
        "user_id",
        Integer,
        ForeignKey("users.id", name="tokens_user_id_fkey", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("expiry", DateTime(timezone=True), nullable=False),
)

categories = Table(
    "categories",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "user_id",
        Integer,
        ForeignKey("users.id", name="categories_user_id_fkey", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("name", Text, nullable=False),
    Column("color", String(7), nullable=False),
    Column("icon", Text, nullable=False),
    Column("is_initial", Boolean, nullable=False, default=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("version", Integer, nullable=False, default=1),
)

# At most one initial category per user.
Index(
    "categories_initial_key",
    categories.c.user_id,
    unique=True,
    sqlite_where=categories.c.is_initial == true(),
    postgresql_where=categories.c.is_initial == true(),
)

accounts = Table(
    "accounts",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "user_id",
        Integer,
        ForeignKey("users.id", name="accounts_user_id_fkey", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("name", Text, nullable=False),
    Column("type", String(10), nullable=False),
    Column("balance_cents", BigInteger, nullable=False, default=0),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("version", Integer, nullable=False, default=1),
)

transactions = Table(
    "transactions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "account_id",
        Integer,
        ForeignKey("accounts.id", name="transactions_account_id_fkey", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "category_id",
        Integer,
        ForeignKey("categories.id", name="transactions_category_id_fkey"),
        nullable=False,
    ),
    Column(
        "user_id",
        Integer,
        ForeignKey("users.id", name="transactions_user_id_fkey", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("amount_cents", BigInteger, nullable=False),
    Column("title", Text, nullable=False),
    Column("date", DateTime(timezone=True), nullable=False),
    Column("attachment", Text, nullable=True),
    Column("note", Text, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("version", Integer, nullable=False, default=1),
)

Index("transactions_account_id_idx", transactions.c.account_id)
Index("transactions_user_id_idx", transactions.c.user_id)

recurring_transactions = Table(
    "recurring_transactions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "user_id",
        Integer,
        ForeignKey("users.id", name="recurring_transactions_user_id_fkey", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "account_id",
        Integer,
        ForeignKey(
            "accounts.id",
            name="recurring_transactions_account_id_fkey",
            ondelete="CASCADE",
        ),
        nullable=False,
    ),
    Column(
        "category_id",
        Integer,
        ForeignKey("categories.id", name="recurring_transactions_category_id_fkey"),
        nullable=False,
    ),
    Column("title", Text, nullable=False),
    Column("amount_cents", BigInteger, nullable=False),
    Column("note", Text, nullable=True),
    Column("frequency", String(10), nullable=False),
    Column("interval", Integer, nullable=False),
    Column("start_date", Date, nullable=False),
    Column("end_date", Date, nullable=True),
    Column("day_of_month", Integer, nullable=True),
    Column("day_of_week", Integer, nullable=True),
    Column("max_occurrences", Integer, nullable=True),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("version", Integer, nullable=False, default=1),
)


# =============================================================================
# CONSTRAINT -> DOMAIN ERROR TABLES
# =============================================================================

def _caller_not_found() -> LedgerError:
    return NotFoundError("user not found")


FOREIGN_KEY_ERRORS = {
    "transactions_category_id_fkey": lambda: InvalidReferenceError("category"),
    "transactions_account_id_fkey": lambda: InvalidReferenceError("account"),
    "recurring_transactions_category_id_fkey": lambda: InvalidReferenceError("category"),
    "recurring_transactions_account_id_fkey": lambda: InvalidReferenceError("account"),
    "transactions_user_id_fkey": _caller_not_found,
    "recurring_transactions_user_id_fkey": _caller_not_found,
    "categories_user_id_fkey": _caller_not_found,
    "accounts_user_id_fkey": _caller_not_found,
    "tokens_user_id_fkey": _caller_not_found,
}

UNIQUE_ERRORS = {
    "users_username_key": lambda: DuplicateIdentifierError("username"),
    "categories_initial_key": lambda: DuplicateIdentifierError("initial category"),
}

# SQLite names the violated columns rather than the constraint.
SQLITE_UNIQUE_COLUMNS = {
    "users.username": "users_username_key",
    "categories.user_id": "categories_initial_key",
}


# =============================================================================
# SQLITE FOREIGN-KEY TRIGGERS
# =============================================================================

# SQLite reports every foreign-key failure as a bare "FOREIGN KEY constraint
# failed". These triggers run first and abort with the constraint name
# instead, so both backends surface the same name.

_FK_TRIGGER = """
CREATE TRIGGER IF NOT EXISTS {name}_{op}
BEFORE {event} ON {table}
FOR EACH ROW WHEN NEW.{column} IS NOT NULL
    AND NOT EXISTS (SELECT 1 FROM {parent} WHERE {parent_column} = NEW.{column})
BEGIN
    SELECT RAISE(ABORT, '{name}');
END
"""


def foreign_key_trigger_ddl(table: Table) -> list[str]:
    statements = []
    for fk in sorted(table.foreign_keys, key=lambda fk: fk.constraint.name):
        params = {
            "name": fk.constraint.name,
            "table": table.name,
            "column": fk.parent.name,
            "parent": fk.column.table.name,
            "parent_column": fk.column.name,
        }
        statements.append(_FK_TRIGGER.format(op="insert", event="INSERT", **params))
        statements.append(
            _FK_TRIGGER.format(op="update", event=f"UPDATE OF {fk.parent.name}", **params)
        )
    return statements


@event.listens_for(metadata, "after_create")
def _create_sqlite_fk_triggers(target, connection, **kw):
    if connection.dialect.name != "sqlite":
        return
    for table in target.sorted_tables:
        for ddl in foreign_key_trigger_ddl(table):
            connection.exec_driver_sql(ddl)
