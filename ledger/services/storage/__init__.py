"""
Storage Services Package

Provides the abstract queries interface and its SQLAlchemy implementation.
PostgreSQL is the production backend; SQLite serves local use and tests.
"""

from ledger.services.storage.interface import (
    LedgerDatabaseInterface,
    LedgerQueriesInterface,
)
from ledger.services.storage.sql import (
    LedgerDatabase,
    SQLLedgerQueries,
    classify_integrity_error,
    constraint_name,
    create_ledger_engine,
)

__all__ = [
    # Interfaces
    "LedgerDatabaseInterface",
    "LedgerQueriesInterface",
    # SQLAlchemy implementation
    "LedgerDatabase",
    "SQLLedgerQueries",
    "classify_integrity_error",
    "constraint_name",
    "create_ledger_engine",
]
