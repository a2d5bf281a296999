"""
Ledger Service Wiring

Builds the managers over one shared LedgerDatabase and AuditLogger. The
outer layer (HTTP handlers, CLI) holds a single LedgerService and calls
its managers with an already-authenticated user id.

    service = create_ledger_service()
    user = service.users.create("alice", "Alice", "correct horse")
    account = service.accounts.create(user.id, "cash", "Wallet", 10_000)
"""

from datetime import timedelta
from typing import Optional

import structlog

from ledger.audit import AuditLogger, configure_logging
from ledger.config import Settings, get_settings
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


logger = structlog.get_logger(__name__)


class LedgerService:
    """
    Container for the ledger managers.

    All managers share the same database and audit logger. The optional
    system user is the legacy owner of categories shown to everyone.
    """

    def __init__(
        self,
        database: LedgerDatabase,
        audit_logger: Optional[AuditLogger] = None,
        system_user_id: Optional[int] = None,
        token_ttl: timedelta = timedelta(hours=24),
    ):
        self.database = database
        self.audit_logger = audit_logger

        self.users = UserManager(database, audit_logger)
        self.auth = AuthManager(database, audit_logger, token_ttl=token_ttl)
        self.tokens = TokenManager(database, audit_logger)
        self.categories = CategoryManager(database, audit_logger, system_user_id=system_user_id)
        self.accounts = AccountManager(database, audit_logger)
        self.transactions = TransactionManager(
            database, audit_logger, system_user_id=system_user_id
        )
        self.recurring = RecurringTransactionManager(
            database, audit_logger, system_user_id=system_user_id
        )

    def close(self) -> None:
        self.database.dispose()


def create_ledger_service(
    settings: Optional[Settings] = None,
    database: Optional[LedgerDatabase] = None,
) -> LedgerService:
    """
    Factory function to create a ready-to-use LedgerService.

    Args:
        settings: Configuration to use; defaults to get_settings()
        database: Pre-built database (tests pass an in-memory one);
                  otherwise one is built from the database settings

    Raises:
        InternalError: If the store cannot be reached
    """
    settings = settings or get_settings()
    app_settings = settings.app

    configure_logging(app_settings.log_level)

    if database is None:
        database = LedgerDatabase.from_settings(settings.database)
    database.connect()

    logger.info(
        "ledger_service_started",
        environment=app_settings.app_environment,
        system_user_id=app_settings.system_user_id,
    )

    return LedgerService(
        database,
        audit_logger=AuditLogger(),
        system_user_id=app_settings.system_user_id,
        token_ttl=timedelta(hours=settings.auth.token_ttl_hours),
    )
