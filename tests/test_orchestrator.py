"""End-to-end tests through the LedgerService container."""

from types import SimpleNamespace

import pytest

from ledger.audit import AuditLogger
from ledger.config import Settings
from ledger.models import AuditEventBuilder, TransactionCreate
from ledger.orchestrator import LedgerService, create_ledger_service
from ledger.services import LedgerDatabase


@pytest.fixture
def service(monkeypatch):
    monkeypatch.setenv("LEDGER_SYSTEM_USER_ID", "1")
    svc = create_ledger_service(Settings(), database=LedgerDatabase("sqlite://"))
    yield svc
    svc.close()


class TestLedgerService:
    """Tests for wiring and a full user journey."""

    def test_factory_wires_managers(self, service):
        assert isinstance(service, LedgerService)
        assert isinstance(service.audit_logger, AuditLogger)

    def test_user_journey(self, service):
        admin = service.users.create("admin", "Admin", "admin password")
        shared = service.categories.create(admin.id, "Bills", "#f00", "b")

        user = service.users.create("dave", "Dave", "dave password")
        token = service.auth.create_auth_token("dave", "dave password")
        caller = service.users.get_for_token(token.plaintext)
        assert caller.id == user.id

        account = service.accounts.create(caller.id, "debit", "Bank", 50_000)
        assert shared.id in [c.id for c in service.categories.get_all(caller.id)]

        bill = service.transactions.create(
            caller.id,
            TransactionCreate(
                account_id=account.id, category_id=shared.id, amount_cents=-7_500, title="Power"
            ),
        )
        service.transactions.refund_by_id(bill.id, caller.id, reason="overcharged")

        assert service.accounts.get_sum_balance(account.id, caller.id) == 50_000
        assert len(service.transactions.get_all_for_account(account.id, caller.id)) == 3


class TestAuditLogger:
    """Tests for the structlog-backed audit logger."""

    def test_log_returns_true(self):
        event = AuditEventBuilder.account_deleted(1, 1)
        assert AuditLogger().log(event) is True

    def test_logging_failure_is_reported_not_raised(self):
        audit = AuditLogger()

        def _broken(*args, **kwargs):
            raise RuntimeError("sink unavailable")

        audit._logger = SimpleNamespace(info=_broken, warning=_broken, error=_broken)
        assert audit.log(AuditEventBuilder.account_deleted(1, 1)) is False
