"""Unit tests for the settlement sweep job."""
from datetime import datetime, timedelta
from unittest.mock import MagicMock
import pytest
from conftest import make_config
from mindbridge.core.exceptions import GatewayUnavailable
from mindbridge.models.checkout import CheckoutSession, CheckoutStatus
from mindbridge.models.payment_intent import IntentStatus
from mindbridge.services.booking_service import BookingService
from mindbridge.services.earnings_service import EarningsService
from mindbridge.services.reconciliation_service import ReconciliationEngine
from scheduler.settlement_sweeper import SettlementSweeper

STATUSES = {
    "int_paid": IntentStatus.SUCCEEDED,
    "int_failed": IntentStatus.FAILED,
    "int_waiting": IntentStatus.REQUIRES_PAYMENT,
}


@pytest.fixture
def gateway():
    gateway = MagicMock()

    def status(payment_intent_id):
        if payment_intent_id == "int_down":
            raise GatewayUnavailable("timeout")
        return STATUSES[payment_intent_id]

    gateway.get_intent_status.side_effect = status
    return gateway


@pytest.fixture
def sweeper(gateway, appointment_repository, checkout_repository, earnings_repository, draft):
    config = make_config()
    for payment_intent_id in ("int_paid", "int_failed", "int_waiting", "int_down"):
        checkout_repository.create(CheckoutSession(payment_intent_id, "client_1", 50000, "HKD", draft=draft))
    checkout_repository.create(CheckoutSession(
        "int_old", "client_1", 50000, "HKD", draft=draft,
        created_at=datetime.utcnow() - timedelta(hours=2)
    ))

    service = BookingService(
        gateway=gateway,
        engine=ReconciliationEngine(
            repository=appointment_repository,
            earnings_service=EarningsService(repository=earnings_repository, config=config)
        ),
        checkout_repository=checkout_repository,
        appointment_repository=appointment_repository,
        config=config,
        sdk_loader=MagicMock()
    )
    return SettlementSweeper(service)


class TestSettlementSweeper:
    """Test the sweep pass."""

    def test_reconciles_settled_checkouts(self, sweeper, appointment_repository, checkout_repository):
        results = sweeper.run()

        assert results["checked"] == 4
        assert results["reconciled"] == 1
        assert results["failed"] == 1
        assert results["pending"] == 1
        assert len(results["errors"]) == 1
        assert "int_down" in results["errors"][0]

        assert appointment_repository.find_by_payment_intent("int_paid") is not None
        assert checkout_repository.get("int_paid").status == CheckoutStatus.RECONCILED
        assert checkout_repository.get("int_failed").status == CheckoutStatus.FAILED
        assert checkout_repository.get("int_waiting").status == CheckoutStatus.OPEN
        assert checkout_repository.get("int_old").status == CheckoutStatus.OPEN

    def test_second_pass_does_not_rebook(self, sweeper, appointment_repository):
        sweeper.run()
        results = sweeper.run()

        assert results["reconciled"] == 0
        assert len(appointment_repository.appointments) == 1

    def test_dry_run_writes_nothing(self, sweeper, appointment_repository, checkout_repository):
        results = sweeper.run(dry_run=True)

        assert results["reconciled"] == 1
        assert appointment_repository.appointments == {}
        assert checkout_repository.get("int_failed").status == CheckoutStatus.OPEN

    def test_wider_window_includes_older_sessions(self, sweeper, monkeypatch):
        monkeypatch.setitem(STATUSES, "int_old", IntentStatus.REQUIRES_PAYMENT)

        results = sweeper.run(max_age_minutes=180)

        assert results["checked"] == 5
