"""Unit tests for AppointmentService."""
from unittest.mock import MagicMock
import pytest
from mindbridge.core.exceptions import (
    AuthorizationError,
    BusinessLogicError,
    ResourceNotFoundError,
    ValidationError,
)
from mindbridge.models.appointment import AppointmentStatus, PaymentStatus
from mindbridge.services.appointment_service import AppointmentService


@pytest.fixture
def earnings_service():
    return MagicMock()


@pytest.fixture
def service(appointment_repository, earnings_service, unpaid_appointment):
    appointment_repository.upsert(unpaid_appointment)
    return AppointmentService(repository=appointment_repository, earnings_service=earnings_service)


class TestGetForUser:
    """Test appointment access."""

    def test_client_and_therapist_can_read(self, service):
        assert service.get_for_user("42", "client_1").id == "42"
        assert service.get_for_user("42", "therapist_7").id == "42"

    def test_other_users_cannot_read(self, service):
        with pytest.raises(AuthorizationError):
            service.get_for_user("42", "someone_else")

    def test_missing(self, service):
        with pytest.raises(ResourceNotFoundError):
            service.get_for_user("404", "client_1")


class TestUpdate:
    """Test appointment updates."""

    def test_unpaid_cannot_be_confirmed(self, service):
        with pytest.raises(BusinessLogicError):
            service.update("42", "therapist_7", {"status": "confirmed"})

    def test_lifecycle_releases_earnings_on_completion(self, service, unpaid_appointment, earnings_service):
        unpaid_appointment.payment_status = PaymentStatus.PAID

        service.update("42", "therapist_7", {"status": "confirmed"})
        earnings_service.release_for_completed.assert_not_called()

        appointment = service.update("42", "therapist_7", {"status": "completed"})

        assert appointment.status == AppointmentStatus.COMPLETED
        earnings_service.release_for_completed.assert_called_once_with(appointment)

    def test_invalid_transition(self, service):
        with pytest.raises(BusinessLogicError):
            service.update("42", "client_1", {"status": "completed"})

    def test_cancel(self, service):
        appointment = service.update("42", "client_1", {"status": "cancelled"})

        assert appointment.status == AppointmentStatus.CANCELLED

    def test_unknown_status(self, service):
        with pytest.raises(ValidationError):
            service.update("42", "client_1", {"status": "rescheduled"})

    def test_read_only_fields(self, service):
        with pytest.raises(ValidationError):
            service.update("42", "client_1", {"price": 1})

    def test_notes(self, service):
        appointment = service.update("42", "client_1", {"notes": "Running late"})

        assert appointment.notes == "Running late"
        assert appointment.status == AppointmentStatus.PENDING
