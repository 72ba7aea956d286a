"""Unit tests for appointment models."""
from datetime import datetime
from mindbridge.models.appointment import (
    Appointment,
    AppointmentDraft,
    AppointmentStatus,
    ConsultationType,
    PaymentStatus,
)


class TestAppointmentDraft:
    """Test AppointmentDraft model."""

    def test_from_dict(self):
        draft = AppointmentDraft.from_dict({
            "therapist_id": 7,
            "slot_start": "2025-07-03T10:00:00Z",
            "consultation_type": "in-person",
            "price": "50000"
        })

        assert draft.therapist_id == "7"
        assert draft.slot_start.hour == 10
        assert draft.consultation_type == ConsultationType.IN_PERSON
        assert draft.price == 50000
        assert draft.notes == ""
        assert draft.duration_minutes == 60


class TestAppointment:
    """Test Appointment model."""

    def test_from_draft_is_paid_and_pending(self, draft):
        appointment = Appointment.from_draft("a1", "client_1", draft, "int_1")

        assert appointment.id == "a1"
        assert appointment.client_id == "client_1"
        assert appointment.therapist_id == draft.therapist_id
        assert appointment.status == AppointmentStatus.PENDING
        assert appointment.payment_status == PaymentStatus.PAID
        assert appointment.payment_intent_id == "int_1"
        assert appointment.paid_at is not None
        assert appointment.is_paid()

    def test_dict_round_trip(self, draft):
        appointment = Appointment.from_draft("a1", "client_1", draft, "int_1")

        restored = Appointment.from_dict(appointment.to_dict())

        assert restored == appointment

    def test_status_transitions(self, unpaid_appointment):
        assert unpaid_appointment.can_transition_to(AppointmentStatus.CONFIRMED)
        assert unpaid_appointment.can_transition_to(AppointmentStatus.CANCELLED)
        assert not unpaid_appointment.can_transition_to(AppointmentStatus.COMPLETED)

        unpaid_appointment.status = AppointmentStatus.COMPLETED
        assert not unpaid_appointment.can_transition_to(AppointmentStatus.CANCELLED)

    def test_from_dict_defaults(self):
        appointment = Appointment.from_dict({
            "id": 42,
            "client_id": "client_1",
            "therapist_id": "t1",
            "slot_start": datetime(2025, 7, 3, 10, 0).isoformat(),
            "consultation_type": "online"
        })

        assert appointment.id == "42"
        assert appointment.price == 0
        assert appointment.status == AppointmentStatus.PENDING
        assert not appointment.is_paid()
