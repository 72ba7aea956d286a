"""Unit tests for therapist earnings and checkout sessions."""
from mindbridge.models.checkout import CheckoutSession, CheckoutStatus
from mindbridge.models.earnings import EarningsStatus, TherapistEarnings


class TestTherapistEarnings:
    """Test TherapistEarnings model."""

    def test_commission_split(self):
        earnings = TherapistEarnings.for_appointment("a1", "t1", 50000, 0.5)

        assert earnings.amount == 50000
        assert earnings.commission == 25000
        assert earnings.net_amount == 25000
        assert earnings.status == EarningsStatus.PENDING

    def test_odd_amount_keeps_total(self):
        earnings = TherapistEarnings.for_appointment("a1", "t1", 333, 0.3)

        assert earnings.commission == 100
        assert earnings.commission + earnings.net_amount == 333


class TestCheckoutSession:
    """Test CheckoutSession model."""

    def test_target_prefers_existing_appointment(self, draft):
        session = CheckoutSession("int_1", "client_1", 50000, "HKD", existing_appointment_id="42")

        assert session.target == "42"

    def test_target_is_draft_for_new_booking(self, draft):
        session = CheckoutSession("int_1", "client_1", 50000, "HKD", draft=draft)

        assert session.target is draft
        assert session.is_open()

    def test_dict_round_trip_keeps_draft(self, draft):
        session = CheckoutSession("int_1", "client_1", 50000, "HKD", draft=draft, status=CheckoutStatus.FAILED)

        restored = CheckoutSession.from_dict(session.to_dict())

        assert restored.draft == draft
        assert restored.status == CheckoutStatus.FAILED
