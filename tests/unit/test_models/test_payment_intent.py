"""Unit tests for payment intent models."""
import pytest
from mindbridge.models.payment_intent import IntentStatus, PaymentIntent


class TestIntentStatus:
    """Test processor status normalisation."""

    @pytest.mark.parametrize("raw,expected", [
        ("SUCCEEDED", IntentStatus.SUCCEEDED),
        ("FAILED", IntentStatus.FAILED),
        ("CANCELLED", IntentStatus.CANCELLED),
        ("CANCELED", IntentStatus.CANCELLED),
        ("REQUIRES_PAYMENT_METHOD", IntentStatus.REQUIRES_PAYMENT),
        ("REQUIRES_CUSTOMER_ACTION", IntentStatus.REQUIRES_PAYMENT),
        ("PENDING", IntentStatus.REQUIRES_PAYMENT),
        (None, IntentStatus.REQUIRES_PAYMENT),
    ])
    def test_from_processor(self, raw, expected):
        assert IntentStatus.from_processor(raw) == expected

    def test_terminal_states(self):
        assert IntentStatus.SUCCEEDED.is_terminal
        assert IntentStatus.FAILED.is_terminal
        assert IntentStatus.CANCELLED.is_terminal
        assert not IntentStatus.REQUIRES_PAYMENT.is_terminal


class TestPaymentIntent:
    """Test PaymentIntent model."""

    def test_from_processor_converts_amount_to_minor_units(self):
        intent = PaymentIntent.from_processor({
            "id": "int_hkdm9",
            "amount": 500.0,
            "currency": "HKD",
            "status": "REQUIRES_PAYMENT_METHOD",
            "client_secret": "secret",
            "customer_id": "cus_1",
            "created_at": "2025-07-03T04:10:02Z"
        })

        assert intent.id == "int_hkdm9"
        assert intent.amount == 50000
        assert intent.status == IntentStatus.REQUIRES_PAYMENT
        assert intent.processor_status == "REQUIRES_PAYMENT_METHOD"
        assert intent.customer_reference == "cus_1"
        assert intent.sandbox is False
        assert intent.created_at.year == 2025

    def test_from_processor_tolerates_bad_timestamp(self):
        intent = PaymentIntent.from_processor({
            "id": "int_1",
            "amount": 10,
            "currency": "JPY",
            "status": "SUCCEEDED",
            "created_at": "yesterday"
        })

        assert intent.amount == 10
        assert intent.is_terminal()

    def test_to_dict(self):
        intent = PaymentIntent(
            id="int_1",
            amount=50000,
            currency="HKD",
            status=IntentStatus.SUCCEEDED,
            client_secret="secret"
        )

        result = intent.to_dict()

        assert result["id"] == "int_1"
        assert result["amount"] == 50000
        assert result["status"] == "SUCCEEDED"
        assert result["client_secret"] == "secret"
