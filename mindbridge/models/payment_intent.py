"""Payment intent domain model.

Mirrors the processor-side record for one checkout attempt. Instances are
snapshots: the processor is always the source of truth for ``status``.
"""
from typing import Optional, Dict, Any
from datetime import datetime
from dataclasses import dataclass, field
from enum import Enum

from mindbridge.utils.money import to_minor_units


class IntentStatus(str, Enum):
    """Normalised payment intent status."""
    REQUIRES_PAYMENT = "REQUIRES_PAYMENT"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self is not IntentStatus.REQUIRES_PAYMENT

    @classmethod
    def from_processor(cls, raw_status: Optional[str]) -> "IntentStatus":
        """Map the processor's status vocabulary onto ours.

        REQUIRES_PAYMENT_METHOD, REQUIRES_CUSTOMER_ACTION, REQUIRES_CAPTURE,
        PENDING and anything unknown are all still in flight.
        """
        value = (raw_status or "").upper()
        if value == "SUCCEEDED":
            return cls.SUCCEEDED
        if value in ("CANCELLED", "CANCELED"):
            return cls.CANCELLED
        if value == "FAILED":
            return cls.FAILED
        return cls.REQUIRES_PAYMENT


@dataclass
class PaymentIntent:
    """A processor-side payment intent."""
    id: str
    amount: int  # minor currency units
    currency: str
    status: IntentStatus
    customer_reference: Optional[str] = None
    client_secret: Optional[str] = None
    merchant_order_id: Optional[str] = None
    processor_status: Optional[str] = None
    last_payment_error: Optional[Dict[str, Any]] = None
    sandbox: bool = False
    created_at: datetime = field(default_factory=datetime.utcnow)

    def is_terminal(self) -> bool:
        """Check if the intent has reached a final state."""
        return self.status.is_terminal

    @classmethod
    def from_processor(cls, data: Dict[str, Any]) -> "PaymentIntent":
        """Create from a processor API response (amounts in major units)."""
        created_at = datetime.utcnow()
        if data.get("created_at"):
            try:
                created_at = datetime.fromisoformat(data["created_at"].replace("Z", "+00:00"))
            except (TypeError, ValueError):
                pass
        return cls(
            id=data["id"],
            amount=to_minor_units(data.get("amount") or 0, data.get("currency") or ""),
            currency=data.get("currency", ""),
            status=IntentStatus.from_processor(data.get("status")),
            customer_reference=data.get("customer_id"),
            client_secret=data.get("client_secret"),
            merchant_order_id=data.get("merchant_order_id"),
            processor_status=data.get("status"),
            last_payment_error=data.get("last_payment_error"),
            created_at=created_at
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the shape returned to API callers."""
        return {
            "id": self.id,
            "amount": self.amount,
            "currency": self.currency,
            "status": self.status.value,
            "processor_status": self.processor_status,
            "customer_id": self.customer_reference,
            "client_secret": self.client_secret,
            "merchant_order_id": self.merchant_order_id,
            "last_payment_error": self.last_payment_error,
            "sandbox": self.sandbox,
            "created_at": self.created_at.isoformat()
        }
