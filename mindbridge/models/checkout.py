"""Checkout session model.

A checkout session records what a payment intent is paying for, so that
monitoring can be restarted from scratch after a page reload and abandoned
sessions can be swept later.
"""
from typing import Optional, Dict, Any, Union
from datetime import datetime
from dataclasses import dataclass, field
from enum import Enum

from mindbridge.models.appointment import AppointmentDraft


class CheckoutStatus(str, Enum):
    """Checkout session state."""
    OPEN = "open"
    RECONCILED = "reconciled"
    FAILED = "failed"
    NEEDS_SUPPORT = "needs_support"


@dataclass
class CheckoutSession:
    """What a given payment intent is paying for."""
    payment_intent_id: str
    client_id: str
    amount: int
    currency: str
    draft: Optional[AppointmentDraft] = None
    existing_appointment_id: Optional[str] = None
    status: CheckoutStatus = CheckoutStatus.OPEN
    appointment_id: Optional[str] = None
    sandbox: bool = False
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def target(self) -> Union[AppointmentDraft, str]:
        """The draft to book, or the id of the appointment being re-paid."""
        if self.existing_appointment_id:
            return self.existing_appointment_id
        return self.draft

    def is_open(self) -> bool:
        return self.status == CheckoutStatus.OPEN

    def to_dict(self) -> Dict[str, Any]:
        return {
            "payment_intent_id": self.payment_intent_id,
            "client_id": self.client_id,
            "amount": self.amount,
            "currency": self.currency,
            "draft": self.draft.to_dict() if self.draft else None,
            "existing_appointment_id": self.existing_appointment_id,
            "status": self.status.value,
            "appointment_id": self.appointment_id,
            "sandbox": self.sandbox,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CheckoutSession":
        return cls(
            payment_intent_id=data["payment_intent_id"],
            client_id=data["client_id"],
            amount=int(data["amount"]),
            currency=data["currency"],
            draft=AppointmentDraft.from_dict(data["draft"]) if data.get("draft") else None,
            existing_appointment_id=data.get("existing_appointment_id"),
            status=CheckoutStatus(data.get("status", CheckoutStatus.OPEN.value)),
            appointment_id=data.get("appointment_id"),
            sandbox=bool(data.get("sandbox", False)),
            created_at=datetime.fromisoformat(data["created_at"]) if data.get("created_at") else datetime.utcnow(),
            updated_at=datetime.fromisoformat(data["updated_at"]) if data.get("updated_at") else datetime.utcnow()
        )
