"""Therapist earnings model."""
from typing import Dict, Any
from datetime import datetime
from dataclasses import dataclass, field
from enum import Enum


class EarningsStatus(str, Enum):
    """Earnings availability."""
    PENDING = "pending"  # paid, session not yet held
    AVAILABLE = "available"
    WITHDRAWN = "withdrawn"


@dataclass
class TherapistEarnings:
    """Therapist share of one paid appointment."""
    appointment_id: str
    therapist_id: str
    amount: int
    commission: int
    net_amount: int
    status: EarningsStatus = EarningsStatus.PENDING
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    @classmethod
    def for_appointment(
        cls,
        appointment_id: str,
        therapist_id: str,
        price: int,
        commission_rate: float,
        status: EarningsStatus = EarningsStatus.PENDING
    ) -> "TherapistEarnings":
        """Split an appointment price into platform commission and therapist share."""
        commission = int(round(price * commission_rate))
        return cls(
            appointment_id=appointment_id,
            therapist_id=therapist_id,
            amount=price,
            commission=commission,
            net_amount=price - commission,
            status=status
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "appointment_id": self.appointment_id,
            "therapist_id": self.therapist_id,
            "amount": self.amount,
            "commission": self.commission,
            "net_amount": self.net_amount,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TherapistEarnings":
        return cls(
            appointment_id=str(data["appointment_id"]),
            therapist_id=str(data["therapist_id"]),
            amount=int(data["amount"]),
            commission=int(data["commission"]),
            net_amount=int(data["net_amount"]),
            status=EarningsStatus(data.get("status", EarningsStatus.PENDING.value)),
            created_at=datetime.fromisoformat(data["created_at"]) if data.get("created_at") else datetime.utcnow(),
            updated_at=datetime.fromisoformat(data["updated_at"]) if data.get("updated_at") else datetime.utcnow()
        )
