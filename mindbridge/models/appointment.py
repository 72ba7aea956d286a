"""Appointment domain model."""
from typing import Optional, Dict, Any
from datetime import datetime
from dataclasses import dataclass, field
from enum import Enum


class AppointmentStatus(str, Enum):
    """Appointment lifecycle."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Payment state of an appointment."""
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class ConsultationType(str, Enum):
    """How the session is held."""
    ONLINE = "online"
    IN_PERSON = "in-person"


# Allowed status moves for PUT /api/appointments/<id>
STATUS_TRANSITIONS = {
    AppointmentStatus.PENDING: {AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED},
    AppointmentStatus.CONFIRMED: {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED},
    AppointmentStatus.COMPLETED: set(),
    AppointmentStatus.CANCELLED: set(),
}


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


@dataclass
class AppointmentDraft:
    """A client's intent to book, held until settlement succeeds."""
    therapist_id: str
    slot_start: datetime
    consultation_type: ConsultationType
    price: int  # minor currency units
    notes: str = ""
    duration_minutes: int = 60

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "therapist_id": self.therapist_id,
            "slot_start": self.slot_start.isoformat(),
            "consultation_type": self.consultation_type.value,
            "price": self.price,
            "notes": self.notes,
            "duration_minutes": self.duration_minutes
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppointmentDraft":
        """Create from dictionary."""
        return cls(
            therapist_id=str(data["therapist_id"]),
            slot_start=_parse_datetime(data["slot_start"]),
            consultation_type=ConsultationType(data["consultation_type"]),
            price=int(data["price"]),
            notes=data.get("notes") or "",
            duration_minutes=int(data.get("duration_minutes") or 60)
        )


@dataclass
class Appointment:
    """A persisted booking between a client and a therapist."""
    id: str
    client_id: str
    therapist_id: str
    slot_start: datetime
    consultation_type: ConsultationType
    price: int
    status: AppointmentStatus = AppointmentStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_intent_id: Optional[str] = None
    notes: str = ""
    duration_minutes: int = 60
    paid_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def is_paid(self) -> bool:
        """Check if the appointment has been paid for."""
        return self.payment_status == PaymentStatus.PAID

    def can_transition_to(self, status: AppointmentStatus) -> bool:
        """Check whether a status change is allowed."""
        return status == self.status or status in STATUS_TRANSITIONS[self.status]

    @classmethod
    def from_draft(
        cls,
        appointment_id: str,
        client_id: str,
        draft: AppointmentDraft,
        payment_intent_id: str
    ) -> "Appointment":
        """Materialise a paid appointment from a booking draft."""
        now = datetime.utcnow()
        return cls(
            id=appointment_id,
            client_id=client_id,
            therapist_id=draft.therapist_id,
            slot_start=draft.slot_start,
            consultation_type=draft.consultation_type,
            price=draft.price,
            status=AppointmentStatus.PENDING,
            payment_status=PaymentStatus.PAID,
            payment_intent_id=payment_intent_id,
            notes=draft.notes,
            duration_minutes=draft.duration_minutes,
            paid_at=now,
            created_at=now,
            updated_at=now
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert appointment to dictionary for storage."""
        return {
            "id": self.id,
            "client_id": self.client_id,
            "therapist_id": self.therapist_id,
            "slot_start": self.slot_start.isoformat(),
            "consultation_type": self.consultation_type.value,
            "price": self.price,
            "status": self.status.value,
            "payment_status": self.payment_status.value,
            "payment_intent_id": self.payment_intent_id,
            "notes": self.notes,
            "duration_minutes": self.duration_minutes,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Appointment":
        """Create appointment from dictionary."""
        return cls(
            id=str(data["id"]),
            client_id=data["client_id"],
            therapist_id=str(data["therapist_id"]),
            slot_start=_parse_datetime(data["slot_start"]),
            consultation_type=ConsultationType(data["consultation_type"]),
            price=int(data.get("price") or 0),
            status=AppointmentStatus(data.get("status", AppointmentStatus.PENDING.value)),
            payment_status=PaymentStatus(data.get("payment_status", PaymentStatus.PENDING.value)),
            payment_intent_id=data.get("payment_intent_id"),
            notes=data.get("notes") or "",
            duration_minutes=int(data.get("duration_minutes") or 60),
            paid_at=_parse_datetime(data.get("paid_at")),
            created_at=_parse_datetime(data.get("created_at")) or datetime.utcnow(),
            updated_at=_parse_datetime(data.get("updated_at")) or datetime.utcnow()
        )
