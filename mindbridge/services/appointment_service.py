"""Service for reading and updating appointments."""
from typing import Optional, Dict, Any
from datetime import datetime
from mindbridge.models.appointment import Appointment, AppointmentStatus
from mindbridge.repositories.appointment_repository import AppointmentRepository
from mindbridge.services.earnings_service import EarningsService
from mindbridge.core.exceptions import (
    AuthorizationError,
    BusinessLogicError,
    ResourceNotFoundError,
    ValidationError,
)
from mindbridge.core.logging import get_logger

logger = get_logger(__name__)

EDITABLE_FIELDS = ("status", "notes")


class AppointmentService:
    """Service for appointment business logic."""

    def __init__(
        self,
        repository: Optional[AppointmentRepository] = None,
        earnings_service: Optional[EarningsService] = None
    ):
        self.repository = repository or AppointmentRepository()
        self.earnings_service = earnings_service or EarningsService()

    def get_for_user(self, appointment_id: str, user_id: str) -> Appointment:
        """Get an appointment visible to the given client or therapist."""
        appointment = self.repository.get(appointment_id)
        if appointment is None:
            raise ResourceNotFoundError("Appointment", appointment_id)
        if user_id not in (appointment.client_id, appointment.therapist_id):
            raise AuthorizationError("You do not have access to this appointment")
        return appointment

    def update(self, appointment_id: str, user_id: str, changes: Dict[str, Any]) -> Appointment:
        """Apply a status change and/or new notes."""
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(
                f"Fields cannot be updated: {', '.join(sorted(unknown))}",
                details={"fields": sorted(unknown)}
            )

        appointment = self.get_for_user(appointment_id, user_id)
        previous_status = appointment.status

        if "status" in changes:
            try:
                new_status = AppointmentStatus(changes["status"])
            except ValueError:
                raise ValidationError(f"Invalid status: {changes['status']}", field="status")

            if not appointment.can_transition_to(new_status):
                raise BusinessLogicError(
                    f"Cannot change appointment from {appointment.status.value} to {new_status.value}",
                    {"appointment_id": appointment.id}
                )
            if new_status == AppointmentStatus.CONFIRMED and not appointment.is_paid():
                raise BusinessLogicError(
                    "Appointment must be paid before it can be confirmed",
                    {"appointment_id": appointment.id}
                )
            appointment.status = new_status

        if "notes" in changes:
            appointment.notes = str(changes["notes"] or "")

        appointment.updated_at = datetime.utcnow()
        self.repository.upsert(appointment)

        if appointment.status == AppointmentStatus.COMPLETED and previous_status != AppointmentStatus.COMPLETED:
            self.earnings_service.release_for_completed(appointment)

        logger.info(
            "Updated appointment",
            extra={
                "appointment_id": appointment.id,
                "previous_status": previous_status.value,
                "new_status": appointment.status.value
            }
        )
        return appointment
