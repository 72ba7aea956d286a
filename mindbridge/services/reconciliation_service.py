"""Turns a confirmed settlement into exactly one paid appointment."""
import uuid
from typing import Optional, Union
from dataclasses import dataclass
from mindbridge.models.appointment import Appointment, AppointmentDraft
from mindbridge.repositories.appointment_repository import AppointmentRepository
from mindbridge.services.earnings_service import EarningsService
from mindbridge.core.exceptions import (
    DuplicateSettlement,
    MindbridgeException,
    PersistenceError,
    PostSettlementPersistenceFailure,
)
from mindbridge.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ReconciliationResult:
    """Outcome of one reconcile call."""
    appointment: Appointment
    created: bool = False
    updated: bool = False

    @property
    def changed(self) -> bool:
        return self.created or self.updated


class ReconciliationEngine:
    """Idempotent on ``payment_intent_id``: repeat calls are no-ops."""

    def __init__(
        self,
        repository: Optional[AppointmentRepository] = None,
        earnings_service: Optional[EarningsService] = None
    ):
        self.repository = repository or AppointmentRepository()
        self.earnings_service = earnings_service or EarningsService()

    def reconcile(
        self,
        payment_intent_id: str,
        draft_or_existing_id: Union[AppointmentDraft, str],
        client_id: str
    ) -> ReconciliationResult:
        """Commit the appointment for a SUCCEEDED intent.

        Only call this once settlement has been confirmed with the processor.

        Raises:
            PostSettlementPersistenceFailure: the money moved but the
                appointment could not be stored.
            DuplicateSettlement: the appointment was already paid by another
                payment intent.
        """
        try:
            result = self._reconcile(payment_intent_id, draft_or_existing_id, client_id)
        except PersistenceError as e:
            logger.error(
                f"Failed to persist appointment after settlement: {e.message}",
                extra={"payment_intent_id": payment_intent_id, "client_id": client_id}
            )
            raise PostSettlementPersistenceFailure(payment_intent_id, e.message) from e

        if result.changed:
            self._after_paid(result.appointment)

        logger.info(
            "Reconciled payment intent",
            extra={
                "payment_intent_id": payment_intent_id,
                "appointment_id": result.appointment.id,
                "appointment_created": result.created,
                "appointment_updated": result.updated
            }
        )
        return result

    def _reconcile(
        self,
        payment_intent_id: str,
        draft_or_existing_id: Union[AppointmentDraft, str],
        client_id: str
    ) -> ReconciliationResult:
        existing = self.repository.find_by_payment_intent(payment_intent_id)
        if existing is not None and existing.is_paid():
            return ReconciliationResult(appointment=existing)

        if isinstance(draft_or_existing_id, AppointmentDraft):
            appointment = Appointment.from_draft(
                appointment_id=str(uuid.uuid4()),
                client_id=client_id,
                draft=draft_or_existing_id,
                payment_intent_id=payment_intent_id
            )
            appointment, created = self.repository.create_for_payment_intent(appointment)
            return ReconciliationResult(appointment=appointment, created=created)

        appointment, updated = self.repository.mark_paid(str(draft_or_existing_id), payment_intent_id)
        if appointment is None:
            raise PersistenceError(
                f"Appointment {draft_or_existing_id} no longer exists",
                details={"appointment_id": str(draft_or_existing_id)}
            )
        if not updated and appointment.payment_intent_id != payment_intent_id:
            logger.error(
                "Payment settled for an appointment that another payment already covers",
                extra={
                    "payment_intent_id": payment_intent_id,
                    "appointment_id": appointment.id,
                    "paid_by_payment_intent_id": appointment.payment_intent_id
                }
            )
            raise DuplicateSettlement(payment_intent_id, appointment.id, appointment.payment_intent_id)
        return ReconciliationResult(appointment=appointment, updated=updated)

    def _after_paid(self, appointment: Appointment) -> None:
        # The appointment is committed; bookkeeping failures must not undo that.
        try:
            self.earnings_service.record_paid_appointment(appointment)
        except MindbridgeException as e:
            logger.error(
                f"Failed to record earnings for paid appointment: {e.message}",
                extra={"appointment_id": appointment.id, "payment_intent_id": appointment.payment_intent_id}
            )
