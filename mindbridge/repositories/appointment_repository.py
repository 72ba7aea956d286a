"""Repository for managing appointments in Firestore.

Uniqueness of ``payment_intent_id`` across appointments is enforced here with
a claim document per intent in ``appointment_payment_intents``. The claim and
the appointment are always written in the same batch or transaction.
"""
from typing import Optional, Tuple
from datetime import datetime
from firebase_admin import firestore
from google.api_core.exceptions import AlreadyExists
from google.cloud.firestore_v1 import FieldFilter
from mindbridge.models.appointment import Appointment, PaymentStatus
from mindbridge.core.exceptions import PersistenceError
from mindbridge.core.logging import get_logger
from mindbridge.utils.firebase import get_firestore_client

logger = get_logger(__name__)


@firestore.transactional
def _mark_paid_in_transaction(transaction, appointment_ref, claim_ref, payment_intent_id: str):
    snapshot = appointment_ref.get(transaction=transaction)
    if not snapshot.exists:
        return None, False

    appointment = Appointment.from_dict(snapshot.to_dict())
    if appointment.is_paid():
        return appointment, False

    now = datetime.utcnow()
    appointment.payment_status = PaymentStatus.PAID
    appointment.payment_intent_id = payment_intent_id
    appointment.paid_at = now
    appointment.updated_at = now

    transaction.update(appointment_ref, {
        "payment_status": PaymentStatus.PAID.value,
        "payment_intent_id": payment_intent_id,
        "paid_at": now.isoformat(),
        "updated_at": now.isoformat()
    })
    transaction.set(claim_ref, {
        "appointment_id": appointment.id,
        "created_at": now.isoformat()
    })
    return appointment, True


class AppointmentRepository:
    """Repository for appointment data access."""

    COLLECTION_NAME = "appointments"
    CLAIMS_COLLECTION_NAME = "appointment_payment_intents"

    def __init__(self):
        self.db = get_firestore_client()
        self.collection = self.db.collection(self.COLLECTION_NAME)
        self.claims = self.db.collection(self.CLAIMS_COLLECTION_NAME)

    def get(self, appointment_id: str) -> Optional[Appointment]:
        """Get an appointment by ID."""
        try:
            doc = self.collection.document(str(appointment_id)).get()

            if not doc.exists:
                return None

            return Appointment.from_dict(doc.to_dict())
        except Exception as e:
            logger.error(
                f"Failed to get appointment: {e}",
                extra={"appointment_id": appointment_id}
            )
            raise PersistenceError(f"Failed to get appointment: {str(e)}")

    def upsert(self, appointment: Appointment) -> Appointment:
        """Create or overwrite an appointment."""
        try:
            appointment.updated_at = datetime.utcnow()
            self.collection.document(appointment.id).set(appointment.to_dict(), merge=True)

            logger.info(
                "Upserted appointment",
                extra={
                    "appointment_id": appointment.id,
                    "status": appointment.status.value,
                    "payment_status": appointment.payment_status.value
                }
            )

            return appointment
        except Exception as e:
            logger.error(
                f"Failed to upsert appointment: {e}",
                extra={"appointment_id": appointment.id}
            )
            raise PersistenceError(f"Failed to save appointment: {str(e)}")

    def find_by_payment_intent(self, payment_intent_id: str) -> Optional[Appointment]:
        """Get the appointment paid for by the given intent, if any."""
        try:
            claim = self.claims.document(payment_intent_id).get()
            if claim.exists:
                return self.get(claim.to_dict()["appointment_id"])

            query = self.collection.where(
                filter=FieldFilter("payment_intent_id", "==", payment_intent_id)
            ).limit(1)
            docs = list(query.stream())

            if not docs:
                return None

            return Appointment.from_dict(docs[0].to_dict())
        except PersistenceError:
            raise
        except Exception as e:
            logger.error(
                f"Failed to find appointment by payment intent: {e}",
                extra={"payment_intent_id": payment_intent_id}
            )
            raise PersistenceError(f"Failed to find appointment: {str(e)}")

    def create_for_payment_intent(self, appointment: Appointment) -> Tuple[Appointment, bool]:
        """Insert an appointment unless one already exists for its intent.

        Returns:
            Tuple of (appointment, created). When another writer got there
            first, the already-stored appointment is returned with created=False.
        """
        payment_intent_id = appointment.payment_intent_id
        try:
            batch = self.db.batch()
            batch.create(self.claims.document(payment_intent_id), {
                "appointment_id": appointment.id,
                "created_at": datetime.utcnow().isoformat()
            })
            batch.set(self.collection.document(appointment.id), appointment.to_dict())
            batch.commit()
        except AlreadyExists:
            existing = self.find_by_payment_intent(payment_intent_id)
            if existing is None:
                raise PersistenceError(
                    "Payment intent is claimed but its appointment is missing",
                    details={"payment_intent_id": payment_intent_id}
                )
            logger.info(
                "Appointment already exists for payment intent",
                extra={
                    "payment_intent_id": payment_intent_id,
                    "appointment_id": existing.id
                }
            )
            return existing, False
        except Exception as e:
            logger.error(
                f"Failed to create appointment: {e}",
                extra={"payment_intent_id": payment_intent_id}
            )
            raise PersistenceError(f"Failed to create appointment: {str(e)}")

        logger.info(
            "Created appointment",
            extra={
                "appointment_id": appointment.id,
                "payment_intent_id": payment_intent_id
            }
        )
        return appointment, True

    def mark_paid(self, appointment_id: str, payment_intent_id: str) -> Tuple[Optional[Appointment], bool]:
        """Mark an existing appointment paid, unless it already is.

        Returns:
            Tuple of (appointment or None if missing, changed).
        """
        try:
            appointment, changed = _mark_paid_in_transaction(
                self.db.transaction(),
                self.collection.document(str(appointment_id)),
                self.claims.document(payment_intent_id),
                payment_intent_id
            )
        except Exception as e:
            logger.error(
                f"Failed to mark appointment paid: {e}",
                extra={
                    "appointment_id": appointment_id,
                    "payment_intent_id": payment_intent_id
                }
            )
            raise PersistenceError(f"Failed to update appointment: {str(e)}")

        if changed:
            logger.info(
                "Marked appointment paid",
                extra={
                    "appointment_id": appointment_id,
                    "payment_intent_id": payment_intent_id
                }
            )
        return appointment, changed
