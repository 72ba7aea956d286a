"""Repository for therapist earnings in Firestore."""
from typing import Optional
from datetime import datetime
from google.api_core.exceptions import AlreadyExists
from mindbridge.models.earnings import TherapistEarnings, EarningsStatus
from mindbridge.core.exceptions import PersistenceError
from mindbridge.core.logging import get_logger
from mindbridge.utils.firebase import get_firestore_client

logger = get_logger(__name__)


class EarningsRepository:
    """Repository for earnings data access, one document per appointment."""

    COLLECTION_NAME = "therapist_earnings"

    def __init__(self):
        self.db = get_firestore_client()
        self.collection = self.db.collection(self.COLLECTION_NAME)

    def create_if_absent(self, earnings: TherapistEarnings) -> bool:
        """Create earnings for an appointment. Returns False if they already exist."""
        try:
            self.collection.document(earnings.appointment_id).create(earnings.to_dict())
        except AlreadyExists:
            return False
        except Exception as e:
            logger.error(
                f"Failed to create earnings: {e}",
                extra={"appointment_id": earnings.appointment_id}
            )
            raise PersistenceError(f"Failed to create earnings: {str(e)}")

        logger.info(
            "Created therapist earnings",
            extra={
                "appointment_id": earnings.appointment_id,
                "therapist_id": earnings.therapist_id,
                "net_amount": earnings.net_amount
            }
        )
        return True

    def get_by_appointment(self, appointment_id: str) -> Optional[TherapistEarnings]:
        """Get earnings for an appointment."""
        try:
            doc = self.collection.document(appointment_id).get()

            if not doc.exists:
                return None

            return TherapistEarnings.from_dict(doc.to_dict())
        except Exception as e:
            logger.error(
                f"Failed to get earnings: {e}",
                extra={"appointment_id": appointment_id}
            )
            raise PersistenceError(f"Failed to get earnings: {str(e)}")

    def update_status(self, appointment_id: str, status: EarningsStatus) -> bool:
        """Update the availability of an appointment's earnings."""
        try:
            self.collection.document(appointment_id).update({
                "status": status.value,
                "updated_at": datetime.utcnow().isoformat()
            })

            logger.info(
                "Updated earnings status",
                extra={"appointment_id": appointment_id, "new_status": status.value}
            )

            return True
        except Exception as e:
            logger.error(
                f"Failed to update earnings status: {e}",
                extra={"appointment_id": appointment_id}
            )
            raise PersistenceError(f"Failed to update earnings: {str(e)}")
