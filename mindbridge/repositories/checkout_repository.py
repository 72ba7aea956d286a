"""Repository for checkout sessions in Firestore."""
from typing import Optional, List
from datetime import datetime
from google.cloud.firestore_v1 import FieldFilter
from mindbridge.models.checkout import CheckoutSession, CheckoutStatus
from mindbridge.core.exceptions import PersistenceError
from mindbridge.core.logging import get_logger
from mindbridge.utils.firebase import get_firestore_client

logger = get_logger(__name__)


class CheckoutRepository:
    """Repository for checkout session data access, keyed by payment intent id."""

    COLLECTION_NAME = "checkout_sessions"

    def __init__(self):
        self.db = get_firestore_client()
        self.collection = self.db.collection(self.COLLECTION_NAME)

    def create(self, session: CheckoutSession) -> CheckoutSession:
        """Store a new checkout session."""
        try:
            self.collection.document(session.payment_intent_id).set(session.to_dict())

            logger.info(
                "Created checkout session",
                extra={
                    "payment_intent_id": session.payment_intent_id,
                    "client_id": session.client_id,
                    "amount": session.amount
                }
            )

            return session
        except Exception as e:
            logger.error(
                f"Failed to create checkout session: {e}",
                extra={"payment_intent_id": session.payment_intent_id}
            )
            raise PersistenceError(f"Failed to create checkout session: {str(e)}")

    def get(self, payment_intent_id: str) -> Optional[CheckoutSession]:
        """Get a checkout session by payment intent id."""
        try:
            doc = self.collection.document(payment_intent_id).get()

            if not doc.exists:
                return None

            return CheckoutSession.from_dict(doc.to_dict())
        except Exception as e:
            logger.error(
                f"Failed to get checkout session: {e}",
                extra={"payment_intent_id": payment_intent_id}
            )
            raise PersistenceError(f"Failed to get checkout session: {str(e)}")

    def update_status(
        self,
        payment_intent_id: str,
        status: CheckoutStatus,
        appointment_id: Optional[str] = None
    ) -> bool:
        """Update checkout session status and the resulting appointment."""
        try:
            update_data = {
                "status": status.value,
                "updated_at": datetime.utcnow().isoformat()
            }

            if appointment_id:
                update_data["appointment_id"] = appointment_id

            self.collection.document(payment_intent_id).update(update_data)

            logger.info(
                "Updated checkout session status",
                extra={
                    "payment_intent_id": payment_intent_id,
                    "new_status": status.value,
                    "appointment_id": appointment_id
                }
            )

            return True
        except Exception as e:
            logger.error(
                f"Failed to update checkout session: {e}",
                extra={"payment_intent_id": payment_intent_id}
            )
            raise PersistenceError(f"Failed to update checkout session: {str(e)}")

    def list_open(self, created_after: datetime, limit: int = 100) -> List[CheckoutSession]:
        """List unreconciled checkout sessions created after the given time."""
        try:
            query = self.collection.where(
                filter=FieldFilter("status", "==", CheckoutStatus.OPEN.value)
            ).where(
                filter=FieldFilter("created_at", ">=", created_after.isoformat())
            ).limit(limit)

            return [CheckoutSession.from_dict(doc.to_dict()) for doc in query.stream()]
        except Exception as e:
            logger.error(f"Failed to list open checkout sessions: {e}")
            raise PersistenceError(f"Failed to list checkout sessions: {str(e)}")
