"""Repository for processor customer mappings in Firestore."""
from typing import Optional
from mindbridge.models.customer import CustomerMapping
from mindbridge.core.exceptions import PersistenceError
from mindbridge.core.logging import get_logger
from mindbridge.utils.firebase import get_firestore_client

logger = get_logger(__name__)


class CustomerRepository:
    """Repository for customer mapping data access."""

    COLLECTION_NAME = "customer_mappings"

    def __init__(self):
        self.db = get_firestore_client()
        self.collection = self.db.collection(self.COLLECTION_NAME)

    def get_by_user(self, user_id: str) -> Optional[CustomerMapping]:
        """Get the processor customer mapping for a local user."""
        try:
            doc = self.collection.document(user_id).get()

            if not doc.exists:
                return None

            return CustomerMapping.from_dict(doc.to_dict())
        except Exception as e:
            logger.error(
                f"Failed to get customer mapping: {e}",
                extra={"user_id": user_id}
            )
            raise PersistenceError(f"Failed to get customer mapping: {str(e)}")

    def save(self, mapping: CustomerMapping) -> CustomerMapping:
        """Save a customer mapping."""
        try:
            self.collection.document(mapping.user_id).set(mapping.to_dict())

            logger.info(
                "Saved customer mapping",
                extra={
                    "user_id": mapping.user_id,
                    "processor_customer_id": mapping.processor_customer_id
                }
            )

            return mapping
        except Exception as e:
            logger.error(
                f"Failed to save customer mapping: {e}",
                extra={"user_id": mapping.user_id}
            )
            raise PersistenceError(f"Failed to save customer mapping: {str(e)}")
