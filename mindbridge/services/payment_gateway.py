"""Service for payment intent lifecycle calls against the processor."""
import time
import uuid
import threading
from typing import Optional, Dict, Tuple, Callable
from mindbridge.models.customer import CustomerMapping
from mindbridge.models.payment_intent import PaymentIntent, IntentStatus
from mindbridge.integrations.airwallex.client import AirwallexClient
from mindbridge.repositories.customer_repository import CustomerRepository
from mindbridge.core.config import get_config, Config
from mindbridge.core.exceptions import (
    ExternalServiceError,
    GatewayUnavailable,
    PersistenceError,
    ProcessorRequestError,
    ValidationError,
)
from mindbridge.core.logging import get_logger

logger = get_logger(__name__)

SANDBOX_INTENT_PREFIX = "pi_sandbox_"
SANDBOX_CUSTOMER_PREFIX = "cus_sandbox_"
CUSTOMER_EXISTS_CODE = "resource_already_exists"


class PaymentGateway:
    """Payment processor operations used by the booking flow."""

    def __init__(
        self,
        client: Optional[AirwallexClient] = None,
        customer_repository: Optional[CustomerRepository] = None,
        config: Optional[Config] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.config = config or get_config()
        self.client = client or AirwallexClient(self.config)
        self.customer_repository = customer_repository or CustomerRepository()
        self.clock = clock
        self._status_cache: Dict[str, Tuple[float, IntentStatus]] = {}
        self._status_lock = threading.Lock()

    @property
    def sandbox_mode(self) -> bool:
        return self.config.sandbox_mode

    def authenticate(self) -> str:
        """Get a bearer credential for the processor."""
        return self.client.authenticate()

    def create_customer(
        self,
        local_user_id: str,
        email: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None
    ) -> str:
        """Return the processor customer for a local user, creating it if needed."""
        mapping = self.customer_repository.get_by_user(local_user_id)
        if mapping:
            logger.info(
                "Found existing customer mapping",
                extra={"user_id": local_user_id, "processor_customer_id": mapping.processor_customer_id}
            )
            return mapping.processor_customer_id

        try:
            customer = self.client.create_customer(
                merchant_customer_id=local_user_id,
                email=email,
                first_name=first_name,
                last_name=last_name
            )
            logger.info("Created processor customer", extra={"user_id": local_user_id, "processor_customer_id": customer["id"]})
        except ProcessorRequestError as e:
            if e.processor_code != CUSTOMER_EXISTS_CODE:
                raise
            customer = self._recover_existing_customer(local_user_id)
        except GatewayUnavailable:
            if not self.sandbox_mode:
                raise
            logger.warning("Processor unavailable, using sandbox customer", extra={"user_id": local_user_id})
            return f"{SANDBOX_CUSTOMER_PREFIX}{local_user_id}"

        self._remember_customer(local_user_id, customer["id"])
        return customer["id"]

    def _recover_existing_customer(self, local_user_id: str) -> Dict:
        # A concurrent attempt created the customer first.
        logger.info("Customer already exists remotely, looking it up", extra={"user_id": local_user_id})
        items = self.client.find_customers(local_user_id)
        if not items:
            raise ProcessorRequestError(
                "Customer exists but was not found by merchant reference",
                http_status=404,
                processor_code=CUSTOMER_EXISTS_CODE
            )
        return items[0]

    def _remember_customer(self, local_user_id: str, processor_customer_id: str) -> None:
        try:
            self.customer_repository.save(CustomerMapping(
                user_id=local_user_id,
                merchant_customer_id=local_user_id,
                processor_customer_id=processor_customer_id
            ))
        except PersistenceError as e:
            # The mapping is recoverable from the processor next time.
            logger.warning(
                f"Failed to store customer mapping: {e.message}",
                extra={"user_id": local_user_id, "processor_customer_id": processor_customer_id}
            )

    def create_intent(
        self,
        amount: int,
        currency: str,
        customer_reference: Optional[str],
        merchant_order_id: Optional[str] = None
    ) -> PaymentIntent:
        """Create a payment intent for ``amount`` minor units.

        Raises:
            GatewayUnavailable: processor unreachable; retry the checkout.
            ProcessorRequestError: processor refused the intent.
        """
        if amount <= 0:
            raise ValidationError("Amount must be greater than 0", field="amount")

        currency = currency.upper()
        merchant_order_id = merchant_order_id or f"order_{uuid.uuid4().hex}"

        try:
            data = self.client.create_payment_intent(
                amount=amount,
                currency=currency,
                customer_id=customer_reference,
                merchant_order_id=merchant_order_id
            )
        except ExternalServiceError as e:
            if not self.sandbox_mode:
                raise
            logger.warning(
                f"Processor failed, issuing sandbox intent: {e.message}",
                extra={"amount": amount, "currency": currency}
            )
            return self._sandbox_intent(amount, currency, customer_reference, merchant_order_id)

        intent = PaymentIntent.from_processor(data)
        logger.info(
            "Created payment intent",
            extra={
                "payment_intent_id": intent.id,
                "amount": amount,
                "currency": currency,
                "processor_status": intent.processor_status
            }
        )
        return intent

    def _sandbox_intent(
        self,
        amount: int,
        currency: str,
        customer_reference: Optional[str],
        merchant_order_id: str
    ) -> PaymentIntent:
        return PaymentIntent(
            id=f"{SANDBOX_INTENT_PREFIX}{uuid.uuid4().hex}",
            amount=amount,
            currency=currency,
            status=IntentStatus.REQUIRES_PAYMENT,
            customer_reference=customer_reference,
            client_secret=f"cs_sandbox_{uuid.uuid4().hex}",
            merchant_order_id=merchant_order_id,
            processor_status="REQUIRES_PAYMENT_METHOD",
            sandbox=True
        )

    def get_intent_status(self, intent_id: str) -> IntentStatus:
        """Read the intent's current status. No side effects."""
        if intent_id.startswith(SANDBOX_INTENT_PREFIX):
            self._reject_foreign_sandbox_id(intent_id)
            return IntentStatus.SUCCEEDED

        ttl = self.config.status_cache_ttl_seconds
        now = self.clock()
        if ttl > 0:
            with self._status_lock:
                cached = self._status_cache.get(intent_id)
            if cached and now - cached[0] < ttl:
                return cached[1]

        data = self.client.get_payment_intent(intent_id)
        status = IntentStatus.from_processor(data.get("status"))

        if ttl > 0:
            with self._status_lock:
                self._status_cache = {
                    key: entry for key, entry in self._status_cache.items()
                    if now - entry[0] < ttl
                }
                self._status_cache[intent_id] = (now, status)

        logger.debug(
            "Read payment intent status",
            extra={"payment_intent_id": intent_id, "status": status.value, "processor_status": data.get("status")}
        )
        return status

    def _reject_foreign_sandbox_id(self, intent_id: str) -> None:
        if intent_id.startswith(SANDBOX_INTENT_PREFIX) and not self.sandbox_mode:
            raise ValidationError("Sandbox intents are not accepted in this environment", field="payment_intent_id")
