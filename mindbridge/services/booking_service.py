"""Booking checkout flow.

Sequencing for one checkout:

1. ``start_checkout`` creates the processor customer and intent, stores the
   checkout session, then mounts the payment widget.
2. The browser relays widget events to ``handle_widget_event``. A ``success``
   event starts settlement monitoring; it is never taken as proof of payment.
3. ``confirm_settlement`` polls the processor and, only on SUCCEEDED, hands
   the session to the reconciliation engine.

Typed failures from any stage are turned into a :class:`BookingOutcome`
carrying the action the client should offer next.
"""
import threading
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, List, Callable
from dataclasses import dataclass, field
from enum import Enum
from mindbridge.models.appointment import Appointment, AppointmentDraft, AppointmentStatus
from mindbridge.models.checkout import CheckoutSession, CheckoutStatus
from mindbridge.models.payment_intent import PaymentIntent, IntentStatus
from mindbridge.models.widget import WidgetFailed, WidgetReady, WidgetSettled
from mindbridge.integrations.airwallex.widget import BridgeSDK, load_bridge_sdk
from mindbridge.repositories.appointment_repository import AppointmentRepository
from mindbridge.repositories.checkout_repository import CheckoutRepository
from mindbridge.services.payment_gateway import PaymentGateway
from mindbridge.services.reconciliation_service import ReconciliationEngine, ReconciliationResult
from mindbridge.services.settlement_poller import SettlementPoller, PollOutcome, PollResult
from mindbridge.services.widget_adapter import PaymentWidgetAdapter
from mindbridge.core.config import get_config, Config
from mindbridge.core.exceptions import (
    AuthorizationError,
    BusinessLogicError,
    GatewayUnavailable,
    MindbridgeException,
    PersistenceError,
    PostSettlementPersistenceFailure,
    ResourceNotFoundError,
    ScriptLoadTimeout,
    SettlementFailed,
    SettlementTimedOut,
    ValidationError,
)
from mindbridge.core.logging import get_logger

logger = get_logger(__name__)


class BookingAction(str, Enum):
    """What the client should offer the user next."""
    NONE = "none"
    RETRY_PAYMENT = "retry_payment"
    CHECK_AGAIN = "check_again"
    RELOAD = "reload"
    RETRY = "retry"
    CONTACT_SUPPORT = "contact_support"


ERROR_ACTIONS = (
    (SettlementFailed, BookingAction.RETRY_PAYMENT),
    (SettlementTimedOut, BookingAction.CHECK_AGAIN),
    (ScriptLoadTimeout, BookingAction.RELOAD),
    (GatewayUnavailable, BookingAction.RETRY),
    (PostSettlementPersistenceFailure, BookingAction.CONTACT_SUPPORT),
)

ERROR_STATUSES = {
    SettlementFailed: "failed",
    SettlementTimedOut: "timed_out",
    PostSettlementPersistenceFailure: "needs_support",
}


def action_for(error: Exception) -> BookingAction:
    """Map a typed failure to the action offered to the user."""
    for error_type, action in ERROR_ACTIONS:
        if isinstance(error, error_type):
            return action
    return BookingAction.NONE


@dataclass
class BookingOutcome:
    """Result of a checkout step, ready to return to the client."""
    status: str
    payment_intent_id: str
    action: BookingAction = BookingAction.NONE
    appointment: Optional[Appointment] = None
    error: Optional[MindbridgeException] = None
    message: Optional[str] = None

    @property
    def http_status(self) -> int:
        return self.error.status_code if self.error else 200

    @classmethod
    def from_error(cls, payment_intent_id: str, error: MindbridgeException) -> "BookingOutcome":
        return cls(
            status=next(
                (status for error_type, status in ERROR_STATUSES.items() if isinstance(error, error_type)),
                "error"
            ),
            payment_intent_id=payment_intent_id,
            action=action_for(error),
            error=error,
            message=error.message
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "action": self.action.value,
            "payment_intent_id": self.payment_intent_id,
            "message": self.message,
            "appointment": self.appointment.to_dict() if self.appointment else None,
            "error": self.error.to_dict()["error"] if self.error else None
        }


@dataclass
class CheckoutStart:
    """What the client needs to render the payment widget."""
    session: CheckoutSession
    intent: PaymentIntent
    widget: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "payment_intent_id": self.intent.id,
            "client_secret": self.intent.client_secret,
            "amount": self.intent.amount,
            "currency": self.intent.currency,
            "sandbox": self.intent.sandbox,
            "widget": self.widget
        }


@dataclass
class _ActiveCheckout:
    adapter: PaymentWidgetAdapter
    ready: Optional[WidgetReady] = None
    settled: Optional[WidgetSettled] = None
    failure: Optional[WidgetFailed] = None
    pollers: List[SettlementPoller] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.utcnow)


class BookingService:
    """Coordinates checkout, widget events, settlement monitoring and reconciliation."""

    def __init__(
        self,
        gateway: Optional[PaymentGateway] = None,
        engine: Optional[ReconciliationEngine] = None,
        checkout_repository: Optional[CheckoutRepository] = None,
        appointment_repository: Optional[AppointmentRepository] = None,
        config: Optional[Config] = None,
        sdk_loader: Optional[Callable[[], Any]] = None,
        poller_factory: Optional[Callable[[Callable[[str], IntentStatus]], SettlementPoller]] = None
    ):
        self.config = config or get_config()
        self.gateway = gateway or PaymentGateway(config=self.config)
        self.appointment_repository = appointment_repository or AppointmentRepository()
        self.engine = engine or ReconciliationEngine(repository=self.appointment_repository)
        self.checkout_repository = checkout_repository or CheckoutRepository()
        self.sdk_loader = sdk_loader or (lambda: load_bridge_sdk(self.config))
        self.poller_factory = poller_factory or (
            lambda reader: SettlementPoller.from_config(reader, self.config)
        )
        self._active: Dict[str, _ActiveCheckout] = {}
        self._lock = threading.Lock()

    def start_checkout(
        self,
        client_id: str,
        amount: int,
        currency: Optional[str] = None,
        draft: Optional[AppointmentDraft] = None,
        existing_appointment_id: Optional[str] = None,
        email: Optional[str] = None
    ) -> CheckoutStart:
        """Create the intent for a booking and mount its payment widget."""
        self.release_expired()
        currency = (currency or self.config.default_currency).upper()
        self._validate_target(client_id, amount, draft, existing_appointment_id)

        customer_reference = self.gateway.create_customer(client_id, email=email)
        intent = self.gateway.create_intent(amount, currency, customer_reference)

        session = CheckoutSession(
            payment_intent_id=intent.id,
            client_id=client_id,
            amount=amount,
            currency=currency,
            draft=draft,
            existing_appointment_id=str(existing_appointment_id) if existing_appointment_id else None,
            sandbox=intent.sandbox
        )
        self.checkout_repository.create(session)

        active = self._mount_widget(session, intent.client_secret)
        if active.failure is not None:
            error = active.adapter.load_error
            self._release(intent.id)
            if error is not None:
                raise error
            raise BusinessLogicError(active.failure.reason)

        logger.info(
            "Started checkout",
            extra={
                "payment_intent_id": intent.id,
                "client_id": client_id,
                "amount": amount,
                "currency": currency,
                "retry_payment": bool(existing_appointment_id),
                "sandbox": intent.sandbox
            }
        )
        return CheckoutStart(
            session=session,
            intent=intent,
            widget={
                "environment": self.config.airwallex_env,
                "sdk_url": self.config.airwallex_sdk_url,
                "element": "dropIn",
                "target": "airwallex-dropin-element"
            }
        )

    def _validate_target(
        self,
        client_id: str,
        amount: int,
        draft: Optional[AppointmentDraft],
        existing_appointment_id: Optional[str]
    ) -> None:
        if amount is None or amount <= 0:
            raise ValidationError("Amount must be greater than 0", field="amount")
        if (draft is None) == (existing_appointment_id is None):
            raise ValidationError("Provide either a booking draft or an existing appointment id")

        if draft is not None:
            if draft.price != amount:
                raise ValidationError("Amount does not match the appointment price", field="amount")
            return

        appointment = self.appointment_repository.get(str(existing_appointment_id))
        if appointment is None:
            raise ResourceNotFoundError("Appointment", str(existing_appointment_id))
        if appointment.client_id != client_id:
            raise AuthorizationError("Appointment belongs to another client")
        if appointment.is_paid():
            raise BusinessLogicError("Appointment is already paid", {"appointment_id": appointment.id})
        if appointment.status == AppointmentStatus.CANCELLED:
            raise BusinessLogicError("Appointment has been cancelled", {"appointment_id": appointment.id})

    def _mount_widget(
        self,
        session: CheckoutSession,
        client_secret: Optional[str],
        check_script: bool = True
    ) -> _ActiveCheckout:
        if session.sandbox or not check_script:
            loader = lambda: BridgeSDK(self.config.airwallex_sdk_url)
        else:
            loader = self.sdk_loader
        adapter = PaymentWidgetAdapter(
            loader,
            environment=self.config.airwallex_env,
            load_attempts=self.config.widget_script_load_attempts,
            retry_delay_seconds=self.config.widget_script_retry_delay_seconds
        )
        active = _ActiveCheckout(adapter=adapter, created_at=session.created_at)

        def on_ready(event: WidgetReady) -> None:
            active.ready = event

        def on_settled(event: WidgetSettled) -> None:
            active.settled = event

        def on_failed(event: WidgetFailed) -> None:
            active.failure = event

        adapter.mount(
            session.payment_intent_id,
            client_secret or "",
            session.currency,
            on_ready=on_ready,
            on_settled=on_settled,
            on_failed=on_failed
        )
        with self._lock:
            previous = self._active.get(session.payment_intent_id)
            self._active[session.payment_intent_id] = active
        if previous is not None:
            previous.adapter.unmount()
        return active

    def _get_session(self, client_id: str, payment_intent_id: str) -> CheckoutSession:
        session = self.checkout_repository.get(payment_intent_id)
        if session is None:
            raise ResourceNotFoundError("Checkout session", payment_intent_id)
        if session.client_id != client_id:
            raise AuthorizationError("Checkout session belongs to another client")
        return session

    def handle_widget_event(
        self,
        client_id: str,
        payment_intent_id: str,
        event_name: str,
        detail: Optional[Dict[str, Any]] = None
    ) -> BookingOutcome:
        """Apply a widget event relayed by the browser."""
        if event_name not in ("ready", "success", "error"):
            raise ValidationError(f"Unsupported widget event: {event_name}", field="event")

        session = self._get_session(client_id, payment_intent_id)
        with self._lock:
            active = self._active.get(payment_intent_id)
        if active is None:
            # Page reloaded or another worker started the checkout. The browser
            # is already relaying events, so its script loaded.
            active = self._mount_widget(session, None, check_script=False)

        active.adapter.dispatch(event_name, detail)

        if event_name == "success" and active.settled is not None:
            return self.confirm_settlement(client_id, payment_intent_id)

        if event_name == "error" and active.failure is not None:
            return BookingOutcome(
                status="widget_error",
                payment_intent_id=payment_intent_id,
                action=BookingAction.RETRY_PAYMENT,
                message=active.failure.reason
            )

        return BookingOutcome(status="ready" if active.ready else "pending", payment_intent_id=payment_intent_id)

    def confirm_settlement(self, client_id: str, payment_intent_id: str) -> BookingOutcome:
        """Monitor the intent until it settles, then reconcile the appointment."""
        session = self._get_session(client_id, payment_intent_id)

        if session.status == CheckoutStatus.RECONCILED and session.appointment_id:
            appointment = self.appointment_repository.get(session.appointment_id)
            if appointment is not None:
                return BookingOutcome(status="succeeded", payment_intent_id=payment_intent_id, appointment=appointment)

        poller = self.poller_factory(self.gateway.get_intent_status)
        with self._lock:
            active = self._active.get(payment_intent_id)
            if active is not None:
                active.pollers.append(poller)

        try:
            result = poller.run(payment_intent_id)
        finally:
            if active is not None:
                with self._lock:
                    if poller in active.pollers:
                        active.pollers.remove(poller)

        if result is None:
            return BookingOutcome(status="cancelled", payment_intent_id=payment_intent_id)

        return self._apply_poll_result(session, result)

    def _apply_poll_result(self, session: CheckoutSession, result: PollResult) -> BookingOutcome:
        payment_intent_id = session.payment_intent_id

        if result.outcome == PollOutcome.FAILED:
            self.set_session_status(payment_intent_id, CheckoutStatus.FAILED)
            self._release(payment_intent_id)
            return BookingOutcome.from_error(
                payment_intent_id,
                SettlementFailed(payment_intent_id, result.failure_reason or "FAILED")
            )

        if result.outcome == PollOutcome.TIMED_OUT:
            return BookingOutcome.from_error(
                payment_intent_id,
                SettlementTimedOut(
                    payment_intent_id,
                    result.attempts_made,
                    result.last_status.value if result.last_status else None
                )
            )

        try:
            reconciled = self.reconcile_session(session)
        except PostSettlementPersistenceFailure as e:
            self._release(payment_intent_id)
            return BookingOutcome.from_error(payment_intent_id, e)

        self._release(payment_intent_id)
        return BookingOutcome(
            status="succeeded",
            payment_intent_id=payment_intent_id,
            appointment=reconciled.appointment
        )

    def reconcile_session(self, session: CheckoutSession) -> ReconciliationResult:
        """Reconcile a checkout whose intent is known to have SUCCEEDED."""
        try:
            result = self.engine.reconcile(session.payment_intent_id, session.target, session.client_id)
        except PostSettlementPersistenceFailure:
            self.set_session_status(session.payment_intent_id, CheckoutStatus.NEEDS_SUPPORT)
            raise

        self.set_session_status(session.payment_intent_id, CheckoutStatus.RECONCILED, result.appointment.id)
        return result

    def set_session_status(
        self,
        payment_intent_id: str,
        status: CheckoutStatus,
        appointment_id: Optional[str] = None
    ) -> None:
        try:
            self.checkout_repository.update_status(payment_intent_id, status, appointment_id)
        except PersistenceError as e:
            logger.error(
                f"Failed to update checkout session status: {e.message}",
                extra={"payment_intent_id": payment_intent_id, "new_status": status.value}
            )

    def cancel_checkout(self, client_id: str, payment_intent_id: str) -> None:
        """Client navigated away: stop watching and tear the widget down.

        The payment itself is left to the processor.
        """
        self._get_session(client_id, payment_intent_id)
        self._release(payment_intent_id)
        logger.info("Cancelled checkout monitoring", extra={"payment_intent_id": payment_intent_id})

    def _release(self, payment_intent_id: str) -> None:
        with self._lock:
            active = self._active.pop(payment_intent_id, None)
        if active is None:
            return
        for poller in list(active.pollers):
            poller.cancel()
        active.adapter.unmount()

    def release_expired(self, now: Optional[datetime] = None) -> int:
        """Drop idle checkouts older than the checkout session TTL."""
        cutoff = (now or datetime.utcnow()) - timedelta(minutes=self.config.checkout_session_ttl_minutes)
        with self._lock:
            expired = [
                payment_intent_id for payment_intent_id, active in self._active.items()
                if active.created_at < cutoff and not active.pollers
            ]
        for payment_intent_id in expired:
            self._release(payment_intent_id)
        if expired:
            logger.info("Released expired checkouts", extra={"released": len(expired)})
        return len(expired)

    def is_active(self, payment_intent_id: str) -> bool:
        with self._lock:
            return payment_intent_id in self._active


_booking_service = None


def get_booking_service() -> BookingService:
    """Get or create the process-wide booking service."""
    global _booking_service
    if _booking_service is None:
        _booking_service = BookingService()
    return _booking_service
