"""Adapter between the embedded payment widget and the booking flow.

This is the only place that deals in widget callbacks. Everything it hands
to its caller is a typed :mod:`mindbridge.models.widget` event, and each of
ready, settled and failed is reported at most once per mount.
"""
import time
import threading
from typing import Optional, Callable, Dict, Any, Set
from mindbridge.models.widget import (
    WidgetEvent,
    WidgetFailed,
    WidgetReady,
    WidgetSettled,
    parse_widget_event,
)
from mindbridge.integrations.airwallex.widget import ScriptUnavailable
from mindbridge.core.exceptions import ScriptLoadTimeout
from mindbridge.core.logging import get_logger

logger = get_logger(__name__)

WIDGET_EVENTS = ("ready", "success", "error")
SCRIPT_LOAD_TIMEOUT_CODE = "SCRIPT_LOAD_TIMEOUT"


class PaymentWidgetAdapter:
    """Mounts one drop-in element for one payment intent."""

    def __init__(
        self,
        sdk_loader: Callable[[], Any],
        environment: str = "demo",
        load_attempts: int = 3,
        retry_delay_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.sdk_loader = sdk_loader
        self.environment = environment
        self.load_attempts = load_attempts
        self.retry_delay_seconds = retry_delay_seconds
        self.sleep = sleep

        self.payment_intent_id: Optional[str] = None
        self.element = None
        self.load_error: Optional[ScriptLoadTimeout] = None
        self._callbacks: Dict[type, Optional[Callable]] = {}
        self._fired: Set[type] = set()
        self._mounted = False
        self._torn_down = False
        self._lock = threading.Lock()

    @property
    def mounted(self) -> bool:
        return self._mounted and not self._torn_down

    def mount(
        self,
        payment_intent_id: str,
        client_secret: str,
        currency: str,
        target: str = "airwallex-dropin-element",
        on_ready: Optional[Callable[[WidgetReady], None]] = None,
        on_settled: Optional[Callable[[WidgetSettled], None]] = None,
        on_failed: Optional[Callable[[WidgetFailed], None]] = None
    ) -> bool:
        """Create and mount the drop-in element.

        Returns False if the widget script never became available, in which
        case ``on_failed`` has already been called with a script load failure.
        """
        if self._mounted or self._torn_down:
            raise RuntimeError("PaymentWidgetAdapter instances mount once")

        self.payment_intent_id = payment_intent_id
        self._callbacks = {
            WidgetReady: on_ready,
            WidgetSettled: on_settled,
            WidgetFailed: on_failed,
        }
        self._mounted = True

        sdk = self._load_sdk()
        if sdk is None:
            self._emit(WidgetFailed(
                payment_intent_id=payment_intent_id,
                reason=self.load_error.message,
                code=SCRIPT_LOAD_TIMEOUT_CODE
            ))
            return False

        sdk.init({"env": self.environment, "enabledElements": ["payments"]})
        element = sdk.create_element("dropIn", {
            "intent_id": payment_intent_id,
            "client_secret": client_secret,
            "currency": currency,
            "appearance": {"mode": "light"}
        })
        element.mount(target)
        for event_name in WIDGET_EVENTS:
            element.on(event_name, self._handler_for(event_name))
        self.element = element

        logger.info("Mounted payment widget", extra={"payment_intent_id": payment_intent_id, "target": target})
        return True

    def _load_sdk(self):
        last_error = None
        for attempt in range(1, self.load_attempts + 1):
            try:
                return self.sdk_loader()
            except ScriptUnavailable as e:
                last_error = e
                logger.warning(
                    f"Payment widget script unavailable (attempt {attempt}/{self.load_attempts}): {e}",
                    extra={"payment_intent_id": self.payment_intent_id}
                )
                if attempt < self.load_attempts:
                    self.sleep(self.retry_delay_seconds)

        self.load_error = ScriptLoadTimeout(self.load_attempts, {"last_error": str(last_error)})
        return None

    def _handler_for(self, event_name: str) -> Callable[[Dict[str, Any]], None]:
        def handle(event: Dict[str, Any]) -> None:
            detail = event.get("detail") if isinstance(event, dict) else None
            typed = parse_widget_event(self.payment_intent_id, event_name, detail)
            if typed is not None:
                self._emit(typed)
        return handle

    def _emit(self, event: WidgetEvent) -> bool:
        with self._lock:
            if self._torn_down or type(event) in self._fired:
                return False
            self._fired.add(type(event))
            callback = self._callbacks.get(type(event))

        logger.info(
            f"Payment widget event: {type(event).__name__}",
            extra={"payment_intent_id": self.payment_intent_id}
        )
        if callback:
            callback(event)
        return True

    def dispatch(self, event_name: str, detail: Optional[Dict[str, Any]] = None) -> bool:
        """Feed a raw widget event reported by the browser into the element."""
        if not self.mounted or self.element is None:
            logger.info(
                "Ignoring widget event for unmounted widget",
                extra={"payment_intent_id": self.payment_intent_id, "event_name": event_name}
            )
            return False
        return self.element.dispatch(event_name, detail) > 0

    def has_fired(self, event_type: type) -> bool:
        return event_type in self._fired

    def unmount(self) -> None:
        """Release the widget. Safe to call any number of times."""
        with self._lock:
            if self._torn_down:
                return
            self._torn_down = True
            element, self.element = self.element, None

        if element is None:
            return
        try:
            element.unmount()
            logger.info("Unmounted payment widget", extra={"payment_intent_id": self.payment_intent_id})
        except Exception:
            logger.exception(
                "Payment widget teardown failed",
                extra={"payment_intent_id": self.payment_intent_id}
            )
