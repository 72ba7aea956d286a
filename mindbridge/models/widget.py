"""Typed payment widget events.

The embedded widget reports loosely-typed ``event.detail`` payloads. They are
converted into one of these variants at the adapter boundary.
"""
from typing import Optional, Dict, Any, Union
from dataclasses import dataclass, field


@dataclass(frozen=True)
class WidgetReady:
    """The widget is mounted and can accept input."""
    payment_intent_id: str


@dataclass(frozen=True)
class WidgetSettled:
    """The user finished the payment step. Not proof of settlement."""
    payment_intent_id: str
    outcome_reference: Optional[str] = None


@dataclass(frozen=True)
class WidgetFailed:
    """The widget could not complete the payment step."""
    payment_intent_id: str
    reason: str
    code: Optional[str] = None
    detail: Dict[str, Any] = field(default_factory=dict, compare=False)


WidgetEvent = Union[WidgetReady, WidgetSettled, WidgetFailed]


def parse_widget_event(payment_intent_id: str, name: str, detail: Optional[Dict[str, Any]]) -> Optional[WidgetEvent]:
    """Translate a raw widget callback into a typed event.

    Returns None for event names the application does not act on
    (``change``, ``blur`` and the like).
    """
    detail = detail or {}
    if name == "ready":
        return WidgetReady(payment_intent_id=payment_intent_id)
    if name == "success":
        intent = detail.get("intent") or detail.get("payment_intent") or {}
        reference = intent.get("id") if isinstance(intent, dict) else None
        return WidgetSettled(
            payment_intent_id=payment_intent_id,
            outcome_reference=reference or detail.get("id")
        )
    if name == "error":
        error = detail.get("error") or {}
        if not isinstance(error, dict):
            error = {"message": str(error)}
        return WidgetFailed(
            payment_intent_id=payment_intent_id,
            reason=error.get("message") or "Payment widget reported an error",
            code=error.get("code"),
            detail=detail
        )
    return None
