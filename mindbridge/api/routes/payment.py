"""Payment and checkout routes."""
from typing import Dict, Any
from flask import Blueprint, request, jsonify
from mindbridge.api.middleware.auth import require_api_key, require_user, current_user_id
from mindbridge.api.middleware.rate_limit import rate_limit
from mindbridge.models.appointment import AppointmentDraft
from mindbridge.services.booking_service import get_booking_service
from mindbridge.core.config import get_config
from mindbridge.core.exceptions import ValidationError
from mindbridge.core.logging import get_logger

logger = get_logger(__name__)

bp = Blueprint("payments", __name__)


def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _parse_amount(data: Dict[str, Any]) -> int:
    amount = data.get("amount")
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError("Amount must be an integer in minor currency units", field="amount")
    if amount <= 0:
        raise ValidationError("Amount must be greater than 0", field="amount")
    return amount


def _parse_draft(raw: Any) -> AppointmentDraft:
    if not isinstance(raw, dict):
        raise ValidationError("Booking draft must be an object", field="draft")
    try:
        return AppointmentDraft.from_dict(raw)
    except KeyError as e:
        raise ValidationError(f"Booking draft is missing {e.args[0]}", field="draft")
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid booking draft: {e}", field="draft")


@bp.route("/payments/config", methods=["GET"])
def payment_config():
    """Public widget settings for the frontend."""
    config = get_config()
    return jsonify({
        "environment": config.airwallex_env,
        "sdk_url": config.airwallex_sdk_url,
        "currency": config.default_currency,
        "sandbox": config.sandbox_mode
    }), 200


@bp.route("/payments/customer", methods=["POST"])
@require_api_key
@require_user
@rate_limit
def create_customer():
    """Get or create the processor customer for the caller."""
    data = _json_body()
    user_id = current_user_id()

    customer_id = get_booking_service().gateway.create_customer(
        user_id,
        email=data.get("email"),
        first_name=data.get("first_name"),
        last_name=data.get("last_name")
    )
    return jsonify({"customer_id": customer_id}), 200


@bp.route("/payments/intent", methods=["POST"])
@require_api_key
@require_user
@rate_limit
def create_intent():
    """Create a payment intent for the caller."""
    data = _json_body()
    amount = _parse_amount(data)
    currency = data.get("currency") or get_config().default_currency

    gateway = get_booking_service().gateway
    customer_id = gateway.create_customer(current_user_id(), email=data.get("email"))
    intent = gateway.create_intent(amount, currency, customer_id)

    return jsonify(intent.to_dict()), 201


@bp.route("/payments/intent/<payment_intent_id>/status", methods=["GET"])
@require_api_key
@require_user
@rate_limit
def get_intent_status(payment_intent_id: str):
    """Read the normalised status of a payment intent."""
    status = get_booking_service().gateway.get_intent_status(payment_intent_id)
    return jsonify({
        "payment_intent_id": payment_intent_id,
        "status": status.value,
        "terminal": status.is_terminal
    }), 200


@bp.route("/payments/checkout", methods=["POST"])
@require_api_key
@require_user
@rate_limit
def start_checkout():
    """Start paying for a new booking draft or an existing unpaid appointment."""
    data = _json_body()
    draft = _parse_draft(data["draft"]) if data.get("draft") is not None else None
    existing_appointment_id = data.get("existing_appointment_id")

    if "amount" in data:
        amount = _parse_amount(data)
    elif draft is not None:
        amount = draft.price
    else:
        raise ValidationError("Amount is required", field="amount")

    start = get_booking_service().start_checkout(
        current_user_id(),
        amount,
        currency=data.get("currency"),
        draft=draft,
        existing_appointment_id=str(existing_appointment_id) if existing_appointment_id is not None else None,
        email=data.get("email")
    )
    return jsonify(start.to_dict()), 201


@bp.route("/payments/checkout/<payment_intent_id>/events", methods=["POST"])
@require_api_key
@require_user
def widget_event(payment_intent_id: str):
    """Relay a payment widget event from the browser."""
    data = _json_body()
    event_name = data.get("event")
    if not event_name:
        raise ValidationError("Event name is required", field="event")

    detail = data.get("detail")
    if detail is not None and not isinstance(detail, dict):
        raise ValidationError("Event detail must be an object", field="detail")

    outcome = get_booking_service().handle_widget_event(current_user_id(), payment_intent_id, event_name, detail)
    return jsonify(outcome.to_dict()), outcome.http_status


@bp.route("/payments/checkout/<payment_intent_id>/recheck", methods=["POST"])
@require_api_key
@require_user
@rate_limit
def recheck_settlement(payment_intent_id: str):
    """Start a fresh monitoring session for an intent whose status is unknown."""
    logger.info(
        "Settlement recheck requested",
        extra={"payment_intent_id": payment_intent_id, "user_id": current_user_id()}
    )
    outcome = get_booking_service().confirm_settlement(current_user_id(), payment_intent_id)
    return jsonify(outcome.to_dict()), outcome.http_status


@bp.route("/payments/checkout/<payment_intent_id>", methods=["DELETE"])
@require_api_key
@require_user
def cancel_checkout(payment_intent_id: str):
    """The client left the checkout page."""
    get_booking_service().cancel_checkout(current_user_id(), payment_intent_id)
    return "", 204
