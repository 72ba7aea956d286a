"""Appointment routes."""
from flask import Blueprint, request, jsonify
from mindbridge.api.middleware.auth import require_api_key, require_user, current_user_id
from mindbridge.api.middleware.rate_limit import rate_limit
from mindbridge.services.appointment_service import AppointmentService
from mindbridge.core.exceptions import ValidationError
from mindbridge.core.logging import get_logger

logger = get_logger(__name__)

bp = Blueprint("appointments", __name__)


@bp.route("/appointments/<appointment_id>", methods=["GET"])
@require_api_key
@require_user
@rate_limit
def get_appointment(appointment_id: str):
    """Get an appointment for its client or therapist."""
    appointment = AppointmentService().get_for_user(appointment_id, current_user_id())
    return jsonify(appointment.to_dict()), 200


@bp.route("/appointments/<appointment_id>", methods=["PUT"])
@require_api_key
@require_user
@rate_limit
def update_appointment(appointment_id: str):
    """Change an appointment's status or notes."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not data:
        raise ValidationError("Request body must be a non-empty JSON object")

    appointment = AppointmentService().update(appointment_id, current_user_id(), data)
    return jsonify(appointment.to_dict()), 200
