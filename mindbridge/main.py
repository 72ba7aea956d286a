"""Flask application factory."""
import uuid
from flask import Flask, jsonify, request, g
from flask_cors import CORS
from mindbridge.core.config import get_config
from mindbridge.core.exceptions import MindbridgeException
from mindbridge.core.logging import get_logger, setup_logging, log_request
from mindbridge.api.routes import payment, appointments
from mindbridge.services.booking_service import action_for
from mindbridge.utils.firebase import initialize_firebase

logger = get_logger(__name__)


def create_app() -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)

    config = get_config()
    setup_logging(config)

    app.config["DEBUG"] = config.debug
    app.config["TESTING"] = config.testing

    CORS(app,
         origins=config.cors_origins,
         allow_headers=["Content-Type", config.api_key_header, config.user_id_header, "X-Request-ID"],
         allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
         supports_credentials=True)

    if not config.testing:
        initialize_firebase()

    register_request_hooks(app)
    register_error_handlers(app)

    app.register_blueprint(payment.bp, url_prefix="/api")
    app.register_blueprint(appointments.bp, url_prefix="/api")

    @app.route("/health", methods=["GET"])
    def health_check():
        """Health check endpoint."""
        return jsonify({
            "status": "healthy",
            "service": "mindbridge-booking",
            "version": "1.0.0",
            "sandbox": config.sandbox_mode
        }), 200

    logger.info("Application initialized successfully")

    return app


def register_request_hooks(app: Flask):
    """Tag every request with an id for log correlation."""

    @app.before_request
    def assign_request_id():
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        logger.debug("Request received", extra=log_request(request, get_config().user_id_header))

    @app.after_request
    def echo_request_id(response):
        response.headers["X-Request-ID"] = g.get("request_id", "")
        return response


def register_error_handlers(app: Flask):
    """Register global error handlers."""

    @app.errorhandler(MindbridgeException)
    def handle_mindbridge_exception(error: MindbridgeException):
        """Render domain errors together with the action offered to the user."""
        log = logger.error if error.status_code >= 500 else logger.warning
        log(
            f"{error.__class__.__name__}: {error.message}",
            extra={
                "error_code": error.error_code,
                "details": error.details,
                "request_id": g.get("request_id")
            }
        )
        payload = error.to_dict()
        payload["action"] = action_for(error).value
        return jsonify(payload), error.status_code

    @app.errorhandler(404)
    def handle_not_found(error):
        """Handle 404 errors."""
        return jsonify({
            "error": {
                "code": "NOT_FOUND",
                "message": "The requested resource was not found"
            }
        }), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(error):
        return jsonify({
            "error": {
                "code": "METHOD_NOT_ALLOWED",
                "message": "The method is not allowed for the requested URL"
            }
        }), 405

    @app.errorhandler(500)
    def handle_internal_error(error):
        """Handle 500 errors."""
        logger.exception("Internal server error")
        return jsonify({
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An internal server error occurred"
            }
        }), 500
