"""Logging configuration for the Mindbridge booking service.

Every record is one JSON object on stdout. Records emitted while serving a
request carry that request's id, so a checkout can be followed from the
widget event through polling to reconciliation.
"""
import logging
import sys
import json
from typing import Any, Dict
from datetime import datetime
import traceback
from functools import lru_cache
from flask import g, has_request_context

# Promoted to top-level keys ahead of any other extra fields.
CONTEXT_FIELDS = ("request_id", "user_id", "payment_intent_id", "appointment_id")

_RESERVED_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "thread", "threadName", "exc_info", "exc_text", "stack_info",
    "taskName",
} | set(CONTEXT_FIELDS)


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info)
            }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


class LoggerAdapter(logging.LoggerAdapter):
    """Adds the current request id to every record logged inside a request."""

    def __init__(self, logger: logging.Logger, extra: Dict[str, Any] = None):
        super().__init__(logger, extra or {})

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        """Process log message and add context."""
        extra = kwargs.get("extra", {})
        extra.update(self.extra)
        if "request_id" not in extra and has_request_context():
            request_id = g.get("request_id")
            if request_id:
                extra["request_id"] = request_id
        kwargs["extra"] = extra
        return msg, kwargs


def setup_logging(config: Any) -> None:
    """Set up logging configuration."""
    log_level = logging.DEBUG if config.debug else logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(JSONFormatter())
    root_logger.addHandler(console_handler)

    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
    logging.getLogger("werkzeug").setLevel(logging.WARNING)

    if config.sentry_dsn:
        try:
            import sentry_sdk
            from sentry_sdk.integrations.flask import FlaskIntegration
            from sentry_sdk.integrations.logging import LoggingIntegration

            sentry_logging = LoggingIntegration(
                level=logging.INFO,
                event_level=logging.ERROR
            )

            sentry_sdk.init(
                dsn=config.sentry_dsn,
                integrations=[
                    FlaskIntegration(
                        transaction_style="endpoint"
                    ),
                    sentry_logging
                ],
                environment=config.sentry_environment,
                traces_sample_rate=config.sentry_traces_sample_rate,
                send_default_pii=False
            )

            logging.info("Sentry APM initialized successfully")
        except Exception as e:
            logging.error(f"Failed to initialize Sentry: {e}")


@lru_cache(maxsize=128)
def get_logger(name: str) -> LoggerAdapter:
    """Get a logger instance with the given name."""
    logger = logging.getLogger(name)
    return LoggerAdapter(logger, {})


def log_request(request: Any, user_id_header: str) -> Dict[str, Any]:
    """Request fields worth logging for checkout traffic."""
    return {
        "method": request.method,
        "path": request.path,
        "user_id": request.headers.get(user_id_header),
        "payment_intent_id": (request.view_args or {}).get("payment_intent_id")
    }
