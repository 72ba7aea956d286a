"""Custom exceptions for the Mindbridge booking service."""
from typing import Optional, Dict, Any


class MindbridgeException(Exception):
    """Base exception for all Mindbridge errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details
            }
        }


class ConfigurationError(MindbridgeException):
    """Raised when configuration is invalid or missing."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            status_code=500,
            details=details
        )


class AuthenticationError(MindbridgeException):
    """Raised when authentication fails."""

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="AUTHENTICATION_ERROR",
            status_code=401,
            details=details
        )


class AuthorizationError(MindbridgeException):
    """Raised when user lacks required permissions."""

    def __init__(self, message: str = "Insufficient permissions", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="AUTHORIZATION_ERROR",
            status_code=403,
            details=details
        )


class ValidationError(MindbridgeException):
    """Raised when input validation fails."""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        if field:
            details = details or {}
            details["field"] = field
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            status_code=400,
            details=details
        )


class ResourceNotFoundError(MindbridgeException):
    """Raised when a requested resource is not found."""

    def __init__(self, resource_type: str, resource_id: Optional[str] = None):
        message = f"{resource_type} not found"
        if resource_id:
            message += f": {resource_id}"
        super().__init__(
            message=message,
            error_code="RESOURCE_NOT_FOUND",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": resource_id}
        )


class ExternalServiceError(MindbridgeException):
    """Raised when an external service call fails."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: str = "EXTERNAL_SERVICE_ERROR",
        status_code: int = 502
    ):
        details = details or {}
        details["service"] = service
        super().__init__(
            message=f"{service} error: {message}",
            error_code=error_code,
            status_code=status_code,
            details=details
        )


class RateLimitError(MindbridgeException):
    """Raised when rate limit is exceeded."""

    def __init__(self, retry_after: Optional[int] = None):
        details = {}
        if retry_after:
            details["retry_after"] = retry_after
        super().__init__(
            message="Rate limit exceeded",
            error_code="RATE_LIMIT_EXCEEDED",
            status_code=429,
            details=details
        )


class BusinessLogicError(MindbridgeException):
    """Raised when business logic validation fails."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="BUSINESS_LOGIC_ERROR",
            status_code=400,
            details=details
        )


class PersistenceError(MindbridgeException):
    """Raised by repositories when the datastore rejects a read or write."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="PERSISTENCE_ERROR",
            status_code=500,
            details=details
        )


class GatewayUnavailable(ExternalServiceError):
    """Processor unreachable or erroring. Safe to retry the originating step."""

    retryable = True

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            "Airwallex",
            message,
            details=details,
            error_code="GATEWAY_UNAVAILABLE",
            status_code=503
        )


class ProcessorRequestError(ExternalServiceError):
    """Processor answered but rejected the request."""

    retryable = False

    def __init__(
        self,
        message: str,
        http_status: int,
        processor_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        details = details or {}
        details["http_status"] = http_status
        details["processor_code"] = processor_code
        super().__init__(
            "Airwallex",
            message,
            details=details,
            error_code="PROCESSOR_REQUEST_ERROR",
            status_code=502
        )
        self.http_status = http_status
        self.processor_code = processor_code


class ScriptLoadTimeout(MindbridgeException):
    """The payment widget script could not be loaded. Reload and try again."""

    def __init__(self, attempts: int, details: Optional[Dict[str, Any]] = None):
        details = details or {}
        details["attempts"] = attempts
        super().__init__(
            message=f"Payment widget failed to load after {attempts} attempts",
            error_code="SCRIPT_LOAD_TIMEOUT",
            status_code=503,
            details=details
        )
        self.attempts = attempts


class SettlementFailed(MindbridgeException):
    """Processor reported the intent as failed or cancelled."""

    def __init__(self, payment_intent_id: str, processor_status: str):
        super().__init__(
            message=f"Payment was not completed: {processor_status}",
            error_code="SETTLEMENT_FAILED",
            status_code=402,
            details={
                "payment_intent_id": payment_intent_id,
                "processor_status": processor_status
            }
        )
        self.payment_intent_id = payment_intent_id
        self.processor_status = processor_status


class SettlementTimedOut(MindbridgeException):
    """Intent never reached a terminal state within the monitoring budget."""

    def __init__(self, payment_intent_id: str, attempts_made: int, last_status: Optional[str] = None):
        super().__init__(
            message="Payment status is still being confirmed",
            error_code="SETTLEMENT_TIMED_OUT",
            status_code=504,
            details={
                "payment_intent_id": payment_intent_id,
                "attempts_made": attempts_made,
                "last_status": last_status
            }
        )
        self.payment_intent_id = payment_intent_id
        self.attempts_made = attempts_made
        self.last_status = last_status


class PostSettlementPersistenceFailure(MindbridgeException):
    """Money has moved but the appointment could not be committed."""

    def __init__(self, payment_intent_id: str, reason: str):
        super().__init__(
            message="Your payment was received but the booking could not be saved. Support has been notified.",
            error_code="POST_SETTLEMENT_PERSISTENCE_FAILURE",
            status_code=500,
            details={
                "payment_intent_id": payment_intent_id,
                "reason": reason
            }
        )
        self.payment_intent_id = payment_intent_id
        self.reason = reason


class DuplicateSettlement(PostSettlementPersistenceFailure):
    """A second payment settled for an appointment another payment already covers."""

    def __init__(self, payment_intent_id: str, appointment_id: str, paid_by_payment_intent_id: Optional[str]):
        super().__init__(
            payment_intent_id,
            f"Appointment {appointment_id} was already paid by {paid_by_payment_intent_id}"
        )
        self.error_code = "DUPLICATE_SETTLEMENT"
        self.details["appointment_id"] = appointment_id
        self.details["paid_by_payment_intent_id"] = paid_by_payment_intent_id
        self.appointment_id = appointment_id
        self.paid_by_payment_intent_id = paid_by_payment_intent_id
