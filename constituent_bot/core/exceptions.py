"""
Custom Exception Hierarchy

Structured exceptions for consistent error handling across the HTTP surface
and the collaborators of the dialogue engine.
"""
import json
from typing import Any
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for API responses"""

    # General errors (1xxx)
    INTERNAL_ERROR = "ERR_1000"
    VALIDATION_ERROR = "ERR_1001"
    NOT_FOUND = "ERR_1002"
    RATE_LIMITED = "ERR_1006"

    # Submission errors (2xxx)
    SUBMISSION_NOT_FOUND = "ERR_2001"
    SUBMISSION_INVALID_STATUS = "ERR_2002"
    REFERENCE_CODE_EXHAUSTED = "ERR_2003"

    # Persistence errors (4xxx)
    RECORD_STORE_ERROR = "ERR_4001"

    # External service errors (5xxx)
    WHATSAPP_ERROR = "ERR_5002"
    EXTERNAL_SERVICE_UNAVAILABLE = "ERR_5003"
    EXTERNAL_SERVICE_TIMEOUT = "ERR_5004"
    GEOCODER_ERROR = "ERR_5005"

    # Dialogue errors (6xxx)
    INVALID_STATE_TRANSITION = "ERR_6001"


class AppException(Exception):
    """Base exception for all application errors"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        details: dict[str, Any] | None = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API response"""
        return {
            "error": {
                "code": self.error_code.value,
                "message": self.message,
                "details": self.details
            }
        }


class ValidationException(AppException):
    """Raised when input validation fails"""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None
    ):
        super().__init__(
            message=message,
            error_code=ErrorCode.VALIDATION_ERROR,
            status_code=400,
            details=details
        )
        if field:
            self.details["field"] = field


class NotFoundException(AppException):
    """Raised when a requested resource is not found"""

    def __init__(
        self,
        resource: str,
        identifier: Any,
        error_code: ErrorCode = ErrorCode.NOT_FOUND
    ):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            error_code=error_code,
            status_code=404,
            details={"resource": resource, "identifier": str(identifier)}
        )


class SubmissionNotFoundError(NotFoundException):
    """Raised when no submission carries the given reference code"""

    def __init__(self, reference_code: str):
        super().__init__(
            resource="Submission",
            identifier=reference_code,
            error_code=ErrorCode.SUBMISSION_NOT_FOUND,
        )


class InvalidSubmissionStatusError(AppException):
    """Raised when a status is not part of the kind's status enumeration"""

    def __init__(self, kind: str, status: str, allowed: list[str]):
        super().__init__(
            message=f"Status '{status}' is not valid for {kind}",
            error_code=ErrorCode.SUBMISSION_INVALID_STATUS,
            status_code=400,
            details={"kind": kind, "status": status, "allowed": allowed}
        )


class RecordStoreError(AppException):
    """Raised when the database rejects or fails an operation"""

    def __init__(
        self,
        operation: str,
        message: str,
        error_code: ErrorCode = ErrorCode.RECORD_STORE_ERROR,
        details: dict[str, Any] | None = None
    ):
        super().__init__(
            message=f"Record store {operation} failed: {message}",
            error_code=error_code,
            status_code=503,
            details=details
        )
        self.operation = operation
        self.details["operation"] = operation


class ReferenceCodeExhaustedError(RecordStoreError):
    """Raised when every generated reference code collided with an existing one"""

    def __init__(self, kind: str, attempts: int):
        super().__init__(
            operation="insert_submission",
            message=f"no free {kind} reference code after {attempts} attempts",
            error_code=ErrorCode.REFERENCE_CODE_EXHAUSTED,
            details={"kind": kind, "attempts": attempts}
        )


class ExternalServiceException(AppException):
    """Base exception for external service errors"""

    def __init__(
        self,
        service_name: str,
        message: str,
        error_code: ErrorCode = ErrorCode.EXTERNAL_SERVICE_UNAVAILABLE,
        details: dict[str, Any] | None = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=503,
            details=details
        )
        self.details["service"] = service_name


class WhatsAppError(ExternalServiceException):
    """Raised when WhatsApp Cloud API fails"""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            service_name="whatsapp",
            message=f"WhatsApp API error: {message}",
            error_code=ErrorCode.WHATSAPP_ERROR,
            details=details
        )

    @classmethod
    def from_response(
        cls,
        operation: str,
        response: Any,
        *,
        message: str | None = None,
        max_response_chars: int = 500
    ) -> "WhatsAppError":
        """
        Build a WhatsAppError from a Graph API response.

        The Graph error body (``{"error": {"code": 131026, "message": ...}}``)
        is unpacked into ``graph_error_code`` and ``graph_error_message`` when
        present; the raw body is kept, capped at ``max_response_chars``.
        """
        status_code = getattr(response, "status_code", None)
        response_text = getattr(response, "text", "") or ""
        details: dict[str, Any] = {
            "operation": operation,
            "status_code": status_code,
            "response_text": response_text[:max_response_chars],
        }

        try:
            graph_error = json.loads(response_text).get("error") or {}
        except (ValueError, AttributeError):
            graph_error = {}
        if isinstance(graph_error, dict) and graph_error.get("code") is not None:
            details["graph_error_code"] = graph_error["code"]
            details["graph_error_message"] = graph_error.get("message")

        return cls(
            message=message or f"{operation} returned status {status_code}",
            details=details,
        )


class GeocoderError(ExternalServiceException):
    """Raised inside the geocoder; never leaves ReverseGeocoder.reverse_geocode"""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            service_name="geocoder",
            message=f"Geocoding error: {message}",
            error_code=ErrorCode.GEOCODER_ERROR,
            details=details
        )


class ServiceTimeoutError(ExternalServiceException):
    """Raised when external service times out"""

    def __init__(self, service_name: str, timeout_seconds: float):
        super().__init__(
            service_name=service_name,
            message=f"{service_name} request timed out after {timeout_seconds}s",
            error_code=ErrorCode.EXTERNAL_SERVICE_TIMEOUT,
            details={"timeout_seconds": timeout_seconds}
        )


class CircuitBreakerOpenError(ExternalServiceException):
    """Raised when circuit breaker is open"""

    def __init__(self, service_name: str, retry_after_seconds: float):
        super().__init__(
            service_name=service_name,
            message=f"{service_name} is temporarily unavailable (circuit breaker open)",
            error_code=ErrorCode.EXTERNAL_SERVICE_UNAVAILABLE,
            details={"retry_after_seconds": retry_after_seconds}
        )


class StateMachineException(AppException):
    """Base exception for dialogue state errors"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        details: dict[str, Any] | None = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=400,
            details=details
        )


class InvalidStateTransitionError(StateMachineException):
    """Raised when a step tries to move to a state it has no edge to"""

    def __init__(self, current_state: str, target_state: str):
        super().__init__(
            message=f"Invalid transition from '{current_state}' to '{target_state}'",
            error_code=ErrorCode.INVALID_STATE_TRANSITION,
            details={
                "current_state": current_state,
                "target_state": target_state,
            }
        )
