"""
Custom Exception Hierarchy

Provides structured exceptions for consistent error handling across the application.
"""
from typing import Any
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for API responses"""

    # General errors (1xxx)
    INTERNAL_ERROR = "ERR_1000"
    VALIDATION_ERROR = "ERR_1001"
    NOT_FOUND = "ERR_1002"
    RATE_LIMITED = "ERR_1006"

    # Provider errors (2xxx)
    UNSUPPORTED_PROVIDER = "ERR_2001"
    PROVIDER_NOT_IMPLEMENTED = "ERR_2002"

    # Webhook errors (3xxx)
    SIGNATURE_INVALID = "ERR_3001"

    # Session errors (4xxx)
    SESSION_NOT_FOUND = "ERR_4001"
    SUBSCRIPTION_NOT_FOUND = "ERR_4002"

    # External service errors (5xxx)
    PROCESSOR_API_ERROR = "ERR_5001"
    BACKEND_FORWARD_ERROR = "ERR_5002"
    EXTERNAL_SERVICE_UNAVAILABLE = "ERR_5003"
    EXTERNAL_SERVICE_TIMEOUT = "ERR_5004"


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
        """Convert exception to the error envelope for API responses"""
        body: dict[str, Any] = {
            "success": False,
            "error": self.message,
            "code": self.error_code.value,
        }
        if self.details:
            body["details"] = self.details
        return body


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
            message=f"{resource} not found",
            error_code=error_code,
            status_code=404,
            details={"resource": resource, "identifier": str(identifier)}
        )


class SessionNotFoundError(NotFoundException):
    """Raised when no local checkout session record exists"""

    def __init__(self, session_id: str):
        super().__init__("Session", session_id, ErrorCode.SESSION_NOT_FOUND)


class SubscriptionNotFoundError(NotFoundException):
    """Raised when no local subscription record exists"""

    def __init__(self, subscription_id: str):
        super().__init__("Subscription", subscription_id, ErrorCode.SUBSCRIPTION_NOT_FOUND)


class ProviderException(AppException):
    """Base exception for payment provider errors"""

    def __init__(
        self,
        provider: str,
        message: str,
        error_code: ErrorCode,
        status_code: int = 400,
        details: dict[str, Any] | None = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status_code,
            details=details
        )
        self.provider = provider
        self.details["provider"] = provider


class UnsupportedProviderError(ProviderException):
    """Raised when a processor name does not resolve to an adapter"""

    def __init__(self, provider: str, status_code: int = 400):
        super().__init__(
            provider=provider,
            message=f"Unsupported payment provider: {provider}",
            error_code=ErrorCode.UNSUPPORTED_PROVIDER,
            status_code=status_code,
        )


class ProviderNotImplementedError(ProviderException):
    """Raised by adapters registered ahead of their implementation"""

    def __init__(self, provider: str, operation: str, status_code: int = 501):
        super().__init__(
            provider=provider,
            message=f"{provider} {operation} not yet implemented",
            error_code=ErrorCode.PROVIDER_NOT_IMPLEMENTED,
            status_code=status_code,
            details={"operation": operation},
        )
        self.operation = operation


class SignatureVerificationError(ProviderException):
    """Raised when an inbound webhook fails verification"""

    def __init__(self, provider: str, reason: str):
        super().__init__(
            provider=provider,
            message=f"Webhook signature verification failed: {reason}",
            error_code=ErrorCode.SIGNATURE_INVALID,
            status_code=400,
        )
        self.reason = reason


class ProcessorAPIError(ProviderException):
    """Raised when a call to the payment processor API fails"""

    def __init__(self, provider: str, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            provider=provider,
            message=f"{provider} API error: {message}",
            error_code=ErrorCode.PROCESSOR_API_ERROR,
            status_code=500,
            details=details,
        )

    @classmethod
    def from_response(
        cls,
        provider: str,
        operation: str,
        response: Any,
        *,
        max_response_chars: int = 500
    ) -> "ProcessorAPIError":
        """
        Build a ProcessorAPIError from an HTTP response, keeping the raw error text.

        Args:
            provider: processor name (paddle, paypal)
            operation: logical operation (create_checkout_session, get_session...)
            response: response object (e.g. httpx.Response)
            max_response_chars: cap on stored response_text to keep logs small
        """
        status_code = getattr(response, "status_code", None)
        response_text = getattr(response, "text", "") or ""
        return cls(
            provider=provider,
            message=response_text[:max_response_chars] or f"{operation} returned status {status_code}",
            details={
                "operation": operation,
                "status_code": status_code,
                "response_text": response_text[:max_response_chars],
            },
        )

    @classmethod
    def timeout(cls, provider: str, operation: str, timeout_seconds: float) -> "ProcessorAPIError":
        return cls(
            provider=provider,
            message=f"{operation} timed out after {timeout_seconds}s",
            details={"operation": operation, "timeout": True, "timeout_seconds": timeout_seconds},
        )

    @classmethod
    def network(cls, provider: str, operation: str, error: Exception) -> "ProcessorAPIError":
        return cls(
            provider=provider,
            message=f"{operation} network error: {error}",
            details={"operation": operation, "network_error": True},
        )


class BackendForwardError(AppException):
    """Raised (and only ever logged) when the internal backend notification fails"""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=f"Backend notification failed: {message}",
            error_code=ErrorCode.BACKEND_FORWARD_ERROR,
            status_code=502,
            details=details
        )


class CircuitBreakerOpenError(AppException):
    """Raised when circuit breaker is open"""

    def __init__(self, service_name: str, retry_after_seconds: float):
        super().__init__(
            message=f"{service_name} is temporarily unavailable (circuit breaker open)",
            error_code=ErrorCode.EXTERNAL_SERVICE_UNAVAILABLE,
            status_code=503,
            details={"service": service_name, "retry_after_seconds": retry_after_seconds}
        )
