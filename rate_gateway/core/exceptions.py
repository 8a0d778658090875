"""
Rate Gateway Exception Hierarchy

Structured exception classes for carrier integrations. Every failure raised by
the transport, auth or carrier layers is classified once, where it happens,
into a flat string-coded taxonomy (ErrorCode). The orchestrator turns these
into CarrierError values; nothing below it leaks raw httpx exceptions.

Exception Hierarchy:
    CarrierIntegrationError
    ├── RequestValidationError
    ├── AuthenticationError
    ├── TransportError
    ├── CarrierResponseError
    ├── CarrierNotFoundError
    └── DuplicateCarrierError
"""
import logging
from enum import Enum
from typing import Any, Dict, Optional, Union

from rate_gateway.modules.shipping.models import CarrierError

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Machine-readable error codes shared by every carrier integration."""

    # Validation
    INVALID_REQUEST = "INVALID_REQUEST"
    INVALID_ADDRESS = "INVALID_ADDRESS"
    INVALID_PACKAGE = "INVALID_PACKAGE"

    # Authentication
    AUTH_FAILED = "AUTH_FAILED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"

    # Network
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"
    CONNECTION_REFUSED = "CONNECTION_REFUSED"

    # HTTP status
    HTTP_400 = "HTTP_400"
    HTTP_401 = "HTTP_401"
    HTTP_403 = "HTTP_403"
    HTTP_404 = "HTTP_404"
    HTTP_429 = "HTTP_429"
    HTTP_500 = "HTTP_500"
    HTTP_502 = "HTTP_502"
    HTTP_503 = "HTTP_503"
    HTTP_UNKNOWN = "HTTP_UNKNOWN"

    # Response parsing
    INVALID_RESPONSE = "INVALID_RESPONSE"
    MALFORMED_JSON = "MALFORMED_JSON"

    # Service
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # Orchestration
    CARRIER_NOT_FOUND = "CARRIER_NOT_FOUND"

    UNKNOWN = "UNKNOWN"


_STATUS_CODE_MAP: Dict[int, ErrorCode] = {
    400: ErrorCode.HTTP_400,
    401: ErrorCode.HTTP_401,
    403: ErrorCode.HTTP_403,
    404: ErrorCode.HTTP_404,
    429: ErrorCode.HTTP_429,
    500: ErrorCode.HTTP_500,
    502: ErrorCode.HTTP_502,
    503: ErrorCode.HTTP_503,
}

# Retried regardless of status code; any 5xx is retried as well.
RETRYABLE_CODES = frozenset({
    ErrorCode.TIMEOUT,
    ErrorCode.NETWORK_ERROR,
    ErrorCode.HTTP_429,
    ErrorCode.HTTP_500,
    ErrorCode.HTTP_502,
    ErrorCode.HTTP_503,
})


class CarrierIntegrationError(Exception):
    """
    Base exception for all carrier integration errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable ErrorCode
        details: Additional structured context (status, body, carrier codes)
        status_code: HTTP status when the failure came from a response
        original_error: The underlying exception, if any
    """

    default_code: ErrorCode = ErrorCode.UNKNOWN

    def __init__(
        self,
        message: str,
        code: Optional[Union[ErrorCode, str]] = None,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
        original_error: Optional[BaseException] = None,
    ):
        self.message = message
        self.code = ErrorCode(code) if code else self.default_code
        self.details = details or {}
        self.status_code = status_code
        self.original_error = original_error
        super().__init__(self.message)

    def to_carrier_error(self, carrier: Optional[str] = None) -> CarrierError:
        """Convert to the CarrierError value returned to callers."""
        return CarrierError(
            code=self.code.value,
            message=self.message,
            details=dict(self.details) if self.details else None,
            carrier=carrier,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code.value,
            "message": self.message,
            "status_code": self.status_code,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value!r}, message={self.message!r})"


class RequestValidationError(CarrierIntegrationError):
    """The rate request was rejected before any carrier was called."""
    default_code = ErrorCode.INVALID_REQUEST


class AuthenticationError(CarrierIntegrationError):
    """Token acquisition or credential failure."""
    default_code = ErrorCode.AUTH_FAILED


class TransportError(CarrierIntegrationError):
    """Network or HTTP-status failure classified by the TransportClient."""
    default_code = ErrorCode.NETWORK_ERROR


class CarrierResponseError(CarrierIntegrationError):
    """The carrier answered, but the payload was rejected or unreadable."""
    default_code = ErrorCode.INVALID_RESPONSE


class CarrierNotFoundError(CarrierIntegrationError):
    """No carrier is registered under the requested name."""
    default_code = ErrorCode.CARRIER_NOT_FOUND

    def __init__(self, carrier_name: str, **kwargs):
        details = kwargs.pop("details", {})
        details["carrier"] = carrier_name
        super().__init__(
            f"Carrier '{carrier_name}' is not registered",
            details=details,
            **kwargs,
        )


class DuplicateCarrierError(CarrierIntegrationError):
    """
    A carrier with the same name is already registered.

    The error taxonomy has no registration code, so this reuses
    INVALID_REQUEST. Tell it apart from a bad rate payload by the
    exception type or by details["reason"] == "duplicate_carrier".
    """
    default_code = ErrorCode.INVALID_REQUEST

    def __init__(self, carrier_name: str, **kwargs):
        details = kwargs.pop("details", {})
        details["carrier"] = carrier_name
        details["reason"] = "duplicate_carrier"
        super().__init__(
            f"Carrier '{carrier_name}' is already registered",
            details=details,
            **kwargs,
        )


def http_status_to_error_code(status: int) -> ErrorCode:
    """Map an HTTP status code to its ErrorCode."""
    return _STATUS_CODE_MAP.get(status, ErrorCode.HTTP_UNKNOWN)


def is_retryable_error(error: CarrierIntegrationError) -> bool:
    """
    Decide whether a classified failure is worth another attempt.

    Timeouts, generic network errors, 429 and every 5xx are transient.
    Validation, auth and other 4xx failures are permanent.
    """
    if error.code in RETRYABLE_CODES:
        return True
    return error.status_code is not None and 500 <= error.status_code < 600
