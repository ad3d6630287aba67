"""Error handling for the WetroCloud client."""

import re
from typing import Optional, Any, Dict


FALLBACK_ERROR_MESSAGE = "Something went wrong"


class WetroCloudError(Exception):
    """Base exception for WetroCloud operations."""

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        """Initialize WetroCloud error.

        Args:
            message: Error message
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details


class ConfigurationError(WetroCloudError):
    """Configuration related errors."""

    def __init__(self, message: str, config_key: Optional[str] = None) -> None:
        """Initialize configuration error.

        Args:
            message: Error message
            config_key: Configuration key that caused the error
        """
        super().__init__(message)
        self.config_key = config_key


class ValidationError(WetroCloudError):
    """Input validation related errors."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        """Initialize validation error.

        Args:
            message: Error message
            field: Field name that failed validation
        """
        super().__init__(message)
        self.field = field


class APIError(WetroCloudError):
    """Non-2xx response from the WetroCloud API."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        status_text: Optional[str] = None,
        response_data: Optional[Any] = None
    ) -> None:
        """Initialize API error.

        Args:
            message: Error message
            status_code: HTTP status code
            status_text: HTTP reason phrase
            response_data: Decoded error body merged with status and statusText
        """
        super().__init__(message)
        self.status_code = status_code
        self.status_text = status_text
        self.response_data = response_data


class TransportError(WetroCloudError):
    """Network level failure while talking to the API."""


class RequestCancelledError(TransportError):
    """Request was aborted by ``Transport.cancel``."""

    def __init__(self, message: str = "Request was cancelled") -> None:
        super().__init__(message)


class ResponseDecodeError(TransportError):
    """Response body could not be decoded as JSON."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def derive_error_message(error: BaseException) -> str:
    """Turn a caught exception into the human readable text of an error result.

    The message nested in the response body wins, then the exception's own
    message, then a fixed fallback.

    Args:
        error: Exception caught at the client boundary

    Returns:
        Message for ``ErrorMessage.message``
    """
    response_data = getattr(error, "response_data", None)
    if isinstance(response_data, dict):
        message = response_data.get("message")
        if isinstance(message, str) and message:
            return message

    message = getattr(error, "message", None)
    if isinstance(message, str) and message:
        return message

    text = str(error)
    return text if text else FALLBACK_ERROR_MESSAGE


def sanitize_error_message(message: str) -> str:
    """Sanitize error message to remove sensitive information.

    Args:
        message: Original error message

    Returns:
        Sanitized error message
    """
    patterns = [
        (r'authorization[=:\s]+token\s+[^\s\n]+', 'authorization=***'),
        (r'api[_-]?key[=:\s]+[^\s\n]+', 'api_key=***'),
        (r'token[=:\s]+[^\s\n]+', 'token=***'),
        (r'secret[=:\s]+[^\s\n]+', 'secret=***'),
        (r'authorization[=:\s]+[^\s\n]+', 'authorization=***'),
        # URLs with embedded credentials
        (r'https?://[^:/\s]+:[^@\s]+@[^\s]+', 'https://***:***@***'),
    ]

    sanitized = message
    for pattern, replacement in patterns:
        sanitized = re.sub(pattern, replacement, sanitized, flags=re.IGNORECASE)

    return sanitized


def get_error_details(error: BaseException) -> Dict[str, Any]:
    """Get detailed error information for logging.

    Args:
        error: Exception to analyze

    Returns:
        Dictionary with error details
    """
    details = {
        "type": type(error).__name__,
        "message": str(error),
    }

    if isinstance(error, ConfigurationError):
        details["config_key"] = error.config_key
    elif isinstance(error, APIError):
        details["status_code"] = error.status_code
        details["status_text"] = error.status_text
        details["response_data"] = error.response_data
    elif isinstance(error, ResponseDecodeError):
        details["status_code"] = error.status_code
    elif isinstance(error, ValidationError):
        details["field"] = error.field
    elif isinstance(error, WetroCloudError):
        details["details"] = error.details

    return details
