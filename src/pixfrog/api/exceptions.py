"""Custom exceptions for Gemini API errors and their user-facing classification."""
from enum import Enum
from typing import List, Optional


class GeminiAPIError(RuntimeError):
    """
    Base exception for Gemini API errors.

    Attributes:
        status_code: HTTP status of the failed call, or None for network errors.
    """
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MissingAPIKeyError(GeminiAPIError):
    """Raised when a client is built without a Gemini API key."""
    pass


class GeminiQuotaError(GeminiAPIError):
    """Rate limit or quota exhausted (HTTP 429 / RESOURCE_EXHAUSTED)."""
    pass


class GeminiUnavailableError(GeminiAPIError):
    """Service temporarily unavailable (HTTP 503)."""
    pass


class GeminiAccessDeniedError(GeminiAPIError):
    """Key, billing or region problem (HTTP 403 / PERMISSION_DENIED)."""
    pass


class GeminiServerError(GeminiAPIError):
    """Any other 5xx from the service."""
    pass


class GeminiSafetyError(GeminiAPIError):
    """
    Raised when Gemini blocks content due to safety filters.

    Attributes:
        safety_ratings: List of safety rating dicts from the API response.
    """
    def __init__(self, message: str, safety_ratings: Optional[List[dict]] = None):
        super().__init__(message)
        self.safety_ratings = safety_ratings or []


class ErrorKind(Enum):
    """User-facing failure categories."""

    QUOTA = "quota"
    UNAVAILABLE = "unavailable"
    ACCESS_DENIED = "access_denied"
    SAFETY = "safety"
    SERVER = "server"
    NO_IMAGE = "no_image"
    UNKNOWN = "unknown"


def is_quota_error(error: BaseException) -> bool:
    """True for 429s and anything whose message mentions a quota."""
    if isinstance(error, GeminiQuotaError):
        return True
    if getattr(error, "status_code", None) == 429:
        return True
    message = str(error)
    return "429" in message or "quota" in message.lower()


def is_unavailable_error(error: BaseException) -> bool:
    if isinstance(error, GeminiUnavailableError):
        return True
    return getattr(error, "status_code", None) == 503


def classify_error(error: BaseException) -> ErrorKind:
    """
    Map an exception raised during generation to an ErrorKind.

    Typed Gemini errors and HTTP status codes are matched first, so text
    in a response body (e.g. "retry in 12.403s") cannot reclassify them.
    Anything else falls back to well-known markers in the message text.
    """
    if isinstance(error, GeminiSafetyError):
        return ErrorKind.SAFETY
    status = getattr(error, "status_code", None)
    if isinstance(error, GeminiAccessDeniedError) or status == 403:
        return ErrorKind.ACCESS_DENIED
    if isinstance(error, GeminiQuotaError) or status == 429:
        return ErrorKind.QUOTA
    if isinstance(error, GeminiUnavailableError) or status == 503:
        return ErrorKind.UNAVAILABLE
    if isinstance(error, GeminiServerError) or (status is not None and status >= 500):
        return ErrorKind.SERVER

    # Untyped errors: fall back to markers in the message text
    message = str(error)
    if "403" in message or "PERMISSION_DENIED" in message \
            or "permission denied" in message.lower():
        return ErrorKind.ACCESS_DENIED
    if is_quota_error(error) or "RESOURCE_EXHAUSTED" in message:
        return ErrorKind.QUOTA
    if is_unavailable_error(error) or "503" in message:
        return ErrorKind.UNAVAILABLE
    if "500" in message or "INTERNAL" in message:
        return ErrorKind.SERVER
    return ErrorKind.UNKNOWN
