"""
AllerScan Backend — Custom Exception Hierarchy
================================================

What:  Application-specific exceptions for different error scenarios.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return structured JSON error responses with the right status code.
Who:   Raised by services and dependencies; caught by global handlers.

Exception Hierarchy:
    AllerScanError (base)
    ├── ValidationError          → 400 Bad Request (client can fix)
    ├── UnauthorizedError        → 401 Unauthorized
    ├── NotFoundError            → 404 Not Found
    ├── ConflictError            → 409 Conflict
    ├── OcrError                 → 422 Unprocessable Entity
    ├── RateLimitExceededError   → 429 Too Many Requests
    ├── LLMServiceError          → 503 Service Unavailable (retry later)
    │   └── AIResponseFormatError→ 502 Bad Gateway (AI reply unusable)
    ├── AIConfigurationError     → 503 Service Unavailable (no API key)
    ├── CircuitBreakerOpenError  → 503 Service Unavailable (circuit open)
    └── DatabaseError            → 500 Internal Server Error
"""

from typing import Any, Dict, Optional


class AllerScanError(Exception):
    """
    Base exception for all AllerScan application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged; only some handlers return it)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(AllerScanError):
    """
    Raised when client input fails a business rule.

    HTTP: 400 Bad Request. Schema-level failures stay FastAPI's 422.

    Example response:
        {
            "error": "validation_error",
            "message": "Please provide ingredients to analyze",
            "details": {"field": "ingredients"}
        }
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class UnauthorizedError(AllerScanError):
    """
    Raised when a request carries no caller identity.

    HTTP: 401 Unauthorized
    """

    def __init__(
        self,
        message: str = "Unauthorized",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(AllerScanError):
    """
    Raised when a requested resource does not exist or is not owned by the caller.

    HTTP: 404 Not Found

    SQLAlchemy returns None for missing records; services convert that into
    this exception so routes never deal with None.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)
        self.resource = resource


class ConflictError(AllerScanError):
    """
    Raised when a create would duplicate a unique resource.

    HTTP: 409 Conflict
    When: Registering an email that already has an account.
    """

    def __init__(
        self,
        message: str = "The resource already exists",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class OcrError(AllerScanError):
    """
    Raised when text recognition fails on an otherwise valid image.

    HTTP: 422 Unprocessable Entity
    When: Tesseract is missing, crashes, or cannot read the decoded image.
    """

    def __init__(
        self,
        message: str = "Failed to extract text from image",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class LLMServiceError(AllerScanError):
    """
    Raised when the LLM (Gemini) service fails after all retries.

    HTTP: 503 Service Unavailable

    Response includes:
        - retry_after: Suggested seconds before client retries
    """

    def __init__(
        self,
        message: str = "AI analysis service is temporarily unavailable",
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if retry_after:
            ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class AIResponseFormatError(LLMServiceError):
    """
    Raised when Gemini answered but the reply is not the JSON we asked for.

    HTTP: 502 Bad Gateway

    The upstream service is reachable, so this does not count as a circuit
    breaker failure. A truncated copy of the raw reply is kept in context for
    server-side logging.
    """

    def __init__(
        self,
        message: str = "Failed to parse AI response",
        raw_content: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if raw_content is not None:
            ctx["raw_content"] = raw_content[:500]
        super().__init__(message=message, context=ctx)


class AIConfigurationError(AllerScanError):
    """
    Raised when an AI feature is used without a configured API key.

    HTTP: 503 Service Unavailable
    """

    def __init__(
        self,
        message: str = "AI service not configured. Please contact support.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class CircuitBreakerOpenError(AllerScanError):
    """
    Raised when the circuit breaker is in OPEN state.

    HTTP: 503 Service Unavailable

    How circuit breaker works:
        CLOSED (normal) → failures increment counter
        → After 5 failures → OPEN (reject all calls for 60 seconds)
        → After 60 seconds → HALF-OPEN (allow one test call)
        → If test succeeds → CLOSED (resume normal operation)
        → If test fails → OPEN again (reset 60-second timer)
    """

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"AI service is temporarily unavailable due to repeated failures. "
            f"The service will automatically retry in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, context=ctx)
        self.recovery_time = recovery_time


class DatabaseError(AllerScanError):
    """
    Raised when database operations fail unexpectedly.

    HTTP: 500 Internal Server Error

    The message returned to the client is always generic. SQL, constraint
    names and driver errors are logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(AllerScanError):
    """
    Raised when a client exceeds the per-IP request rate limit.

    HTTP: 429 Too Many Requests
    """

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
