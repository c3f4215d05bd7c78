"""
Standardized error classification for the listing pipeline.

Provides a unified error hierarchy for the content store client and the
image mirror. Each error carries enough context (source, collection, url)
to diagnose systematically broken remote schemas from the logs alone.
"""

from typing import Optional, Dict, Any


class APIError(Exception):
    """
    Base exception for all remote API errors.

    Attributes:
        message: Human-readable error description
        source: API source name (e.g., 'notion')
        status_code: HTTP status code if applicable
        response_data: Raw response data for debugging
        retryable: Whether the failure is transient
    """

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        status_code: Optional[int] = None,
        response_data: Optional[Dict[str, Any]] = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.source = source
        self.status_code = status_code
        self.response_data = response_data
        self.retryable = retryable

    def __str__(self) -> str:
        parts = [self.message]
        if self.source:
            parts.insert(0, f"[{self.source}]")
        if self.status_code:
            parts.append(f"(HTTP {self.status_code})")
        return " ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "source": self.source,
            "status_code": self.status_code,
            "retryable": self.retryable,
            "response_data": self.response_data,
        }


class RetryableError(APIError):
    """
    Transient failure (HTTP 5xx, network errors, timeouts).

    The pipeline does not retry; the flag only documents that a later
    build may well succeed.
    """

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        status_code: Optional[int] = None,
        response_data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            source=source,
            status_code=status_code,
            response_data=response_data,
            retryable=True,
        )


class RateLimitError(APIError):
    """Rate limiting error (HTTP 429)."""

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        response_data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            source=source,
            status_code=429,
            response_data=response_data,
            retryable=True,
        )


class FatalError(APIError):
    """
    Non-retryable errors that indicate a permanent problem.

    Examples:
    - Invalid integration token (401)
    - Database not shared with the integration (404)
    - Filter on a property that does not exist (400)
    """

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        status_code: Optional[int] = None,
        response_data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            source=source,
            status_code=status_code,
            response_data=response_data,
            retryable=False,
        )


class AuthenticationError(FatalError):
    """Authentication failed - invalid or missing integration token."""

    def __init__(
        self,
        message: str = "Authentication failed - check integration token",
        source: Optional[str] = None,
        response_data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message, source=source, status_code=401, response_data=response_data
        )


class NotFoundError(FatalError):
    """Requested resource not found (HTTP 404)."""

    def __init__(
        self,
        message: str = "Resource not found",
        source: Optional[str] = None,
        resource_id: Optional[str] = None,
        response_data: Optional[Dict[str, Any]] = None,
    ):
        if resource_id:
            message = f"{message}: {resource_id}"
        super().__init__(
            message=message, source=source, status_code=404, response_data=response_data
        )
        self.resource_id = resource_id


class ValidationError(FatalError):
    """Request validation failed - malformed filter or sort (HTTP 400)."""

    def __init__(
        self,
        message: str = "Invalid request parameters",
        source: Optional[str] = None,
        response_data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message, source=source, status_code=400, response_data=response_data
        )


class ConfigurationError(FatalError):
    """
    Configuration error - missing required settings.

    Raised when the integration token or a database id is not configured.
    """

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        missing_config: Optional[str] = None,
    ):
        super().__init__(
            message=message, source=source, status_code=None, response_data=None
        )
        self.missing_config = missing_config


class RemoteQueryError(APIError):
    """
    A collection query against the content store failed.

    Wraps the underlying APIError (network, auth, malformed filter) and
    records which collection was being queried.
    """

    def __init__(
        self,
        message: str,
        collection: str,
        source: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        status_code = getattr(cause, "status_code", None)
        retryable = bool(getattr(cause, "retryable", False))
        super().__init__(
            message=message,
            source=source,
            status_code=status_code,
            response_data=getattr(cause, "response_data", None),
            retryable=retryable,
        )
        self.collection = collection
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["collection"] = self.collection
        return data


class ParseError(Exception):
    """A remote field's raw value could not be interpreted."""

    def __init__(self, message: str, field: Optional[str] = None, raw: Any = None):
        super().__init__(message)
        self.message = message
        self.field = field
        self.raw = raw

    def __str__(self) -> str:
        if self.field:
            return f"{self.field}: {self.message}"
        return self.message


class DownloadError(Exception):
    """
    An image could not be fetched or written to local storage.

    Attributes:
        url: Remote image URL
        destination: Local file path that was being written
        cause: Underlying exception (transport, HTTP status, or OS error)
    """

    def __init__(
        self,
        message: str,
        url: str,
        destination: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.url = url
        self.destination = destination
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message} ({self.url}): {self.cause}"
        return f"{self.message} ({self.url})"


def classify_http_error(
    status_code: int, response_text: str = "", source: Optional[str] = None
) -> APIError:
    """
    Classify an HTTP error into the appropriate APIError subclass.

    Args:
        status_code: HTTP status code
        response_text: Response body text
        source: API source name

    Returns:
        Appropriate APIError subclass instance
    """
    if status_code == 429:
        return RateLimitError(
            message=f"Rate limited: {response_text[:200]}", source=source
        )
    elif status_code == 401:
        return AuthenticationError(
            message=f"Authentication failed: {response_text[:200]}", source=source
        )
    elif status_code == 403:
        return FatalError(
            message=f"Access forbidden: {response_text[:200]}",
            source=source,
            status_code=403,
        )
    elif status_code == 404:
        return NotFoundError(message=f"Not found: {response_text[:200]}", source=source)
    elif status_code == 400:
        return ValidationError(
            message=f"Bad request: {response_text[:200]}", source=source
        )
    elif 500 <= status_code < 600:
        return RetryableError(
            message=f"Server error: {response_text[:200]}",
            source=source,
            status_code=status_code,
        )
    else:
        return APIError(
            message=f"HTTP error {status_code}: {response_text[:200]}",
            source=source,
            status_code=status_code,
            retryable=False,
        )
