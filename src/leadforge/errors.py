"""Error taxonomy, categorization and retry helpers.

Every failure in LeadForge is classified into an ErrorCategory, either from an
HTTP status code or, when no status is available, from the error message.
The category selects a severity and a notification icon; no category is
fatal on its own.

Usage:
    >>> try:
    ...     client.get_business("b-1")
    ... except LeadForgeError as e:
    ...     notice = handle_error(e)
    ...     print(notice.icon, notice.message)
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, MutableMapping, Optional, TypeVar

import requests

logger = logging.getLogger(__name__)

T = TypeVar("T")

NETWORK_ERROR_MESSAGE = "Network error. Please check your connection and try again."
UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred. Please try again."


class ErrorSeverity(str, Enum):
    """How loudly an error should be surfaced."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """Classification of an error by its origin."""

    NETWORK = "network"
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    RATE_LIMIT = "rate_limit"
    SERVER = "server"
    CLIENT = "client"
    UNKNOWN = "unknown"


CATEGORY_SEVERITY: Dict[ErrorCategory, ErrorSeverity] = {
    ErrorCategory.NETWORK: ErrorSeverity.MEDIUM,
    ErrorCategory.VALIDATION: ErrorSeverity.LOW,
    ErrorCategory.AUTHENTICATION: ErrorSeverity.HIGH,
    ErrorCategory.AUTHORIZATION: ErrorSeverity.HIGH,
    ErrorCategory.RATE_LIMIT: ErrorSeverity.MEDIUM,
    ErrorCategory.SERVER: ErrorSeverity.HIGH,
    ErrorCategory.CLIENT: ErrorSeverity.MEDIUM,
    ErrorCategory.UNKNOWN: ErrorSeverity.MEDIUM,
}

CATEGORY_ICONS: Dict[ErrorCategory, str] = {
    ErrorCategory.NETWORK: "🌐",
    ErrorCategory.AUTHENTICATION: "🔒",
    ErrorCategory.AUTHORIZATION: "🔒",
    ErrorCategory.RATE_LIMIT: "⏱️",
    ErrorCategory.VALIDATION: "⚠️",
}


class LeadForgeError(Exception):
    """Base exception carrying category, severity and request context."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: Optional[ErrorSeverity] = None,
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity or CATEGORY_SEVERITY[category]
        self.status_code = status_code
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "name": type(self).__name__,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "status_code": self.status_code,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }


class RemoteGenerationError(LeadForgeError):
    """Raised when the LLM gateway or a remote generation source fails."""

    pass


class BackendAPIError(LeadForgeError):
    """Raised when the backend REST API returns a non-success response."""

    pass


class StorageError(LeadForgeError):
    """Raised when the durable store cannot be written."""

    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("category", ErrorCategory.CLIENT)
        super().__init__(message, **kwargs)


class TemplateAssemblyError(LeadForgeError):
    """Raised when a category template fails to render."""

    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("category", ErrorCategory.CLIENT)
        kwargs.setdefault("severity", ErrorSeverity.CRITICAL)
        super().__init__(message, **kwargs)


class InvalidTransitionError(LeadForgeError):
    """Raised when a task status change is not allowed by the state machine."""

    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("category", ErrorCategory.VALIDATION)
        super().__init__(message, **kwargs)


class BuildInProgressError(LeadForgeError):
    """Raised when a build is started for a business/agent pair that is already building."""

    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("category", ErrorCategory.VALIDATION)
        super().__init__(message, **kwargs)


class BuildCancelledError(LeadForgeError):
    """Raised inside a build when its cancellation handle has been set."""

    def __init__(self, message: str = "Build cancelled", **kwargs: Any):
        kwargs.setdefault("category", ErrorCategory.CLIENT)
        kwargs.setdefault("severity", ErrorSeverity.LOW)
        super().__init__(message, **kwargs)


class DeploymentError(LeadForgeError):
    """Raised when a deployment provider fails."""

    pass


def category_for_status(status_code: int) -> ErrorCategory:
    """Map an HTTP status code to an error category."""
    if status_code == 400:
        return ErrorCategory.VALIDATION
    if status_code == 401:
        return ErrorCategory.AUTHENTICATION
    if status_code == 403:
        return ErrorCategory.AUTHORIZATION
    if status_code == 429:
        return ErrorCategory.RATE_LIMIT
    if status_code in (500, 502, 503):
        return ErrorCategory.SERVER
    return ErrorCategory.UNKNOWN


def create_api_error(
    status_code: int,
    payload: Optional[Dict[str, Any]] = None,
    context: Optional[Dict[str, Any]] = None,
) -> BackendAPIError:
    """Build a BackendAPIError from a non-success response.

    Args:
        status_code: HTTP status code of the response.
        payload: Decoded JSON body, if any.
        context: Extra request context (method, url).

    Returns:
        A categorized BackendAPIError.
    """
    payload = payload or {}
    message = payload.get("message") or payload.get("detail")
    if not isinstance(message, str) or not message:
        message = f"Request failed with status {status_code}"

    return BackendAPIError(
        message,
        category=category_for_status(status_code),
        status_code=status_code,
        context={**(context or {}), "response": payload},
    )


def categorize_error(error: BaseException) -> ErrorCategory:
    """Classify an exception.

    LeadForgeError instances keep their own category and requests transport
    failures are network errors. Anything else is matched on its message.
    """
    if isinstance(error, LeadForgeError):
        return error.category

    if isinstance(error, (requests.ConnectionError, requests.Timeout)):
        return ErrorCategory.NETWORK

    message = str(error).lower()

    if "network" in message or "fetch" in message:
        return ErrorCategory.NETWORK
    if "unauthorized" in message or "401" in message:
        return ErrorCategory.AUTHENTICATION
    if "forbidden" in message or "403" in message:
        return ErrorCategory.AUTHORIZATION
    if "rate limit" in message or "429" in message:
        return ErrorCategory.RATE_LIMIT
    if "validation" in message or "invalid" in message:
        return ErrorCategory.VALIDATION
    if "500" in message or "server" in message:
        return ErrorCategory.SERVER

    return ErrorCategory.UNKNOWN


def get_error_message(error: BaseException) -> str:
    """Get a user-facing message for an exception."""
    if isinstance(error, LeadForgeError):
        return error.message

    if categorize_error(error) == ErrorCategory.NETWORK:
        return NETWORK_ERROR_MESSAGE

    return str(error) or UNEXPECTED_ERROR_MESSAGE


@dataclass
class ErrorNotice:
    """A user-visible error notification.

    Attributes:
        message: Text shown to the user.
        category: Error category.
        severity: Severity used to style the notification.
        icon: Icon shown next to the message, empty for the default style.
    """

    message: str
    category: ErrorCategory
    severity: ErrorSeverity
    icon: str = ""
    context: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.icon} {self.message}".strip()


def log_error(error: BaseException, context: Optional[Dict[str, Any]] = None) -> None:
    """Log an error with its category and context."""
    if isinstance(error, LeadForgeError):
        details = error.to_dict()
        if context:
            details["context"] = {**details["context"], **context}
    else:
        details = {
            "message": get_error_message(error),
            "category": categorize_error(error).value,
            "severity": ErrorSeverity.MEDIUM.value,
            "context": context or {},
        }
    logger.error("Error logged: %s", details["message"], extra={"error": details})


def handle_error(
    error: BaseException,
    context: Optional[Dict[str, Any]] = None,
    message: Optional[str] = None,
    silent: bool = False,
) -> ErrorNotice:
    """Log an error and build the notification a user should see.

    Args:
        error: The exception to handle.
        context: Extra fields for the log record.
        message: Override for the user-facing text.
        silent: Skip logging (the caller already logged).

    Returns:
        ErrorNotice describing the notification.
    """
    if not silent:
        log_error(error, context)

    category = categorize_error(error)
    if isinstance(error, LeadForgeError):
        severity = error.severity
    else:
        severity = CATEGORY_SEVERITY[category]

    return ErrorNotice(
        message=message or get_error_message(error),
        category=category,
        severity=severity,
        icon=CATEGORY_ICONS.get(category, ""),
        context=context or {},
    )


def _is_network_error(error: BaseException) -> bool:
    return categorize_error(error) == ErrorCategory.NETWORK


def retry_call(
    func: Callable[..., T],
    *args: Any,
    max_attempts: int = 3,
    delay: float = 1.0,
    backoff: str = "exponential",
    should_retry: Optional[Callable[[BaseException], bool]] = None,
    sleep: Callable[[float], None] = time.sleep,
    **kwargs: Any,
) -> T:
    """Call a function, retrying failures that pass the predicate.

    Args:
        func: Function to execute.
        *args: Positional arguments for the function.
        max_attempts: Total attempts including the first one.
        delay: Base delay in seconds.
        backoff: "exponential" (delay * 2^(n-1)) or "linear" (delay * n).
        should_retry: Predicate deciding whether an error is retryable.
            Defaults to retrying network errors only.
        sleep: Sleep function, replaceable in tests.
        **kwargs: Keyword arguments for the function.

    Returns:
        The function result on success.

    Raises:
        The last exception once attempts are exhausted or the predicate refuses.
    """
    if backoff not in ("exponential", "linear"):
        raise ValueError(f"Unknown backoff strategy: {backoff}")

    predicate = should_retry or _is_network_error

    for attempt in range(1, max_attempts + 1):
        try:
            return func(*args, **kwargs)
        except Exception as e:
            if attempt >= max_attempts or not predicate(e):
                raise
            if backoff == "exponential":
                wait = delay * (2 ** (attempt - 1))
            else:
                wait = delay * attempt
            logger.warning(
                "Attempt %d/%d failed: %s. Retrying in %.1fs...",
                attempt,
                max_attempts,
                str(e),
                wait,
            )
            sleep(wait)

    # Unreachable: the loop either returns or raises
    raise RuntimeError("retry_call exhausted without result")


class ErrorRecovery:
    """Strategies for degrading gracefully instead of failing."""

    @staticmethod
    def with_default(func: Callable[[], T], default: T) -> T:
        """Return func() or the default when it raises."""
        try:
            return func()
        except Exception as e:
            logger.warning("Using default value after error: %s", e)
            return default

    @staticmethod
    def with_cache(
        func: Callable[[], T],
        cache_key: str,
        cache: MutableMapping[str, T],
    ) -> T:
        """Return func() and remember it; serve the remembered value when func raises."""
        try:
            value = func()
        except Exception as e:
            if cache_key in cache:
                logger.warning("Serving cached value for %s after error: %s", cache_key, e)
                return cache[cache_key]
            raise
        cache[cache_key] = value
        return value
