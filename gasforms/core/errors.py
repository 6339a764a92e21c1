"""Error taxonomy, classification and retry helpers.

Every failure raised by a remote store call is classified into one of six
``ErrorType`` values. Only network and server failures are retried; auth,
permission and validation failures are surfaced as-is.

Usage:
    from gasforms.core.errors import parse_error, with_retry

    try:
        row = await with_retry(lambda: store.select_one("clients", {"id": cid}))
    except Exception as e:
        app_error = parse_error(e)
        log_error(app_error, "client_lookup")
"""

import asyncio
import functools
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx

from gasforms.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# PostgREST code for "zero rows returned where one was expected"
NOT_FOUND_CODE = "PGRST116"


class ErrorType(str, Enum):
    """Classification of application errors."""
    VALIDATION = "validation"
    NETWORK = "network"
    AUTH = "auth"
    PERMISSION = "permission"
    SERVER = "server"
    UNKNOWN = "unknown"


@dataclass
class AppError:
    """Normalised description of a failure, safe to show or log."""
    type: ErrorType
    message: str
    code: Optional[str] = None
    field: Optional[str] = None
    details: Any = None
    retryable: bool = False

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return {
            "type": self.type.value,
            "message": self.message,
            "code": self.code,
            "field": self.field,
            "details": self.details,
            "retryable": self.retryable,
        }


class GasFormsError(Exception):
    """Base exception for all library errors."""


class RemoteStoreError(GasFormsError):
    """Error response from the remote store."""

    def __init__(self, message: str, status: Optional[int] = None,
                 code: Optional[str] = None, details: Any = None):
        self.status = status
        self.code = code
        self.details = details
        super().__init__(message)

    @property
    def is_not_found(self) -> bool:
        return self.code == NOT_FOUND_CODE


class NetworkError(GasFormsError):
    """The remote store could not be reached."""

    def __init__(self, message: str, code: Optional[str] = None,
                 retryable: bool = True, details: Any = None):
        self.code = code
        self.retryable = retryable
        self.details = details
        super().__init__(message)


class ValidationError(GasFormsError):
    """Input rejected before or by the remote store."""

    def __init__(self, message: str, field: Optional[str] = None, details: Any = None):
        self.field = field
        self.details = details
        super().__init__(message)


class AuthError(GasFormsError):
    """The current user is not authenticated."""

    def __init__(self, message: str, code: Optional[str] = None):
        self.code = code
        super().__init__(message)


class DraftError(GasFormsError):
    """A draft could not be saved, loaded or deleted."""

    def __init__(self, operation: str, app_error: AppError):
        self.operation = operation
        self.app_error = app_error
        super().__init__(f"Draft {operation} failed: {app_error.message}")


class RecordNotFoundError(GasFormsError, KeyError):
    """An optimistic mutation referenced a record that is not in the list."""

    def __init__(self, record_id: Any):
        self.record_id = record_id
        super().__init__(f"Item not found: {record_id}")

    def __str__(self) -> str:
        return self.args[0]


class InvalidTransitionError(GasFormsError):
    """A state machine received an action that its current state forbids."""

    def __init__(self, current: str, action: str):
        self.current = current
        self.action = action
        super().__init__(f"Cannot {action} while {current}")


def _code_of(error: BaseException) -> Optional[str]:
    code = getattr(error, "code", None)
    return str(code) if code is not None else None


def parse_error(error: BaseException) -> AppError:
    """Parse and normalise an exception into an ``AppError``."""
    if isinstance(error, DraftError):
        return error.app_error

    code = _code_of(error)
    message = str(error)

    # Postgres / PostgREST error codes
    if code and message:
        if code == NOT_FOUND_CODE:
            return AppError(ErrorType.VALIDATION, "Record not found", code=code)
        if code.startswith("23"):
            return AppError(ErrorType.VALIDATION, "Data validation error", code=code,
                            details=getattr(error, "details", None))
        if code == "42501":
            return AppError(ErrorType.PERMISSION, "Permission denied", code=code)

    if isinstance(error, AuthError):
        return AppError(ErrorType.AUTH, "Authentication required", code=code)

    lowered = message.lower()
    if "auth" in lowered or "unauthorized" in lowered:
        return AppError(ErrorType.AUTH, "Authentication required", code=code)

    if isinstance(error, NetworkError):
        return AppError(
            ErrorType.NETWORK,
            "Network connection error. Please check your internet connection.",
            code=code,
            retryable=error.retryable,
        )
    if isinstance(error, (httpx.TransportError, ConnectionError, asyncio.TimeoutError)):
        return AppError(
            ErrorType.NETWORK,
            "Network connection error. Please check your internet connection.",
            retryable=True,
        )

    status = getattr(error, "status", None)
    if isinstance(status, int):
        if status >= 500:
            return AppError(ErrorType.SERVER, "Server error. Please try again later.",
                            code=str(status), retryable=True)
        if status == 401:
            return AppError(ErrorType.AUTH, "Authentication required", code="401")
        if status == 403:
            return AppError(ErrorType.PERMISSION, "Permission denied", code="403")
        if status == 404:
            return AppError(ErrorType.VALIDATION, "Resource not found", code="404")
        if status in (408, 429):
            return AppError(ErrorType.NETWORK, "Request timed out or was rate limited.",
                            code=str(status), retryable=True)

    if isinstance(error, ValidationError):
        return AppError(ErrorType.VALIDATION, message, field=error.field,
                        details=error.details)

    return AppError(ErrorType.UNKNOWN, message or "An unexpected error occurred")


def get_user_friendly_message(error: AppError) -> str:
    """Message suitable for a toast."""
    if error.type == ErrorType.NETWORK:
        return "Connection problem. Please check your internet connection and try again."
    if error.type == ErrorType.AUTH:
        return "Please log in to continue."
    if error.type == ErrorType.PERMISSION:
        return "You don't have permission to perform this action."
    if error.type == ErrorType.VALIDATION:
        return error.message or "Please check your input and try again."
    if error.type == ErrorType.SERVER:
        return "Server is temporarily unavailable. Please try again in a few moments."
    return error.message or "Something went wrong. Please try again."


def log_error(error: AppError, context: Optional[str] = None) -> None:
    """Log a classified error with its context."""
    logger.error(
        "Error logged",
        error_type=error.type.value,
        message=error.message,
        code=error.code,
        field=error.field,
        context=context,
    )


@dataclass
class RetryPolicy:
    """Retry configuration for remote calls.

    Implements exponential backoff with configurable limits.
    Delay formula: min(initial_delay * (backoff_multiplier ^ attempt), max_delay)
    """
    max_attempts: int = 3
    initial_delay: float = 1.0       # seconds
    max_delay: float = 10.0          # seconds
    backoff_multiplier: float = 2.0

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay before next retry attempt.

        Args:
            attempt: Attempt that just failed (0-indexed)

        Returns:
            Delay in seconds before next attempt
        """
        delay = self.initial_delay * (self.backoff_multiplier ** attempt)
        return min(delay, self.max_delay)

    def should_retry(self, error: BaseException, attempt: int) -> bool:
        """Retry only retryable failures, and never past the last attempt."""
        if attempt + 1 >= self.max_attempts:
            return False
        return parse_error(error).retryable


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """Await ``fn()`` retrying transient failures with exponential backoff.

    Args:
        fn: Zero-argument coroutine factory, called once per attempt
        policy: Retry limits (defaults to ``RetryPolicy()``)
        sleep: Awaitable delay, replaceable in tests

    Returns:
        The first successful result

    Raises:
        The last error once retries are exhausted or the error is not retryable
    """
    policy = policy or RetryPolicy()
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as e:
            if not policy.should_retry(e, attempt):
                raise
            delay = policy.calculate_delay(attempt)
            logger.warning("Attempt failed, retrying",
                           attempt=attempt + 1, delay_seconds=delay, error=str(e))
            attempt += 1
            await sleep(delay)


def safe_async(
    fn: Callable[..., Awaitable[T]],
    on_error: Optional[Callable[[AppError], None]] = None,
    default: Optional[T] = None,
    context: Optional[str] = None,
) -> Callable[..., Awaitable[Optional[T]]]:
    """Wrap ``fn`` so failures are classified, logged and replaced by ``default``."""

    @functools.wraps(fn)
    async def wrapper(*args: Any, **kwargs: Any) -> Optional[T]:
        try:
            return await fn(*args, **kwargs)
        except Exception as e:
            app_error = parse_error(e)
            log_error(app_error, context)
            if on_error:
                on_error(app_error)
            return default

    return wrapper
