"""Error classification deciding which worker failures are worth retrying."""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

# HTTP statuses that usually clear up on their own (AI providers, storage APIs)
RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


class ItemTimeoutError(TimeoutError):
    """
    Timeout enforced by the batch processor (asyncio.wait plus cancel).

    Distinguishes the configured timeout_per_item being exceeded from a
    timeout raised by whatever the worker itself calls.
    """

    pass


@dataclass
class ErrorInfo:
    """Structured information about an error."""

    is_retryable: bool
    error_category: str


class ErrorClassifier(ABC):
    """Abstract base class for classifying worker errors."""

    @abstractmethod
    def classify(self, exception: Exception) -> ErrorInfo:
        """
        Classify an exception and determine handling strategy.

        Args:
            exception: The exception raised by the worker

        Returns:
            ErrorInfo with classification details
        """
        pass


class RetryAllClassifier(ErrorClassifier):
    """Treat every error as retryable. This is the processor's default policy."""

    def classify(self, exception: Exception) -> ErrorInfo:
        return ErrorInfo(is_retryable=True, error_category=type(exception).__name__)


class PredicateErrorClassifier(ErrorClassifier):
    """
    Retry only the errors accepted by a caller-supplied predicate.

    Example:
        >>> classifier = PredicateErrorClassifier(lambda e: not isinstance(e, FileNotFoundError))
    """

    def __init__(self, predicate: Callable[[Exception], bool]):
        self.predicate = predicate

    def classify(self, exception: Exception) -> ErrorInfo:
        retryable = bool(self.predicate(exception))
        return ErrorInfo(
            is_retryable=retryable,
            error_category="retryable" if retryable else "permanent",
        )


def _status_code(exception: Exception) -> int | None:
    """Pull an HTTP status off client exceptions that carry one."""
    for attr in ("status_code", "status"):
        value = getattr(exception, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(exception, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


class TransientErrorClassifier(ErrorClassifier):
    """Retry transient failures (timeouts, connections, throttling); fail fast on logic bugs."""

    def classify(self, exception: Exception) -> ErrorInfo:
        """Classify common errors with conservative defaults."""
        error_str = str(exception).lower()

        if isinstance(exception, ItemTimeoutError):
            return ErrorInfo(is_retryable=True, error_category="item_timeout")

        if isinstance(exception, TimeoutError) or "timeout" in error_str:
            return ErrorInfo(is_retryable=True, error_category="timeout")

        if isinstance(exception, ConnectionError) or "connection" in error_str:
            return ErrorInfo(is_retryable=True, error_category="connection_error")

        status = _status_code(exception)
        if status is not None:
            return ErrorInfo(
                is_retryable=status in RETRYABLE_STATUS_CODES,
                error_category=f"http_{status}",
            )

        # An AI provider may return malformed structured output; a retry can fix it
        from pydantic import ValidationError

        if isinstance(exception, ValidationError):
            return ErrorInfo(is_retryable=True, error_category="validation_error")

        # Deterministic errors that won't be fixed by retrying
        logic_bug_types = (
            ValueError,
            TypeError,
            AttributeError,
            KeyError,
            IndexError,
            NameError,
            ZeroDivisionError,
            AssertionError,
            FileNotFoundError,
            PermissionError,
            IsADirectoryError,
        )
        if isinstance(exception, logic_bug_types):
            return ErrorInfo(is_retryable=False, error_category="logic_error")

        # Unknown errors might be transient
        return ErrorInfo(is_retryable=True, error_category="unknown")
