"""Retry strategies."""

from .delay import ExponentialBackoffStrategy, FixedDelayStrategy, RetryDelayStrategy
from .errors import (
    ErrorClassifier,
    ErrorInfo,
    ItemTimeoutError,
    PredicateErrorClassifier,
    RetryAllClassifier,
    TransientErrorClassifier,
)

__all__ = [
    "ErrorClassifier",
    "ErrorInfo",
    "ItemTimeoutError",
    "PredicateErrorClassifier",
    "RetryAllClassifier",
    "TransientErrorClassifier",
    "RetryDelayStrategy",
    "FixedDelayStrategy",
    "ExponentialBackoffStrategy",
]
