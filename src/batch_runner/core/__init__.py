"""Core components for batch processing."""

from .config import ConfigurationError, ProcessorConfig, RetryConfig
from .protocols import WorkerFunc

__all__ = [
    "ConfigurationError",
    "ProcessorConfig",
    "RetryConfig",
    "WorkerFunc",
]
