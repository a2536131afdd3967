"""Batch processing engine for bulk file operations.

Runs an async worker over a list of items in sequential batches of bounded
size, retrying failed items and reporting progress. It backs every
multi-file operation (bulk rename, AI name suggestions, optimization,
duplicate detection) without knowing what the worker actually does.

Key features:
- Bounded concurrency: at most `batch_size` worker calls in flight
- Per-item retries with pluggable error classification and delay strategies
- Continue-on-error or abort-on-first-failure policies
- Cooperative cancellation between batches and retries
- Observer pattern for progress, metrics and callbacks
- Results always returned in input order

Example:
    >>> from batch_runner import BatchProcessor, ProcessorConfig, ProgressTracker
    >>>
    >>> config = ProcessorConfig(batch_size=5, batch_delay=0.1)
    >>> progress = ProgressTracker()
    >>> processor = BatchProcessor(config=config, observers=[progress])
    >>> result = await processor.process(files, suggest_name)
    >>> result.summary.failed
    0
"""

# Core classes
from .base import (
    BatchResult,
    ItemState,
    Outcome,
    OutcomeStatus,
    RunSummary,
)

# Helpers
from .batching import estimate_time_remaining, partition

# Cancellation
from .cancellation import CancellationToken, InFlightPolicy

# Configuration
from .core import ConfigurationError, ProcessorConfig, RetryConfig, WorkerFunc

# Observers
from .observers import (
    BaseObserver,
    CallbackObserver,
    MetricsObserver,
    ProcessingEvent,
    ProcessorObserver,
    ProgressTracker,
)

# Main processor
from .processor import BatchAbortedError, BatchProcessor, process_in_batches

# Error classification and retry delay strategies
from .strategies import (
    ErrorClassifier,
    ErrorInfo,
    ExponentialBackoffStrategy,
    FixedDelayStrategy,
    ItemTimeoutError,
    PredicateErrorClassifier,
    RetryAllClassifier,
    RetryDelayStrategy,
    TransientErrorClassifier,
)

__all__ = [
    # Core
    "BatchResult",
    "ItemState",
    "Outcome",
    "OutcomeStatus",
    "RunSummary",
    "WorkerFunc",
    # Helpers
    "estimate_time_remaining",
    "partition",
    # Cancellation
    "CancellationToken",
    "InFlightPolicy",
    # Configuration
    "ConfigurationError",
    "ProcessorConfig",
    "RetryConfig",
    # Strategies
    "ErrorClassifier",
    "ErrorInfo",
    "ItemTimeoutError",
    "PredicateErrorClassifier",
    "RetryAllClassifier",
    "TransientErrorClassifier",
    "RetryDelayStrategy",
    "FixedDelayStrategy",
    "ExponentialBackoffStrategy",
    # Observers
    "ProcessorObserver",
    "BaseObserver",
    "CallbackObserver",
    "MetricsObserver",
    "ProcessingEvent",
    "ProgressTracker",
    # Processor
    "BatchAbortedError",
    "BatchProcessor",
    "process_in_batches",
]

__version__ = "0.1.0"
