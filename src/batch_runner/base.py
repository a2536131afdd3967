"""Result types shared by the batch processor and its observers."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

# Type variables for generic typing
TItem = TypeVar("TItem")  # Input item type
TResult = TypeVar("TResult")  # Worker result type


class ItemState(Enum):
    """States an item moves through while being processed."""

    PENDING = "pending"
    ATTEMPTING = "attempting"
    RETRY_SCHEDULED = "retry_scheduled"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class OutcomeStatus(Enum):
    """Terminal status recorded for an item."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Outcome(Generic[TItem, TResult]):
    """
    Terminal outcome of a single work item.

    Attributes:
        index: Position of the item in the input sequence
        item: The input item itself
        status: SUCCEEDED, FAILED or CANCELLED
        value: Worker return value if successful, None otherwise
        error: Final exception if failed or cancelled, None if successful
        attempts: Number of worker invocations made for this item
    """

    index: int
    item: TItem
    status: OutcomeStatus
    value: TResult | None = None
    error: BaseException | None = None
    attempts: int = 0

    @property
    def success(self) -> bool:
        return self.status is OutcomeStatus.SUCCEEDED

    @property
    def error_message(self) -> str | None:
        """Short "Type: message" description of the error, for display."""
        if self.error is None:
            return None
        return f"{type(self.error).__name__}: {str(self.error)[:500]}"


@dataclass(frozen=True)
class RunSummary:
    """
    Aggregate counters for one run.

    Attributes:
        total: Number of input items
        processed: Items that reached SUCCEEDED or FAILED
        succeeded: Items that reached SUCCEEDED
        failed: Items that reached FAILED
        cancelled: Items stopped by cancellation (not counted as processed)
        batches_completed: Batches whose barrier completed
        elapsed: Wall-clock seconds since the run started
    """

    total: int = 0
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    cancelled: int = 0
    batches_completed: int = 0
    elapsed: float = 0.0


@dataclass(frozen=True)
class BatchResult(Generic[TItem, TResult]):
    """
    Result of one batch run.

    `outcomes` has one slot per input item, in input order. A slot is None
    only when the item never reached a terminal state, which can happen
    after an abort or a cancellation.

    Attributes:
        outcomes: Per-item outcomes indexed by input position
        summary: Final counters
        aborted: True if the run stopped on a terminal failure
        cancelled: True if the run stopped on a cancellation request
    """

    outcomes: tuple[Outcome[TItem, TResult] | None, ...]
    summary: RunSummary
    aborted: bool = False
    cancelled: bool = False

    @property
    def total_items(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return self.summary.succeeded

    @property
    def failed(self) -> int:
        return self.summary.failed

    @property
    def is_complete(self) -> bool:
        """True if every slot holds a SUCCEEDED or FAILED outcome."""
        return all(
            outcome is not None and outcome.status is not OutcomeStatus.CANCELLED
            for outcome in self.outcomes
        )

    @property
    def values(self) -> list[TResult | None]:
        """Worker results in input order (None for items without a success)."""
        return [
            outcome.value if outcome is not None and outcome.success else None
            for outcome in self.outcomes
        ]

    @property
    def failures(self) -> list[Outcome[TItem, TResult]]:
        """Failed outcomes in input order."""
        return [
            outcome
            for outcome in self.outcomes
            if outcome is not None and outcome.status is OutcomeStatus.FAILED
        ]

    def to_dict(self) -> dict[str, Any]:
        """Summary view suitable for JSON responses to the dashboard."""
        return {
            "total": self.summary.total,
            "processed": self.summary.processed,
            "succeeded": self.summary.succeeded,
            "failed": self.summary.failed,
            "cancelled": self.summary.cancelled,
            "aborted": self.aborted,
            "was_cancelled": self.cancelled,
            "elapsed": self.summary.elapsed,
            "failures": [
                {"index": outcome.index, "error": outcome.error_message, "attempts": outcome.attempts}
                for outcome in self.failures
            ],
        }
