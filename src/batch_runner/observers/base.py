"""Observer system for processor events."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any


class ProcessingEvent(Enum):
    """Events that can be observed during processing."""

    RUN_STARTED = "run_started"
    BATCH_STARTED = "batch_started"
    BATCH_COMPLETED = "batch_completed"
    ITEM_STARTED = "item_started"
    ITEM_RETRY = "item_retry"
    ITEM_SUCCEEDED = "item_succeeded"
    ITEM_FAILED = "item_failed"
    ITEM_CANCELLED = "item_cancelled"
    PROGRESS = "progress"
    RUN_COMPLETED = "run_completed"
    RUN_ABORTED = "run_aborted"
    RUN_CANCELLED = "run_cancelled"


class ProcessorObserver(ABC):
    """Abstract base class for processor event observers."""

    @abstractmethod
    async def on_event(
        self,
        event: ProcessingEvent,
        data: dict[str, Any],
    ) -> None:
        """
        Handle processor event.

        Observers are awaited inline, so a slow observer delays the run.

        Args:
            event: The event type
            data: Event-specific data
        """
        pass


class BaseObserver(ProcessorObserver):
    """Base observer with no-op implementation."""

    async def on_event(
        self,
        event: ProcessingEvent,
        data: dict[str, Any],
    ) -> None:
        """Default: do nothing."""
        pass
