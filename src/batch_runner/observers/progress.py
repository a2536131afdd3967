"""Progress tracking for dashboards and progress bars."""

import time
from typing import Any

from ..batching import estimate_time_remaining
from .base import BaseObserver, ProcessingEvent


class ProgressTracker(BaseObserver):
    """
    Keep the latest progress counters of a run and derive percent and ETA.

    Example:
        >>> tracker = ProgressTracker()
        >>> processor = BatchProcessor(observers=[tracker])
        >>> # ... while the run is going, from another task ...
        >>> tracker.snapshot()
        {'processed': 7, 'total': 20, 'failed': 1, 'percent': 35.0, 'eta_seconds': 12, ...}
    """

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self.total = 0
        self.processed = 0
        self.failed = 0
        self.current_batch: int | None = None
        self.started_at: float | None = None
        self.finished = False

    async def on_event(self, event: ProcessingEvent, data: dict[str, Any]) -> None:
        if event == ProcessingEvent.RUN_STARTED:
            self.total = data["total"]
            self.processed = 0
            self.failed = 0
            self.current_batch = None
            self.finished = False
            self.started_at = self._clock()
        elif event == ProcessingEvent.BATCH_STARTED:
            self.current_batch = data["batch_index"]
        elif event == ProcessingEvent.PROGRESS:
            self.processed = data["processed"]
            self.total = data["total"]
            self.failed = data["failed"]
        elif event in (
            ProcessingEvent.RUN_COMPLETED,
            ProcessingEvent.RUN_ABORTED,
            ProcessingEvent.RUN_CANCELLED,
        ):
            self.finished = True

    @property
    def percent(self) -> float:
        if self.total == 0:
            return 0.0
        return round(self.processed / self.total * 100, 1)

    @property
    def elapsed_ms(self) -> float:
        if self.started_at is None:
            return 0.0
        return (self._clock() - self.started_at) * 1000

    @property
    def eta_seconds(self) -> int | None:
        """Seconds left by linear extrapolation, None until the first item finishes."""
        if self.finished:
            return 0
        return estimate_time_remaining(self.total, self.processed, self.elapsed_ms)

    def snapshot(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "total": self.total,
            "failed": self.failed,
            "percent": self.percent,
            "eta_seconds": self.eta_seconds,
            "current_batch": self.current_batch,
            "finished": self.finished,
        }
