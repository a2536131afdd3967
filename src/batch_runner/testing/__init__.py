"""Testing utilities for batch_runner."""

from .mocks import MockWorker, MockWorkerError
from .recorders import RecordingObserver, record_pauses

__all__ = ["MockWorker", "MockWorkerError", "RecordingObserver", "record_pauses"]
