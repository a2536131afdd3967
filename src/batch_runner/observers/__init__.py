"""Observers for monitoring processor events."""

from .base import BaseObserver, ProcessingEvent, ProcessorObserver
from .callbacks import CallbackObserver
from .metrics import MetricsObserver
from .progress import ProgressTracker

__all__ = [
    "ProcessorObserver",
    "BaseObserver",
    "ProcessingEvent",
    "CallbackObserver",
    "MetricsObserver",
    "ProgressTracker",
]
