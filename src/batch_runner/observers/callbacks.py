"""Adapter from plain callback functions to the observer interface."""

import inspect
from collections.abc import Callable
from typing import Any

from .base import BaseObserver, ProcessingEvent


class CallbackObserver(BaseObserver):
    """
    Dispatch processor events to up to five optional callbacks.

    Each callback may be a plain function or a coroutine function.

    Args:
        on_batch_start: Called with (batch_index, items) before a batch launches
        on_batch_complete: Called with (batch_index, outcomes) after the batch barrier
        on_item_success: Called with (item, value) when an item succeeds
        on_item_failure: Called with (item, error, attempts) when an item fails for good
        on_progress: Called with (processed, total, failed) after every terminal item
    """

    def __init__(
        self,
        on_batch_start: Callable[..., Any] | None = None,
        on_batch_complete: Callable[..., Any] | None = None,
        on_item_success: Callable[..., Any] | None = None,
        on_item_failure: Callable[..., Any] | None = None,
        on_progress: Callable[..., Any] | None = None,
    ):
        self.on_batch_start = on_batch_start
        self.on_batch_complete = on_batch_complete
        self.on_item_success = on_item_success
        self.on_item_failure = on_item_failure
        self.on_progress = on_progress

    async def on_event(self, event: ProcessingEvent, data: dict[str, Any]) -> None:
        if event == ProcessingEvent.BATCH_STARTED:
            await self._call(self.on_batch_start, data["batch_index"], data["items"])
        elif event == ProcessingEvent.BATCH_COMPLETED:
            await self._call(self.on_batch_complete, data["batch_index"], data["outcomes"])
        elif event == ProcessingEvent.ITEM_SUCCEEDED:
            await self._call(self.on_item_success, data["item"], data["value"])
        elif event == ProcessingEvent.ITEM_FAILED:
            await self._call(self.on_item_failure, data["item"], data["error"], data["attempts"])
        elif event == ProcessingEvent.PROGRESS:
            await self._call(self.on_progress, data["processed"], data["total"], data["failed"])

    @staticmethod
    async def _call(callback: Callable[..., Any] | None, *args: Any) -> None:
        if callback is None:
            return
        result = callback(*args)
        # Handle both async and sync callbacks
        if inspect.isawaitable(result):
            await result
