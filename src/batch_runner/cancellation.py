"""Cooperative cancellation for long-running batch jobs."""

import asyncio
from enum import Enum


class InFlightPolicy(Enum):
    """What happens to items that are already running when a run is cancelled."""

    FINISH = "finish"  # Let the current attempt complete, skip any further retries
    ABANDON = "abandon"  # Cancel the running item tasks right away


class CancellationToken:
    """
    Signal used to stop a batch run from the outside.

    The processor checks the token before starting each batch, during the
    pause between batches, and before each retry. Cancelling is idempotent;
    the first reason given is kept.

    Example:
        >>> token = CancellationToken()
        >>> task = asyncio.create_task(processor.process(files, rename, cancel_token=token))
        >>> token.cancel("user pressed stop")
        >>> result = await task
        >>> result.cancelled
        True
    """

    def __init__(self):
        self._event = asyncio.Event()
        self._reason: str | None = None

    def cancel(self, reason: str | None = None) -> None:
        """Request cancellation."""
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    async def wait(self) -> None:
        """Block until cancellation is requested."""
        await self._event.wait()

    async def sleep(self, seconds: float) -> bool:
        """
        Sleep for up to `seconds`, waking early if cancelled.

        Returns:
            True if the token was cancelled before or during the sleep
        """
        if self.is_cancelled:
            return True
        if seconds <= 0:
            return False
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except (TimeoutError, asyncio.TimeoutError):
            return False
        return True
