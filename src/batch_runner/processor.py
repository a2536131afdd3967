"""Batch processor"""

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from typing import Any, Generic, NoReturn

from .base import (
    BatchResult,
    ItemState,
    Outcome,
    OutcomeStatus,
    RunSummary,
    TItem,
    TResult,
)
from .batching import estimate_time_remaining, partition
from .cancellation import CancellationToken, InFlightPolicy
from .core import ProcessorConfig, WorkerFunc
from .observers import CallbackObserver, ProcessingEvent, ProcessorObserver
from .strategies import (
    ErrorClassifier,
    FixedDelayStrategy,
    ItemTimeoutError,
    RetryAllClassifier,
    RetryDelayStrategy,
)

logger = logging.getLogger(__name__)


class BatchAbortedError(Exception):
    """
    Raised when a terminal item failure stops a run with continue_on_error=False.

    Attributes:
        error: The final exception of the item that failed
        index: Input position of that item
        result: Partial BatchResult; slots of items that never started are None
    """

    def __init__(self, error: BaseException, index: int, result: BatchResult):
        super().__init__(
            f"Batch run aborted: item {index} failed with "
            f"{type(error).__name__}: {str(error)[:200]}"
        )
        self.error = error
        self.index = index
        self.result = result


class _RunState(Generic[TItem, TResult]):
    """Bookkeeping for a single run. Created per call, never shared between runs."""

    def __init__(self, total: int):
        self.total = total
        self.outcomes: list[Outcome[TItem, TResult] | None] = [None] * total
        self.states: list[ItemState] = [ItemState.PENDING] * total
        self.attempts: list[int] = [0] * total
        self.processed = 0
        self.succeeded = 0
        self.failed = 0
        self.cancelled = 0
        self.batches_completed = 0
        self.first_failure: Outcome[TItem, TResult] | None = None
        self.started_at = time.monotonic()
        # Serializes terminal transitions so progress events never go backwards
        self.lock = asyncio.Lock()

    def transition(self, index: int, state: ItemState) -> None:
        logger.debug(f"Item {index}: {self.states[index].value} -> {state.value}")
        self.states[index] = state

    def summary(self) -> RunSummary:
        return RunSummary(
            total=self.total,
            processed=self.processed,
            succeeded=self.succeeded,
            failed=self.failed,
            cancelled=self.cancelled,
            batches_completed=self.batches_completed,
            elapsed=time.monotonic() - self.started_at,
        )

    def progress(self) -> dict[str, int]:
        return {"processed": self.processed, "total": self.total, "failed": self.failed}

    def result(self, *, aborted: bool = False, cancelled: bool = False) -> BatchResult[TItem, TResult]:
        return BatchResult(
            outcomes=tuple(self.outcomes),
            summary=self.summary(),
            aborted=aborted,
            cancelled=cancelled,
        )


class BatchProcessor(Generic[TItem, TResult]):
    """
    Run an async worker over a list of items in sequential, bounded batches.

    Items within a batch run concurrently; the next batch starts only after
    every item of the current one reached a terminal outcome, so at most
    `batch_size` worker calls are ever in flight. Failed items are retried
    according to the error classifier and delay strategy.

    The processor keeps no state between runs and may be reused.

    Example:
        >>> processor = BatchProcessor[Path, str](
        ...     config=ProcessorConfig(batch_size=5, continue_on_error=True),
        ...     observers=[ProgressTracker()],
        ... )
        >>> result = await processor.process(files, suggest_name)
        >>> result.values
    """

    def __init__(
        self,
        config: ProcessorConfig | None = None,
        error_classifier: ErrorClassifier | None = None,
        retry_delay_strategy: RetryDelayStrategy | None = None,
        observers: list[ProcessorObserver] | None = None,
    ):
        """
        Initialize the batch processor.

        Args:
            config: Processor configuration (defaults to ProcessorConfig())
            error_classifier: Decides which errors are retried (default: retry everything)
            retry_delay_strategy: Pause before each retry (default: fixed config.retry.delay)
            observers: List of observers for events

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        config = config or ProcessorConfig()
        config.validate()
        self.config = config

        self.error_classifier = error_classifier or RetryAllClassifier()
        self.retry_delay_strategy = retry_delay_strategy or FixedDelayStrategy(config.retry.delay)
        self.observers = observers or []

    async def process(
        self,
        items: Sequence[TItem],
        worker: WorkerFunc[TItem, TResult],
        cancel_token: CancellationToken | None = None,
    ) -> BatchResult[TItem, TResult]:
        """
        Process all items and return their outcomes in input order.

        Args:
            items: Items to process; the sequence is copied before the run starts
            worker: Async function called once per attempt for each item
            cancel_token: Optional token to stop the run early

        Returns:
            BatchResult with one outcome slot per item

        Raises:
            BatchAbortedError: If continue_on_error is False and an item failed for good
        """
        items = list(items)
        total = len(items)
        if total == 0:
            return BatchResult(outcomes=(), summary=RunSummary())

        batches = partition(items, self.config.batch_size)
        batch_count = len(batches)
        run: _RunState[TItem, TResult] = _RunState(total)

        logger.info(
            f"ℹ️  Starting batch run: {total} items in {batch_count} batches "
            f"(batch_size={self.config.batch_size})"
        )
        await self._emit_event(
            ProcessingEvent.RUN_STARTED, {"total": total, "batch_count": batch_count}
        )

        for batch_index, batch in enumerate(batches):
            if cancel_token is not None and cancel_token.is_cancelled:
                return await self._finish_cancelled(run, cancel_token)

            start_index = batch_index * self.config.batch_size
            await self._run_batch(run, batch_index, batch_count, start_index, batch, worker, cancel_token)

            if run.first_failure is not None and not self.config.continue_on_error:
                await self._abort(run)

            if run.cancelled:
                return await self._finish_cancelled(run, cancel_token)

            # Pause between batches, but not after the last one
            if batch_index < batch_count - 1:
                if await self._pause(self.config.batch_delay, cancel_token):
                    return await self._finish_cancelled(run, cancel_token)

        result = run.result()
        logger.info(
            f"✓ Batch processing completed: {result.summary.processed}/{total} items processed, "
            f"{result.summary.failed} failed in {result.summary.elapsed:.1f}s"
        )
        await self._emit_event(ProcessingEvent.RUN_COMPLETED, {"summary": result.summary})
        return result

    async def _run_batch(
        self,
        run: _RunState[TItem, TResult],
        batch_index: int,
        batch_count: int,
        start_index: int,
        batch: list[TItem],
        worker: WorkerFunc[TItem, TResult],
        cancel_token: CancellationToken | None,
    ) -> None:
        """Launch every item of one batch concurrently and wait for all of them."""
        batch_started = time.monotonic()
        logger.debug(f"Processing batch {batch_index + 1}/{batch_count}")
        await self._emit_event(
            ProcessingEvent.BATCH_STARTED,
            {
                "batch_index": batch_index,
                "batch_count": batch_count,
                "start_index": start_index,
                "items": list(batch),
            },
        )

        tasks = [
            asyncio.create_task(
                self._process_item_with_retries(run, start_index + offset, item, worker, cancel_token)
            )
            for offset, item in enumerate(batch)
        ]
        await self._await_batch(tasks, cancel_token)

        # Items abandoned mid-flight never recorded an outcome
        for offset, item in enumerate(batch):
            index = start_index + offset
            if run.outcomes[index] is None:
                await self._record_cancelled(run, index, item, None)

        outcomes = [run.outcomes[start_index + offset] for offset in range(len(batch))]
        run.batches_completed += 1
        duration = time.monotonic() - batch_started
        logger.debug(
            f"Batch {batch_index + 1} completed: {len(batch)} items processed in {duration:.2f}s"
        )
        await self._emit_event(
            ProcessingEvent.BATCH_COMPLETED,
            {"batch_index": batch_index, "outcomes": outcomes, "duration": duration},
        )

    async def _await_batch(
        self, tasks: list[asyncio.Task], cancel_token: CancellationToken | None
    ) -> None:
        """Barrier over one batch; under ABANDON, a cancellation interrupts it."""
        if cancel_token is None or self.config.in_flight_policy is InFlightPolicy.FINISH:
            await asyncio.gather(*tasks)
            return

        batch_future = asyncio.gather(*tasks)
        cancel_waiter = asyncio.create_task(cancel_token.wait())
        abandoned = False
        try:
            await asyncio.wait({batch_future, cancel_waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if not batch_future.done():
                abandoned = True
                logger.warning(f"⚠️  Run cancelled; abandoning {sum(not t.done() for t in tasks)} in-flight items")
                batch_future.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
            cancel_waiter.cancel()
            await asyncio.gather(cancel_waiter, return_exceptions=True)

        if abandoned:
            # gather stores the CancelledError as its exception; only item errors matter here
            for task in tasks:
                if not task.cancelled() and task.exception() is not None:
                    raise task.exception()
            return

        # Surface unexpected errors from the item tasks themselves
        batch_future.result()

    async def _process_item_with_retries(
        self,
        run: _RunState[TItem, TResult],
        index: int,
        item: TItem,
        worker: WorkerFunc[TItem, TResult],
        cancel_token: CancellationToken | None,
    ) -> None:
        """Drive one item through attempts until it succeeds, fails for good, or is cancelled."""
        max_attempts = self.config.retry.max_attempts
        item_started = time.monotonic()
        attempt = 0

        while True:
            attempt += 1
            run.attempts[index] = attempt
            run.transition(index, ItemState.ATTEMPTING)
            await self._emit_event(
                ProcessingEvent.ITEM_STARTED, {"index": index, "item": item, "attempt": attempt}
            )

            try:
                value = await self._attempt(worker, item)
            except Exception as e:
                error_info = self.error_classifier.classify(e)

                if not error_info.is_retryable:
                    logger.error(
                        f"✗ PERMANENT FAILURE for item {index} on attempt {attempt}:\n"
                        f"  Error type: {type(e).__name__}\n"
                        f"  Error message: {str(e)[:500]}\n"
                        f"  This error will NOT be retried ({error_info.error_category})"
                    )
                    await self._record_failure(run, index, item, e, attempt, item_started)
                    return

                if attempt >= max_attempts:
                    logger.error(
                        f"✗ ALL {max_attempts} ATTEMPTS EXHAUSTED for item {index}:\n"
                        f"  Final error type: {type(e).__name__}\n"
                        f"  Final error message: {str(e)[:500]}"
                    )
                    await self._record_failure(run, index, item, e, attempt, item_started)
                    return

                wait_time = self.retry_delay_strategy.delay_for(attempt)
                logger.warning(
                    f"⚠️  Attempt {attempt}/{max_attempts} failed for item {index}: "
                    f"{type(e).__name__} - {str(e)[:150]}. Retrying in {wait_time:.1f}s..."
                )
                run.transition(index, ItemState.RETRY_SCHEDULED)
                await self._emit_event(
                    ProcessingEvent.ITEM_RETRY,
                    {"index": index, "item": item, "attempt": attempt, "error": e, "delay": wait_time},
                )

                if await self._pause(wait_time, cancel_token):
                    logger.info(f"ℹ️  Skipping retry of item {index}: run cancelled")
                    await self._record_cancelled(run, index, item, e)
                    return
                continue

            if attempt > 1:
                logger.info(
                    f"✓ SUCCESS on attempt {attempt} for item {index} "
                    f"(after {attempt - 1} failure(s))"
                )
            await self._record_success(run, index, item, value, attempt, item_started)
            return

    async def _attempt(self, worker: WorkerFunc[TItem, TResult], item: TItem) -> TResult:
        """Invoke the worker once, enforcing timeout_per_item if configured."""
        timeout = self.config.timeout_per_item
        if timeout is None:
            return await worker(item)

        # asyncio.wait instead of wait_for keeps the worker's own TimeoutErrors distinct
        task = asyncio.ensure_future(worker(item))
        try:
            done, _ = await asyncio.wait({task}, timeout=timeout)
        except asyncio.CancelledError:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise

        if not done:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            logger.error(f"⏱ Worker exceeded timeout_per_item of {timeout}s")
            raise ItemTimeoutError(f"Item exceeded timeout_per_item of {timeout}s")
        return task.result()

    async def _record_success(
        self,
        run: _RunState[TItem, TResult],
        index: int,
        item: TItem,
        value: TResult,
        attempts: int,
        item_started: float,
    ) -> None:
        outcome = Outcome(
            index=index,
            item=item,
            status=OutcomeStatus.SUCCEEDED,
            value=value,
            attempts=attempts,
        )
        async with run.lock:
            run.outcomes[index] = outcome
            run.transition(index, ItemState.SUCCEEDED)
            run.processed += 1
            run.succeeded += 1
            progress = run.progress()

            await self._emit_event(
                ProcessingEvent.ITEM_SUCCEEDED,
                {
                    "index": index,
                    "item": item,
                    "value": value,
                    "attempts": attempts,
                    "duration": time.monotonic() - item_started,
                },
            )
            await self._emit_event(ProcessingEvent.PROGRESS, progress)
        self._log_progress(run, progress)

    async def _record_failure(
        self,
        run: _RunState[TItem, TResult],
        index: int,
        item: TItem,
        error: Exception,
        attempts: int,
        item_started: float,
    ) -> None:
        outcome = Outcome(
            index=index,
            item=item,
            status=OutcomeStatus.FAILED,
            error=error,
            attempts=attempts,
        )
        async with run.lock:
            run.outcomes[index] = outcome
            run.transition(index, ItemState.FAILED)
            run.processed += 1
            run.failed += 1
            if run.first_failure is None:
                run.first_failure = outcome
            progress = run.progress()

            await self._emit_event(
                ProcessingEvent.ITEM_FAILED,
                {
                    "index": index,
                    "item": item,
                    "error": error,
                    "attempts": attempts,
                    "duration": time.monotonic() - item_started,
                },
            )
            await self._emit_event(ProcessingEvent.PROGRESS, progress)
        self._log_progress(run, progress)

    async def _record_cancelled(
        self,
        run: _RunState[TItem, TResult],
        index: int,
        item: TItem,
        error: Exception | None,
    ) -> None:
        outcome = Outcome(
            index=index,
            item=item,
            status=OutcomeStatus.CANCELLED,
            error=error,
            attempts=run.attempts[index],
        )
        async with run.lock:
            run.outcomes[index] = outcome
            run.transition(index, ItemState.CANCELLED)
            run.cancelled += 1
            await self._emit_event(
                ProcessingEvent.ITEM_CANCELLED,
                {"index": index, "item": item, "attempts": outcome.attempts},
            )

    def _log_progress(self, run: _RunState[TItem, TResult], progress: dict[str, int]) -> None:
        processed = progress["processed"]
        if processed % self.config.progress_interval != 0 and processed != run.total:
            return

        elapsed = time.monotonic() - run.started_at
        items_per_sec = processed / elapsed if elapsed > 0 else 0
        eta = estimate_time_remaining(run.total, processed, elapsed * 1000)
        eta_msg = f" | ETA: {eta}s" if eta is not None else ""
        logger.info(
            f"ℹ️  Progress: {processed}/{run.total} ({processed / run.total * 100:.1f}%) | "
            f"Failed: {progress['failed']} | {items_per_sec:.2f} items/sec{eta_msg}"
        )

    async def _pause(self, seconds: float, cancel_token: CancellationToken | None) -> bool:
        """
        Suspend for `seconds` (batch delay or retry delay).

        Returns:
            True if the run was cancelled before or during the pause
        """
        if cancel_token is None:
            if seconds > 0:
                await asyncio.sleep(seconds)
            return False
        return await cancel_token.sleep(seconds)

    async def _abort(self, run: _RunState[TItem, TResult]) -> NoReturn:
        failure = run.first_failure
        if failure is None or failure.error is None:
            raise RuntimeError("Abort requested without a failed item - this should not happen")
        result = run.result(aborted=True)
        logger.error(
            f"✗ Batch processing stopped due to error in item {failure.index}: "
            f"{failure.error_message} ({result.summary.processed}/{run.total} items processed)"
        )
        await self._emit_event(
            ProcessingEvent.RUN_ABORTED,
            {"summary": result.summary, "index": failure.index, "error": failure.error},
        )
        raise BatchAbortedError(failure.error, failure.index, result)

    async def _finish_cancelled(
        self, run: _RunState[TItem, TResult], cancel_token: CancellationToken | None
    ) -> BatchResult[TItem, TResult]:
        result = run.result(cancelled=True)
        reason = cancel_token.reason if cancel_token is not None else None
        logger.warning(
            f"⚠️  Batch processing cancelled{f' ({reason})' if reason else ''}: "
            f"{result.summary.processed}/{run.total} items processed, "
            f"{result.summary.cancelled} cancelled"
        )
        await self._emit_event(
            ProcessingEvent.RUN_CANCELLED, {"summary": result.summary, "reason": reason}
        )
        return result

    async def _emit_event(self, event: ProcessingEvent, data: dict[str, Any] | None = None) -> None:
        """Emit event to all observers."""
        if not self.observers:
            return

        event_data = data or {}
        for observer in self.observers:
            try:
                await asyncio.wait_for(
                    observer.on_event(event, event_data),
                    timeout=self.config.observer_timeout,
                )
            except (TimeoutError, asyncio.TimeoutError):
                logger.warning(
                    f"⚠️  Observer callback timed out after {self.config.observer_timeout}s "
                    f"for event {event.name}"
                )
            except Exception as e:
                logger.warning(f"⚠️  Observer error on {event.name}: {type(e).__name__}: {e}")


async def process_in_batches(
    items: Sequence[TItem],
    worker: WorkerFunc[TItem, TResult],
    config: ProcessorConfig | None = None,
    *,
    on_batch_start: Callable[..., Any] | None = None,
    on_batch_complete: Callable[..., Any] | None = None,
    on_item_success: Callable[..., Any] | None = None,
    on_item_failure: Callable[..., Any] | None = None,
    on_progress: Callable[..., Any] | None = None,
    cancel_token: CancellationToken | None = None,
) -> BatchResult[TItem, TResult]:
    """
    One-call helper: run `worker` over `items` with optional plain callbacks.

    Example:
        >>> result = await process_in_batches(
        ...     files,
        ...     rename_file,
        ...     ProcessorConfig(batch_size=10),
        ...     on_progress=lambda done, total, failed: print(f"{done}/{total}"),
        ... )
    """
    observer = CallbackObserver(
        on_batch_start=on_batch_start,
        on_batch_complete=on_batch_complete,
        on_item_success=on_item_success,
        on_item_failure=on_item_failure,
        on_progress=on_progress,
    )
    processor: BatchProcessor[TItem, TResult] = BatchProcessor(config=config, observers=[observer])
    return await processor.process(items, worker, cancel_token=cancel_token)
