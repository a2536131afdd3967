"""Example usage of the batch_runner module.

This demonstrates running a bulk file operation through the batch engine:
plain callbacks, observers, retries with a transient-error classifier,
cancellation, and the testing utilities. Nothing here touches real files.
"""

import asyncio
import logging
import random
from pathlib import Path
from typing import Annotated

from pydantic import BaseModel, Field

from batch_runner import (
    BatchAbortedError,
    BatchProcessor,
    CancellationToken,
    ExponentialBackoffStrategy,
    InFlightPolicy,
    MetricsObserver,
    ProcessorConfig,
    ProgressTracker,
    RetryConfig,
    TransientErrorClassifier,
    process_in_batches,
)
from batch_runner.testing import MockWorker

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)


class RenamePlan(BaseModel):
    """Result of planning a rename for one file."""

    source: Annotated[str, Field(description="Current file name")]
    target: Annotated[str, Field(description="New file name")]


class FlakyStorageError(Exception):
    """Simulated storage backend error carrying an HTTP status."""

    def __init__(self, status_code: int):
        super().__init__(f"Storage backend returned {status_code}")
        self.status_code = status_code


def sample_files(count: int) -> list[Path]:
    return [Path(f"/photos/IMG_{i:04d}.JPG") for i in range(count)]


async def plan_rename(path: Path) -> RenamePlan:
    """Pretend to ask a naming service for a better file name."""
    await asyncio.sleep(random.uniform(0.01, 0.05))
    return RenamePlan(source=path.name, target=f"holiday-{path.stem[-4:]}{path.suffix.lower()}")


async def example_simple():
    """
    Example 1: One call with plain callbacks.
    """
    logging.info("\n" + "=" * 80)
    logging.info("EXAMPLE 1: process_in_batches with callbacks")
    logging.info("=" * 80)

    files = sample_files(12)

    def on_progress(processed: int, total: int, failed: int) -> None:
        logging.info(f"  {processed}/{total} done ({failed} failed)")

    result = await process_in_batches(
        files,
        plan_rename,
        ProcessorConfig(batch_size=5, batch_delay=0.1),
        on_batch_start=lambda batch_index, items: logging.info(
            f"Batch {batch_index + 1}: {len(items)} files"
        ),
        on_progress=on_progress,
    )

    for plan in result.values[:3]:
        logging.info(f"  {plan.source} -> {plan.target}")
    logging.info(f"Summary: {result.to_dict()}")


async def example_transient_errors():
    """
    Example 2: Retrying only transient errors, with backoff.
    """
    logging.info("\n" + "=" * 80)
    logging.info("EXAMPLE 2: Transient error classification and backoff")
    logging.info("=" * 80)

    files = sample_files(8)
    flaky = {files[1], files[5]}
    missing = files[6]

    def make_error(path: Path, call_number: int) -> Exception:
        if path == missing:
            return FileNotFoundError(f"{path} no longer exists")
        return FlakyStorageError(503)

    worker = MockWorker(
        response_factory=lambda path: RenamePlan(source=path.name, target=path.name.lower()),
        latency=0.02,
        fail_times={path: 2 for path in flaky},
        always_fail={missing},
        error_factory=make_error,
    )

    metrics = MetricsObserver()
    processor = BatchProcessor[Path, RenamePlan](
        config=ProcessorConfig(batch_size=4, retry=RetryConfig(max_attempts=3)),
        error_classifier=TransientErrorClassifier(),
        retry_delay_strategy=ExponentialBackoffStrategy(
            initial_delay=0.1, backoff_factor=2.0, max_delay=1.0
        ),
        observers=[metrics],
    )

    result = await processor.process(files, worker)

    logging.info(f"Succeeded: {result.succeeded}, Failed: {result.failed}")
    for outcome in result.failures:
        logging.info(f"  {outcome.item.name}: {outcome.error_message} after {outcome.attempts} attempt(s)")

    collected_metrics = await metrics.get_metrics()
    logging.info(f"Retries scheduled: {collected_metrics['retries']}")
    logging.info(f"Success rate: {collected_metrics['success_rate'] * 100:.1f}%")


async def example_abort_on_error():
    """
    Example 3: Stop the whole run on the first failure.
    """
    logging.info("\n" + "=" * 80)
    logging.info("EXAMPLE 3: Abort on first failure")
    logging.info("=" * 80)

    files = sample_files(10)
    worker = MockWorker(latency=0.01, always_fail={files[3]})
    processor = BatchProcessor(
        config=ProcessorConfig(
            batch_size=5,
            continue_on_error=False,
            retry=RetryConfig(max_attempts=2, delay=0.05),
        )
    )

    try:
        await processor.process(files, worker)
    except BatchAbortedError as e:
        logging.info(f"Run aborted at item {e.index}: {type(e.error).__name__}")
        logging.info(f"Items never started: {sum(o is None for o in e.result.outcomes)}")


async def example_cancellation():
    """
    Example 4: A user pressing "stop" in the middle of a long run.
    """
    logging.info("\n" + "=" * 80)
    logging.info("EXAMPLE 4: Cancellation with a progress tracker")
    logging.info("=" * 80)

    token = CancellationToken()
    tracker = ProgressTracker()
    processor = BatchProcessor(
        config=ProcessorConfig(
            batch_size=5, batch_delay=0.2, in_flight_policy=InFlightPolicy.FINISH
        ),
        observers=[tracker],
    )

    run = asyncio.create_task(processor.process(sample_files(40), plan_rename, cancel_token=token))

    await asyncio.sleep(0.3)
    logging.info(f"Progress before stop: {tracker.snapshot()}")
    token.cancel("user pressed stop")

    result = await run
    logging.info(
        f"Cancelled={result.cancelled}: {result.summary.processed}/{result.summary.total} processed"
    )


async def main():
    """Run all examples."""
    await example_simple()
    await example_transient_errors()
    await example_abort_on_error()
    await example_cancellation()


if __name__ == "__main__":
    asyncio.run(main())
