"""Concurrency and ordering tests for batch_runner.

These tests verify that batches never overlap, concurrency stays bounded,
and counters stay consistent while many item tasks complete at once.
"""

import asyncio
import random

import pytest

from batch_runner import (
    BatchProcessor,
    MetricsObserver,
    ProcessingEvent,
    ProcessorConfig,
    RetryConfig,
)
from batch_runner.testing import MockWorker, RecordingObserver


@pytest.mark.asyncio
async def test_peak_concurrency_bounded_by_batch_size():
    """Never more than batch_size worker calls in flight."""

    worker = MockWorker(latency=0.01)
    processor = BatchProcessor(config=ProcessorConfig(batch_size=5, batch_delay=0))

    await processor.process(list(range(23)), worker)

    assert worker.max_in_flight == 5
    assert worker.call_count == 23


@pytest.mark.asyncio
async def test_batches_never_overlap():
    """Batch k+1 starts only after every item of batch k finished."""

    timeline = []
    rng = random.Random(7)
    latencies = {i: rng.uniform(0.001, 0.02) for i in range(17)}

    async def worker(item):
        timeline.append(("start", item))
        await asyncio.sleep(latencies[item])
        timeline.append(("end", item))
        return item

    batch_size = 4
    processor = BatchProcessor(config=ProcessorConfig(batch_size=batch_size, batch_delay=0))

    result = await processor.process(list(range(17)), worker)

    assert result.is_complete
    position = {entry: i for i, entry in enumerate(timeline)}
    for batch_start in range(batch_size, 17, batch_size):
        previous = range(batch_start - batch_size, batch_start)
        current = range(batch_start, min(batch_start + batch_size, 17))
        last_end = max(position[("end", i)] for i in previous)
        first_start = min(position[("start", i)] for i in current)
        assert last_end < first_start


@pytest.mark.asyncio
async def test_batch_started_and_completed_alternate():
    worker = MockWorker(latency=0.001)
    recorder = RecordingObserver()
    processor = BatchProcessor(
        config=ProcessorConfig(batch_size=3, batch_delay=0), observers=[recorder]
    )

    await processor.process(list(range(10)), worker)

    batch_events = [
        event
        for event in recorder.names
        if event in (ProcessingEvent.BATCH_STARTED, ProcessingEvent.BATCH_COMPLETED)
    ]
    assert batch_events == [ProcessingEvent.BATCH_STARTED, ProcessingEvent.BATCH_COMPLETED] * 4
    assert recorder.names[0] == ProcessingEvent.RUN_STARTED
    assert recorder.names[-1] == ProcessingEvent.RUN_COMPLETED


@pytest.mark.asyncio
async def test_progress_counters_monotonic_and_consistent():
    """Progress never goes backwards and processed == succeeded + failed at each event."""

    rng = random.Random(3)
    worker = MockWorker(
        latency=lambda item: rng.uniform(0.0, 0.01),
        fail_times={i: 5 for i in range(0, 60, 7)},  # more failures than attempts
    )
    recorder = RecordingObserver()
    processor = BatchProcessor(
        config=ProcessorConfig(
            batch_size=8, batch_delay=0, retry=RetryConfig(max_attempts=2, delay=0)
        ),
        observers=[recorder],
    )

    result = await processor.process(list(range(60)), worker)

    succeeded = failed = 0
    last_processed = last_failed = 0
    progress_count = 0
    for event, data in recorder.events:
        if event == ProcessingEvent.ITEM_SUCCEEDED:
            succeeded += 1
        elif event == ProcessingEvent.ITEM_FAILED:
            failed += 1
        elif event == ProcessingEvent.PROGRESS:
            progress_count += 1
            assert data["processed"] == succeeded + failed
            assert data["failed"] == failed
            assert data["failed"] <= data["processed"] <= data["total"] == 60
            assert data["processed"] >= last_processed
            assert data["failed"] >= last_failed
            last_processed, last_failed = data["processed"], data["failed"]

    assert progress_count == 60
    assert last_processed == 60
    assert last_failed == len(range(0, 60, 7))
    assert result.summary.failed == last_failed
    assert result.summary.succeeded == 60 - last_failed


@pytest.mark.asyncio
async def test_concurrent_stats_updates():
    """Test that stats are counted correctly under concurrent load."""

    worker = MockWorker(latency=0.001)
    metrics = MetricsObserver()
    processor = BatchProcessor(
        config=ProcessorConfig(batch_size=10, batch_delay=0), observers=[metrics]
    )

    result = await processor.process(list(range(100)), worker)

    assert result.summary.processed == 100
    assert result.summary.succeeded == 100
    collected = await metrics.get_metrics()
    assert collected["items_processed"] == 100
    assert collected["batches_completed"] == 10


@pytest.mark.asyncio
async def test_concurrent_runs_on_one_processor():
    """Two runs on the same processor at once keep separate tables."""

    processor = BatchProcessor(config=ProcessorConfig(batch_size=2, batch_delay=0))
    first_worker = MockWorker(response_factory=lambda i: ("first", i), latency=0.002)
    second_worker = MockWorker(response_factory=lambda i: ("second", i), latency=0.001)

    first, second = await asyncio.gather(
        processor.process(list(range(6)), first_worker),
        processor.process(list(range(4)), second_worker),
    )

    assert first.values == [("first", i) for i in range(6)]
    assert second.values == [("second", i) for i in range(4)]
    assert first.summary.total == 6
    assert second.summary.total == 4


@pytest.mark.asyncio
async def test_slow_item_holds_back_next_batch():
    """One slow item delays the whole next batch (barrier, not a sliding window)."""

    timeline = []

    async def worker(item):
        timeline.append(("start", item))
        await asyncio.sleep(0.05 if item == 0 else 0.001)
        timeline.append(("end", item))

    processor = BatchProcessor(config=ProcessorConfig(batch_size=2, batch_delay=0))

    await processor.process([0, 1, 2, 3], worker)

    assert timeline.index(("end", 0)) < timeline.index(("start", 2))
    assert timeline.index(("end", 0)) < timeline.index(("start", 3))
