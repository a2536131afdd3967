"""Tests for retry logic and error classification."""

import time
from typing import Annotated

import pytest
from pydantic import BaseModel, Field, ValidationError

from batch_runner import (
    BatchProcessor,
    OutcomeStatus,
    ProcessingEvent,
    ProcessorConfig,
    RetryConfig,
)
from batch_runner.strategies import (
    ExponentialBackoffStrategy,
    FixedDelayStrategy,
    ItemTimeoutError,
    PredicateErrorClassifier,
    RetryAllClassifier,
    TransientErrorClassifier,
)
from batch_runner.testing import MockWorker, MockWorkerError, RecordingObserver, record_pauses


class SuggestedName(BaseModel):
    """Test output model."""

    name: Annotated[str, Field(description="Suggested file name")]


class HTTPError(Exception):
    """Client error carrying a status code, like the AI provider SDKs raise."""

    def __init__(self, status_code: int):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


@pytest.mark.asyncio
async def test_recovers_after_transient_failures():
    """An item that fails twice succeeds on its third attempt."""

    worker = MockWorker(latency=0.001, fail_times={"report.docx": 2})
    recorder = RecordingObserver()
    processor = BatchProcessor(
        config=ProcessorConfig(retry=RetryConfig(max_attempts=3, delay=0.01)),
        observers=[recorder],
    )

    result = await processor.process(["report.docx"], worker)

    assert result.outcomes[0].success
    assert result.outcomes[0].attempts == 3
    assert worker.call_counts["report.docx"] == 3
    assert len(recorder.of(ProcessingEvent.ITEM_RETRY)) == 2
    assert len(recorder.of(ProcessingEvent.ITEM_FAILED)) == 0


@pytest.mark.asyncio
async def test_max_attempts_respected():
    """Test that retry logic respects max_attempts."""

    worker = MockWorker(latency=0.001, always_fail={"x"})
    processor = BatchProcessor(
        config=ProcessorConfig(retry=RetryConfig(max_attempts=4, delay=0.001))
    )

    result = await processor.process(["x"], worker)

    assert result.failed == 1
    assert worker.call_counts["x"] == 4, f"Expected 4 attempts, got {worker.call_counts['x']}"
    assert result.outcomes[0].attempts == 4
    assert isinstance(result.outcomes[0].error, MockWorkerError)


@pytest.mark.asyncio
async def test_single_attempt_means_no_retry():
    worker = MockWorker(latency=0, always_fail={"x"})
    processor = BatchProcessor(config=ProcessorConfig(retry=RetryConfig(max_attempts=1)))
    pauses = record_pauses(processor)

    result = await processor.process(["x"], worker)

    assert worker.call_counts["x"] == 1
    assert result.outcomes[0].status is OutcomeStatus.FAILED
    assert pauses == []


@pytest.mark.asyncio
async def test_attempts_always_within_bounds():
    """Every item is invoked between 1 and max_attempts times."""

    max_attempts = 3
    fail_times = {i: i % 5 for i in range(20)}  # 0..4 initial failures
    worker = MockWorker(latency=0.001, fail_times=fail_times)
    processor = BatchProcessor(
        config=ProcessorConfig(
            batch_size=4, batch_delay=0, retry=RetryConfig(max_attempts=max_attempts, delay=0)
        )
    )

    result = await processor.process(list(range(20)), worker)

    for i, outcome in enumerate(result.outcomes):
        assert 1 <= worker.call_counts[i] <= max_attempts
        assert outcome.attempts == worker.call_counts[i]
        expected = OutcomeStatus.SUCCEEDED if fail_times[i] < max_attempts else OutcomeStatus.FAILED
        assert outcome.status is expected


@pytest.mark.asyncio
async def test_retry_delay_is_constant_by_default():
    """Default delay strategy waits retry.delay before every retry, no backoff."""

    worker = MockWorker(latency=0, always_fail={"x"})
    processor = BatchProcessor(
        config=ProcessorConfig(retry=RetryConfig(max_attempts=4, delay=0.25))
    )
    pauses = record_pauses(processor)

    await processor.process(["x"], worker)

    assert pauses == [0.25, 0.25, 0.25]


@pytest.mark.asyncio
async def test_retry_waits_for_real():
    """Without a patched pause hook the retry gap matches retry.delay."""

    attempt_times = []

    def track_time(item):
        attempt_times.append(time.monotonic())
        if len(attempt_times) < 2:
            raise MockWorkerError("Temporary failure")
        return "ok"

    async def worker(item):
        return track_time(item)

    processor = BatchProcessor(
        config=ProcessorConfig(retry=RetryConfig(max_attempts=3, delay=0.1))
    )

    result = await processor.process(["x"], worker)

    assert result.succeeded == 1
    gap = attempt_times[1] - attempt_times[0]
    assert 0.05 < gap < 0.5, f"Retry gap: {gap}"


@pytest.mark.asyncio
async def test_custom_delay_strategy_is_used():
    worker = MockWorker(latency=0, always_fail={"x"})
    processor = BatchProcessor(
        config=ProcessorConfig(retry=RetryConfig(max_attempts=4)),
        retry_delay_strategy=ExponentialBackoffStrategy(
            initial_delay=0.1, backoff_factor=2.0, max_delay=0.3, jitter=False
        ),
    )
    pauses = record_pauses(processor)

    await processor.process(["x"], worker)

    assert pauses == pytest.approx([0.1, 0.2, 0.3])


@pytest.mark.asyncio
async def test_non_retryable_error_fails_after_one_attempt():
    """A predicate classifier can mark errors as permanent."""

    def missing_file(item, call_number):
        return FileNotFoundError(f"{item} vanished")

    worker = MockWorker(latency=0, always_fail={"gone.txt"}, error_factory=missing_file)
    processor = BatchProcessor(
        config=ProcessorConfig(retry=RetryConfig(max_attempts=3, delay=0)),
        error_classifier=PredicateErrorClassifier(
            lambda e: not isinstance(e, FileNotFoundError)
        ),
    )

    result = await processor.process(["gone.txt", "here.txt"], worker)

    assert worker.call_counts["gone.txt"] == 1
    assert result.outcomes[0].status is OutcomeStatus.FAILED
    assert result.outcomes[0].attempts == 1
    assert isinstance(result.outcomes[0].error, FileNotFoundError)
    assert result.outcomes[1].success


@pytest.mark.asyncio
async def test_timeout_per_item_counts_as_failed_attempt():
    """A worker slower than timeout_per_item fails with ItemTimeoutError and is retried."""

    worker = MockWorker(latency=1.0)
    processor = BatchProcessor(
        config=ProcessorConfig(
            timeout_per_item=0.05, retry=RetryConfig(max_attempts=2, delay=0)
        )
    )

    started = time.monotonic()
    result = await processor.process(["slow.mov"], worker)

    assert time.monotonic() - started < 0.9
    outcome = result.outcomes[0]
    assert outcome.status is OutcomeStatus.FAILED
    assert outcome.attempts == 2
    assert isinstance(outcome.error, ItemTimeoutError)
    assert worker.in_flight == 0


@pytest.mark.asyncio
async def test_worker_timeout_error_not_mistaken_for_item_timeout():
    async def worker(item):
        raise TimeoutError("provider timed out")

    processor = BatchProcessor(
        config=ProcessorConfig(timeout_per_item=5.0, retry=RetryConfig(max_attempts=1))
    )

    result = await processor.process(["x"], worker)

    error = result.outcomes[0].error
    assert isinstance(error, TimeoutError)
    assert not isinstance(error, ItemTimeoutError)


def test_retry_all_classifier_retries_everything():
    classifier = RetryAllClassifier()

    for error in (ValueError("bad"), KeyError("k"), MockWorkerError("boom")):
        info = classifier.classify(error)
        assert info.is_retryable
    assert classifier.classify(KeyError("k")).error_category == "KeyError"


def test_error_classification_transient():
    """Test the transient error classifier."""

    classifier = TransientErrorClassifier()

    info = classifier.classify(TimeoutError("Operation timed out"))
    assert info.is_retryable
    assert info.error_category == "timeout"

    info = classifier.classify(ItemTimeoutError("too slow"))
    assert info.is_retryable
    assert info.error_category == "item_timeout"

    info = classifier.classify(ConnectionError("Connection reset"))
    assert info.is_retryable
    assert info.error_category == "connection_error"

    info = classifier.classify(HTTPError(503))
    assert info.is_retryable
    assert info.error_category == "http_503"

    info = classifier.classify(HTTPError(429))
    assert info.is_retryable

    info = classifier.classify(HTTPError(404))
    assert not info.is_retryable

    info = classifier.classify(ValueError("Some error"))
    assert not info.is_retryable
    assert info.error_category == "logic_error"

    info = classifier.classify(FileNotFoundError("missing.txt"))
    assert not info.is_retryable

    info = classifier.classify(MockWorkerError("Some random error"))
    assert info.is_retryable
    assert info.error_category == "unknown"


def test_validation_errors_are_retryable():
    """Malformed structured output from an AI provider may be fixed by another call."""

    with pytest.raises(ValidationError) as exc_info:
        SuggestedName.model_validate({})

    info = TransientErrorClassifier().classify(exc_info.value)
    assert info.is_retryable
    assert info.error_category == "validation_error"


def test_status_from_response_attribute():
    class Response:
        status_code = 502

    class ProviderError(Exception):
        response = Response()

    info = TransientErrorClassifier().classify(ProviderError("bad gateway"))
    assert info.is_retryable
    assert info.error_category == "http_502"


def test_fixed_delay_strategy():
    strategy = FixedDelayStrategy(delay=0.5)
    assert [strategy.delay_for(attempt) for attempt in (1, 2, 3)] == [0.5, 0.5, 0.5]


def test_exponential_backoff_strategy():
    strategy = ExponentialBackoffStrategy(
        initial_delay=1.0, backoff_factor=2.0, max_delay=5.0, jitter=False
    )
    assert [strategy.delay_for(attempt) for attempt in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 5.0]

    jittered = ExponentialBackoffStrategy(initial_delay=1.0, backoff_factor=2.0, max_delay=30.0)
    for attempt in (1, 2, 3):
        base = 2.0 ** (attempt - 1)
        assert base <= jittered.delay_for(attempt) <= base * 1.1

    with pytest.raises(ValueError):
        ExponentialBackoffStrategy(initial_delay=2.0, max_delay=1.0)
    with pytest.raises(ValueError):
        ExponentialBackoffStrategy(backoff_factor=0.5)
