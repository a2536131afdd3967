"""Type protocols for the batch processing engine."""

from collections.abc import Awaitable
from typing import Protocol, TypeVar

TItem = TypeVar("TItem", contravariant=True)
TResult = TypeVar("TResult", covariant=True)


class WorkerFunc(Protocol[TItem, TResult]):
    """
    Protocol that any per-item worker must satisfy.

    The worker may be called many times concurrently, and again for the same
    item after a failure. Making retries safe (idempotent renames, upserts)
    is the worker's job.
    """

    def __call__(self, item: TItem) -> Awaitable[TResult]:
        """Process one item."""
        ...
