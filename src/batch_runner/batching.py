"""Stateless helpers for splitting work into batches and estimating time left."""

from collections.abc import Sequence
from typing import TypeVar

from .core.config import ConfigurationError

T = TypeVar("T")


def partition(items: Sequence[T], batch_size: int) -> list[list[T]]:
    """
    Split items into consecutive chunks of at most `batch_size`.

    Order is preserved and only the last chunk may be shorter.

    Raises:
        ConfigurationError: If batch_size is not a positive integer
    """
    if not isinstance(batch_size, int) or isinstance(batch_size, bool) or batch_size < 1:
        raise ConfigurationError(
            f"batch_size must be an integer >= 1 (got {batch_size!r}). "
            f"Pass a positive batch size."
        )
    return [list(items[start : start + batch_size]) for start in range(0, len(items), batch_size)]


def estimate_time_remaining(
    total_items: int, processed_items: int, elapsed_ms: float
) -> int | None:
    """
    Estimate seconds remaining by linear extrapolation of the average item time.

    Args:
        total_items: Number of items in the run
        processed_items: Items that reached a terminal state so far
        elapsed_ms: Wall-clock milliseconds since the run started

    Returns:
        Whole seconds remaining, or None if no item has finished yet
    """
    if processed_items == 0:
        return None

    items_remaining = total_items - processed_items
    ms_per_item = elapsed_ms / processed_items
    return round(items_remaining * ms_per_item / 1000)
