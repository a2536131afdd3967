"""Retry delay strategies."""

import random
from abc import ABC, abstractmethod


class RetryDelayStrategy(ABC):
    """Strategy deciding how long to wait before a retry."""

    @abstractmethod
    def delay_for(self, attempt: int) -> float:
        """
        Called after a failed attempt that will be retried.

        Args:
            attempt: Number of the attempt that just failed (1, 2, ...)

        Returns:
            Pause before the next attempt, in seconds
        """
        ...


class FixedDelayStrategy(RetryDelayStrategy):
    """Same pause before every retry."""

    def __init__(self, delay: float = 0.5):
        """
        Initialize fixed delay strategy.

        Args:
            delay: Pause before each retry in seconds
        """
        self.delay = delay

    def delay_for(self, attempt: int) -> float:
        return self.delay


class ExponentialBackoffStrategy(RetryDelayStrategy):
    """Exponential backoff with optional jitter, capped at max_delay."""

    def __init__(
        self,
        initial_delay: float = 1.0,
        backoff_factor: float = 2.0,
        max_delay: float = 30.0,
        jitter: bool = True,
    ):
        """
        Initialize exponential backoff strategy.

        Args:
            initial_delay: Pause before the first retry in seconds
            backoff_factor: Multiplier applied for each further retry
            max_delay: Upper bound on any single pause
            jitter: Add up to 10% random spread so concurrent items don't retry in lockstep
        """
        if initial_delay < 0 or max_delay < initial_delay or backoff_factor < 1:
            raise ValueError(
                f"Invalid backoff settings (initial_delay={initial_delay}, "
                f"backoff_factor={backoff_factor}, max_delay={max_delay}). "
                f"Need 0 <= initial_delay <= max_delay and backoff_factor >= 1."
            )
        self.initial_delay = initial_delay
        self.backoff_factor = backoff_factor
        self.max_delay = max_delay
        self.jitter = jitter

    def delay_for(self, attempt: int) -> float:
        delay = self.initial_delay * (self.backoff_factor ** (attempt - 1))
        if self.jitter:
            delay += random.random() * 0.1 * delay
        return min(delay, self.max_delay)
