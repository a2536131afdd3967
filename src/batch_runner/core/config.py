"""Configuration management for batch processor."""

from dataclasses import dataclass, field

from ..cancellation import InFlightPolicy


class ConfigurationError(ValueError):
    """Raised when processor configuration is invalid, before any work is scheduled."""

    pass


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    delay: float = 0.5  # Constant pause before each retry, in seconds

    def validate(self) -> None:
        """Validate retry configuration."""
        if not _is_int(self.max_attempts) or self.max_attempts < 1:
            raise ConfigurationError(
                f"max_attempts must be an integer >= 1 (got {self.max_attempts!r}). "
                f"Set retry.max_attempts to a positive integer."
            )
        if not _is_number(self.delay) or self.delay < 0:
            raise ConfigurationError(
                f"delay must be a number >= 0 (got {self.delay!r}). "
                f"Set retry.delay to a non-negative number of seconds."
            )


@dataclass
class ProcessorConfig:
    """Complete configuration for batch processor."""

    batch_size: int = 5
    batch_delay: float = 0.1  # Pause between batches, in seconds

    retry: RetryConfig = field(default_factory=RetryConfig)

    # Error policy: False aborts the run on the first terminal item failure
    continue_on_error: bool = True

    # Per-attempt timeout (None = no limit)
    timeout_per_item: float | None = None

    # Observers are awaited inline; a slow one is cut off after this many seconds
    observer_timeout: float = 5.0

    # What cancellation does to items already running
    in_flight_policy: InFlightPolicy = InFlightPolicy.FINISH

    # Progress reporting
    progress_interval: int = 10  # Log every N items

    def validate(self) -> None:
        """Validate complete configuration."""
        if not _is_int(self.batch_size) or self.batch_size < 1:
            raise ConfigurationError(
                f"batch_size must be an integer >= 1 (got {self.batch_size!r}). "
                f"Set config.batch_size to a positive integer (typical: 3-10)."
            )
        if not _is_number(self.batch_delay) or self.batch_delay < 0:
            raise ConfigurationError(
                f"batch_delay must be a number >= 0 (got {self.batch_delay!r}). "
                f"Set config.batch_delay to 0 to disable or a positive number of seconds."
            )
        if self.timeout_per_item is not None and (
            not _is_number(self.timeout_per_item) or self.timeout_per_item <= 0
        ):
            raise ConfigurationError(
                f"timeout_per_item must be > 0 or None (got {self.timeout_per_item!r}). "
                f"Set config.timeout_per_item to None for no limit, or a positive number of seconds."
            )
        if not _is_number(self.observer_timeout) or self.observer_timeout <= 0:
            raise ConfigurationError(
                f"observer_timeout must be a number > 0 (got {self.observer_timeout!r}). "
                f"Set config.observer_timeout to a positive number of seconds."
            )
        if not isinstance(self.in_flight_policy, InFlightPolicy):
            raise ConfigurationError(
                f"in_flight_policy must be an InFlightPolicy (got {self.in_flight_policy!r}). "
                f"Use InFlightPolicy.FINISH or InFlightPolicy.ABANDON."
            )
        if not _is_int(self.progress_interval) or self.progress_interval < 1:
            raise ConfigurationError(
                f"progress_interval must be an integer >= 1 (got {self.progress_interval!r}). "
                f"Set config.progress_interval to a positive integer."
            )

        self.retry.validate()
