"""Retry strategies for guarded retryable calls.

``ProtectionScope.guarded_retryable_call`` waits ``retry_delay * attempt``
between attempts by default, which is ``LinearBackoff`` with
``base_delay == increment == retry_delay`` and no cap.  Any other strategy
can be passed in explicitly.

Example:
    >>> from armor.execution.retry import LinearBackoff
    >>>
    >>> strategy = LinearBackoff(max_retries=3, base_delay=0.5, increment=0.5)
    >>> [strategy.next_delay(attempt) for attempt in range(3)]
    [0.5, 1.0, 1.5]
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


class RetryStrategy(ABC):
    """Abstract base for retry strategies."""

    max_retries: int

    @abstractmethod
    def next_delay(self, attempt: int) -> float:
        """Calculate delay before next retry attempt.

        Args:
            attempt: Zero-based retry number (0 = first retry)

        Returns:
            Delay in seconds before next attempt
        """
        ...

    @abstractmethod
    def should_retry(self, attempt: int, error: Exception | None = None) -> bool:
        """Determine if another retry should be attempted.

        Args:
            attempt: Retries already made
            error: The exception that caused the failure

        Returns:
            True if should retry, False otherwise
        """
        ...


@dataclass
class LinearBackoff(RetryStrategy):
    """Linear backoff strategy.

    Delay = base_delay + (increment * attempt), capped at ``max_delay`` when set.
    """

    max_retries: int = 3
    base_delay: float = 1.0
    increment: float = 1.0
    max_delay: float | None = None

    @classmethod
    def per_attempt(cls, max_retries: int, retry_delay: float) -> "LinearBackoff":
        """Backoff where retry n waits ``retry_delay * n``."""
        return cls(max_retries=max_retries, base_delay=retry_delay, increment=retry_delay)

    def next_delay(self, attempt: int) -> float:
        """Calculate linear backoff delay."""
        delay = self.base_delay + (self.increment * attempt)
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay

    def should_retry(self, attempt: int, error: Exception | None = None) -> bool:
        """Check if retry should be attempted."""
        return attempt < self.max_retries


@dataclass
class ConstantBackoff(RetryStrategy):
    """Constant delay between retries."""

    max_retries: int = 3
    delay: float = 1.0

    def next_delay(self, attempt: int) -> float:
        """Return constant delay."""
        return self.delay

    def should_retry(self, attempt: int, error: Exception | None = None) -> bool:
        """Check if retry should be attempted."""
        return attempt < self.max_retries


@dataclass
class NoRetry(RetryStrategy):
    """No retry - single attempt only."""

    max_retries: int = 0

    def next_delay(self, attempt: int) -> float:
        """No delay needed."""
        return 0.0

    def should_retry(self, attempt: int, error: Exception | None = None) -> bool:
        """Never retry."""
        return False


__all__ = ["RetryStrategy", "LinearBackoff", "ConstantBackoff", "NoRetry"]
