"""Retry policy: exponential backoff with a cap."""

from dataclasses import dataclass
from datetime import timedelta

from reminders.errors import DeliveryError


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay: float = 2.0
    max_delay: float = 300.0

    @classmethod
    def from_settings(cls, settings):
        return cls(
            max_retries=settings.MAX_RETRIES,
            base_delay=settings.BACKOFF_BASE_SECONDS,
            max_delay=settings.BACKOFF_MAX_SECONDS,
        )

    def delay_for(self, attempts: int) -> timedelta:
        """Delay before the attempt following attempt number ``attempts``."""
        seconds = self.base_delay * 2 ** max(attempts - 1, 0)
        return timedelta(seconds=min(seconds, self.max_delay))

    def should_retry(self, error: DeliveryError | None, attempts: int) -> bool:
        return error is not None and error.retryable and attempts < self.max_retries
