from dataclasses import dataclass

from provenance.config.settings import Settings


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff: base * 2**retry_count, capped at max_delay_seconds."""

    max_attempts: int
    base_delay_seconds: float
    max_delay_seconds: float

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.max_job_attempts,
            base_delay_seconds=settings.retry_backoff_base_seconds,
            max_delay_seconds=settings.retry_backoff_max_seconds,
        )

    def can_retry(self, attempts_made: int) -> bool:
        return attempts_made < self.max_attempts

    def delay_for(self, retry_count: int) -> float:
        return min(self.base_delay_seconds * (2**retry_count), self.max_delay_seconds)
