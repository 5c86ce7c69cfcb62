from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class QueueCounts:
    waiting: int
    delayed: int
    active: int


class BaseQueueTransport(ABC):
    """Contract for queue transports carrying job IDs to workers.

    A popped ID is owned by exactly one consumer until it is acknowledged.
    Every method may raise QueueUnavailableError when the broker is down.
    """

    @abstractmethod
    def ping(self) -> bool:
        """Return True when the broker is reachable."""

    @abstractmethod
    def push(self, job_id: str) -> None:
        """Make a job immediately eligible for dispatch."""

    @abstractmethod
    def push_delayed(self, job_id: str, delay_seconds: float) -> None:
        """Make a job eligible for dispatch after delay_seconds."""

    @abstractmethod
    def promote_due(self) -> int:
        """Move delayed jobs whose delay has elapsed to the waiting queue.

        Returns the number of jobs promoted by this call.
        """

    @abstractmethod
    def pop(self, timeout_seconds: float) -> str | None:
        """Block up to timeout_seconds for the next job ID; None on timeout."""

    @abstractmethod
    def ack(self, job_id: str) -> None:
        """Release ownership of a popped job ID."""

    @abstractmethod
    def counts(self) -> QueueCounts:
        """Current queue depths."""

    @abstractmethod
    def close(self) -> None:
        """Release broker connections."""
