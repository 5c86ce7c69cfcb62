import threading
import time
from collections import deque

from provenance.queue.base import BaseQueueTransport, QueueCounts


class InMemoryQueueTransport(BaseQueueTransport):
    """Single-process transport for local runs and tests."""

    def __init__(self) -> None:
        self._waiting: deque[str] = deque()
        self._delayed: dict[str, float] = {}
        self._active: set[str] = set()
        self._cond = threading.Condition()
        self._closed = False

    def ping(self) -> bool:
        return not self._closed

    def push(self, job_id: str) -> None:
        with self._cond:
            self._waiting.append(job_id)
            self._cond.notify()

    def push_delayed(self, job_id: str, delay_seconds: float) -> None:
        with self._cond:
            self._delayed[job_id] = time.monotonic() + max(delay_seconds, 0.0)

    def promote_due(self) -> int:
        now = time.monotonic()
        with self._cond:
            due = [job_id for job_id, at in self._delayed.items() if at <= now]
            for job_id in due:
                del self._delayed[job_id]
                self._waiting.append(job_id)
            if due:
                self._cond.notify_all()
        return len(due)

    def pop(self, timeout_seconds: float) -> str | None:
        deadline = time.monotonic() + timeout_seconds
        with self._cond:
            while not self._waiting:
                remaining = deadline - time.monotonic()
                if remaining <= 0 or self._closed:
                    return None
                self._cond.wait(remaining)
            job_id = self._waiting.popleft()
            self._active.add(job_id)
            return job_id

    def ack(self, job_id: str) -> None:
        with self._cond:
            self._active.discard(job_id)

    def counts(self) -> QueueCounts:
        with self._cond:
            return QueueCounts(
                waiting=len(self._waiting),
                delayed=len(self._delayed),
                active=len(self._active),
            )

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()
