import time
from collections.abc import Generator
from contextlib import contextmanager

from redis import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from provenance.queue.base import BaseQueueTransport, QueueCounts
from provenance.queue.exceptions import QueueUnavailableError

_PROMOTE_BATCH = 100


class RedisQueueTransport(BaseQueueTransport):
    """Redis lists as the job transport.

    <name>:waiting holds eligible IDs, <name>:active the IDs currently owned
    by a worker (moved atomically by BLMOVE), and <name>:delayed is a sorted
    set of retry IDs scored by the epoch time they become eligible.
    """

    def __init__(self, connection: Redis, queue_name: str) -> None:
        self._redis = connection
        self.waiting_key = f"{queue_name}:waiting"
        self.active_key = f"{queue_name}:active"
        self.delayed_key = f"{queue_name}:delayed"

    @classmethod
    def from_url(
        cls, redis_url: str, queue_name: str, *, block_timeout_seconds: float
    ) -> "RedisQueueTransport":
        connection = Redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=block_timeout_seconds + 5,
        )
        return cls(connection, queue_name)

    def ping(self) -> bool:
        try:
            return bool(self._redis.ping())
        except (RedisConnectionError, RedisTimeoutError):
            return False

    def push(self, job_id: str) -> None:
        with self._guard("push"):
            self._redis.lpush(self.waiting_key, job_id)

    def push_delayed(self, job_id: str, delay_seconds: float) -> None:
        due_at = time.time() + max(delay_seconds, 0.0)
        with self._guard("push_delayed"):
            self._redis.zadd(self.delayed_key, {job_id: due_at})

    def promote_due(self) -> int:
        promoted = 0
        with self._guard("promote_due"):
            due = self._redis.zrangebyscore(
                self.delayed_key, "-inf", time.time(), start=0, num=_PROMOTE_BATCH
            )
            for job_id in due:
                # ZREM succeeds for exactly one caller, so concurrent
                # workers never promote the same ID twice.
                if self._redis.zrem(self.delayed_key, job_id):
                    self._redis.lpush(self.waiting_key, job_id)
                    promoted += 1
        return promoted

    def pop(self, timeout_seconds: float) -> str | None:
        with self._guard("pop"):
            job_id = self._redis.blmove(
                self.waiting_key,
                self.active_key,
                timeout_seconds,
                src="RIGHT",
                dest="LEFT",
            )
        return job_id

    def ack(self, job_id: str) -> None:
        with self._guard("ack"):
            self._redis.lrem(self.active_key, 1, job_id)

    def counts(self) -> QueueCounts:
        with self._guard("counts"):
            pipe = self._redis.pipeline()
            pipe.llen(self.waiting_key)
            pipe.zcard(self.delayed_key)
            pipe.llen(self.active_key)
            waiting, delayed, active = pipe.execute()
        return QueueCounts(waiting=int(waiting), delayed=int(delayed), active=int(active))

    def close(self) -> None:
        self._redis.close()

    @contextmanager
    def _guard(self, operation: str) -> Generator[None, None, None]:
        try:
            yield
        except (RedisConnectionError, RedisTimeoutError) as exc:
            raise QueueUnavailableError(f"Redis unavailable during {operation}: {exc}") from exc
