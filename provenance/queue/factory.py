from provenance.config.settings import Settings
from provenance.logging.logger import Log
from provenance.queue.base import BaseQueueTransport
from provenance.queue.memory_transport import InMemoryQueueTransport
from provenance.queue.redis_transport import RedisQueueTransport


class QueueTransportFactory:
    """Creates the configured queue transport, or None for synchronous-only mode."""

    @classmethod
    def create(cls, settings: Settings) -> BaseQueueTransport | None:
        backend = settings.queue_backend
        if backend == "none":
            Log.info("Verification queue disabled; verifications run synchronously")
            return None
        if backend == "memory":
            return InMemoryQueueTransport()
        if not settings.redis_url:
            Log.info(
                "Verification queue disabled (REDIS_URL not set); "
                "verifications run synchronously"
            )
            return None
        return RedisQueueTransport.from_url(
            settings.redis_url,
            settings.queue_name,
            block_timeout_seconds=settings.job_poll_interval_seconds,
        )
