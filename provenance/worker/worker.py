import threading

from provenance.config.settings import Settings
from provenance.logging.logger import Log
from provenance.queue.base import BaseQueueTransport
from provenance.queue.exceptions import QueueUnavailableError
from provenance.worker.job_runner import JobRunner


class Worker:
    """Poll loop: promote due retries -> pop -> dispatch -> ack."""

    def __init__(
        self,
        transport: BaseQueueTransport,
        job_runner: JobRunner,
        settings: Settings,
        stop_event: threading.Event | None = None,
    ) -> None:
        self._transport = transport
        self._job_runner = job_runner
        self._settings = settings
        self._stop_event = stop_event or threading.Event()

    def stop(self) -> None:
        self._stop_event.set()

    def run(self, max_jobs: int | None = None) -> None:
        """Main poll loop. Runs until stopped or interrupted.

        If max_jobs is set, stop after processing that many jobs (for testing).
        """
        Log.info("Worker started, polling for jobs")
        jobs_done = 0
        try:
            while not self._stop_event.is_set():
                if max_jobs is not None and jobs_done >= max_jobs:
                    break
                job_id = self._try_claim_job()
                if job_id is None:
                    continue
                try:
                    self._job_runner.run(job_id)
                except Exception as exc:
                    Log.exception(f"Job attempt aborted by an unexpected error: {exc}", job_id=job_id)
                finally:
                    self._release(job_id)
                jobs_done += 1
        except KeyboardInterrupt:
            Log.info("Worker shutting down gracefully")
        Log.info("Worker stopped")

    def _try_claim_job(self) -> str | None:
        """Claim the next due job ID. Gracefully handle broker outages."""
        try:
            promoted = self._transport.promote_due()
            if promoted:
                Log.debug(f"Promoted {promoted} delayed job(s)")
            return self._transport.pop(self._settings.job_poll_interval_seconds)
        except QueueUnavailableError as exc:
            Log.warning(f"Queue unavailable, will retry: {exc}")
            self._stop_event.wait(self._settings.job_poll_interval_seconds)
            return None

    def _release(self, job_id: str) -> None:
        try:
            self._transport.ack(job_id)
        except QueueUnavailableError as exc:
            Log.warning(f"Could not acknowledge job: {exc}", job_id=job_id)
