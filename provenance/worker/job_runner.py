import time
from pathlib import Path

from provenance.database.models import JobRecord
from provenance.database.repositories.job_repository import JobRepository
from provenance.logging.logger import Log
from provenance.queue.base import BaseQueueTransport
from provenance.queue.exceptions import QueueUnavailableError
from provenance.verification.engine import VerificationEngine
from provenance.verification.exceptions import ErrorKind, JobTimeoutError, classify_error
from provenance.verification.models import VerificationRequest
from provenance.worker.retry import RetryPolicy


class JobProgress:
    """Writes engine milestones to the job row and enforces the job time budget."""

    def __init__(self, job_repo: JobRepository, job_id: str, timeout_seconds: float) -> None:
        self._job_repo = job_repo
        self._job_id = job_id
        self._timeout_seconds = timeout_seconds
        self._deadline = time.monotonic() + timeout_seconds

    def checkpoint(self) -> None:
        if time.monotonic() > self._deadline:
            raise JobTimeoutError(
                f"Job {self._job_id} exceeded its {self._timeout_seconds}s time budget"
            )

    def on_hashed(self, content_hash: str) -> None:
        self._job_repo.set_content_hash(self._job_id, content_hash)

    def on_progress(self, progress: int) -> None:
        self._job_repo.update_progress(self._job_id, progress)
        Log.debug("Job progress", job_id=self._job_id, progress=progress)


class JobRunner:
    """Run one job attempt, classify failures, and apply retry logic."""

    def __init__(
        self,
        engine: VerificationEngine,
        job_repo: JobRepository,
        transport: BaseQueueTransport,
        retry_policy: RetryPolicy,
        job_timeout_seconds: float,
    ) -> None:
        self._engine = engine
        self._job_repo = job_repo
        self._transport = transport
        self._retry_policy = retry_policy
        self._job_timeout_seconds = job_timeout_seconds

    def run(self, job_id: str) -> None:
        """Execute a single attempt of the job with error handling."""
        job = self._job_repo.find_by_id(job_id)
        if job is None:
            Log.warning("Job not found in store, dropping", job_id=job_id)
            return
        if job.status.is_terminal:
            Log.warning("Job already terminal, skipping", job_id=job_id, status=job.status.value)
            return
        if not self._job_repo.mark_processing(job.id):
            Log.warning("Job could not be moved to processing, skipping", job_id=job_id)
            return

        Log.info(
            "Running job", job_id=job.id, type=job.type.value, attempt=job.retry_count + 1
        )
        progress = JobProgress(self._job_repo, job.id, self._job_timeout_seconds)
        try:
            result = self._engine.run(self._to_request(job), progress)
            self._job_repo.mark_completed(job.id, result)
        except Exception as exc:
            try:
                self._handle_failure(job, exc)
            except Exception:
                # The store could not record the outcome; the row stays processing.
                self._release_content(job)
                raise
            return

        self._release_content(job)
        Log.info("Job completed", job_id=job.id)

    def _handle_failure(self, job: JobRecord, exc: Exception) -> None:
        """Permanent errors fail at once; transient ones retry until attempts run out."""
        kind = classify_error(exc)
        attempts_made = job.retry_count + 1
        Log.error(f"Job attempt failed: {exc}", job_id=job.id, kind=kind.value)

        if kind is ErrorKind.PERMANENT:
            self._fail(job, str(exc))
            return

        if not self._retry_policy.can_retry(attempts_made):
            self._fail(job, str(exc))
            Log.error("Job failed permanently", job_id=job.id, attempts=attempts_made)
            return

        delay = self._retry_policy.delay_for(job.retry_count)
        self._job_repo.requeue(job.id, attempts_made, str(exc))
        try:
            self._transport.push_delayed(job.id, delay)
        except QueueUnavailableError as queue_exc:
            self._fail(job, f"{exc} (could not schedule retry: {queue_exc})", attempts_made)
            return
        Log.warning(
            f"Job will be retried in {delay:.1f}s", job_id=job.id, attempt=attempts_made + 1
        )

    def _fail(self, job: JobRecord, error: str, retry_count: int | None = None) -> None:
        self._job_repo.mark_failed(
            job.id, error, job.retry_count if retry_count is None else retry_count
        )
        self._release_content(job)

    @staticmethod
    def _to_request(job: JobRecord) -> VerificationRequest:
        return VerificationRequest(
            job_type=job.type,
            manifest_uri=job.manifest_uri,
            content_path=Path(job.content_path) if job.content_path else None,
            content_hash=job.content_hash if not job.content_path else None,
            registry_address=job.registry_address,
            chain_id=job.chain_id,
            original_filename=job.original_filename,
        )

    @staticmethod
    def _release_content(job: JobRecord) -> None:
        if job.content_path:
            Path(job.content_path).unlink(missing_ok=True)
