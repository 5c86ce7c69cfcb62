import uuid
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from provenance.database.models import JobRecord, JobStatus
from provenance.database.repositories.job_repository import JobRepository
from provenance.logging.logger import Log
from provenance.queue.base import BaseQueueTransport
from provenance.queue.exceptions import QueueUnavailableError
from provenance.verification.engine import VerificationEngine
from provenance.verification.models import JobType, VerificationRequest


class SubmissionMode(str, Enum):
    ASYNC = "async"
    SYNC = "sync"


@dataclass(frozen=True)
class EnqueueOutcome:
    """Either a queued job (async) or an inline result (sync), never both."""

    mode: SubmissionMode
    job: JobRecord | None = None
    result: dict[str, Any] | None = None


@dataclass(frozen=True)
class QueueStats:
    available: bool
    waiting: int
    active: int
    completed: int
    failed: int
    delayed: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "available": self.available,
            "waiting": self.waiting,
            "active": self.active,
            "completed": self.completed,
            "failed": self.failed,
            "delayed": self.delayed,
        }


class QueueManager:
    """Front door for verification work.

    Jobs go to the queue when the transport is reachable. Otherwise the
    engine runs inline and the caller gets the result directly, with no job
    record left behind.
    """

    def __init__(
        self,
        job_repo: JobRepository,
        engine: VerificationEngine,
        transport: BaseQueueTransport | None,
    ) -> None:
        self._job_repo = job_repo
        self._engine = engine
        self._transport = transport

    def is_available(self) -> bool:
        if self._transport is None:
            return False
        try:
            return self._transport.ping()
        except QueueUnavailableError:
            return False

    def enqueue(
        self,
        job_type: JobType,
        manifest_uri: str,
        *,
        content_path: Path | None = None,
        content_hash: str | None = None,
        registry_address: str | None = None,
        chain_id: int | None = None,
        original_filename: str | None = None,
    ) -> EnqueueOutcome:
        """Submit a verify or proof job.

        In sync mode engine errors propagate to the caller and the scratch
        content file is removed before returning.
        """
        request = VerificationRequest(
            job_type=job_type,
            manifest_uri=manifest_uri,
            content_path=content_path,
            content_hash=content_hash,
            registry_address=registry_address,
            chain_id=chain_id,
            original_filename=original_filename,
        )
        if not self.is_available():
            Log.warning(f"Queue unavailable, running {job_type.value} synchronously")
            return EnqueueOutcome(mode=SubmissionMode.SYNC, result=self._run_sync(request))

        job = self._job_repo.create(
            JobRecord(
                id=uuid.uuid4().hex,
                type=job_type,
                status=JobStatus.QUEUED,
                manifest_uri=manifest_uri,
                content_hash=content_hash,
                registry_address=registry_address,
                chain_id=chain_id,
                content_path=str(content_path) if content_path is not None else None,
                original_filename=original_filename,
            )
        )
        try:
            self._transport.push(job.id)  # type: ignore[union-attr]
        except QueueUnavailableError as exc:
            Log.warning(f"Queue push failed, running synchronously: {exc}", job_id=job.id)
            self._job_repo.delete_queued(job.id)
            return EnqueueOutcome(mode=SubmissionMode.SYNC, result=self._run_sync(request))

        Log.info("Job queued", job_id=job.id, type=job_type.value, manifest_uri=manifest_uri)
        return EnqueueOutcome(mode=SubmissionMode.ASYNC, job=job)

    def get_status(self, job_id: str) -> JobRecord | None:
        return self._job_repo.find_by_id(job_id)

    def list_jobs(
        self, status: JobStatus | None = None, limit: int = 50, offset: int = 0
    ) -> list[JobRecord]:
        return self._job_repo.list_jobs(status=status, limit=limit, offset=offset)

    def stats(self) -> QueueStats:
        """Job counts from the store plus the transport's retry backlog.

        waiting includes delayed jobs; delayed is the share still in backoff.
        """
        counts = self._job_repo.count_by_status()
        available = self.is_available()
        return QueueStats(
            available=available,
            waiting=counts[JobStatus.QUEUED],
            active=counts[JobStatus.PROCESSING],
            completed=counts[JobStatus.COMPLETED],
            failed=counts[JobStatus.FAILED],
            delayed=self._delayed_depth() if available else 0,
        )

    def _delayed_depth(self) -> int:
        try:
            return self._transport.counts().delayed  # type: ignore[union-attr]
        except QueueUnavailableError:
            return 0

    def close(self) -> None:
        if self._transport is not None:
            self._transport.close()

    def _run_sync(self, request: VerificationRequest) -> dict[str, Any]:
        try:
            return self._engine.run(request)
        finally:
            if request.content_path is not None:
                request.content_path.unlink(missing_ok=True)
