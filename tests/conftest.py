import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest
from eth_account import Account

from provenance.chain.chains import get_chain_by_id
from provenance.chain.models import RegistryEntry
from provenance.database.models import JobRecord, JobStatus
from provenance.manifest.builder import build_manifest
from provenance.manifest.hashing import sha256_hex
from provenance.manifest.models import Manifest

CREATOR_KEY = "0x" + "11" * 32
OTHER_KEY = "0x" + "22" * 32
REGISTRY_ADDRESS = "0x" + "ab" * 20
CHAIN_ID = 84532
MANIFEST_URI = "ipfs://bafyexamplemanifest"
CONTENT = b"An original photograph, byte for byte."


class InMemoryJobRepository:
    """Job store with the same contract as JobRepository, held in a dict."""

    def __init__(self) -> None:
        self.jobs: dict[str, JobRecord] = {}
        self._lock = threading.Lock()

    def create(self, job: JobRecord) -> JobRecord:
        with self._lock:
            job.created_at = datetime.now(timezone.utc)
            self.jobs[job.id] = job
            return job

    def find_by_id(self, job_id: str) -> JobRecord | None:
        return self.jobs.get(job_id)

    def mark_processing(self, job_id: str) -> bool:
        job = self._live(job_id)
        if job is None:
            return False
        job.status = JobStatus.PROCESSING
        job.progress = 0
        job.started_at = datetime.now(timezone.utc)
        return True

    def update_progress(self, job_id: str, progress: int) -> None:
        job = self._live(job_id)
        if job is not None:
            job.progress = max(job.progress, min(max(progress, 0), 100))

    def set_content_hash(self, job_id: str, content_hash: str) -> None:
        job = self._live(job_id)
        if job is not None:
            job.content_hash = content_hash

    def mark_completed(self, job_id: str, result: dict[str, Any]) -> None:
        job = self._live(job_id)
        if job is not None:
            job.status = JobStatus.COMPLETED
            job.progress = 100
            job.result = result
            job.error = None
            job.completed_at = datetime.now(timezone.utc)

    def mark_failed(self, job_id: str, error: str, retry_count: int) -> None:
        job = self._live(job_id)
        if job is not None:
            job.status = JobStatus.FAILED
            job.error = error
            job.retry_count = retry_count
            job.completed_at = datetime.now(timezone.utc)

    def requeue(self, job_id: str, retry_count: int, error: str) -> None:
        job = self._live(job_id)
        if job is not None:
            job.status = JobStatus.QUEUED
            job.progress = 0
            job.retry_count = retry_count
            job.error = error

    def delete_queued(self, job_id: str) -> bool:
        with self._lock:
            job = self.jobs.get(job_id)
            if job is None or job.status is not JobStatus.QUEUED:
                return False
            del self.jobs[job_id]
            return True

    def list_jobs(
        self, status: JobStatus | None = None, limit: int = 50, offset: int = 0
    ) -> list[JobRecord]:
        jobs = [j for j in self.jobs.values() if status is None or j.status is status]
        jobs.sort(key=lambda j: j.created_at or datetime.min.replace(tzinfo=timezone.utc), reverse=True)
        return jobs[offset : offset + limit]

    def count_by_status(self) -> dict[JobStatus, int]:
        counts = {status: 0 for status in JobStatus}
        for job in self.jobs.values():
            counts[job.status] += 1
        return counts

    def _live(self, job_id: str) -> JobRecord | None:
        job = self.jobs.get(job_id)
        if job is None or job.status.is_terminal:
            return None
        return job


@pytest.fixture()
def creator_address() -> str:
    return Account.from_key(CREATOR_KEY).address


@pytest.fixture()
def content_hash() -> str:
    return sha256_hex(CONTENT)


@pytest.fixture()
def content_file(tmp_path: Path) -> Path:
    path = tmp_path / "photo.jpg"
    path.write_bytes(CONTENT)
    return path


@pytest.fixture()
def manifest_document(content_hash: str) -> dict[str, Any]:
    return build_manifest(
        content_hash, CREATOR_KEY, chain_id=CHAIN_ID, timestamp="2026-01-01T00:00:00+00:00"
    )


@pytest.fixture()
def manifest(manifest_document: dict[str, Any]) -> Manifest:
    return Manifest.from_dict(manifest_document)


@pytest.fixture()
def registry_entry(creator_address: str, content_hash: str) -> RegistryEntry:
    return RegistryEntry(
        creator=creator_address,
        content_hash=content_hash,
        manifest_uri=MANIFEST_URI,
        timestamp=1_767_225_600,
    )


@pytest.fixture()
def mock_fetcher(manifest: Manifest) -> MagicMock:
    fetcher = MagicMock()
    fetcher.fetch.return_value = manifest
    return fetcher


@pytest.fixture()
def mock_resolver(registry_entry: RegistryEntry) -> MagicMock:
    resolver = MagicMock()
    resolver.default_chain_id = CHAIN_ID
    resolver.get_address.return_value = REGISTRY_ADDRESS
    resolver.read_entry.return_value = registry_entry
    resolver.find_registration_tx.return_value = None
    resolver.chain.return_value = get_chain_by_id(CHAIN_ID)
    return resolver


@pytest.fixture()
def job_repo() -> InMemoryJobRepository:
    return InMemoryJobRepository()


@pytest.fixture()
def creator_key() -> str:
    return CREATOR_KEY


@pytest.fixture()
def other_key() -> str:
    return OTHER_KEY


@pytest.fixture()
def registry_address() -> str:
    return REGISTRY_ADDRESS


@pytest.fixture()
def manifest_uri() -> str:
    return MANIFEST_URI


@pytest.fixture()
def content() -> bytes:
    return CONTENT
