from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from provenance.verification.models import JobType


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


@dataclass
class JobRecord:
    """Represents a row from the verification_jobs table."""

    id: str
    type: JobType
    status: JobStatus
    manifest_uri: str
    progress: int = 0
    retry_count: int = 0
    content_hash: str | None = None
    registry_address: str | None = None
    chain_id: int | None = None
    content_path: str | None = None
    original_filename: str | None = None
    result: dict[str, Any] | None = None
    error: str | None = None
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the job API. Scratch file paths stay internal."""
        return {
            "jobId": self.id,
            "type": self.type.value,
            "status": self.status.value,
            "progress": self.progress,
            "contentHash": self.content_hash,
            "manifestUri": self.manifest_uri,
            "registryAddress": self.registry_address,
            "chainId": self.chain_id,
            "result": self.result,
            "error": self.error,
            "retryCount": self.retry_count,
            "createdAt": _iso(self.created_at),
            "startedAt": _iso(self.started_at),
            "completedAt": _iso(self.completed_at),
        }


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
