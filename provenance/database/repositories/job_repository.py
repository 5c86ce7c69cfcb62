from typing import Any

from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from provenance.database.connection import get_connection
from provenance.database.models import JobRecord, JobStatus
from provenance.verification.models import JobType

_COLUMNS = """
    id, type, status, progress, retry_count, content_hash, manifest_uri,
    registry_address, chain_id, content_path, original_filename, result,
    error, created_at, started_at, completed_at, updated_at
"""

# Every mutation is guarded so terminal rows are never rewritten.
_NOT_TERMINAL = "status NOT IN ('completed', 'failed')"


class JobRepository:
    """Database operations for the verification_jobs table."""

    def ensure_schema(self) -> None:
        """Create the verification_jobs table and its indexes if missing."""
        with get_connection() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS verification_jobs (
                    id TEXT PRIMARY KEY,
                    type TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'queued',
                    progress INTEGER NOT NULL DEFAULT 0,
                    retry_count INTEGER NOT NULL DEFAULT 0,
                    content_hash TEXT,
                    manifest_uri TEXT NOT NULL,
                    registry_address TEXT,
                    chain_id BIGINT,
                    content_path TEXT,
                    original_filename TEXT,
                    result JSONB,
                    error TEXT,
                    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                    started_at TIMESTAMPTZ,
                    completed_at TIMESTAMPTZ,
                    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                )
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS verification_jobs_status_created_idx
                ON verification_jobs (status, created_at DESC)
                """
            )
            conn.commit()

    def create(self, job: JobRecord) -> JobRecord:
        """Insert a new job row and return it with database timestamps."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    INSERT INTO verification_jobs
                    (id, type, status, progress, retry_count, content_hash,
                     manifest_uri, registry_address, chain_id, content_path,
                     original_filename)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                    RETURNING {_COLUMNS}
                    """,
                    (
                        job.id,
                        job.type.value,
                        job.status.value,
                        job.progress,
                        job.retry_count,
                        job.content_hash,
                        job.manifest_uri,
                        job.registry_address,
                        job.chain_id,
                        job.content_path,
                        job.original_filename,
                    ),
                )
                row = cur.fetchone()
            conn.commit()

        if row is None:
            raise RuntimeError(f"Insert of job {job.id} returned no row")
        return _to_record(row)

    def find_by_id(self, job_id: str) -> JobRecord | None:
        """Find a job by ID. Returns None for unknown IDs."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"SELECT {_COLUMNS} FROM verification_jobs WHERE id = %s",
                    (job_id,),
                )
                row = cur.fetchone()

        if row is None:
            return None
        return _to_record(row)

    def mark_processing(self, job_id: str) -> bool:
        """Start an attempt: status processing, progress reset to 0.

        Returns False when the job is unknown or already terminal.
        """
        return self._update(
            f"""
            UPDATE verification_jobs
            SET status = 'processing', progress = 0, started_at = NOW(),
                updated_at = NOW()
            WHERE id = %s AND {_NOT_TERMINAL}
            """,
            (job_id,),
        )

    def update_progress(self, job_id: str, progress: int) -> None:
        """Raise progress for the current attempt; never lowers it."""
        self._update(
            f"""
            UPDATE verification_jobs
            SET progress = GREATEST(progress, %s), updated_at = NOW()
            WHERE id = %s AND {_NOT_TERMINAL}
            """,
            (min(max(progress, 0), 100), job_id),
        )

    def set_content_hash(self, job_id: str, content_hash: str) -> None:
        self._update(
            f"""
            UPDATE verification_jobs
            SET content_hash = %s, updated_at = NOW()
            WHERE id = %s AND {_NOT_TERMINAL}
            """,
            (content_hash, job_id),
        )

    def mark_completed(self, job_id: str, result: dict[str, Any]) -> None:
        """Mark a job as completed and store its result."""
        self._update(
            f"""
            UPDATE verification_jobs
            SET status = 'completed', progress = 100, result = %s, error = NULL,
                completed_at = NOW(), updated_at = NOW()
            WHERE id = %s AND {_NOT_TERMINAL}
            """,
            (Jsonb(result), job_id),
        )

    def mark_failed(self, job_id: str, error: str, retry_count: int) -> None:
        """Mark a job as permanently failed."""
        self._update(
            f"""
            UPDATE verification_jobs
            SET status = 'failed', error = %s, retry_count = %s,
                completed_at = NOW(), updated_at = NOW()
            WHERE id = %s AND {_NOT_TERMINAL}
            """,
            (error, retry_count, job_id),
        )

    def requeue(self, job_id: str, retry_count: int, error: str) -> None:
        """Return a job to queued after a transient failure."""
        self._update(
            f"""
            UPDATE verification_jobs
            SET status = 'queued', progress = 0, retry_count = %s, error = %s,
                updated_at = NOW()
            WHERE id = %s AND {_NOT_TERMINAL}
            """,
            (retry_count, error, job_id),
        )

    def delete_queued(self, job_id: str) -> bool:
        """Remove a job that never left the queued state."""
        return self._update(
            "DELETE FROM verification_jobs WHERE id = %s AND status = 'queued'",
            (job_id,),
        )

    def list_jobs(
        self,
        status: JobStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[JobRecord]:
        """List jobs newest first, optionally filtered by status."""
        query = f"SELECT {_COLUMNS} FROM verification_jobs"
        params: list[Any] = []
        if status is not None:
            query += " WHERE status = %s"
            params.append(status.value)
        query += " ORDER BY created_at DESC LIMIT %s OFFSET %s"
        params.extend([limit, offset])

        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(query, params)
                rows = cur.fetchall()

        return [_to_record(row) for row in rows]

    def count_by_status(self) -> dict[JobStatus, int]:
        """Return job counts for every status, zero-filled."""
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT status, COUNT(*) FROM verification_jobs GROUP BY status"
                )
                rows = cur.fetchall()

        counts = {status: 0 for status in JobStatus}
        for status, count in rows:
            counts[JobStatus(status)] = int(count)
        return counts

    def _update(self, query: str, params: tuple[Any, ...]) -> bool:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                updated = cur.rowcount > 0
            conn.commit()
        return updated


def _to_record(row: dict[str, Any]) -> JobRecord:
    return JobRecord(
        id=row["id"],
        type=JobType(row["type"]),
        status=JobStatus(row["status"]),
        progress=row["progress"],
        retry_count=row["retry_count"],
        content_hash=row["content_hash"],
        manifest_uri=row["manifest_uri"],
        registry_address=row["registry_address"],
        chain_id=row["chain_id"],
        content_path=row["content_path"],
        original_filename=row["original_filename"],
        result=row["result"],
        error=row["error"],
        created_at=row["created_at"],
        started_at=row["started_at"],
        completed_at=row["completed_at"],
        updated_at=row["updated_at"],
    )
