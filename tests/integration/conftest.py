import os
import uuid
from collections.abc import Generator
from typing import Any

import psycopg
import pytest

from provenance.config.settings import Settings
from provenance.database.connection import close_pool, get_connection, init_pool
from provenance.database.models import JobRecord, JobStatus
from provenance.database.repositories.job_repository import JobRepository
from provenance.verification.models import JobType


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "provenance_test")
    return Settings()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def integration_pool(test_settings: Settings) -> Generator[None, None, None]:
    try:
        init_pool(test_settings)
        JobRepository().ensure_schema()
    except Exception as e:
        close_pool()
        pytest.skip(
            f"PostgreSQL test DB not available: {e}. "
            "Set DB_* env to point at a disposable database"
        )
    try:
        yield
    finally:
        close_pool()


@pytest.fixture
def db_conn(integration_pool: None) -> Generator[psycopg.Connection[Any], None, None]:
    with get_connection() as conn:
        yield conn


@pytest.fixture
def integration_cleanup(integration_pool: None) -> Generator[list[str], None, None]:
    cleanup: list[str] = []
    yield cleanup
    if not cleanup:
        return
    with get_connection() as conn:
        with conn.cursor() as cur:
            for job_id in cleanup:
                cur.execute("DELETE FROM verification_jobs WHERE id = %s", (job_id,))
        conn.commit()


@pytest.fixture
def job_repository(integration_pool: None) -> JobRepository:
    return JobRepository()


@pytest.fixture
def seed_job(job_repository: JobRepository, integration_cleanup: list[str]) -> JobRecord:
    job = job_repository.create(
        JobRecord(
            id=uuid.uuid4().hex,
            type=JobType.VERIFY,
            status=JobStatus.QUEUED,
            manifest_uri="ipfs://bafyintegration",
            registry_address="0x" + "ab" * 20,
            chain_id=84532,
            content_path="/tmp/provenance-integration.bin",
            original_filename="integration.bin",
        )
    )
    integration_cleanup.append(job.id)
    return job
