from pathlib import Path

from fastapi import APIRouter, File, Form, Query, Request, UploadFile
from fastapi.responses import JSONResponse
from web3 import Web3

from provenance.api.schemas import (
    AsyncSubmission,
    HealthResponse,
    JobList,
    QueueStatsResponse,
    ResolveResponse,
    SyncSubmission,
)
from provenance.api.uploads import save_upload
from provenance.chain.exceptions import CrossChainResolutionError
from provenance.chain.platforms import Platform
from provenance.chain.resolver import RegistryResolver
from provenance.config.settings import Settings
from provenance.database.models import JobStatus
from provenance.jobs.queue_manager import QueueManager, SubmissionMode
from provenance.logging.logger import Log
from provenance.manifest.fetcher import is_supported_manifest_uri
from provenance.verification.exceptions import ErrorKind, classify_error
from provenance.verification.models import JobType

router = APIRouter()

_MAX_PAGE_SIZE = 200


def _error(status_code: int, message: str, **extra: object) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def _manager(request: Request) -> QueueManager:
    return request.app.state.queue_manager


def _resolver(request: Request) -> RegistryResolver:
    return request.app.state.resolver


def _settings(request: Request) -> Settings:
    return request.app.state.settings


def _submit(
    request: Request,
    job_type: JobType,
    file: UploadFile,
    registry_address: str,
    manifest_uri: str,
    chain_id: int | None,
) -> AsyncSubmission | SyncSubmission | JSONResponse:
    if not Web3.is_address(registry_address):
        return _error(400, f"Invalid registryAddress: {registry_address}")
    if not is_supported_manifest_uri(manifest_uri):
        return _error(400, f"Unsupported manifestURI: {manifest_uri}")

    content_path: Path = save_upload(file, _settings(request).upload_dir)
    try:
        outcome = _manager(request).enqueue(
            job_type,
            manifest_uri,
            content_path=content_path,
            registry_address=registry_address,
            chain_id=chain_id,
            original_filename=file.filename,
        )
    except Exception as exc:
        content_path.unlink(missing_ok=True)
        kind = classify_error(exc)
        Log.error(f"Synchronous {job_type.value} failed ({kind.value}): {exc}")
        status_code = 422 if kind is ErrorKind.PERMANENT else 503
        return _error(status_code, str(exc), kind=kind.value)

    if outcome.mode is SubmissionMode.SYNC:
        return SyncSubmission(result=outcome.result or {})

    job = outcome.job
    return AsyncSubmission(
        jobId=job.id,
        status=job.status.value,
        message=f"{job_type.value.capitalize()} job queued",
        pollUrl=f"/verification-jobs/{job.id}",
    )


@router.post("/verification-jobs/verify", response_model=None)
def submit_verify(
    request: Request,
    file: UploadFile = File(...),
    registryAddress: str = Form(...),
    manifestURI: str = Form(...),
    chainId: int | None = Form(None),
) -> AsyncSubmission | SyncSubmission | JSONResponse:
    return _submit(request, JobType.VERIFY, file, registryAddress, manifestURI, chainId)


@router.post("/verification-jobs/proof", response_model=None)
def submit_proof(
    request: Request,
    file: UploadFile = File(...),
    registryAddress: str = Form(...),
    manifestURI: str = Form(...),
    chainId: int | None = Form(None),
) -> AsyncSubmission | SyncSubmission | JSONResponse:
    return _submit(request, JobType.PROOF, file, registryAddress, manifestURI, chainId)


# Registered before /verification-jobs/{job_id} so "stats" is not read as an ID.
@router.get("/verification-jobs/stats", response_model=QueueStatsResponse)
def queue_stats(request: Request) -> QueueStatsResponse:
    return QueueStatsResponse(**_manager(request).stats().to_dict())


@router.get("/verification-jobs", response_model=None)
def list_jobs(
    request: Request,
    status: str | None = None,
    limit: int = Query(50, ge=1, le=_MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
) -> JobList | JSONResponse:
    status_filter = None
    if status is not None:
        try:
            status_filter = JobStatus(status)
        except ValueError:
            return _error(400, f"Unknown job status: {status}")
    jobs = _manager(request).list_jobs(status=status_filter, limit=limit, offset=offset)
    return JobList(jobs=[job.to_dict() for job in jobs], count=len(jobs))


@router.get("/verification-jobs/{job_id}", response_model=None)
def get_job(request: Request, job_id: str) -> dict | JSONResponse:
    job = _manager(request).get_status(job_id)
    if job is None:
        return _error(404, f"Job {job_id} not found")
    return job.to_dict()


@router.get("/resolve", response_model=None)
def resolve(
    request: Request,
    url: str | None = None,
    platform: str | None = None,
    platformId: str | None = None,
) -> ResolveResponse | JSONResponse:
    resolver = _resolver(request)
    try:
        if url:
            resolved = resolver.resolve_url_cross_chain(url)
            if resolved is None:
                return _error(400, f"Unrecognized platform URL: {url}")
            recognized, match = resolved
            platform_name, platform_id = recognized.platform.value, recognized.platform_id
        elif platform and platformId:
            if platform.lower() not in {item.value for item in Platform}:
                return _error(400, f"Unknown platform: {platform}")
            platform_name, platform_id = platform.lower(), platformId
            match = resolver.resolve_by_platform_cross_chain(platform_name, platform_id)
        else:
            return _error(400, "Provide url, or platform and platformId")
    except CrossChainResolutionError as exc:
        Log.warning(f"Platform resolution failed on every chain: {exc.failures}")
        return _error(503, str(exc), failures={str(k): v for k, v in exc.failures.items()})

    if match is None:
        return _error(404, f"No content bound to {platform_name}:{platform_id}")
    return ResolveResponse(
        platform=platform_name,
        platformId=platform_id,
        chainId=match.chain_id,
        entry=match.entry.to_dict(),
    )


@router.get("/health", response_model=HealthResponse)
def health(request: Request) -> HealthResponse:
    return HealthResponse(status="ok", queue={"available": _manager(request).is_available()})
