import argparse
import json
import sys
import threading
from pathlib import Path

import uvicorn

from provenance.api.app import create_app
from provenance.chain.resolver import RegistryResolver, build_resolver
from provenance.config.settings import Settings
from provenance.database.connection import close_pool, init_pool
from provenance.database.repositories.job_repository import JobRepository
from provenance.jobs.queue_manager import QueueManager
from provenance.logging.logger import Log
from provenance.manifest.builder import build_manifest_for_file
from provenance.manifest.fetcher import ManifestFetcher
from provenance.manifest.hashing import normalize_content_hash
from provenance.queue.base import BaseQueueTransport
from provenance.queue.factory import QueueTransportFactory
from provenance.signing.verifier import SignatureVerifier
from provenance.verification.engine import VerificationEngine
from provenance.verification.proof import verify_proof_bundle
from provenance.worker.job_runner import JobRunner
from provenance.worker.pool import WorkerPool
from provenance.worker.retry import RetryPolicy
from provenance.worker.worker import Worker


def build_engine(settings: Settings, resolver: RegistryResolver) -> VerificationEngine:
    fetcher = ManifestFetcher(
        timeout_seconds=settings.manifest_fetch_timeout_seconds,
        ipfs_gateway_url=settings.ipfs_gateway_url,
    )
    return VerificationEngine(fetcher, SignatureVerifier(), resolver)


def build_worker_pool(
    settings: Settings,
    engine: VerificationEngine,
    job_repo: JobRepository,
    transport: BaseQueueTransport,
) -> WorkerPool:
    runner = JobRunner(
        engine,
        job_repo,
        transport,
        RetryPolicy.from_settings(settings),
        settings.job_timeout_seconds,
    )

    def worker_factory(stop_event: threading.Event) -> Worker:
        return Worker(transport, runner, settings, stop_event)

    return WorkerPool(worker_factory, settings.worker_concurrency)


def run_worker(settings: Settings) -> int:
    """Pool -> engine -> worker threads, until interrupted."""
    transport = QueueTransportFactory.create(settings)
    if transport is None:
        Log.error("The worker needs a queue backend; set QUEUE_BACKEND and REDIS_URL")
        return 1
    if settings.queue_backend == "memory":
        Log.warning("In-memory queue is process local; use the api command to share it")

    resolver = build_resolver(settings)
    engine = build_engine(settings, resolver)
    try:
        build_worker_pool(settings, engine, JobRepository(), transport).run_forever()
    finally:
        transport.close()
    return 0


def run_api(settings: Settings, with_workers: bool) -> int:
    """Serve the HTTP API. Workers run in-process when requested or when the
    queue lives in memory."""
    transport = QueueTransportFactory.create(settings)
    resolver = build_resolver(settings)
    engine = build_engine(settings, resolver)
    job_repo = JobRepository()
    manager = QueueManager(job_repo, engine, transport)

    pool: WorkerPool | None = None
    if transport is not None and (with_workers or settings.queue_backend == "memory"):
        pool = build_worker_pool(settings, engine, job_repo, transport)
        pool.start()

    try:
        app = create_app(manager, resolver, settings)
        uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_level=settings.log_level.lower())
    finally:
        if pool is not None:
            pool.stop(settings.job_timeout_seconds)
        manager.close()
    return 0


def run_register(settings: Settings, args: argparse.Namespace) -> int:
    resolver = build_resolver(settings)
    content_hash = normalize_content_hash(args.content_hash)
    tx_hash = resolver.register(args.chain_id or resolver.default_chain_id, content_hash, args.manifest_uri)
    print(tx_hash)
    return 0


def run_bind(settings: Settings, args: argparse.Namespace) -> int:
    resolver = build_resolver(settings)
    content_hash = normalize_content_hash(args.content_hash)
    tx_hash = resolver.bind_platform(
        args.chain_id or resolver.default_chain_id, content_hash, args.platform.lower(), args.platform_id
    )
    print(tx_hash)
    return 0


def run_manifest(settings: Settings, args: argparse.Namespace) -> int:
    if not settings.signer_private_key:
        Log.error("SIGNER_PRIVATE_KEY is required to sign a manifest")
        return 1
    manifest = build_manifest_for_file(
        Path(args.file),
        settings.signer_private_key,
        chain_id=args.chain_id or settings.default_chain_id,
        content_uri=args.content_uri,
    )
    print(json.dumps(manifest, indent=2))
    return 0


def run_verify_proof(args: argparse.Namespace) -> int:
    bundle = json.loads(Path(args.bundle).read_text(encoding="utf-8"))
    content = Path(args.file).read_bytes() if args.file else None
    checks = verify_proof_bundle(bundle, SignatureVerifier(), content)
    print(json.dumps({**checks.to_dict(), "status": checks.status.value}, indent=2))
    return 0 if checks.passed else 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="provenance")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("worker", help="Run the verification worker pool")
    api = commands.add_parser("api", help="Serve the HTTP API")
    api.add_argument("--with-workers", action="store_true", help="Also run workers in-process")
    commands.add_parser("init-db", help="Create the verification_jobs table")

    register = commands.add_parser("register", help="Register a content hash on-chain")
    register.add_argument("content_hash")
    register.add_argument("manifest_uri")
    register.add_argument("--chain-id", type=int)

    bind = commands.add_parser("bind", help="Bind a platform ID to a registered hash")
    bind.add_argument("content_hash")
    bind.add_argument("platform")
    bind.add_argument("platform_id")
    bind.add_argument("--chain-id", type=int)

    manifest = commands.add_parser("manifest", help="Print a signed manifest for a file")
    manifest.add_argument("file")
    manifest.add_argument("--content-uri")
    manifest.add_argument("--chain-id", type=int)

    verify_proof = commands.add_parser("verify-proof", help="Re-check a proof bundle offline")
    verify_proof.add_argument("bundle")
    verify_proof.add_argument("--file", help="Original content to re-hash")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point: load settings -> initialize pool when needed -> dispatch."""
    args = build_parser().parse_args(argv)
    settings = Settings()
    Log.configure(settings.log_level)

    if args.command == "register":
        return run_register(settings, args)
    if args.command == "bind":
        return run_bind(settings, args)
    if args.command == "manifest":
        return run_manifest(settings, args)
    if args.command == "verify-proof":
        return run_verify_proof(args)

    init_pool(settings)
    try:
        if args.command == "init-db":
            JobRepository().ensure_schema()
            Log.info("verification_jobs schema is ready")
            return 0
        if args.command == "worker":
            return run_worker(settings)
        return run_api(settings, args.with_workers)
    finally:
        close_pool()


if __name__ == "__main__":
    sys.exit(main())
