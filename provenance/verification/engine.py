from datetime import datetime, timezone
from typing import Any, Protocol

from provenance.chain.resolver import RegistryResolver
from provenance.logging.logger import Log
from provenance.manifest.fetcher import ManifestFetcher
from provenance.manifest.hashing import normalize_content_hash, sha256_hex_file
from provenance.signing.verifier import SignatureVerifier
from provenance.verification.exceptions import VerificationInputError
from provenance.verification.models import (
    JobType,
    VerificationChecks,
    VerificationRequest,
    VerificationResult,
)
from provenance.verification.proof import build_proof_bundle

PROGRESS_HASHED = 10
PROGRESS_MANIFEST_FETCHED = 30
PROGRESS_SIGNATURE_CHECKED = 50
PROGRESS_CHAIN_READ = 70
PROGRESS_PROOF_PACKAGED = 85


class ProgressListener(Protocol):
    def checkpoint(self) -> None:
        """Called before each external call; may raise to abort the run."""
        ...

    def on_hashed(self, content_hash: str) -> None: ...

    def on_progress(self, progress: int) -> None: ...


class NullProgressListener:
    def checkpoint(self) -> None:
        return None

    def on_hashed(self, content_hash: str) -> None:
        return None

    def on_progress(self, progress: int) -> None:
        return None


class VerificationEngine:
    """Runs the verify and proof algorithms.

    verify: hash -> fetch manifest -> recover signer -> read chain -> checks.
    The engine never writes job state; progress milestones go to the
    listener supplied by the caller.
    """

    def __init__(
        self,
        fetcher: ManifestFetcher,
        signature_verifier: SignatureVerifier,
        resolver: RegistryResolver,
    ) -> None:
        self._fetcher = fetcher
        self._signature_verifier = signature_verifier
        self._resolver = resolver

    def run(
        self, request: VerificationRequest, listener: ProgressListener | None = None
    ) -> dict[str, Any]:
        """Run the algorithm for request.job_type and return a JSON-ready payload."""
        if request.job_type is JobType.PROOF:
            return self.prove(request, listener)
        return self.verify(request, listener).to_dict()

    def verify(
        self, request: VerificationRequest, listener: ProgressListener | None = None
    ) -> VerificationResult:
        listener = listener or NullProgressListener()
        verifier = self._signature_verifier

        # Step 1: Hash content
        file_hash = self._content_hash(request)
        listener.on_hashed(file_hash)
        listener.on_progress(PROGRESS_HASHED)

        # Step 2: Fetch manifest
        listener.checkpoint()
        manifest = self._fetcher.fetch(request.manifest_uri)
        listener.on_progress(PROGRESS_MANIFEST_FETCHED)

        # Step 3-4: Hash match and signer recovery
        manifest_hash_ok = manifest.content_hash.lower() == file_hash
        recovered = verifier.recover(manifest.content_hash, manifest.signature)
        creator_ok = verifier.same_identity(recovered, manifest.creator_address)
        listener.on_progress(PROGRESS_SIGNATURE_CHECKED)

        # Step 5-6: Registry entry
        chain_id = request.chain_id or self._resolver.default_chain_id
        registry_address = request.registry_address or self._resolver.get_address(chain_id)
        listener.checkpoint()
        entry =self._resolver.read_entry(chain_id, file_hash, registry_address)
        manifest_ok = (
            entry is not None
            and verifier.same_identity(entry.creator, manifest.creator_address)
            and entry.manifest_uri == request.manifest_uri
        )
        listener.on_progress(PROGRESS_CHAIN_READ)

        checks = VerificationChecks(
            manifest_hash_ok=manifest_hash_ok,
            creator_ok=creator_ok,
            manifest_ok=manifest_ok,
        )
        Log.info(
            f"Verified {file_hash} against {request.manifest_uri} on chain {chain_id}: "
            f"{checks.status.value} {checks.to_dict()}"
        )
        return VerificationResult(
            file_hash=file_hash,
            recovered_signer=recovered,
            onchain=entry,
            checks=checks,
            chain_id=chain_id,
            registry_address=registry_address,
            manifest=manifest,
        )

    def prove(
        self, request: VerificationRequest, listener: ProgressListener | None = None
    ) -> dict[str, Any]:
        """Run verify and package a self-contained proof bundle."""
        listener = listener or NullProgressListener()
        result = self.verify(request, listener)
        listener.checkpoint()
        tx_hash =self._resolver.find_registration_tx(
            result.chain_id, result.file_hash, result.registry_address
        )
        bundle = build_proof_bundle(
            result,
            manifest_uri=request.manifest_uri,
            chain=self._resolver.chain(result.chain_id),
            original_filename=request.original_filename,
            tx_hash=tx_hash,
            generated_at=datetime.now(timezone.utc),
        )
        listener.on_progress(PROGRESS_PROOF_PACKAGED)
        return bundle

    def _content_hash(self, request: VerificationRequest) -> str:
        if request.content_hash is not None:
            try:
                return normalize_content_hash(request.content_hash)
            except ValueError as exc:
                raise VerificationInputError(str(exc)) from exc
        if request.content_path is None:
            raise VerificationInputError("Either content bytes or a content hash is required")
        if not request.content_path.is_file():
            raise VerificationInputError(f"Content file {request.content_path} is missing")
        return sha256_hex_file(request.content_path)
