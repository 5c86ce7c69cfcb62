"""Portable proof bundles and their offline re-verification.

A bundle carries the manifest exactly as fetched plus the on-chain entry
snapshot, so the verdict can be re-derived without network access.
"""

from datetime import datetime
from typing import Any

from provenance.chain.chains import ChainConfig, explorer_tx_url
from provenance.manifest.hashing import sha256_hex
from provenance.manifest.models import Manifest
from provenance.signing.exceptions import SignatureFormatError
from provenance.signing.verifier import SignatureVerifier
from provenance.verification.models import VerificationChecks, VerificationResult

PROOF_VERSION = "1.0"


def build_proof_bundle(
    result: VerificationResult,
    *,
    manifest_uri: str,
    chain: ChainConfig,
    original_filename: str | None,
    tx_hash: str | None,
    generated_at: datetime,
) -> dict[str, Any]:
    tx: dict[str, Any] | None = None
    if tx_hash is not None:
        tx = {"txHash": tx_hash, "explorerUrl": explorer_tx_url(chain.chain_id, tx_hash)}
    return {
        "version": PROOF_VERSION,
        "generatedAt": generated_at.isoformat(),
        "network": {"chainId": chain.chain_id, "name": chain.name},
        "registry": result.registry_address,
        "content": {"file": original_filename or "unknown", "hash": result.file_hash},
        "manifest": {"uri": manifest_uri, "document": result.manifest.document},
        "signature": {
            "value": result.manifest.signature,
            "recovered": result.recovered_signer,
            "valid": result.checks.creator_ok,
        },
        "onchain": result.onchain.to_dict() if result.onchain is not None else None,
        "tx": tx,
        "verification": {**result.checks.to_dict(), "status": result.status.value},
    }


def verify_proof_bundle(
    bundle: dict[str, Any],
    verifier: SignatureVerifier,
    content: bytes | None = None,
) -> VerificationChecks:
    """Re-derive the three checks from a bundle alone.

    When content bytes are given they are re-hashed and must match the
    manifest; otherwise the bundle's recorded hash is trusted.

    Raises:
        ManifestFormatError: if the embedded manifest is malformed.
    """
    manifest = Manifest.from_dict(bundle["manifest"]["document"])
    file_hash = sha256_hex(content) if content is not None else str(bundle["content"]["hash"]).lower()

    manifest_hash_ok = manifest.content_hash.lower() == file_hash
    try:
        recovered = verifier.recover(manifest.content_hash, manifest.signature)
        creator_ok = verifier.same_identity(recovered, manifest.creator_address)
    except SignatureFormatError:
        creator_ok = False

    onchain = bundle.get("onchain")
    manifest_ok = (
        onchain is not None
        and onchain.get("contentHash", "").lower() == file_hash
        and verifier.same_identity(onchain.get("creator"), manifest.creator_address)
        and onchain.get("manifestURI") == bundle["manifest"]["uri"]
    )
    return VerificationChecks(
        manifest_hash_ok=manifest_hash_ok,
        creator_ok=creator_ok,
        manifest_ok=manifest_ok,
    )
