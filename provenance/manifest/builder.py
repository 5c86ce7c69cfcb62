from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from eth_account import Account

from provenance.manifest.hashing import sha256_hex_file
from provenance.signing.verifier import sign_content_hash


def build_manifest(
    content_hash: str,
    private_key: str,
    *,
    chain_id: int,
    content_uri: str | None = None,
    timestamp: str | None = None,
) -> dict[str, Any]:
    """Build a signed manifest document for a content hash.

    The creator field carries the plain address; creator_did carries the
    did:pkh form for consumers that expect a DID.
    """
    address = Account.from_key(private_key).address
    manifest: dict[str, Any] = {
        "version": "1.0",
        "algorithm": "sha256",
        "content_hash": content_hash,
        "creator": address,
        "creator_did": f"did:pkh:eip155:{chain_id}:{address}",
        "timestamp": timestamp or datetime.now(timezone.utc).isoformat(),
        "signature": sign_content_hash(private_key, content_hash),
        "attestations": [],
    }
    if content_uri is not None:
        manifest["content_uri"] = content_uri
    return manifest


def build_manifest_for_file(
    path: Path, private_key: str, *, chain_id: int, content_uri: str | None = None
) -> dict[str, Any]:
    return build_manifest(
        sha256_hex_file(path), private_key, chain_id=chain_id, content_uri=content_uri
    )
