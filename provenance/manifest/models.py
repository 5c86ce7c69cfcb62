from dataclasses import dataclass, field
from typing import Any

from provenance.manifest.exceptions import ManifestFormatError
from provenance.manifest.hashing import is_content_hash

DID_PKH_PREFIX = "did:pkh:eip155:"


@dataclass(frozen=True)
class Manifest:
    """Signed manifest binding a content hash to a creator identity.

    The source document is untrusted; construct instances through from_dict.
    """

    content_hash: str
    creator: str
    signature: str
    timestamp: str | int
    metadata: dict[str, Any] = field(default_factory=dict)
    document: dict[str, Any] = field(default_factory=dict)

    @property
    def creator_address(self) -> str:
        """The address part of the creator identity, lowercased.

        Accepts a bare address or a did:pkh:eip155:<chain>:<address> DID.
        """
        creator = self.creator
        if creator.lower().startswith(DID_PKH_PREFIX):
            creator = creator.rsplit(":", 1)[-1]
        return creator.lower()

    @classmethod
    def from_dict(cls, data: object) -> "Manifest":
        """Validate a parsed manifest document.

        Raises:
            ManifestFormatError: naming the first field that fails validation.
        """
        if not isinstance(data, dict):
            raise ManifestFormatError("manifest must be a JSON object")

        content_hash = data.get("content_hash")
        if content_hash is None:
            raise ManifestFormatError("manifest is missing 'content_hash'")
        if not is_content_hash(content_hash):
            raise ManifestFormatError(
                "manifest 'content_hash' must be 0x followed by 64 hex characters"
            )

        creator = data.get("creator") or data.get("creator_did")
        if not isinstance(creator, str) or not creator.strip():
            raise ManifestFormatError("manifest is missing 'creator'")

        signature = data.get("signature")
        if not isinstance(signature, str) or not signature.strip():
            raise ManifestFormatError("manifest is missing 'signature'")

        timestamp = data.get("timestamp", data.get("created_at"))
        if timestamp is None or isinstance(timestamp, bool):
            raise ManifestFormatError("manifest is missing 'timestamp'")
        if not isinstance(timestamp, (str, int)):
            raise ManifestFormatError("manifest 'timestamp' must be a string or integer")

        known = {"content_hash", "creator", "creator_did", "signature", "timestamp", "created_at"}
        metadata = {k: v for k, v in data.items() if k not in known}
        return cls(
            content_hash=content_hash,
            creator=creator.strip(),
            signature=signature.strip(),
            timestamp=timestamp,
            metadata=metadata,
            document=dict(data),
        )
