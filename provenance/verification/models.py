from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from provenance.chain.models import RegistryEntry
from provenance.manifest.models import Manifest


class JobType(str, Enum):
    VERIFY = "verify"
    PROOF = "proof"


class VerdictStatus(str, Enum):
    OK = "OK"
    FAIL = "FAIL"


@dataclass(frozen=True)
class VerificationRequest:
    """Inputs for one verify or proof run.

    Exactly one of content_path or content_hash is normally set; a supplied
    content_hash skips hashing.
    """

    job_type: JobType
    manifest_uri: str
    content_path: Path | None = None
    content_hash: str | None = None
    registry_address: str | None = None
    chain_id: int | None = None
    original_filename: str | None = None


@dataclass(frozen=True)
class VerificationChecks:
    manifest_hash_ok: bool
    creator_ok: bool
    manifest_ok: bool

    @property
    def passed(self) -> bool:
        return self.manifest_hash_ok and self.creator_ok and self.manifest_ok

    @property
    def status(self) -> VerdictStatus:
        return VerdictStatus.OK if self.passed else VerdictStatus.FAIL

    def to_dict(self) -> dict[str, bool]:
        return {
            "manifestHashOk": self.manifest_hash_ok,
            "creatorOk": self.creator_ok,
            "manifestOk": self.manifest_ok,
        }


@dataclass(frozen=True)
class VerificationResult:
    file_hash: str
    recovered_signer: str
    onchain: RegistryEntry | None
    checks: VerificationChecks
    chain_id: int
    registry_address: str
    manifest: Manifest

    @property
    def status(self) -> VerdictStatus:
        return self.checks.status

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "fileHash": self.file_hash,
            "recoveredSigner": self.recovered_signer,
            "onchain": self.onchain.to_dict() if self.onchain is not None else None,
            "checks": self.checks.to_dict(),
            "chainId": self.chain_id,
            "registryAddress": self.registry_address,
        }
