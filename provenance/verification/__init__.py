from provenance.verification.engine import VerificationEngine
from provenance.verification.exceptions import ErrorKind, classify_error
from provenance.verification.models import JobType, VerificationRequest, VerificationResult
from provenance.verification.proof import verify_proof_bundle

__all__ = [
    "ErrorKind",
    "JobType",
    "VerificationEngine",
    "VerificationRequest",
    "VerificationResult",
    "classify_error",
    "verify_proof_bundle",
]
