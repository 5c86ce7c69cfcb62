from enum import Enum

from provenance.chain.exceptions import RegistryError, RegistryUnavailableError
from provenance.manifest.exceptions import ManifestError, ManifestNetworkError
from provenance.signing.exceptions import SignatureFormatError


class VerificationInputError(Exception):
    """Raised when a job's own inputs are unusable (missing content, bad hash)."""


class JobTimeoutError(Exception):
    """Raised when a job attempt exceeds its overall time budget."""


class ErrorKind(str, Enum):
    TRANSIENT = "transient"
    PERMANENT = "permanent"


TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    ManifestNetworkError,
    RegistryUnavailableError,
    JobTimeoutError,
)

PERMANENT_ERRORS: tuple[type[BaseException], ...] = (
    ManifestError,
    SignatureFormatError,
    RegistryError,
    VerificationInputError,
)


def classify_error(exc: BaseException) -> ErrorKind:
    """Decide whether retrying a failed attempt could succeed.

    Transient subclasses are checked before their permanent bases. Anything
    unrecognized counts as transient and stays bounded by max attempts.
    """
    if isinstance(exc, TRANSIENT_ERRORS):
        return ErrorKind.TRANSIENT
    if isinstance(exc, PERMANENT_ERRORS):
        return ErrorKind.PERMANENT
    return ErrorKind.TRANSIENT
