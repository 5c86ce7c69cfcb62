class ManifestError(Exception):
    """Base exception for manifest retrieval and validation errors."""


class UnsupportedManifestUriError(ManifestError):
    """Raised when a manifest URI uses a scheme other than ipfs/http/https."""


class ManifestFormatError(ManifestError):
    """Raised when a manifest is not valid JSON or misses required fields."""


class ManifestNetworkError(ManifestError):
    """Raised when the manifest cannot be fetched due to network/server issues."""
