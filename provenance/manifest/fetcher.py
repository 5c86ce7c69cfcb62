import json

import httpx

from provenance.logging.logger import Log
from provenance.manifest.exceptions import (
    ManifestError,
    ManifestFormatError,
    ManifestNetworkError,
    UnsupportedManifestUriError,
)
from provenance.manifest.models import Manifest

IPFS_SCHEME = "ipfs://"
HTTP_SCHEMES = ("http://", "https://")


def is_supported_manifest_uri(uri: str) -> bool:
    return uri.startswith(IPFS_SCHEME) or uri.startswith(HTTP_SCHEMES)


class ManifestFetcher:
    """Retrieves manifest documents from IPFS (via an HTTP gateway) or HTTP(S)."""

    def __init__(
        self,
        *,
        timeout_seconds: float,
        ipfs_gateway_url: str = "https://ipfs.io/ipfs/",
        client: httpx.Client | None = None,
    ) -> None:
        self._gateway = ipfs_gateway_url if ipfs_gateway_url.endswith("/") else ipfs_gateway_url + "/"
        self._client = client or httpx.Client(timeout=timeout_seconds, follow_redirects=True)

    def resolve_url(self, uri: str) -> str:
        """Map a manifest URI to the HTTP(S) URL it is fetched from.

        Raises:
            UnsupportedManifestUriError: for any scheme other than ipfs/http/https.
        """
        if uri.startswith(IPFS_SCHEME):
            path = uri[len(IPFS_SCHEME):].lstrip("/")
            if not path:
                raise UnsupportedManifestUriError(f"IPFS URI has no CID: {uri!r}")
            return self._gateway + path
        if uri.startswith(HTTP_SCHEMES):
            return uri
        raise UnsupportedManifestUriError(f"Unsupported manifest URI scheme: {uri!r}")

    def fetch(self, uri: str) -> Manifest:
        """Fetch, parse and validate a manifest.

        Raises:
            UnsupportedManifestUriError: unsupported scheme (permanent).
            ManifestNetworkError: timeout, connection failure, 429 or 5xx (transient).
            ManifestError: other 4xx responses (permanent).
            ManifestFormatError: body is not JSON or fails validation (permanent).
        """
        url = self.resolve_url(uri)
        Log.debug(f"Fetching manifest {uri} from {url}")
        try:
            response = self._client.get(url)
        except httpx.TimeoutException as exc:
            raise ManifestNetworkError(f"Timed out fetching manifest {uri}: {exc}") from exc
        except httpx.TransportError as exc:
            raise ManifestNetworkError(f"Network error fetching manifest {uri}: {exc}") from exc

        status = response.status_code
        if status >= 500 or status == 429:
            raise ManifestNetworkError(f"HTTP {status} for {url}")
        if status >= 400:
            raise ManifestError(f"HTTP {status} for {url}")

        try:
            data = json.loads(response.content.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ManifestFormatError(f"Manifest at {uri} is not valid JSON: {exc}") from exc

        return Manifest.from_dict(data)

    def close(self) -> None:
        self._client.close()
