import hashlib
import re
from pathlib import Path

CONTENT_HASH_PATTERN = re.compile(r"^0x[0-9a-fA-F]{64}$")

_CHUNK_SIZE = 1024 * 1024


def sha256_hex(data: bytes) -> str:
    """Return the 0x-prefixed sha256 digest of in-memory bytes."""
    return "0x" + hashlib.sha256(data).hexdigest()


def sha256_hex_file(path: Path) -> str:
    """Stream a file through sha256 without loading it fully into memory."""
    digest = hashlib.sha256()
    with path.open("rb") as fh:
        for chunk in iter(lambda: fh.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return "0x" + digest.hexdigest()


def is_content_hash(value: object) -> bool:
    return isinstance(value, str) and CONTENT_HASH_PATTERN.match(value) is not None


def normalize_content_hash(value: str) -> str:
    """Lowercase a 0x-prefixed 32-byte hex digest.

    Raises:
        ValueError: if the value is not 0x followed by 64 hex characters.
    """
    if not is_content_hash(value):
        raise ValueError(
            f"content hash must be 0x followed by 64 hex characters, got {value!r}"
        )
    return value.lower()
