import re

from eth_account import Account
from eth_account.messages import SignableMessage, encode_defunct

from provenance.manifest.hashing import is_content_hash
from provenance.signing.exceptions import SignatureFormatError

SIGNATURE_PATTERN = re.compile(r"^0x[0-9a-fA-F]{130}$")


def signing_message(content_hash: str) -> SignableMessage:
    """EIP-191 personal message whose payload is the 32 raw digest bytes."""
    if not is_content_hash(content_hash):
        raise SignatureFormatError(
            f"cannot sign or recover over malformed content hash {content_hash!r}"
        )
    return encode_defunct(primitive=bytes.fromhex(content_hash[2:]))


def sign_content_hash(private_key: str, content_hash: str) -> str:
    """Sign a content hash the way creators sign manifests; returns 0x hex."""
    signed = Account.sign_message(signing_message(content_hash), private_key=private_key)
    return "0x" + bytes(signed.signature).hex()


class SignatureVerifier:
    """Recovers signer addresses from manifest signatures."""

    def recover(self, content_hash: str, signature: str) -> str:
        """Return the checksummed address that signed content_hash.

        Raises:
            SignatureFormatError: if the hash or signature is malformed, or
                recovery fails (bad v/r/s values).
        """
        if not SIGNATURE_PATTERN.match(signature):
            raise SignatureFormatError(
                "signature must be 0x followed by 130 hex characters (65 bytes)"
            )
        message = signing_message(content_hash)
        try:
            return Account.recover_message(message, signature=signature)
        except Exception as exc:  # eth-keys raises several unrelated types here
            raise SignatureFormatError(f"could not recover signer: {exc}") from exc

    @staticmethod
    def same_identity(left: str | None, right: str | None) -> bool:
        """Case-insensitive address comparison; empty values never match."""
        if not left or not right:
            return False
        return left.strip().lower() == right.strip().lower()
