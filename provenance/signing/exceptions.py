class SignatureFormatError(Exception):
    """Raised when a signature is malformed or no signer can be recovered from it."""
