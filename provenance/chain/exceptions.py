class RegistryError(Exception):
    """Base exception for registry contract errors that retrying cannot fix."""


class NotDeployedError(RegistryError):
    """Raised when no registry address is configured for a chain."""


class SignerNotConfiguredError(RegistryError):
    """Raised when a write is attempted without a signer private key."""


class RegistryUnavailableError(RegistryError):
    """Raised when a chain's RPC endpoint times out or cannot be reached."""


class CrossChainResolutionError(RegistryError):
    """Raised when every chain queried during a cross-chain lookup failed."""

    def __init__(self, failures: dict[int, str]) -> None:
        self.failures = dict(failures)
        detail = "; ".join(f"chain {cid}: {err}" for cid, err in self.failures.items())
        super().__init__(f"All chains failed during cross-chain resolution: {detail}")
