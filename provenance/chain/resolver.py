import threading
from collections.abc import Callable, Sequence
from dataclasses import replace

from provenance.chain.chains import ChainConfig, get_chain_by_id
from provenance.chain.client import RegistryClient
from provenance.chain.exceptions import (
    CrossChainResolutionError,
    NotDeployedError,
    RegistryError,
    SignerNotConfiguredError,
)
from provenance.chain.models import CrossChainMatch, RegistryEntry
from provenance.chain.platforms import Recognized, parse_platform_url
from provenance.config.settings import Settings
from provenance.logging.logger import Log

ClientFactory = Callable[[ChainConfig, str], RegistryClient]


class RegistryResolver:
    """Selects the registry contract for a chain and exposes typed reads/writes.

    Chains are consulted in configuration order, so cross-chain lookups are
    stable across calls.
    """

    def __init__(
        self,
        *,
        chains: Sequence[ChainConfig],
        addresses: dict[int, str],
        default_chain_id: int,
        client_factory: ClientFactory,
        signer_private_key: str = "",
        start_block: int | None = None,
    ) -> None:
        self._chains = list(chains)
        self._addresses = dict(addresses)
        self._default_chain_id = default_chain_id
        self._client_factory = client_factory
        self._signer_private_key = signer_private_key
        self._start_block = start_block
        self._clients: dict[tuple[int, str], RegistryClient] = {}
        self._lock = threading.Lock()

    @property
    def default_chain_id(self) -> int:
        return self._default_chain_id

    @property
    def chain_ids(self) -> list[int]:
        return [chain.chain_id for chain in self._chains]

    def chain(self, chain_id: int) -> ChainConfig:
        for chain in self._chains:
            if chain.chain_id == chain_id:
                return chain
        known = get_chain_by_id(chain_id)
        if known is None:
            raise NotDeployedError(f"Chain {chain_id} is not supported")
        return known

    def resolve_default(self) -> tuple[str, int]:
        """Return (registry address, chain id) for the configured default chain."""
        chain_id = self._default_chain_id
        return self.get_address(chain_id), chain_id

    def get_address(self, chain_id: int) -> str:
        address = self._addresses.get(chain_id)
        if not address:
            raise NotDeployedError(f"No registry contract recorded for chain {chain_id}")
        return address

    def client(self, chain_id: int, registry_address: str | None = None) -> RegistryClient:
        address = registry_address or self.get_address(chain_id)
        key = (chain_id, address.lower())
        with self._lock:
            client = self._clients.get(key)
            if client is None:
                client = self._client_factory(self.chain(chain_id), address)
                self._clients[key] = client
        return client

    def read_entry(
        self, chain_id: int, content_hash: str, registry_address: str | None = None
    ) -> RegistryEntry | None:
        return self.client(chain_id, registry_address).get_entry(content_hash)

    def resolve_by_platform(
        self, chain_id: int, platform: str, platform_id: str
    ) -> RegistryEntry | None:
        client = self.client(chain_id)
        content_hash = client.get_hash_by_platform(platform, platform_id)
        if content_hash is None:
            return None
        return client.get_entry(content_hash)

    def resolve_by_platform_cross_chain(
        self, platform: str, platform_id: str
    ) -> CrossChainMatch | None:
        """Search every deployed chain in order; first binding wins.

        A failing chain is recorded and skipped. Raises
        CrossChainResolutionError only when every queried chain failed.
        """
        failures: dict[int, str] = {}
        queried = 0
        for chain in self._chains:
            if chain.chain_id not in self._addresses:
                continue
            queried += 1
            try:
                entry = self.resolve_by_platform(chain.chain_id, platform, platform_id)
            except RegistryError as exc:
                failures[chain.chain_id] = str(exc)
                Log.warning(
                    f"Platform lookup {platform}:{platform_id} failed on chain "
                    f"{chain.chain_id}, continuing: {exc}"
                )
                continue
            if entry is not None:
                return CrossChainMatch(entry=entry, chain_id=chain.chain_id)

        if queried and len(failures) == queried:
            raise CrossChainResolutionError(failures)
        return None

    def resolve_url_cross_chain(self, url: str) -> tuple[Recognized, CrossChainMatch | None] | None:
        """Parse a platform URL and resolve it across chains.

        Returns None when the URL is not a recognized platform URL.
        """
        parsed = parse_platform_url(url)
        if not isinstance(parsed, Recognized):
            Log.debug(f"Unrecognized platform URL {url}: {parsed.reason}")
            return None
        return parsed, self.resolve_by_platform_cross_chain(
            parsed.platform.value, parsed.platform_id
        )

    def register(self, chain_id: int, content_hash: str, manifest_uri: str) -> str:
        tx_hash = self.client(chain_id).register(content_hash, manifest_uri, self._signer())
        Log.info(f"Registered {content_hash} on chain {chain_id} in tx {tx_hash}")
        return tx_hash

    def bind_platform(
        self, chain_id: int, content_hash: str, platform: str, platform_id: str
    ) -> str:
        tx_hash = self.client(chain_id).bind_platform(
            content_hash, platform, platform_id, self._signer()
        )
        Log.info(f"Bound {platform}:{platform_id} to {content_hash} on chain {chain_id}")
        return tx_hash

    def find_registration_tx(
        self, chain_id: int, content_hash: str, registry_address: str | None = None
    ) -> str | None:
        """Best effort: any lookup failure yields None."""
        try:
            return self.client(chain_id, registry_address).find_registration_tx(
                content_hash, self._start_block
            )
        except RegistryError as exc:
            Log.debug(f"Registration tx lookup failed on chain {chain_id}: {exc}")
            return None

    def _signer(self) -> str:
        if not self._signer_private_key:
            raise SignerNotConfiguredError("SIGNER_PRIVATE_KEY is required for registry writes")
        return self._signer_private_key


def build_resolver(settings: Settings) -> RegistryResolver:
    """Build a RegistryResolver from configured chains, addresses and RPC URLs."""
    chains: list[ChainConfig] = []
    for chain_id in settings.chain_ids:
        chain = get_chain_by_id(chain_id)
        override = settings.rpc_urls.get(chain_id)
        if chain is None:
            if not override:
                raise ValueError(f"Chain {chain_id} is not built in; set an RPC URL for it")
            chain = ChainConfig(chain_id, f"chain-{chain_id}", f"Chain {chain_id}", override, "", True)
        elif override:
            chain = replace(chain, rpc_url=override)
        chains.append(chain)

    def client_factory(chain: ChainConfig, address: str) -> RegistryClient:
        return RegistryClient(
            chain=chain,
            address=address,
            rpc_url=settings.rpc_urls.get(chain.chain_id) or chain.rpc_url,
            timeout_seconds=settings.rpc_timeout_seconds,
        )

    return RegistryResolver(
        chains=chains,
        addresses=settings.registry_addresses,
        default_chain_id=settings.default_chain_id,
        client_factory=client_factory,
        signer_private_key=settings.signer_private_key,
        start_block=settings.registry_start_block,
    )
