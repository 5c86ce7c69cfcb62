from collections.abc import Callable
from typing import Any, TypeVar

import requests
from eth_account import Account
from web3 import Web3
from web3.exceptions import (
    BadFunctionCallOutput,
    ContractLogicError,
    TimeExhausted,
    Web3RPCError,
)

from provenance.chain.abi import CONTENT_REGISTERED_SIGNATURE, REGISTRY_ABI
from provenance.chain.chains import ChainConfig
from provenance.chain.exceptions import RegistryError, RegistryUnavailableError
from provenance.chain.models import RegistryEntry
from provenance.manifest.hashing import normalize_content_hash

T = TypeVar("T")

ZERO_BYTES32 = b"\x00" * 32
LOG_LOOKBACK_BLOCKS = 1_000_000


def platform_key(platform: str, platform_id: str) -> bytes:
    """Binding key the registry stores platform bindings under."""
    return bytes(Web3.keccak(text=f"{platform.lower()}:{platform_id}"))


def _to_bytes32(content_hash: str) -> bytes:
    try:
        return bytes.fromhex(normalize_content_hash(content_hash)[2:])
    except ValueError as exc:
        raise RegistryError(str(exc)) from exc


class RegistryClient:
    """Typed access to one registry contract on one chain."""

    def __init__(
        self,
        *,
        chain: ChainConfig,
        address: str,
        rpc_url: str,
        timeout_seconds: float,
        web3: Web3 | None = None,
    ) -> None:
        self.chain = chain
        self._timeout = timeout_seconds
        self._web3 = web3 or Web3(
            Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout_seconds})
        )
        if not Web3.is_address(address):
            raise RegistryError(f"Invalid registry address {address!r} for chain {chain.chain_id}")
        self.address = Web3.to_checksum_address(address)
        self._contract = self._web3.eth.contract(address=self.address, abi=REGISTRY_ABI)

    def get_entry(self, content_hash: str) -> RegistryEntry | None:
        """Read entries[content_hash]; None when the timestamp is zero."""
        key = _to_bytes32(content_hash)
        creator, stored_hash, manifest_uri, timestamp = self._call(
            "entries", lambda: self._contract.functions.entries(key).call()
        )
        if int(timestamp) == 0:
            return None
        return RegistryEntry(
            creator=creator,
            content_hash=Web3.to_hex(stored_hash),
            manifest_uri=manifest_uri,
            timestamp=int(timestamp),
        )

    def get_hash_by_platform(self, platform: str, platform_id: str) -> str | None:
        key = platform_key(platform, platform_id)
        raw = self._call(
            "platformKeyToHash",
            lambda: self._contract.functions.platformKeyToHash(key).call(),
        )
        if bytes(raw) == ZERO_BYTES32:
            return None
        return Web3.to_hex(raw)

    def register(self, content_hash: str, manifest_uri: str, private_key: str) -> str:
        function = self._contract.functions.register(_to_bytes32(content_hash), manifest_uri)
        return self._transact("register", function, private_key)

    def bind_platform(
        self, content_hash: str, platform: str, platform_id: str, private_key: str
    ) -> str:
        function = self._contract.functions.bindPlatform(
            _to_bytes32(content_hash), platform.lower(), platform_id
        )
        return self._transact("bindPlatform", function, private_key)

    def find_registration_tx(self, content_hash: str, from_block: int | None = None) -> str | None:
        """Return the latest ContentRegistered tx hash for content_hash, if any."""
        if from_block is None:
            latest = self._call("blockNumber", lambda: self._web3.eth.block_number)
            from_block = max(0, latest - LOG_LOOKBACK_BLOCKS)
        topic0 = Web3.to_hex(Web3.keccak(text=CONTENT_REGISTERED_SIGNATURE))
        logs = self._call(
            "getLogs",
            lambda: self._web3.eth.get_logs(
                {
                    "address": self.address,
                    "fromBlock": from_block,
                    "toBlock": "latest",
                    "topics": [topic0, normalize_content_hash(content_hash)],
                }
            ),
        )
        if not logs:
            return None
        return Web3.to_hex(logs[-1]["transactionHash"])

    def _transact(self, name: str, function: Any, private_key: str) -> str:
        account = Account.from_key(private_key)

        def send() -> str:
            tx = function.build_transaction(
                {
                    "from": account.address,
                    "nonce": self._web3.eth.get_transaction_count(account.address),
                    "chainId": self.chain.chain_id,
                }
            )
            signed = account.sign_transaction(tx)
            tx_hash = self._web3.eth.send_raw_transaction(signed.raw_transaction)
            receipt = self._web3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._timeout * 6
            )
            if receipt["status"] != 1:
                raise RegistryError(f"{name} transaction {Web3.to_hex(tx_hash)} reverted")
            return Web3.to_hex(tx_hash)

        return self._call(name, send)

    def _call(self, name: str, fn: Callable[[], T]) -> T:
        chain_id = self.chain.chain_id
        try:
            return fn()
        except (ContractLogicError, BadFunctionCallOutput) as exc:
            raise RegistryError(f"{name} failed on chain {chain_id}: {exc}") from exc
        except (requests.exceptions.Timeout, requests.exceptions.ConnectionError, TimeExhausted) as exc:
            raise RegistryUnavailableError(
                f"RPC unavailable on chain {chain_id} during {name}: {exc}"
            ) from exc
        except requests.exceptions.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            if status is None or status >= 500 or status == 429:
                raise RegistryUnavailableError(
                    f"RPC HTTP {status} on chain {chain_id} during {name}"
                ) from exc
            raise RegistryError(f"RPC HTTP {status} on chain {chain_id} during {name}") from exc
        except Web3RPCError as exc:
            raise RegistryUnavailableError(
                f"RPC error on chain {chain_id} during {name}: {exc}"
            ) from exc
