from unittest.mock import MagicMock

import pytest
import requests
from web3 import Web3
from web3.exceptions import ContractLogicError, Web3RPCError

from provenance.chain.chains import get_chain_by_id
from provenance.chain.client import RegistryClient, platform_key
from provenance.chain.exceptions import RegistryError, RegistryUnavailableError

CONTENT_HASH = "0x" + "ab" * 32
CREATOR = Web3.to_checksum_address("0x" + "12" * 20)


def _client(address: str = "0x" + "cd" * 20) -> tuple[RegistryClient, MagicMock, MagicMock]:
    web3 = MagicMock()
    contract = web3.eth.contract.return_value
    chain = get_chain_by_id(84532)
    assert chain is not None
    client = RegistryClient(
        chain=chain, address=address, rpc_url="http://rpc.test", timeout_seconds=5, web3=web3
    )
    return client, web3, contract


class TestPlatformKey:
    def test_is_keccak_of_lowercased_platform_and_id(self) -> None:
        assert platform_key("YouTube", "abc") == bytes(Web3.keccak(text="youtube:abc"))

    def test_id_is_case_sensitive(self) -> None:
        assert platform_key("youtube", "abc") != platform_key("youtube", "ABC")


class TestConstruction:
    def test_rejects_invalid_address(self) -> None:
        with pytest.raises(RegistryError, match="Invalid registry address"):
            _client(address="0x1234")

    def test_checksums_address(self) -> None:
        client, _web3, _contract = _client(address="0x" + "cd" * 20)
        assert client.address == Web3.to_checksum_address("0x" + "cd" * 20)


class TestGetEntry:
    def test_returns_entry(self) -> None:
        client, _web3, contract = _client()
        contract.functions.entries.return_value.call.return_value = (
            CREATOR,
            bytes.fromhex("ab" * 32),
            "ipfs://bafy",
            1700000000,
        )

        entry = client.get_entry(CONTENT_HASH)

        assert entry is not None
        assert entry.creator == CREATOR
        assert entry.content_hash == CONTENT_HASH
        assert entry.manifest_uri == "ipfs://bafy"
        assert entry.timestamp == 1700000000
        contract.functions.entries.assert_called_once_with(bytes.fromhex("ab" * 32))

    def test_zero_timestamp_means_absent(self) -> None:
        client, _web3, contract = _client()
        contract.functions.entries.return_value.call.return_value = (
            "0x" + "00" * 20,
            b"\x00" * 32,
            "",
            0,
        )
        assert client.get_entry(CONTENT_HASH) is None

    def test_malformed_hash_is_registry_error(self) -> None:
        client, _web3, _contract = _client()
        with pytest.raises(RegistryError):
            client.get_entry("0x1234")


class TestGetHashByPlatform:
    def test_returns_hash(self) -> None:
        client, _web3, contract = _client()
        contract.functions.platformKeyToHash.return_value.call.return_value = bytes.fromhex("ab" * 32)
        assert client.get_hash_by_platform("youtube", "abc") == CONTENT_HASH
        contract.functions.platformKeyToHash.assert_called_once_with(platform_key("youtube", "abc"))

    def test_zero_hash_means_unbound(self) -> None:
        client, _web3, contract = _client()
        contract.functions.platformKeyToHash.return_value.call.return_value = b"\x00" * 32
        assert client.get_hash_by_platform("youtube", "abc") is None


class TestErrorMapping:
    def _failing_client(self, exc: Exception) -> RegistryClient:
        client, _web3, contract = _client()
        contract.functions.entries.return_value.call.side_effect = exc
        return client

    @pytest.mark.parametrize(
        "exc",
        [
            requests.exceptions.ConnectTimeout("slow"),
            requests.exceptions.ConnectionError("refused"),
            Web3RPCError("header not found"),
        ],
    )
    def test_transport_failures_are_unavailable(self, exc: Exception) -> None:
        with pytest.raises(RegistryUnavailableError):
            self._failing_client(exc).get_entry(CONTENT_HASH)

    def test_server_http_error_is_unavailable(self) -> None:
        response = MagicMock(status_code=502)
        exc = requests.exceptions.HTTPError("bad gateway", response=response)
        with pytest.raises(RegistryUnavailableError, match="502"):
            self._failing_client(exc).get_entry(CONTENT_HASH)

    def test_client_http_error_is_permanent(self) -> None:
        response = MagicMock(status_code=403)
        exc = requests.exceptions.HTTPError("forbidden", response=response)
        with pytest.raises(RegistryError) as exc_info:
            self._failing_client(exc).get_entry(CONTENT_HASH)
        assert not isinstance(exc_info.value, RegistryUnavailableError)

    def test_contract_revert_is_permanent(self) -> None:
        with pytest.raises(RegistryError) as exc_info:
            self._failing_client(ContractLogicError("execution reverted")).get_entry(CONTENT_HASH)
        assert not isinstance(exc_info.value, RegistryUnavailableError)


class TestWrites:
    KEY = "0x" + "11" * 32

    def _prepare(self, receipt_status: int) -> tuple[RegistryClient, MagicMock, MagicMock]:
        client, web3, contract = _client()
        tx = {
            "to": client.address,
            "value": 0,
            "gas": 200000,
            "gasPrice": 1_000_000_000,
            "nonce": 0,
            "chainId": 84532,
            "data": "0x",
        }
        contract.functions.register.return_value.build_transaction.return_value = tx
        contract.functions.bindPlatform.return_value.build_transaction.return_value = tx
        web3.eth.get_transaction_count.return_value = 0
        web3.eth.send_raw_transaction.return_value = b"\x12" * 32
        web3.eth.wait_for_transaction_receipt.return_value = {"status": receipt_status}
        return client, web3, contract

    def test_register_returns_tx_hash(self) -> None:
        client, web3, contract = self._prepare(receipt_status=1)

        tx_hash = client.register(CONTENT_HASH, "ipfs://bafy", self.KEY)

        assert tx_hash == "0x" + "12" * 32
        contract.functions.register.assert_called_once_with(bytes.fromhex("ab" * 32), "ipfs://bafy")
        web3.eth.send_raw_transaction.assert_called_once()

    def test_reverted_register_raises(self) -> None:
        client, _web3, _contract = self._prepare(receipt_status=0)
        with pytest.raises(RegistryError, match="reverted"):
            client.register(CONTENT_HASH, "ipfs://bafy", self.KEY)

    def test_bind_platform_lowercases_platform(self) -> None:
        client, _web3, contract = self._prepare(receipt_status=1)

        client.bind_platform(CONTENT_HASH, "YouTube", "abc", self.KEY)

        contract.functions.bindPlatform.assert_called_once_with(
            bytes.fromhex("ab" * 32), "youtube", "abc"
        )


class TestFindRegistrationTx:
    def test_returns_latest_matching_log(self) -> None:
        client, web3, _contract = _client()
        web3.eth.block_number = 2_500_000
        web3.eth.get_logs.return_value = [
            {"transactionHash": b"\x01" * 32},
            {"transactionHash": b"\x02" * 32},
        ]

        assert client.find_registration_tx(CONTENT_HASH) == "0x" + "02" * 32
        query = web3.eth.get_logs.call_args.args[0]
        assert query["fromBlock"] == 1_500_000
        assert query["topics"][1] == CONTENT_HASH

    def test_uses_explicit_start_block(self) -> None:
        client, web3, _contract = _client()
        web3.eth.get_logs.return_value = []

        assert client.find_registration_tx(CONTENT_HASH, from_block=123) is None
        assert web3.eth.get_logs.call_args.args[0]["fromBlock"] == 123
