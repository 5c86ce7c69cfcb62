from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from provenance.chain.models import RegistryEntry
from provenance.manifest.builder import build_manifest
from provenance.manifest.exceptions import ManifestNetworkError
from provenance.manifest.models import Manifest
from provenance.signing.verifier import SignatureVerifier
from provenance.verification.engine import VerificationEngine
from provenance.verification.exceptions import JobTimeoutError, VerificationInputError
from provenance.verification.models import JobType, VerdictStatus, VerificationRequest


class RecordingListener:
    def __init__(self) -> None:
        self.checkpoints = 0
        self.hashes: list[str] = []
        self.progress: list[int] = []

    def checkpoint(self) -> None:
        self.checkpoints += 1

    def on_hashed(self, content_hash: str) -> None:
        self.hashes.append(content_hash)

    def on_progress(self, progress: int) -> None:
        self.progress.append(progress)


def _engine(fetcher: MagicMock, resolver: MagicMock) -> VerificationEngine:
    return VerificationEngine(fetcher, SignatureVerifier(), resolver)


def _request(
    content_file: Path, manifest_uri: str, job_type: JobType = JobType.VERIFY, **kwargs: Any
) -> VerificationRequest:
    return VerificationRequest(
        job_type=job_type, manifest_uri=manifest_uri, content_path=content_file, **kwargs
    )


class TestVerifyRoundTrip:
    def test_registered_content_is_ok(
        self,
        content_file: Path,
        content_hash: str,
        creator_address: str,
        manifest_uri: str,
        mock_fetcher: MagicMock,
        mock_resolver: MagicMock,
    ) -> None:
        result = _engine(mock_fetcher, mock_resolver).verify(_request(content_file, manifest_uri))

        assert result.status is VerdictStatus.OK
        assert result.file_hash == content_hash
        assert result.recovered_signer == creator_address
        assert result.checks.manifest_hash_ok
        assert result.checks.creator_ok
        assert result.checks.manifest_ok

    def test_reports_progress_milestones_in_order(
        self,
        content_file: Path,
        content_hash: str,
        manifest_uri: str,
        mock_fetcher: MagicMock,
        mock_resolver: MagicMock,
    ) -> None:
        listener = RecordingListener()

        _engine(mock_fetcher, mock_resolver).verify(_request(content_file, manifest_uri), listener)

        assert listener.hashes == [content_hash]
        assert listener.progress == [10, 30, 50, 70]

    def test_uses_default_chain_and_registry(
        self,
        content_file: Path,
        content_hash: str,
        manifest_uri: str,
        registry_address: str,
        mock_fetcher: MagicMock,
        mock_resolver: MagicMock,
    ) -> None:
        result = _engine(mock_fetcher, mock_resolver).verify(_request(content_file, manifest_uri))

        assert result.chain_id == 84532
        assert result.registry_address == registry_address
        mock_resolver.read_entry.assert_called_once_with(84532, content_hash, registry_address)

    def test_explicit_chain_and_registry(
        self,
        content_file: Path,
        content_hash: str,
        manifest_uri: str,
        mock_fetcher: MagicMock,
        mock_resolver: MagicMock,
    ) -> None:
        request = _request(
            content_file, manifest_uri, chain_id=11155111, registry_address="0x" + "ee" * 20
        )

        _engine(mock_fetcher, mock_resolver).verify(request)

        mock_resolver.get_address.assert_not_called()
        mock_resolver.read_entry.assert_called_once_with(11155111, content_hash, "0x" + "ee" * 20)

    def test_precomputed_hash_skips_file(
        self,
        content_hash: str,
        manifest_uri: str,
        mock_fetcher: MagicMock,
        mock_resolver: MagicMock,
    ) -> None:
        request = VerificationRequest(
            job_type=JobType.VERIFY,
            manifest_uri=manifest_uri,
            content_hash="0x" + content_hash[2:].upper(),
        )
        result = _engine(mock_fetcher, mock_resolver).verify(request)
        assert result.file_hash == content_hash
        assert result.status is VerdictStatus.OK


class TestVerifyFailures:
    def test_tampered_content_fails_hash_check(
        self,
        tmp_path: Path,
        content: bytes,
        manifest_uri: str,
        mock_fetcher: MagicMock,
        mock_resolver: MagicMock,
    ) -> None:
        tampered = bytearray(content)
        tampered[0] ^= 0x01
        path = tmp_path / "tampered.jpg"
        path.write_bytes(bytes(tampered))
        mock_resolver.read_entry.return_value = None

        result = _engine(mock_fetcher, mock_resolver).verify(_request(path, manifest_uri))

        assert not result.checks.manifest_hash_ok
        assert result.status is VerdictStatus.FAIL

    def test_signature_by_other_key_fails_creator_check(
        self,
        content_file: Path,
        content_hash: str,
        creator_address: str,
        other_key: str,
        manifest_uri: str,
        mock_resolver: MagicMock,
    ) -> None:
        forged = build_manifest(content_hash, other_key, chain_id=84532)
        forged["creator"] = creator_address
        fetcher = MagicMock()
        fetcher.fetch.return_value = Manifest.from_dict(forged)

        result = _engine(fetcher, mock_resolver).verify(_request(content_file, manifest_uri))

        assert result.checks.manifest_hash_ok
        assert not result.checks.creator_ok
        assert result.status is VerdictStatus.FAIL

    def test_unregistered_content_fails_manifest_check(
        self,
        content_file: Path,
        manifest_uri: str,
        mock_fetcher: MagicMock,
        mock_resolver: MagicMock,
    ) -> None:
        mock_resolver.read_entry.return_value = None

        result = _engine(mock_fetcher, mock_resolver).verify(_request(content_file, manifest_uri))

        assert result.checks.manifest_hash_ok
        assert result.checks.creator_ok
        assert not result.checks.manifest_ok
        assert result.onchain is None
        assert result.status is VerdictStatus.FAIL

    def test_onchain_manifest_uri_mismatch_fails(
        self,
        content_file: Path,
        manifest_uri: str,
        registry_entry: RegistryEntry,
        mock_fetcher: MagicMock,
        mock_resolver: MagicMock,
    ) -> None:
        mock_resolver.read_entry.return_value = RegistryEntry(
            creator=registry_entry.creator,
            content_hash=registry_entry.content_hash,
            manifest_uri="ipfs://someotherdocument",
            timestamp=registry_entry.timestamp,
        )

        result = _engine(mock_fetcher, mock_resolver).verify(_request(content_file, manifest_uri))

        assert not result.checks.manifest_ok

    def test_onchain_creator_mismatch_fails(
        self,
        content_file: Path,
        manifest_uri: str,
        registry_entry: RegistryEntry,
        mock_fetcher: MagicMock,
        mock_resolver: MagicMock,
    ) -> None:
        mock_resolver.read_entry.return_value = RegistryEntry(
            creator="0x" + "99" * 20,
            content_hash=registry_entry.content_hash,
            manifest_uri=registry_entry.manifest_uri,
            timestamp=registry_entry.timestamp,
        )

        result = _engine(mock_fetcher, mock_resolver).verify(_request(content_file, manifest_uri))

        assert not result.checks.manifest_ok

    def test_missing_content_file_is_input_error(
        self, tmp_path: Path, manifest_uri: str, mock_fetcher: MagicMock, mock_resolver: MagicMock
    ) -> None:
        with pytest.raises(VerificationInputError, match="missing"):
            _engine(mock_fetcher, mock_resolver).verify(
                _request(tmp_path / "gone.jpg", manifest_uri)
            )

    def test_malformed_precomputed_hash_is_input_error(
        self, manifest_uri: str, mock_fetcher: MagicMock, mock_resolver: MagicMock
    ) -> None:
        request = VerificationRequest(
            job_type=JobType.VERIFY, manifest_uri=manifest_uri, content_hash="0xnope"
        )
        with pytest.raises(VerificationInputError):
            _engine(mock_fetcher, mock_resolver).verify(request)

    def test_no_content_at_all_is_input_error(
        self, manifest_uri: str, mock_fetcher: MagicMock, mock_resolver: MagicMock
    ) -> None:
        request = VerificationRequest(job_type=JobType.VERIFY, manifest_uri=manifest_uri)
        with pytest.raises(VerificationInputError):
            _engine(mock_fetcher, mock_resolver).verify(request)

    def test_fetch_errors_propagate(
        self, content_file: Path, manifest_uri: str, mock_resolver: MagicMock
    ) -> None:
        fetcher = MagicMock()
        fetcher.fetch.side_effect = ManifestNetworkError("gateway 503")
        with pytest.raises(ManifestNetworkError):
            _engine(fetcher, mock_resolver).verify(_request(content_file, manifest_uri))
        mock_resolver.read_entry.assert_not_called()


class TestRun:
    def test_verify_payload(
        self,
        content_file: Path,
        content_hash: str,
        manifest_uri: str,
        mock_fetcher: MagicMock,
        mock_resolver: MagicMock,
    ) -> None:
        payload = _engine(mock_fetcher, mock_resolver).run(_request(content_file, manifest_uri))

        assert payload["status"] == "OK"
        assert payload["fileHash"] == content_hash
        assert payload["checks"] == {"manifestHashOk": True, "creatorOk": True, "manifestOk": True}
        assert payload["onchain"]["manifestURI"] == manifest_uri

    def test_proof_payload(
        self,
        content_file: Path,
        content_hash: str,
        manifest_uri: str,
        manifest_document: dict[str, Any],
        mock_fetcher: MagicMock,
        mock_resolver: MagicMock,
    ) -> None:
        mock_resolver.find_registration_tx.return_value = "0x" + "77" * 32
        listener = RecordingListener()

        bundle = _engine(mock_fetcher, mock_resolver).run(
            _request(content_file, manifest_uri, JobType.PROOF, original_filename="photo.jpg"),
            listener,
        )

        assert bundle["version"] == "1.0"
        assert bundle["network"] == {"chainId": 84532, "name": "baseSepolia"}
        assert bundle["content"] == {"file": "photo.jpg", "hash": content_hash}
        assert bundle["manifest"] == {"uri": manifest_uri, "document": manifest_document}
        assert bundle["signature"]["valid"] is True
        assert bundle["tx"]["txHash"] == "0x" + "77" * 32
        assert bundle["tx"]["explorerUrl"].endswith("/tx/0x" + "77" * 32)
        assert bundle["verification"]["status"] == "OK"
        assert listener.progress == [10, 30, 50, 70, 85]

    def test_proof_without_registration_tx(
        self,
        content_file: Path,
        manifest_uri: str,
        mock_fetcher: MagicMock,
        mock_resolver: MagicMock,
    ) -> None:
        bundle = _engine(mock_fetcher, mock_resolver).run(
            _request(content_file, manifest_uri, JobType.PROOF)
        )
        assert bundle["tx"] is None
        assert bundle["content"]["file"] == "unknown"

    def test_proof_checks_budget_before_each_external_call(
        self,
        content_file: Path,
        manifest_uri: str,
        mock_fetcher: MagicMock,
        mock_resolver: MagicMock,
    ) -> None:
        listener = RecordingListener()

        _engine(mock_fetcher, mock_resolver).run(
            _request(content_file, manifest_uri, JobType.PROOF), listener
        )

        # manifest fetch, registry read, registration tx lookup
        assert listener.checkpoints == 3

    def test_expired_budget_stops_before_tx_lookup(
        self,
        content_file: Path,
        manifest_uri: str,
        mock_fetcher: MagicMock,
        mock_resolver: MagicMock,
    ) -> None:
        listener = MagicMock()
        listener.checkpoint.side_effect = [None, None, JobTimeoutError("over budget")]

        with pytest.raises(JobTimeoutError):
            _engine(mock_fetcher, mock_resolver).run(
                _request(content_file, manifest_uri, JobType.PROOF), listener
            )

        mock_fetcher.fetch.assert_called_once()
        mock_resolver.read_entry.assert_called_once()
        mock_resolver.find_registration_tx.assert_not_called()
