from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class RegistryEntry:
    """Read-only snapshot of an on-chain registry entry.

    Only entries with a non-zero timestamp are ever constructed; the contract
    reports unregistered hashes with timestamp 0 and those map to None.
    """

    creator: str
    content_hash: str
    manifest_uri: str
    timestamp: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "creator": self.creator,
            "contentHash": self.content_hash,
            "manifestURI": self.manifest_uri,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RegistryEntry":
        return cls(
            creator=data["creator"],
            content_hash=data["contentHash"],
            manifest_uri=data["manifestURI"],
            timestamp=int(data["timestamp"]),
        )


@dataclass(frozen=True)
class CrossChainMatch:
    entry: RegistryEntry
    chain_id: int
