"""Tier contracts and collection descriptors for the read-through cache."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


class TierError(RuntimeError):
    """Raised by a tier client when a read or write cannot be served."""


@dataclass(frozen=True, slots=True)
class CollectionSpec:
    """Describes how one named collection is keyed, timestamped and sourced."""

    name: str
    corpus_file: str
    fast_key: str
    partition_field: str | None = None
    timestamp_field: str | None = None
    long_lived: bool = False


LISTINGS = CollectionSpec(
    name="listings",
    corpus_file="listings_verified.ndjson",
    fast_key="listings",
    partition_field="district",
    timestamp_field="last_updated",
)
DISTRICT_PROFILES = CollectionSpec(
    name="district_profiles",
    corpus_file="district_profiles.json",
    fast_key="districts",
    timestamp_field="last_updated",
    long_lived=True,
)
PRICING_REFERENCE = CollectionSpec(
    name="pricing_reference",
    corpus_file="pricing_reference.json",
    fast_key="pricing",
    long_lived=True,
)


@dataclass(frozen=True, slots=True)
class TierWriteResult:
    """Outcome of a best-effort tier write; callers log failures and move on."""

    tier: str
    ok: bool
    error: str | None = None

    @classmethod
    def succeeded(cls, tier: str) -> "TierWriteResult":
        return cls(tier=tier, ok=True)

    @classmethod
    def failed(cls, tier: str, exc: BaseException) -> "TierWriteResult":
        return cls(tier=tier, ok=False, error=f"{type(exc).__name__}: {exc}")


class FastTier(Protocol):
    """Ephemeral key/value tier holding JSON documents with a TTL."""

    def get_json(self, key: str) -> Any | None:
        """Return the decoded value for key, or None on a miss."""

    def set_json(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        """Store value under key; no TTL means the key persists."""


class DurableTier(Protocol):
    """Persistent local tier storing collections as rows."""

    def read(self, collection: CollectionSpec, partition: str | None = None) -> list[dict[str, Any]]:
        """Return stored records, filtered by partition when given."""

    def write(self, collection: CollectionSpec, records: list[dict[str, Any]]) -> None:
        """Persist records for the collection."""


class SourceTier(Protocol):
    """Authoritative static dataset."""

    def load(self, collection: CollectionSpec) -> list[dict[str, Any]]:
        """Return the full collection; raise TierError when unavailable."""
