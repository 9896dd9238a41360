"""Listing, district profile and pricing reference schemas."""

from __future__ import annotations

import hashlib
from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator


def listing_id_for_name(name: str) -> str:
    """Stable identifier derived from a listing name."""

    return hashlib.sha256(name.encode("utf-8")).hexdigest()[:16]


class PricingReferenceEntry(BaseModel):
    """Reference price band for one category within a district."""

    model_config = ConfigDict(extra="ignore")

    district: str | None = None
    category: str | None = Field(
        default=None,
        validation_alias=AliasChoices("category", "massage_type"),
    )
    price_low: float | None = None
    price_high: float | None = None
    price_typical: float | None = None
    currency: str = "THB"


class DistrictProfile(BaseModel):
    """Opaque district profile keyed by district name."""

    model_config = ConfigDict(extra="ignore")

    name: str
    profile: dict[str, Any] = Field(default_factory=dict)
    last_updated: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def wrap_flat_profile(cls, data: Any) -> Any:
        # Corpus files carry the profile fields inline next to the name.
        if isinstance(data, dict) and "profile" not in data and "name" in data:
            return {
                "name": data["name"],
                "profile": dict(data),
                "last_updated": data.get("last_updated"),
            }
        return data


class ListingRecord(BaseModel):
    """A business listing, either live, curated, or merged from both."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    name: str = Field(min_length=1)
    address: str | None = None
    district: str | None = None
    rating: float | None = Field(default=None, ge=0, le=5)
    review_count: int | None = Field(default=None, ge=0)
    pricing: list[str] = Field(default_factory=list)
    contact_handles: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("contact_handles", "line_usernames"),
    )
    websites: list[str] = Field(default_factory=list)
    highlights: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("highlights", "prettiest_women_mentions", "prettiest_women"),
    )
    verified: bool = False
    safety_signals: list[str] = Field(default_factory=list)
    provenance: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("provenance", "data_sources"),
    )
    confidence: float | None = Field(default=None, ge=0, le=1)
    last_updated: datetime | None = None
    last_verified: datetime | None = None
    district_info: dict[str, Any] | None = None
    pricing_reference: list[PricingReferenceEntry] = Field(default_factory=list)

    def resolved_id(self) -> str:
        return self.id or listing_id_for_name(self.name)


class MergeRequest(BaseModel):
    """Payload for merging live listings against the curated corpus."""

    live_listings: list[ListingRecord] = Field(
        default_factory=list,
        validation_alias=AliasChoices("live_listings", "liveShops", "live_shops"),
    )
    district: str | None = None
    merge_strategy: str = Field(
        default="enrich_with_corpus",
        validation_alias=AliasChoices("merge_strategy", "mergeStrategy"),
    )


class MergeResult(BaseModel):
    """Merged listings returned by the merge endpoint."""

    listings: list[ListingRecord]
    count: int
    merged_at: datetime
