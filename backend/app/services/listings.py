"""Listing merge orchestration over the tiered cache."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable

from app.cache.service import CacheService
from app.merge.matching import ListingMatcher, SubstringListingMatcher, extract_district
from app.merge.strategies import MergeStrategy, merge_listing
from app.schemas.listing import DistrictProfile, ListingRecord, PricingReferenceEntry

logger = logging.getLogger(__name__)


def merge_listings(
    cache: CacheService,
    live_listings: Iterable[ListingRecord],
    *,
    district: str | None = None,
    strategy: MergeStrategy = MergeStrategy.ENRICH_WITH_CORPUS,
    matcher: ListingMatcher | None = None,
    now: datetime | None = None,
) -> list[ListingRecord]:
    """Merge live listings against the cached corpus and persist the result."""

    matcher = matcher or SubstringListingMatcher()
    merged_at = now or datetime.now(timezone.utc)
    corpus = cache.get_listings(district)
    profiles = cache.get_district_profiles()
    pricing = cache.get_pricing_reference()

    merged: list[ListingRecord] = []
    matched = 0
    for live in live_listings:
        reference = matcher.find_match(live, corpus)
        if reference is not None:
            matched += 1
        listing_district = extract_district(live.address) or district
        merged.append(
            merge_listing(
                live,
                reference,
                strategy,
                now=merged_at,
                district_info=_profile_for(profiles, listing_district),
                pricing_reference=_pricing_for(pricing, listing_district),
            )
        )

    logger.info(
        "merge.completed strategy=%s district=%s live=%d matched=%d corpus=%d",
        strategy.value,
        district,
        len(merged),
        matched,
        len(corpus),
    )
    if merged:
        cache.update_listings(merged)
    return merged


def _profile_for(profiles: list[DistrictProfile], district: str | None) -> dict | None:
    if district is None:
        return None
    for profile in profiles:
        if profile.name == district:
            return profile.profile
    return None


def _pricing_for(pricing: list[PricingReferenceEntry], district: str | None) -> list[PricingReferenceEntry]:
    if district is None:
        return []
    return [entry for entry in pricing if entry.district == district]
