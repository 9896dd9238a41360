"""Listing merge and cached reference read routes."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query

from app.cache.dependencies import get_cache
from app.cache.service import CacheService
from app.merge.strategies import MergeStrategy
from app.schemas.common import ApiResponse, CollectionRead
from app.schemas.listing import (
    DistrictProfile,
    ListingRecord,
    MergeRequest,
    MergeResult,
    PricingReferenceEntry,
)
from app.services.listings import merge_listings

router = APIRouter(prefix="/v1")


@router.post("/merge/listings", response_model=ApiResponse[MergeResult])
def post_merge_listings(
    payload: MergeRequest,
    cache: CacheService = Depends(get_cache),
) -> ApiResponse[MergeResult]:
    """Merge live listings with the curated corpus; without live listings return the cached set."""

    if payload.live_listings:
        listings = merge_listings(
            cache,
            payload.live_listings,
            district=payload.district,
            strategy=MergeStrategy.parse(payload.merge_strategy),
        )
    else:
        listings = cache.get_listings(payload.district)
    return ApiResponse(
        data=MergeResult(
            listings=listings,
            count=len(listings),
            merged_at=datetime.now(timezone.utc),
        )
    )


@router.get("/listings", response_model=ApiResponse[CollectionRead[ListingRecord]])
def get_listings(
    district: str | None = Query(default=None, max_length=128),
    cache: CacheService = Depends(get_cache),
) -> ApiResponse[CollectionRead[ListingRecord]]:
    return ApiResponse(data=CollectionRead[ListingRecord].of(cache.get_listings(district), district))


@router.get("/districts", response_model=ApiResponse[CollectionRead[DistrictProfile]])
def get_districts(cache: CacheService = Depends(get_cache)) -> ApiResponse[CollectionRead[DistrictProfile]]:
    return ApiResponse(data=CollectionRead[DistrictProfile].of(cache.get_district_profiles()))


@router.get("/pricing", response_model=ApiResponse[CollectionRead[PricingReferenceEntry]])
def get_pricing(
    district: str | None = Query(default=None, max_length=128),
    cache: CacheService = Depends(get_cache),
) -> ApiResponse[CollectionRead[PricingReferenceEntry]]:
    """Pricing reference rows, optionally narrowed to one district."""

    entries = cache.get_pricing_reference()
    if district is not None:
        entries = [entry for entry in entries if entry.district == district]
    return ApiResponse(data=CollectionRead[PricingReferenceEntry].of(entries, district))
