"""Listing matching and merge strategies."""

from app.merge.matching import (
    KNOWN_DISTRICTS,
    ListingMatcher,
    SubstringListingMatcher,
    extract_district,
)
from app.merge.strategies import MergeStrategy, compute_confidence, merge_listing

__all__ = [
    "KNOWN_DISTRICTS",
    "ListingMatcher",
    "MergeStrategy",
    "SubstringListingMatcher",
    "compute_confidence",
    "extract_district",
    "merge_listing",
]
