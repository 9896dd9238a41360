"""Listing matching heuristics."""

from __future__ import annotations

import re
from typing import Protocol, Sequence

from app.schemas.listing import ListingRecord


KNOWN_DISTRICTS: tuple[str, ...] = (
    "Asok",
    "Nana",
    "Phrom Phong",
    "Thonglor",
    "Ekkamai",
    "Silom",
    "Ari",
    "Victory Monument",
    "Ratchada",
    "Old City",
)

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")
_NAME_PREFIX_LENGTH = 5
_ADDRESS_PREFIX_LENGTH = 10


def normalize_listing_name(value: str) -> str:
    """Lowercase and drop everything that is not an ASCII letter or digit."""

    return _NON_ALNUM_RE.sub("", value.lower())


def extract_district(address: str | None, districts: Sequence[str] = KNOWN_DISTRICTS) -> str | None:
    """Return the first district (in list order) named inside the address."""

    if not address:
        return None
    lowered = address.lower()
    for district in districts:
        if district.lower() in lowered:
            return district
    return None


def names_similar(left: str | None, right: str | None) -> bool:
    """True when either normalized name contains the other's leading characters."""

    if not left or not right:
        return False
    norm_left = normalize_listing_name(left)
    norm_right = normalize_listing_name(right)
    return norm_right[:_NAME_PREFIX_LENGTH] in norm_left or norm_left[:_NAME_PREFIX_LENGTH] in norm_right


def addresses_similar(left: str | None, right: str | None) -> bool:
    if not left or not right:
        return False
    low_left = left.lower()
    low_right = right.lower()
    return low_right[:_ADDRESS_PREFIX_LENGTH] in low_left or low_left[:_ADDRESS_PREFIX_LENGTH] in low_right


class ListingMatcher(Protocol):
    """Finds the reference listing that describes the same business as a live one."""

    def find_match(self, live: ListingRecord, candidates: Sequence[ListingRecord]) -> ListingRecord | None:
        """Return the matching candidate, or None."""


class SubstringListingMatcher:
    """Exact name, then prefix-containment name, then address prefix; first hit wins."""

    def find_match(self, live: ListingRecord, candidates: Sequence[ListingRecord]) -> ListingRecord | None:
        if not candidates:
            return None

        live_name = live.name.lower()
        for candidate in candidates:
            if candidate.name.lower() == live_name:
                return candidate

        for candidate in candidates:
            if names_similar(candidate.name, live.name):
                return candidate

        if live.address:
            for candidate in candidates:
                if addresses_similar(candidate.address, live.address):
                    return candidate
        return None
