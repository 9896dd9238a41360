"""Merge strategies combining a live listing with its matched corpus listing."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from app.merge.matching import extract_district
from app.schemas.listing import ListingRecord, PricingReferenceEntry, listing_id_for_name


PROVENANCE_LIVE = "live"
PROVENANCE_CORPUS = "corpus"

_SCALAR_FIELDS = ("address", "rating", "review_count")
_LIST_FIELDS = ("pricing", "contact_handles", "websites", "highlights")


class MergeStrategy(str, Enum):
    ENRICH_WITH_CORPUS = "enrich_with_corpus"
    CORPUS_PRIORITY = "corpus_priority"
    PASSTHROUGH = "passthrough"

    @classmethod
    def parse(cls, tag: str | None) -> "MergeStrategy":
        """Map a request tag onto a strategy; unrecognized tags pass records through."""

        if tag is None:
            return cls.ENRICH_WITH_CORPUS
        try:
            return cls(tag.strip().lower())
        except ValueError:
            return cls.PASSTHROUGH


def compute_confidence(live: ListingRecord, reference: ListingRecord | None) -> float:
    score = 0.5
    if reference is not None:
        score += 0.3
        if reference.verified:
            score += 0.2
    if live.rating is not None and live.rating > 4.0:
        score += 0.1
    if live.review_count is not None and live.review_count > 10:
        score += 0.1
    return min(score, 1.0)


def merge_listing(
    live: ListingRecord,
    reference: ListingRecord | None,
    strategy: MergeStrategy,
    *,
    now: datetime,
    district_info: dict[str, Any] | None = None,
    pricing_reference: list[PricingReferenceEntry] | None = None,
) -> ListingRecord:
    """Combine one live listing with its (optional) matched reference listing."""

    if strategy is MergeStrategy.PASSTHROUGH:
        return live.model_copy(deep=True)

    attachments = {
        "district_info": district_info,
        "pricing_reference": list(pricing_reference or []),
        "last_updated": now,
    }
    if strategy is MergeStrategy.CORPUS_PRIORITY:
        return _merge_corpus_priority(live, reference, attachments)
    return _merge_enrich(live, reference, attachments)


def _merge_enrich(
    live: ListingRecord,
    reference: ListingRecord | None,
    attachments: dict[str, Any],
) -> ListingRecord:
    values: dict[str, Any] = {
        "id": live.id or (reference.id if reference else None) or listing_id_for_name(live.name),
        "name": live.name,
    }
    for field in _SCALAR_FIELDS:
        live_value = getattr(live, field)
        values[field] = live_value if live_value is not None else _reference_value(reference, field)
    if values["review_count"] is None:
        values["review_count"] = 0
    values["last_verified"] = _reference_value(reference, "last_verified")

    for field in _LIST_FIELDS:
        live_items = getattr(live, field)
        values[field] = list(live_items) if live_items else list(_reference_value(reference, field) or [])

    values["district"] = extract_district(live.address) or _reference_value(reference, "district")
    values["verified"] = reference.verified if reference is not None else False
    values["safety_signals"] = list(reference.safety_signals) if reference is not None else []
    values["provenance"] = (
        [PROVENANCE_LIVE, PROVENANCE_CORPUS] if reference is not None else [PROVENANCE_LIVE]
    )
    values["confidence"] = compute_confidence(live, reference)
    return ListingRecord(**values, **attachments)


def _merge_corpus_priority(
    live: ListingRecord,
    reference: ListingRecord | None,
    attachments: dict[str, Any],
) -> ListingRecord:
    if reference is None:
        reference = ListingRecord(name=live.name)

    values = reference.model_dump()
    values["id"] = reference.id or live.id or listing_id_for_name(reference.name)
    for field in _SCALAR_FIELDS + ("district", "confidence"):
        ref_value = getattr(reference, field)
        values[field] = ref_value if ref_value is not None else getattr(live, field)
    for field in _LIST_FIELDS:
        values[field] = list(getattr(reference, field)) + list(getattr(live, field))
    values["provenance"] = [PROVENANCE_CORPUS, PROVENANCE_LIVE]
    values.update(attachments)
    return ListingRecord(**values)


def _reference_value(reference: ListingRecord | None, field: str) -> Any:
    if reference is None:
        return None
    return getattr(reference, field)
