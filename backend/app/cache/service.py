"""Tiered read-through cache over fast, durable and source-of-truth tiers."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from pydantic import BaseModel, ValidationError

from app.cache.corpus import CorpusSource
from app.cache.durable import SQLiteDurableTier, create_cache_engine
from app.cache.redis_tier import RedisTier
from app.cache.tiers import (
    DISTRICT_PROFILES,
    LISTINGS,
    PRICING_REFERENCE,
    CollectionSpec,
    DurableTier,
    FastTier,
    SourceTier,
    TierWriteResult,
)
from app.config import Settings
from app.schemas.listing import DistrictProfile, ListingRecord, PricingReferenceEntry

logger = logging.getLogger(__name__)

_COLLECTION_MODELS: dict[str, type[BaseModel]] = {
    LISTINGS.name: ListingRecord,
    DISTRICT_PROFILES.name: DistrictProfile,
    PRICING_REFERENCE.name: PricingReferenceEntry,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CacheService:
    """Resolves named collections fast tier first, then durable, then source.

    Reads never raise: tier failures are logged and treated as misses, and an
    exhausted lookup yields an empty list. Warming an upper tier after a lower
    tier hit is best-effort and never changes what the caller receives.
    """

    def __init__(
        self,
        durable: DurableTier,
        source: SourceTier,
        fast: FastTier | None = None,
        *,
        freshness_seconds: int = 3600,
        listing_ttl_seconds: int = 3600,
        reference_ttl_seconds: int = 86400,
        key_prefix: str = "curated",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.durable = durable
        self.source = source
        self.fast = fast
        self._freshness_seconds = freshness_seconds
        self._listing_ttl_seconds = listing_ttl_seconds
        self._reference_ttl_seconds = reference_ttl_seconds
        self._key_prefix = key_prefix
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> "CacheService":
        fast = RedisTier.from_url(settings.redis_url) if settings.redis_url else None
        return cls(
            durable=SQLiteDurableTier(create_cache_engine(settings.cache_database_url)),
            source=CorpusSource(settings.corpus_dir),
            fast=fast,
            freshness_seconds=settings.cache_freshness_seconds,
            listing_ttl_seconds=settings.fast_tier_listing_ttl_seconds,
            reference_ttl_seconds=settings.fast_tier_reference_ttl_seconds,
            key_prefix=settings.fast_tier_key_prefix,
        )

    def close(self) -> None:
        for tier in (self.fast, self.durable):
            close = getattr(tier, "close", None)
            if callable(close):
                close()

    def get_listings(self, district: str | None = None) -> list[ListingRecord]:
        return [ListingRecord.model_validate(record) for record in self.resolve(LISTINGS, district)]

    def get_district_profiles(self) -> list[DistrictProfile]:
        return [DistrictProfile.model_validate(record) for record in self.resolve(DISTRICT_PROFILES)]

    def get_pricing_reference(self) -> list[PricingReferenceEntry]:
        return [PricingReferenceEntry.model_validate(record) for record in self.resolve(PRICING_REFERENCE)]

    def resolve(self, collection: CollectionSpec, partition: str | None = None) -> list[dict[str, Any]]:
        """Return the collection (optionally one partition of it) from the highest live tier."""

        if collection.partition_field is None:
            partition = None
        fast_key = self._fast_key(collection, partition)

        if self.fast is not None:
            try:
                cached = self.fast.get_json(fast_key)
            except Exception as exc:
                logger.warning("cache.fast_tier_error collection=%s key=%s error=%s", collection.name, fast_key, exc)
            else:
                if cached:
                    logger.info("cache.fast_tier_hit collection=%s partition=%s", collection.name, partition)
                    return list(cached)

        try:
            stored = self.durable.read(collection, partition)
        except Exception as exc:
            logger.warning("cache.durable_tier_error collection=%s error=%s", collection.name, exc)
        else:
            if stored and self._is_fresh(collection, stored):
                logger.info("cache.durable_tier_hit collection=%s partition=%s", collection.name, partition)
                self._log_warm(collection, self._warm_fast(collection, fast_key, stored))
                return stored
            if stored:
                logger.info("cache.durable_tier_stale collection=%s partition=%s", collection.name, partition)

        logger.info("cache.source_load collection=%s partition=%s", collection.name, partition)
        try:
            loaded = self.source.load(collection)
        except Exception as exc:
            logger.warning("cache.source_tier_error collection=%s error=%s", collection.name, exc)
            return []
        records = self._normalize(collection, loaded)
        if not records:
            logger.warning("cache.all_tiers_missed collection=%s partition=%s", collection.name, partition)
            return []

        result = records
        if partition is not None:
            result = [record for record in records if record.get(collection.partition_field) == partition]
        self._log_warm(collection, self._warm_durable(collection, records))
        self._log_warm(collection, self._warm_fast(collection, fast_key, result))
        return result

    def update_listings(self, records: list[ListingRecord]) -> list[TierWriteResult]:
        """Write merged listings to every configured tier independently."""

        payload = [self._dump_listing(record) for record in records]
        results = [self._warm_durable(LISTINGS, payload)]
        if self.fast is not None:
            try:
                self.fast.set_json(self._fast_key(LISTINGS, None), payload, self._listing_ttl_seconds)
                by_rating = sorted(payload, key=lambda item: item.get("rating") or 0.0, reverse=True)
                self.fast.set_json(
                    f"{self._key_prefix}:{LISTINGS.fast_key}:rating:sorted",
                    by_rating,
                    self._listing_ttl_seconds,
                )
                self.fast.set_json(f"{self._key_prefix}:last_updated", self._clock().isoformat())
            except Exception as exc:
                results.append(TierWriteResult.failed("fast", exc))
            else:
                results.append(TierWriteResult.succeeded("fast"))
        for result in results:
            if not result.ok:
                logger.error("cache.update_failed tier=%s error=%s", result.tier, result.error)
        return results

    def _warm_fast(self, collection: CollectionSpec, key: str, records: list[dict[str, Any]]) -> TierWriteResult:
        if self.fast is None:
            return TierWriteResult.succeeded("fast")
        ttl = self._reference_ttl_seconds if collection.long_lived else self._listing_ttl_seconds
        try:
            self.fast.set_json(key, records, ttl)
        except Exception as exc:
            return TierWriteResult.failed("fast", exc)
        return TierWriteResult.succeeded("fast")

    def _warm_durable(self, collection: CollectionSpec, records: list[dict[str, Any]]) -> TierWriteResult:
        try:
            self.durable.write(collection, records)
        except Exception as exc:
            return TierWriteResult.failed("durable", exc)
        return TierWriteResult.succeeded("durable")

    def _log_warm(self, collection: CollectionSpec, result: TierWriteResult) -> None:
        if not result.ok:
            logger.warning("cache.warm_failed collection=%s tier=%s error=%s", collection.name, result.tier, result.error)

    def _fast_key(self, collection: CollectionSpec, partition: str | None) -> str:
        key = f"{self._key_prefix}:{collection.fast_key}"
        if partition is not None and collection.partition_field is not None:
            key = f"{key}:{collection.partition_field}:{partition}"
        return key

    def _is_fresh(self, collection: CollectionSpec, records: list[dict[str, Any]]) -> bool:
        if collection.timestamp_field is None:
            return True
        raw = records[0].get(collection.timestamp_field)
        if not raw:
            return False
        try:
            stamp = raw if isinstance(raw, datetime) else datetime.fromisoformat(str(raw))
        except ValueError:
            return False
        if stamp.tzinfo is None:
            stamp = stamp.replace(tzinfo=timezone.utc)
        age = (self._clock() - stamp).total_seconds()
        return age < self._freshness_seconds

    def _normalize(self, collection: CollectionSpec, records: list[dict[str, Any]]) -> list[dict[str, Any]]:
        model = _COLLECTION_MODELS[collection.name]
        normalized: list[dict[str, Any]] = []
        for record in records:
            try:
                parsed = model.model_validate(record)
            except ValidationError as exc:
                logger.warning(
                    "cache.source_record_skipped collection=%s errors=%d",
                    collection.name,
                    exc.error_count(),
                )
                continue
            if isinstance(parsed, ListingRecord):
                normalized.append(self._dump_listing(parsed))
            else:
                normalized.append(parsed.model_dump(mode="json"))
        return normalized

    @staticmethod
    def _dump_listing(record: ListingRecord) -> dict[str, Any]:
        payload = record.model_dump(mode="json")
        payload["id"] = record.resolved_id()
        return payload
