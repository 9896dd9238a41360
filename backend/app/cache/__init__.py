from app.cache.corpus import CorpusSource
from app.cache.durable import SQLiteDurableTier, create_cache_engine
from app.cache.redis_tier import RedisTier
from app.cache.service import CacheService
from app.cache.tiers import (
    DISTRICT_PROFILES,
    LISTINGS,
    PRICING_REFERENCE,
    CollectionSpec,
    TierError,
    TierWriteResult,
)

__all__ = [
    "CacheService",
    "CollectionSpec",
    "CorpusSource",
    "DISTRICT_PROFILES",
    "LISTINGS",
    "PRICING_REFERENCE",
    "RedisTier",
    "SQLiteDurableTier",
    "TierError",
    "TierWriteResult",
    "create_cache_engine",
]
