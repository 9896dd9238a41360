"""SQLite-backed durable cache tier."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from sqlalchemy import JSON, DateTime, Float, Integer, String, create_engine, delete, select
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from app.cache.tiers import DISTRICT_PROFILES, LISTINGS, PRICING_REFERENCE, CollectionSpec, TierError
from app.schemas.listing import listing_id_for_name

logger = logging.getLogger(__name__)


class CacheBase(DeclarativeBase):
    """Declarative base for the local cache database, separate from the primary schema."""


class CachedListing(CacheBase):
    __tablename__ = "listings"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    district: Mapped[str | None] = mapped_column(String(128), index=True, nullable=True)
    rating: Mapped[float | None] = mapped_column(Float, index=True, nullable=True)
    record_json: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class CachedDistrictProfile(CacheBase):
    __tablename__ = "district_profiles"

    name: Mapped[str] = mapped_column(String(128), primary_key=True)
    profile_json: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class CachedPricingEntry(CacheBase):
    __tablename__ = "pricing_reference"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    district: Mapped[str | None] = mapped_column(String(128), index=True, nullable=True)
    category: Mapped[str | None] = mapped_column(String(128), nullable=True)
    price_low: Mapped[float | None] = mapped_column(Float, nullable=True)
    price_high: Mapped[float | None] = mapped_column(Float, nullable=True)
    price_typical: Mapped[float | None] = mapped_column(Float, nullable=True)
    currency: Mapped[str] = mapped_column(String(8), default="THB", nullable=False)


def create_cache_engine(url: str) -> Engine:
    """Create the cache engine, making sure a file-backed SQLite directory exists."""

    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return create_engine(url, future=True, pool_pre_ping=True)
    if not parsed.database or parsed.database == ":memory:":
        return create_engine(
            url,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, future=True, connect_args={"check_same_thread": False})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SQLiteDurableTier:
    """Durable tier storing each collection in its own table."""

    def __init__(self, engine: Engine, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._engine = engine
        self._sessions = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
        self._clock = clock
        CacheBase.metadata.create_all(engine)

    def read(self, collection: CollectionSpec, partition: str | None = None) -> list[dict[str, Any]]:
        reader = {
            LISTINGS.name: self._read_listings,
            DISTRICT_PROFILES.name: self._read_district_profiles,
            PRICING_REFERENCE.name: self._read_pricing,
        }.get(collection.name)
        if reader is None:
            raise TierError(f"unknown collection {collection.name}")
        try:
            with self._sessions() as db:
                return reader(db, partition)
        except SQLAlchemyError as exc:
            raise TierError(f"sqlite read failed for {collection.name}") from exc

    def write(self, collection: CollectionSpec, records: list[dict[str, Any]]) -> None:
        writer = {
            LISTINGS.name: self._write_listings,
            DISTRICT_PROFILES.name: self._write_district_profiles,
            PRICING_REFERENCE.name: self._write_pricing,
        }.get(collection.name)
        if writer is None:
            raise TierError(f"unknown collection {collection.name}")
        try:
            with self._sessions() as db:
                writer(db, records)
                db.commit()
        except SQLAlchemyError as exc:
            raise TierError(f"sqlite write failed for {collection.name}") from exc
        logger.debug("cache.sqlite_write collection=%s rows=%d", collection.name, len(records))

    def _read_listings(self, db: Session, partition: str | None) -> list[dict[str, Any]]:
        stmt = select(CachedListing)
        if partition is not None:
            stmt = stmt.where(CachedListing.district == partition)
        stmt = stmt.order_by(CachedListing.rating.desc().nulls_last(), CachedListing.id.asc())
        rows = db.scalars(stmt).all()
        return [
            {**row.record_json, "id": row.id, "last_updated": row.last_updated.isoformat()}
            for row in rows
        ]

    def _write_listings(self, db: Session, records: list[dict[str, Any]]) -> None:
        now = self._clock()
        for record in records:
            record_id = record.get("id") or listing_id_for_name(record["name"])
            db.merge(
                CachedListing(
                    id=record_id,
                    name=record["name"],
                    district=record.get("district"),
                    rating=record.get("rating"),
                    record_json=dict(record),
                    last_updated=now,
                )
            )

    def _read_district_profiles(self, db: Session, partition: str | None) -> list[dict[str, Any]]:
        rows = db.scalars(select(CachedDistrictProfile).order_by(CachedDistrictProfile.name.asc())).all()
        return [
            {"name": row.name, "profile": row.profile_json, "last_updated": row.last_updated.isoformat()}
            for row in rows
        ]

    def _write_district_profiles(self, db: Session, records: list[dict[str, Any]]) -> None:
        now = self._clock()
        for record in records:
            db.merge(
                CachedDistrictProfile(
                    name=record["name"],
                    profile_json=dict(record.get("profile") or {}),
                    last_updated=now,
                )
            )

    def _read_pricing(self, db: Session, partition: str | None) -> list[dict[str, Any]]:
        stmt = select(CachedPricingEntry)
        if partition is not None:
            stmt = stmt.where(CachedPricingEntry.district == partition)
        rows = db.scalars(stmt.order_by(CachedPricingEntry.id.asc())).all()
        return [
            {
                "district": row.district,
                "category": row.category,
                "price_low": row.price_low,
                "price_high": row.price_high,
                "price_typical": row.price_typical,
                "currency": row.currency,
            }
            for row in rows
        ]

    def _write_pricing(self, db: Session, records: list[dict[str, Any]]) -> None:
        # Reference rows have no natural key, so the table is replaced wholesale.
        db.execute(delete(CachedPricingEntry))
        for record in records:
            db.add(
                CachedPricingEntry(
                    district=record.get("district"),
                    category=record.get("category"),
                    price_low=record.get("price_low"),
                    price_high=record.get("price_high"),
                    price_typical=record.get("price_typical"),
                    currency=record.get("currency") or "THB",
                )
            )

    def close(self) -> None:
        self._engine.dispose()
