"""Publishing domain registry."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.verified_domain import VerifiedDomain
from app.publishing.normalization import normalize_domain

logger = logging.getLogger(__name__)


def get_domain(db: Session, domain: str) -> VerifiedDomain | None:
    return db.scalar(select(VerifiedDomain).where(VerifiedDomain.domain == normalize_domain(domain)))


def register_domain(db: Session, domain: str) -> VerifiedDomain:
    """Start verification for a domain, issuing a fresh token unless it is already verified."""

    normalized = normalize_domain(domain)
    record = get_domain(db, normalized)
    if record is not None and record.verified_at is not None:
        return record

    token = secrets.token_hex(16)
    if record is None:
        record = VerifiedDomain(domain=normalized, verification_token=token)
        db.add(record)
    else:
        record.verification_token = token
    db.commit()
    db.refresh(record)
    logger.info("domains.registered domain=%s", normalized)
    return record


def mark_domain_verified(db: Session, domain: str, *, verified_at: datetime | None = None) -> VerifiedDomain | None:
    """Record a successful out-of-band check; returns None for unknown domains."""

    record = get_domain(db, domain)
    if record is None:
        return None
    if record.verified_at is None:
        record.verified_at = verified_at or datetime.now(timezone.utc)
        db.commit()
        db.refresh(record)
        logger.info("domains.verified domain=%s", record.domain)
    return record
