"""Versioned markdown document store with single-active-version activation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.document_version import DocumentVersion
from app.models.verified_domain import VerifiedDomain
from app.publishing.endorsement import EndorsementChecker
from app.publishing.normalization import normalize_domain
from app.publishing.rendering import compute_content_hash, derive_path, render_markdown
from app.schemas.document import ExtractedContent
from app.services.events import (
    emit_markdown_activated,
    emit_markdown_deactivated,
    emit_markdown_generated,
)

logger = logging.getLogger(__name__)

REASON_MANUAL = "manual"
REASON_VERIFIED_INGEST = "verified_domain_ingest"
REASON_ENDORSEMENT_FAILED = "endorsement_failed"


class VersionStatus(str, Enum):
    CREATED = "created"
    DUPLICATE = "duplicate"
    ACTIVATED = "activated"
    ALREADY_ACTIVE = "already_active"
    DEACTIVATED = "deactivated"
    ALREADY_INACTIVE = "already_inactive"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass(slots=True)
class VersionOutcome:
    """Result of a document-store operation; FAILED carries the error text."""

    status: VersionStatus
    version: DocumentVersion | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status not in (VersionStatus.NOT_FOUND, VersionStatus.FAILED)


class ServeStatus(str, Enum):
    SERVED = "served"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"


@dataclass(slots=True)
class ServeOutcome:
    status: ServeStatus
    version: DocumentVersion | None = None
    reason: str | None = None


def find_version(db: Session, domain: str, path: str, content_hash: str) -> DocumentVersion | None:
    return db.scalar(
        select(DocumentVersion).where(
            DocumentVersion.domain == domain,
            DocumentVersion.path == path,
            DocumentVersion.content_hash == content_hash,
        )
    )


def is_domain_verified(db: Session, domain: str) -> bool:
    verified_at = db.scalar(select(VerifiedDomain.verified_at).where(VerifiedDomain.domain == domain))
    return verified_at is not None


def render_document(
    db: Session,
    *,
    domain: str,
    path: str,
    content_hash: str,
    content: str | None,
    source_url: str | None = None,
) -> VersionOutcome:
    """Insert a new inactive version unless the (domain, path, hash) triple already exists.

    When the domain is verified the new version is activated right away through
    the same locked swap as an explicit activation.
    """

    domain = normalize_domain(domain)
    existing = find_version(db, domain, path, content_hash)
    if existing is not None:
        logger.info("documents.render_duplicate domain=%s path=%s hash=%s", domain, path, content_hash)
        return VersionOutcome(VersionStatus.DUPLICATE, existing)

    version = DocumentVersion(
        domain=domain,
        path=path,
        source_url=source_url,
        content=content,
        content_hash=content_hash,
        is_active=False,
    )
    db.add(version)
    try:
        db.commit()
    except IntegrityError:
        # A concurrent writer inserted the same triple first.
        db.rollback()
        logger.info("documents.render_conflict domain=%s path=%s hash=%s", domain, path, content_hash)
        return VersionOutcome(VersionStatus.DUPLICATE, find_version(db, domain, path, content_hash))
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("documents.render_failed domain=%s path=%s", domain, path)
        return VersionOutcome(VersionStatus.FAILED, error=str(exc))

    db.refresh(version)
    logger.info("documents.rendered id=%s domain=%s path=%s hash=%s", version.id, domain, path, content_hash)
    emit_markdown_generated(db, domain, path, content_hash)

    if is_domain_verified(db, domain):
        activation = activate_version(db, domain, path, content_hash, reason=REASON_VERIFIED_INGEST)
        if not activation.ok:
            logger.error(
                "documents.auto_activate_failed id=%s status=%s error=%s",
                version.id,
                activation.status.value,
                activation.error,
            )
        db.refresh(version)
    return VersionOutcome(VersionStatus.CREATED, version)


def render_extracted_document(
    db: Session,
    *,
    domain: str,
    source_url: str,
    extracted: ExtractedContent,
    content_hash: str | None = None,
    generated_at: datetime | None = None,
) -> tuple[VersionOutcome, str]:
    """Render extracted page content to markdown and store it as a new version."""

    content_hash = content_hash or compute_content_hash(extracted)
    markdown = render_markdown(
        extracted,
        source_url=source_url,
        content_hash=content_hash,
        generated_at=generated_at or datetime.now(timezone.utc),
    )
    outcome = render_document(
        db,
        domain=normalize_domain(domain),
        path=derive_path(source_url),
        content_hash=content_hash,
        content=markdown,
        source_url=source_url,
    )
    return outcome, markdown


def _swap_active(
    db: Session,
    domain: str,
    path: str,
    is_target: Callable[[DocumentVersion], bool],
    reason: str,
) -> VersionOutcome:
    try:
        rows = db.scalars(
            select(DocumentVersion)
            .where(DocumentVersion.domain == domain, DocumentVersion.path == path)
            .order_by(DocumentVersion.id.asc())
            .with_for_update()
            .execution_options(populate_existing=True)
        ).all()
        target = next((row for row in rows if is_target(row)), None)
        if target is None:
            db.rollback()
            return VersionOutcome(VersionStatus.NOT_FOUND)

        siblings_active = [row for row in rows if row.is_active and row is not target]
        if target.is_active and not siblings_active:
            db.rollback()
            return VersionOutcome(VersionStatus.ALREADY_ACTIVE, target)

        for row in siblings_active:
            row.is_active = False
        # Siblings must be written first so the single-active index never sees two rows.
        db.flush()
        target.is_active = True
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("documents.activate_failed domain=%s path=%s", domain, path)
        return VersionOutcome(VersionStatus.FAILED, error=str(exc))

    db.refresh(target)
    logger.info(
        "documents.activated id=%s domain=%s path=%s hash=%s deactivated=%d",
        target.id,
        domain,
        path,
        target.content_hash,
        len(siblings_active),
    )
    emit_markdown_activated(db, domain, path, target.content_hash, reason)
    return VersionOutcome(VersionStatus.ACTIVATED, target)


def activate_version(
    db: Session,
    domain: str,
    path: str,
    content_hash: str,
    *,
    reason: str = REASON_MANUAL,
) -> VersionOutcome:
    """Make (domain, path, hash) the single active version for its key."""

    domain = normalize_domain(domain)
    return _swap_active(db, domain, path, lambda row: row.content_hash == content_hash, reason)


def activate_version_by_id(db: Session, version_id: int, *, reason: str = REASON_MANUAL) -> VersionOutcome:
    version = db.get(DocumentVersion, version_id)
    if version is None:
        return VersionOutcome(VersionStatus.NOT_FOUND)
    domain, path = version.domain, version.path
    return _swap_active(db, domain, path, lambda row: row.id == version_id, reason)


def deactivate_version(
    db: Session,
    domain: str,
    path: str,
    content_hash: str,
    *,
    reason: str = REASON_MANUAL,
) -> VersionOutcome:
    """Deactivate exactly the target version; already inactive is a no-op."""

    domain = normalize_domain(domain)
    try:
        target = db.scalar(
            select(DocumentVersion)
            .where(
                DocumentVersion.domain == domain,
                DocumentVersion.path == path,
                DocumentVersion.content_hash == content_hash,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if target is None:
            db.rollback()
            return VersionOutcome(VersionStatus.NOT_FOUND)
        if not target.is_active:
            db.rollback()
            return VersionOutcome(VersionStatus.ALREADY_INACTIVE, target)
        target.is_active = False
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("documents.deactivate_failed domain=%s path=%s", domain, path)
        return VersionOutcome(VersionStatus.FAILED, error=str(exc))

    db.refresh(target)
    logger.info("documents.deactivated id=%s domain=%s path=%s reason=%s", target.id, domain, path, reason)
    emit_markdown_deactivated(db, domain, path, content_hash, reason)
    return VersionOutcome(VersionStatus.DEACTIVATED, target)


def list_versions(db: Session, domain: str, path: str) -> list[DocumentVersion]:
    """All versions for a key, newest first."""

    domain = normalize_domain(domain)
    stmt = (
        select(DocumentVersion)
        .where(DocumentVersion.domain == domain, DocumentVersion.path == path)
        .order_by(DocumentVersion.created_at.desc(), DocumentVersion.id.desc())
    )
    return list(db.scalars(stmt).all())


def get_servable_document(db: Session, domain: str, path: str) -> ServeOutcome:
    """Return the single active version for (domain, path) when its domain is verified."""

    registered = db.scalar(select(VerifiedDomain).where(VerifiedDomain.domain == domain))
    if registered is None:
        return ServeOutcome(ServeStatus.NOT_FOUND, reason="domain_not_found")
    if registered.verified_at is None:
        return ServeOutcome(ServeStatus.FORBIDDEN, reason="domain_unverified")

    active = db.scalars(
        select(DocumentVersion).where(
            DocumentVersion.domain == domain,
            DocumentVersion.path == path,
            DocumentVersion.is_active.is_(True),
        )
    ).all()
    if len(active) != 1:
        if len(active) > 1:
            logger.error("documents.multiple_active domain=%s path=%s count=%d", domain, path, len(active))
        return ServeOutcome(ServeStatus.NOT_FOUND, reason="no_active_version")
    if not active[0].content:
        return ServeOutcome(ServeStatus.NOT_FOUND, reason="content_pending")
    return ServeOutcome(ServeStatus.SERVED, active[0])


def reverify_active_documents(
    db: Session,
    checker: EndorsementChecker,
    *,
    domain: str | None = None,
) -> list[VersionOutcome]:
    """Deactivate active versions whose source page no longer endorses them."""

    stmt = select(DocumentVersion).where(DocumentVersion.is_active.is_(True))
    if domain is not None:
        stmt = stmt.where(DocumentVersion.domain == domain)
    active = list(db.scalars(stmt.order_by(DocumentVersion.id.asc())).all())

    outcomes: list[VersionOutcome] = []
    for version in active:
        if not version.source_url:
            continue
        result = checker.check(source_url=version.source_url, domain=version.domain, path=version.path)
        if result.valid:
            continue
        logger.warning(
            "documents.endorsement_failed id=%s domain=%s path=%s error=%s",
            version.id,
            version.domain,
            version.path,
            result.error,
        )
        outcomes.append(
            deactivate_version(
                db,
                version.domain,
                version.path,
                version.content_hash,
                reason=f"{REASON_ENDORSEMENT_FAILED}: {result.error}",
            )
        )
    logger.info("documents.reverify_completed checked=%d deactivated=%d", len(active), len(outcomes))
    return outcomes
