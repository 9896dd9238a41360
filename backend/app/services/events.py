"""Best-effort outbox emission for document lifecycle events."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.outbox_event import OutboxEvent

logger = logging.getLogger(__name__)

MARKDOWN_GENERATED = "markdown.generated"
MARKDOWN_ACTIVATED = "markdown.activated"
MARKDOWN_DEACTIVATED = "markdown.deactivated"


def emit_event(db: Session, event_type: str, payload: dict[str, Any]) -> bool:
    """Append an outbox event in its own commit; failures are logged and reported as False."""

    try:
        db.add(OutboxEvent(event_type=event_type, payload_json=payload))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("events.emit_failed event_type=%s", event_type)
        return False
    logger.info("events.emitted event_type=%s domain=%s path=%s", event_type, payload.get("domain"), payload.get("path"))
    return True


def emit_markdown_generated(db: Session, domain: str, path: str, content_hash: str) -> bool:
    return emit_event(
        db,
        MARKDOWN_GENERATED,
        {
            "domain": domain,
            "path": path,
            "content_hash": content_hash,
            "generated_at": _now_iso(),
        },
    )


def emit_markdown_activated(db: Session, domain: str, path: str, content_hash: str, reason: str) -> bool:
    return emit_event(
        db,
        MARKDOWN_ACTIVATED,
        {
            "domain": domain,
            "path": path,
            "content_hash": content_hash,
            "activation_reason": reason,
            "activated_at": _now_iso(),
        },
    )


def emit_markdown_deactivated(db: Session, domain: str, path: str, content_hash: str, reason: str) -> bool:
    return emit_event(
        db,
        MARKDOWN_DEACTIVATED,
        {
            "domain": domain,
            "path": path,
            "content_hash": content_hash,
            "reason": reason,
            "deactivated_at": _now_iso(),
        },
    )


def list_events(db: Session, *, event_type: str | None = None, limit: int = 100) -> list[OutboxEvent]:
    stmt = select(OutboxEvent)
    if event_type is not None:
        stmt = stmt.where(OutboxEvent.event_type == event_type)
    stmt = stmt.order_by(OutboxEvent.id.desc()).limit(limit)
    return list(db.scalars(stmt).all())


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
