"""ORM models package exports."""

from app.models.document_version import DocumentVersion
from app.models.outbox_event import OutboxEvent
from app.models.verified_domain import VerifiedDomain

__all__ = [
    "DocumentVersion",
    "OutboxEvent",
    "VerifiedDomain",
]
