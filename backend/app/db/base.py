"""SQLAlchemy metadata registry import for Alembic."""

from app.models import DocumentVersion, OutboxEvent, VerifiedDomain
from app.models.base import Base

__all__ = ["Base", "DocumentVersion", "OutboxEvent", "VerifiedDomain"]
