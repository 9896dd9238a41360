"""Content-addressed markdown document version model."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, String, Text, UniqueConstraint, func, text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, IdMixin, TimestampMixin


class DocumentVersion(Base, IdMixin, TimestampMixin):
    """One rendered version of the document stored under (domain, path)."""

    __tablename__ = "document_versions"
    __table_args__ = (
        UniqueConstraint("domain", "path", "content_hash", name="uq_document_versions_key_hash"),
        Index("ix_document_versions_domain_path", "domain", "path"),
        Index(
            "uq_document_versions_single_active",
            "domain",
            "path",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
    )

    domain: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    path: Mapped[str] = mapped_column(String(1024), nullable=False)
    source_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    content_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False, index=True, nullable=False)
    generated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
