"""Publishing domain ownership model."""

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, IdMixin, TimestampMixin


class VerifiedDomain(Base, IdMixin, TimestampMixin):
    """Domain registered for publishing; servable only once verified_at is set."""

    __tablename__ = "verified_domains"

    domain: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    verification_token: Mapped[str] = mapped_column(String(128), nullable=False)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
