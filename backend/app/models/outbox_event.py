"""Outbox event log model."""

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, CreatedAtMixin, IdMixin


class OutboxEvent(Base, IdMixin, CreatedAtMixin):
    """Document lifecycle events awaiting downstream consumers."""

    __tablename__ = "outbox_events"

    event_type: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    payload_json: Mapped[dict[str, object]] = mapped_column(JSON, default=dict, nullable=False)
