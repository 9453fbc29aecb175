"""Scheduling ORM models."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, BaseModelMixin


class AvailableSlot(BaseModelMixin, Base):
    """Mentor-declared open time window (UTC)."""

    __tablename__ = "available_slots"

    mentor_id: Mapped[UUID] = mapped_column(
        ForeignKey("mentors.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_free_session: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class BlockedSlot(BaseModelMixin, Base):
    """Mentor-declared closed time window (UTC)."""

    __tablename__ = "blocked_slots"

    mentor_id: Mapped[UUID] = mapped_column(
        ForeignKey("mentors.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    reason: Mapped[str | None] = mapped_column(String(255), nullable=True)
