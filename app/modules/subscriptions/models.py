"""Subscriptions ORM models."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, BaseModelMixin
from app.core.enums import SubscriptionStatusEnum

if TYPE_CHECKING:
    from app.modules.identity.models import User
    from app.modules.mentors.models import Mentor


class UserSubscription(BaseModelMixin, Base):
    """Recurring access to a mentor, billed by the payment provider."""

    __tablename__ = "user_subscriptions"

    student_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    mentor_id: Mapped[UUID] = mapped_column(ForeignKey("mentors.id", ondelete="CASCADE"), nullable=False, index=True)
    plan_name: Mapped[str] = mapped_column(String(128), nullable=False)
    status: Mapped[SubscriptionStatusEnum] = mapped_column(
        SAEnum(SubscriptionStatusEnum, name="subscription_status_enum", native_enum=False),
        default=SubscriptionStatusEnum.ACTIVE,
        nullable=False,
        index=True,
    )
    stripe_subscription_id: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    last_review_reminder_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    student: Mapped["User"] = relationship()
    mentor: Mapped["Mentor"] = relationship()
