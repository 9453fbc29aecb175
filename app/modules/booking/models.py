"""Booking ORM models."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, BaseModelMixin
from app.core.enums import BookingStatusEnum, BookingTypeEnum, DisputeDecisionEnum, PayoutStatusEnum

if TYPE_CHECKING:
    from app.modules.identity.models import User
    from app.modules.mentors.models import Mentor


class Booking(BaseModelMixin, Base):
    """One purchase of an ACCESS pass or a scheduled SESSION."""

    __tablename__ = "bookings"

    student_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    mentor_id: Mapped[UUID] = mapped_column(ForeignKey("mentors.id", ondelete="RESTRICT"), nullable=False, index=True)

    type: Mapped[BookingTypeEnum] = mapped_column(
        SAEnum(BookingTypeEnum, name="booking_type_enum", native_enum=False),
        nullable=False,
    )
    status: Mapped[BookingStatusEnum] = mapped_column(
        SAEnum(BookingStatusEnum, name="booking_status_enum", native_enum=False),
        default=BookingStatusEnum.PENDING,
        nullable=False,
        index=True,
    )

    total_price: Mapped[int] = mapped_column(Integer, nullable=False)
    platform_fee: Mapped[int | None] = mapped_column(Integer, nullable=True)
    mentor_payout: Mapped[int | None] = mapped_column(Integer, nullable=True)

    scheduled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_free_session: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    mentor_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    student_confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    auto_confirm_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    is_auto_confirmed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_fraud_reported: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    fraud_reported_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    fraud_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(String(512), nullable=True)

    payout_status: Mapped[PayoutStatusEnum] = mapped_column(
        SAEnum(PayoutStatusEnum, name="payout_status_enum", native_enum=False),
        default=PayoutStatusEnum.HELD,
        nullable=False,
        index=True,
    )
    payout_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    payout_released_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    payout_hold_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    dispute_payout_amount: Mapped[int | None] = mapped_column(Integer, nullable=True)
    transfer_reversed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    stripe_checkout_session_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    stripe_payment_intent_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    stripe_paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    stripe_refund_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    refund_amount: Mapped[int | None] = mapped_column(Integer, nullable=True)

    admin_reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    admin_reviewed_by: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    admin_decision: Mapped[DisputeDecisionEnum | None] = mapped_column(
        SAEnum(DisputeDecisionEnum, name="dispute_decision_enum", native_enum=False),
        nullable=True,
    )
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    reminder_24h_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reminder_15min_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    review_reminder_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completion_reminder_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    student: Mapped["User"] = relationship(foreign_keys=[student_id])
    mentor: Mapped["Mentor"] = relationship()

    __mapper_args__ = {"version_id_col": version}
