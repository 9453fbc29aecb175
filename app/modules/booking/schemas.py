"""Booking schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.core.enums import (
    BookingPhaseEnum,
    BookingStatusEnum,
    BookingTypeEnum,
    PayoutStatusEnum,
)
from app.modules.booking.lifecycle import effective_state


class BookingCreate(BaseModel):
    """Create booking request."""

    mentor_id: UUID
    type: BookingTypeEnum
    scheduled_at: datetime | None = None
    duration_minutes: int | None = Field(default=None, ge=15, le=240)
    notes: str | None = Field(default=None, max_length=2000)
    is_free_session: bool = False


class BookingCancelRequest(BaseModel):
    """Cancel booking request."""

    reason: str | None = Field(default=None, max_length=512)


class BookingRescheduleRequest(BaseModel):
    """Move a confirmed session to a new start time."""

    scheduled_at: datetime
    reason: str | None = Field(default=None, max_length=512)


class StudentConfirmRequest(BaseModel):
    """Student verdict on a session the mentor marked complete."""

    action: Literal["confirm", "report_fraud"]
    fraud_notes: str | None = Field(default=None, max_length=2000)


class CheckoutRead(BaseModel):
    session_id: str
    checkout_url: str


class BookingRead(BaseModel):
    """Booking response schema with lifecycle state resolved at read time."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_id: UUID
    mentor_id: UUID
    type: BookingTypeEnum
    status: BookingStatusEnum
    total_price: int
    platform_fee: int | None
    mentor_payout: int | None
    scheduled_at: datetime | None
    duration_minutes: int | None
    notes: str | None
    is_free_session: bool
    mentor_completed_at: datetime | None
    student_confirmed_at: datetime | None
    auto_confirm_at: datetime | None
    is_auto_confirmed: bool
    is_fraud_reported: bool
    fraud_reported_at: datetime | None
    cancelled_at: datetime | None
    cancellation_reason: str | None
    payout_status: PayoutStatusEnum
    payout_released_at: datetime | None
    payout_hold_until: datetime | None
    refund_amount: int | None
    stripe_paid_at: datetime | None
    created_at: datetime

    phase: BookingPhaseEnum | None = None
    is_effectively_confirmed: bool = False
    awaiting_confirmation: bool = False

    @classmethod
    def from_booking(cls, booking, now: datetime) -> "BookingRead":
        state = effective_state(booking, now)
        return cls.model_validate(booking).model_copy(
            update={
                "phase": state.phase,
                "is_effectively_confirmed": state.is_effectively_confirmed,
                "is_auto_confirmed": state.is_auto_confirmed,
                "awaiting_confirmation": state.awaiting_confirmation,
            },
        )
