"""Dispute schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.enums import DisputeDecisionEnum, PayoutStatusEnum
from app.modules.booking.schemas import BookingRead


class DisputeResolveRequest(BaseModel):
    """Admin decision on a fraud-reported booking."""

    decision: DisputeDecisionEnum
    custom_refund_amount: int | None = Field(default=None, ge=1)
    admin_notes: str | None = Field(default=None, max_length=5000)


class DisputeRead(BookingRead):
    """Fraud-reported booking as seen by admins."""

    fraud_reason: str | None
    stripe_payment_intent_id: str | None
    payout_id: str | None
    dispute_payout_amount: int | None
    transfer_reversed_at: datetime | None
    admin_reviewed_at: datetime | None
    admin_reviewed_by: UUID | None
    admin_decision: DisputeDecisionEnum | None
    admin_notes: str | None


class DisputeResolutionRead(BaseModel):
    booking_id: UUID
    decision: DisputeDecisionEnum
    refund_amount: int
    payout_amount: int
    payout_status: PayoutStatusEnum
    payout_succeeded: bool
    transfer_reversed: bool
