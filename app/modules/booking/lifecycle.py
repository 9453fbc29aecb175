"""Pure lifecycle rules evaluated against a booking snapshot."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from app.core.enums import BookingPhaseEnum, BookingStatusEnum


class BookingSnapshot(Protocol):
    status: BookingStatusEnum
    mentor_completed_at: datetime | None
    student_confirmed_at: datetime | None
    auto_confirm_at: datetime | None
    is_auto_confirmed: bool
    is_fraud_reported: bool


@dataclass(frozen=True, slots=True)
class EffectiveState:
    phase: BookingPhaseEnum
    is_effectively_confirmed: bool
    is_auto_confirmed: bool
    awaiting_confirmation: bool
    confirmation_deadline: datetime | None


def is_awaiting_confirmation(booking: BookingSnapshot) -> bool:
    """Mentor marked complete and student has neither confirmed nor reported."""
    return (
        booking.status == BookingStatusEnum.CONFIRMED
        and booking.mentor_completed_at is not None
        and booking.student_confirmed_at is None
        and not booking.is_fraud_reported
    )


def is_auto_confirm_due(booking: BookingSnapshot, now: datetime) -> bool:
    return (
        is_awaiting_confirmation(booking)
        and booking.auto_confirm_at is not None
        and now > booking.auto_confirm_at
    )


def effective_state(booking: BookingSnapshot, now: datetime) -> EffectiveState:
    """Resolve lifecycle phase, treating an elapsed auto-confirm deadline as confirmation."""
    if booking.status == BookingStatusEnum.CANCELLED:
        return EffectiveState(BookingPhaseEnum.CANCELLED, False, False, False, None)
    if booking.status == BookingStatusEnum.REFUNDED:
        return EffectiveState(BookingPhaseEnum.REFUNDED, False, False, False, None)
    if booking.status == BookingStatusEnum.PENDING:
        return EffectiveState(BookingPhaseEnum.PENDING_PAYMENT, False, False, False, None)

    if booking.is_fraud_reported:
        return EffectiveState(BookingPhaseEnum.FRAUD_REPORTED, False, False, False, None)
    if booking.student_confirmed_at is not None:
        return EffectiveState(BookingPhaseEnum.VERIFIED, True, booking.is_auto_confirmed, False, None)

    if is_auto_confirm_due(booking, now):
        return EffectiveState(BookingPhaseEnum.VERIFIED, True, True, False, booking.auto_confirm_at)
    if is_awaiting_confirmation(booking):
        return EffectiveState(
            BookingPhaseEnum.AWAITING_CONFIRMATION,
            False,
            False,
            True,
            booking.auto_confirm_at,
        )
    return EffectiveState(BookingPhaseEnum.SCHEDULED, False, False, False, None)
