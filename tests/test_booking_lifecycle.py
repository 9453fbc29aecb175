from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import pytest

from app.core.enums import BookingPhaseEnum, BookingStatusEnum
from app.modules.booking.lifecycle import effective_state, is_auto_confirm_due, is_awaiting_confirmation

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


@dataclass
class Snapshot:
    status: BookingStatusEnum = BookingStatusEnum.CONFIRMED
    mentor_completed_at: datetime | None = None
    student_confirmed_at: datetime | None = None
    auto_confirm_at: datetime | None = None
    is_auto_confirmed: bool = False
    is_fraud_reported: bool = False


def completed_hours_ago(hours: int) -> Snapshot:
    completed_at = NOW - timedelta(hours=hours)
    return Snapshot(mentor_completed_at=completed_at, auto_confirm_at=completed_at + timedelta(hours=72))


def test_elapsed_deadline_reads_as_auto_confirmed() -> None:
    booking = completed_hours_ago(73)

    state = effective_state(booking, NOW)

    assert state.phase == BookingPhaseEnum.VERIFIED
    assert state.is_effectively_confirmed is True
    assert state.is_auto_confirmed is True
    assert state.awaiting_confirmation is False
    assert is_auto_confirm_due(booking, NOW)


def test_open_window_reads_as_awaiting_confirmation() -> None:
    booking = completed_hours_ago(10)

    state = effective_state(booking, NOW)

    assert state.phase == BookingPhaseEnum.AWAITING_CONFIRMATION
    assert state.awaiting_confirmation is True
    assert state.confirmation_deadline == booking.auto_confirm_at
    assert not is_auto_confirm_due(booking, NOW)


def test_deadline_boundary_is_exclusive() -> None:
    booking = completed_hours_ago(72)

    assert effective_state(booking, NOW).phase == BookingPhaseEnum.AWAITING_CONFIRMATION


def test_fraud_report_blocks_auto_confirmation() -> None:
    booking = completed_hours_ago(100)
    booking.status = BookingStatusEnum.COMPLETED
    booking.is_fraud_reported = True

    state = effective_state(booking, NOW)

    assert state.phase == BookingPhaseEnum.FRAUD_REPORTED
    assert state.is_effectively_confirmed is False
    assert not is_awaiting_confirmation(booking)


def test_explicit_confirmation_keeps_auto_flag() -> None:
    booking = Snapshot(
        status=BookingStatusEnum.COMPLETED,
        mentor_completed_at=NOW - timedelta(hours=80),
        student_confirmed_at=NOW - timedelta(hours=5),
        is_auto_confirmed=True,
    )

    state = effective_state(booking, NOW)

    assert state.phase == BookingPhaseEnum.VERIFIED
    assert state.is_auto_confirmed is True


@pytest.mark.parametrize(
    ("status", "phase"),
    [
        (BookingStatusEnum.PENDING, BookingPhaseEnum.PENDING_PAYMENT),
        (BookingStatusEnum.CONFIRMED, BookingPhaseEnum.SCHEDULED),
        (BookingStatusEnum.CANCELLED, BookingPhaseEnum.CANCELLED),
        (BookingStatusEnum.REFUNDED, BookingPhaseEnum.REFUNDED),
    ],
)
def test_phase_follows_status_before_completion(status: BookingStatusEnum, phase: BookingPhaseEnum) -> None:
    assert effective_state(Snapshot(status=status), NOW).phase == phase


@pytest.mark.parametrize("hours", [0, 71, 73, 200])
def test_confirmed_and_fraud_are_mutually_exclusive(hours: int) -> None:
    for fraud in (False, True):
        booking = completed_hours_ago(hours)
        booking.is_fraud_reported = fraud
        state = effective_state(booking, NOW)
        assert not (state.is_effectively_confirmed and state.phase == BookingPhaseEnum.FRAUD_REPORTED)
        assert not (state.awaiting_confirmation and state.is_effectively_confirmed)
