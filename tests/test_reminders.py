from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from uuid import UUID, uuid4

import pytest

import app.modules.reminders.service as reminders_module
from app.core.enums import BookingStatusEnum, NotificationKindEnum
from app.modules.notifications.email import EmailDeliveryError
from app.modules.payments.service import PayoutSweepResult
from app.modules.reminders.service import ReminderService
from app.shared.exceptions import NotFoundException

FIXED_NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


@dataclass
class FakeBooking:
    student: SimpleNamespace
    mentor: SimpleNamespace
    scheduled_at: datetime | None
    id: UUID = field(default_factory=uuid4)
    student_id: UUID = field(default_factory=uuid4)
    status: BookingStatusEnum = BookingStatusEnum.CONFIRMED
    duration_minutes: int | None = 60
    reminder_24h_sent_at: datetime | None = None
    reminder_15min_sent_at: datetime | None = None
    review_reminder_sent_at: datetime | None = None
    completion_reminder_sent_at: datetime | None = None
    created_at: datetime | None = None


class FakeSession:
    def __init__(self) -> None:
        self.savepoints = 0

    @asynccontextmanager
    async def begin_nested(self):
        self.savepoints += 1
        yield self


class FakeBookingRepository:
    """Serves rows the way the scan queries do: only unmarked rows in the window."""

    def __init__(self, bookings: list[FakeBooking]) -> None:
        self.session = FakeSession()
        self.bookings = bookings

    async def list_sessions_starting_between(self, start, end, marker) -> list[FakeBooking]:
        return [
            item
            for item in self.bookings
            if item.scheduled_at is not None
            and start <= item.scheduled_at <= end
            and getattr(item, marker) is None
        ]

    async def list_sessions_confirmed_between(self, start, end) -> list[FakeBooking]:
        return [
            item
            for item in self.bookings
            if item.scheduled_at is not None and item.review_reminder_sent_at is None
        ]

    async def list_access_created_between(self, start, end) -> list[FakeBooking]:
        return [
            item
            for item in self.bookings
            if item.created_at is not None
            and start <= item.created_at <= end
            and item.review_reminder_sent_at is None
        ]

    async def list_sessions_awaiting_completion(self, scheduled_after, now) -> list[FakeBooking]:
        return [
            item
            for item in self.bookings
            if item.scheduled_at is not None
            and scheduled_after <= item.scheduled_at <= now
            and item.completion_reminder_sent_at is None
        ]

    async def update_booking(self, booking: FakeBooking, **changes) -> FakeBooking:
        for key, value in changes.items():
            setattr(booking, key, value)
        return booking


class FakeSubscriptionsRepository:
    def __init__(self, subscriptions: list | None = None) -> None:
        self.subscriptions = subscriptions or []

    async def list_due_for_review_reminder(self, created_before, reminded_before) -> list:
        return [item for item in self.subscriptions if item.last_review_reminder_sent_at is None]

    async def update_subscription(self, subscription, **changes):
        for key, value in changes.items():
            setattr(subscription, key, value)
        return subscription


class FakeReviewsRepository:
    def __init__(self, reviewed_bookings: set[UUID] | None = None) -> None:
        self.reviewed_bookings = reviewed_bookings or set()

    async def has_review_for_booking(self, booking_id: UUID) -> bool:
        return booking_id in self.reviewed_bookings

    async def has_review_for_subscription_since(self, subscription_id: UUID, since: datetime) -> bool:
        return False


class FakeNotificationsService:
    def __init__(self) -> None:
        self.sent: list[tuple[UUID, NotificationKindEnum]] = []

    async def notify(self, user_id, kind, title, message, *, link=None, booking_id=None) -> None:
        self.sent.append((user_id, kind))


class FakeEmailSender:
    def __init__(self, failing: set[str] | None = None) -> None:
        self.failing = failing or set()
        self.sent: list[tuple[str, str]] = []

    async def send(self, template_name: str, recipient: str, variables: dict) -> None:
        if recipient in self.failing:
            raise EmailDeliveryError(f"mailbox {recipient} rejected")
        self.sent.append((template_name, recipient))


class FakeBookingService:
    def __init__(self) -> None:
        self.payout_service = SimpleNamespace(process_held_payouts=self._sweep)

    async def _sweep(self) -> PayoutSweepResult:
        return PayoutSweepResult(checked=3, paid=1, waiting=1, failed=1)

    async def auto_confirm_due_bookings(self) -> int:
        return 2

    async def cancel_unpaid_bookings(self) -> int:
        return 4


def make_booking(starts_in: timedelta, student_email: str = "student@example.com") -> FakeBooking:
    student = SimpleNamespace(id=uuid4(), email=student_email, display_name="Sam Student")
    mentor = SimpleNamespace(
        user_id=uuid4(),
        display_name="Ada Mentor",
        user=SimpleNamespace(email="mentor@example.com"),
    )
    return FakeBooking(student=student, mentor=mentor, scheduled_at=FIXED_NOW + starts_in, student_id=student.id)


def make_service(
    bookings: list[FakeBooking],
    *,
    failing: set[str] | None = None,
    reviewed: set[UUID] | None = None,
    subscriptions: list | None = None,
) -> tuple[ReminderService, FakeEmailSender, FakeNotificationsService]:
    emails = FakeEmailSender(failing)
    notifications = FakeNotificationsService()
    service = ReminderService(
        booking_repository=FakeBookingRepository(bookings),
        subscriptions_repository=FakeSubscriptionsRepository(subscriptions),
        reviews_repository=FakeReviewsRepository(reviewed),
        notifications_service=notifications,
        email_sender=emails,
        booking_service=FakeBookingService(),
    )
    return service, emails, notifications


@pytest.fixture(autouse=True)
def fixed_clock(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(reminders_module, "utc_now", lambda: FIXED_NOW)


@pytest.mark.asyncio
async def test_day_ahead_reminder_goes_to_both_parties_once() -> None:
    due = make_booking(timedelta(hours=24))
    too_far = make_booking(timedelta(hours=30))
    service, emails, notifications = make_service([due, too_far])

    first = await service.run_scan("session-reminders-24h")
    second = await service.run_scan("session-reminders-24h")

    assert first == {"checked": 1, "sent": 1, "failed": 0, "skipped": 0}
    assert second["checked"] == 0
    assert due.reminder_24h_sent_at == FIXED_NOW
    assert too_far.reminder_24h_sent_at is None
    assert emails.sent == [
        ("session_reminder_24h", "student@example.com"),
        ("session_reminder_24h", "mentor@example.com"),
    ]
    assert {kind for _, kind in notifications.sent} == {NotificationKindEnum.SESSION_REMINDER_24H}


@pytest.mark.asyncio
async def test_failed_delivery_leaves_row_unmarked_and_batch_continues() -> None:
    broken = make_booking(timedelta(minutes=15), student_email="bounce@example.com")
    healthy = make_booking(timedelta(minutes=12))
    service, _, _ = make_service([broken, healthy], failing={"bounce@example.com"})

    result = await service.send_session_reminders_15min()

    assert (result.checked, result.sent, result.failed) == (2, 1, 1)
    assert broken.reminder_15min_sent_at is None
    assert healthy.reminder_15min_sent_at == FIXED_NOW


@pytest.mark.asyncio
async def test_review_reminder_skips_already_reviewed_bookings() -> None:
    reviewed = make_booking(timedelta(hours=-26))
    pending = make_booking(timedelta(hours=-26))
    service, emails, _ = make_service([reviewed, pending], reviewed={reviewed.id})

    result = await service.send_review_reminders()

    assert (result.sent, result.skipped) == (1, 1)
    assert reviewed.review_reminder_sent_at is None
    assert pending.review_reminder_sent_at == FIXED_NOW
    assert emails.sent == [("review_reminder", "student@example.com")]


@pytest.mark.asyncio
async def test_completion_reminder_only_for_recently_ended_sessions() -> None:
    ended = make_booking(timedelta(minutes=-90), student_email="a@example.com")
    still_running = make_booking(timedelta(minutes=-30))
    long_ago = make_booking(timedelta(hours=-4))
    service, emails, notifications = make_service([ended, still_running, long_ago])

    result = await service.send_completion_reminders()

    assert result.checked == 1
    assert ended.completion_reminder_sent_at == FIXED_NOW
    assert still_running.completion_reminder_sent_at is None
    assert emails.sent == [("completion_reminder", "mentor@example.com")]
    assert notifications.sent == [(ended.mentor.user_id, NotificationKindEnum.SESSION_COMPLETION_REMINDER)]


@pytest.mark.asyncio
async def test_subscription_review_reminder_marks_subscription() -> None:
    subscription = SimpleNamespace(
        id=uuid4(),
        student_id=uuid4(),
        plan_name="Monthly",
        student=SimpleNamespace(email="sub@example.com", display_name="Sub Student"),
        mentor=SimpleNamespace(display_name="Ada Mentor"),
        last_review_reminder_sent_at=None,
    )
    service, emails, _ = make_service([], subscriptions=[subscription])

    result = await service.send_subscription_review_reminders()

    assert result.sent == 1
    assert subscription.last_review_reminder_sent_at == FIXED_NOW
    assert emails.sent == [("review_reminder", "sub@example.com")]


@pytest.mark.asyncio
async def test_payout_scan_reports_auto_confirm_and_sweep() -> None:
    service, _, _ = make_service([])

    result = await service.run_scan("process-payouts")

    assert result == {"checked": 3, "sent": 1, "failed": 1, "skipped": 1, "auto_confirmed": 2}


@pytest.mark.asyncio
async def test_cancel_unpaid_scan_reports_count() -> None:
    service, _, _ = make_service([])

    assert (await service.run_scan("cancel-unpaid-bookings"))["cancelled"] == 4


@pytest.mark.asyncio
async def test_unknown_scan_is_not_found() -> None:
    service, _, _ = make_service([])

    with pytest.raises(NotFoundException):
        await service.run_scan("nightly-cleanup")


def make_access_pass(bought_ago: timedelta) -> FakeBooking:
    booking = make_booking(timedelta(0), student_email="pass@example.com")
    booking.scheduled_at = None
    booking.duration_minutes = None
    booking.created_at = FIXED_NOW - bought_ago
    return booking


@pytest.mark.asyncio
async def test_access_review_reminder_sent_once_a_day_after_purchase() -> None:
    due = make_access_pass(timedelta(hours=24))
    too_recent = make_access_pass(timedelta(hours=3))
    service, emails, _ = make_service([due, too_recent])

    first = await service.run_scan("review-reminders-access")
    second = await service.run_scan("review-reminders-access")

    assert first == {"checked": 1, "sent": 1, "failed": 0, "skipped": 0}
    assert second["checked"] == 0
    assert due.review_reminder_sent_at == FIXED_NOW
    assert too_recent.review_reminder_sent_at is None
    assert emails.sent == [("review_reminder", "pass@example.com")]


@pytest.mark.asyncio
async def test_access_review_reminder_skipped_when_already_reviewed() -> None:
    reviewed = make_access_pass(timedelta(hours=24))
    service, emails, notifications = make_service([reviewed], reviewed={reviewed.id})

    result = await service.send_access_review_reminders()

    assert (result.checked, result.sent, result.skipped) == (1, 0, 1)
    assert reviewed.review_reminder_sent_at is None
    assert emails.sent == []
    assert notifications.sent == []
