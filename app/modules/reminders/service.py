"""Scheduled scans: reminders, review prompts and lifecycle sweeps."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, TypeVar

from fastapi import Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.core.enums import NotificationKindEnum
from app.core.metrics import REMINDERS_TOTAL
from app.modules.booking.models import Booking
from app.modules.booking.repository import BookingRepository
from app.modules.booking.service import BookingService, build_booking_service
from app.modules.notifications.email import EmailDeliveryError, EmailSender, get_email_sender
from app.modules.notifications.service import NotificationsService, build_link
from app.modules.reviews.repository import ReviewsRepository
from app.modules.subscriptions.models import UserSubscription
from app.modules.subscriptions.repository import SubscriptionsRepository
from app.shared.exceptions import NotFoundException
from app.shared.utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)

RowT = TypeVar("RowT")

COMPLETION_REMINDER_LOOKBACK = timedelta(hours=2)
MAX_SESSION_DURATION = timedelta(minutes=240)
SUBSCRIPTION_REVIEW_AGE = timedelta(days=30)
SUBSCRIPTION_REMINDER_INTERVAL = timedelta(days=31)


@dataclass(slots=True)
class ScanResult:
    checked: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    extra: dict[str, int] = field(default_factory=dict)

    def as_dict(self) -> dict[str, int]:
        return {
            "checked": self.checked,
            "sent": self.sent,
            "failed": self.failed,
            "skipped": self.skipped,
            **self.extra,
        }


def _when(moment: datetime | None) -> str:
    return ensure_utc(moment).strftime("%Y-%m-%d %H:%M") if moment else ""


class ReminderService:
    """Time-window scans that mark each row once its reminder went out."""

    def __init__(
        self,
        booking_repository: BookingRepository,
        subscriptions_repository: SubscriptionsRepository,
        reviews_repository: ReviewsRepository,
        notifications_service: NotificationsService,
        email_sender: EmailSender,
        booking_service: BookingService,
    ) -> None:
        self.booking_repository = booking_repository
        self.subscriptions_repository = subscriptions_repository
        self.reviews_repository = reviews_repository
        self.notifications_service = notifications_service
        self.email_sender = email_sender
        self.booking_service = booking_service

    async def _process(
        self,
        scan: str,
        rows: Sequence[RowT],
        handler: Callable[[RowT], Awaitable[bool]],
    ) -> ScanResult:
        """Run handler per row in its own savepoint; failures are counted, never raised."""
        result = ScanResult(checked=len(rows))
        for row in rows:
            try:
                async with self.booking_repository.session.begin_nested():
                    delivered = await handler(row)
            except (EmailDeliveryError, SQLAlchemyError) as exc:
                logger.warning("%s: row %s failed: %s", scan, getattr(row, "id", "?"), exc)
                result.failed += 1
                REMINDERS_TOTAL.labels(scan=scan, outcome="failed").inc()
                continue

            if delivered:
                result.sent += 1
                REMINDERS_TOTAL.labels(scan=scan, outcome="sent").inc()
            else:
                result.skipped += 1
                REMINDERS_TOTAL.labels(scan=scan, outcome="skipped").inc()

        logger.info("%s: %s", scan, result.as_dict())
        return result

    async def _send_session_reminder(
        self,
        booking: Booking,
        *,
        template: str,
        kind: NotificationKindEnum,
        title: str,
        marker: str,
    ) -> bool:
        student = booking.student
        mentor = booking.mentor
        parties = (
            (student.id, student.email, student.display_name, mentor.display_name, f"/bookings/{booking.id}"),
            (mentor.user_id, mentor.user.email, mentor.display_name, student.display_name, f"/mentor/bookings/{booking.id}"),
        )
        for user_id, email, name, counterpart, path in parties:
            await self.email_sender.send(
                template,
                email,
                {
                    "recipient_name": name,
                    "counterpart_name": counterpart,
                    "duration_minutes": booking.duration_minutes,
                    "scheduled_at": _when(booking.scheduled_at),
                    "link": build_link(path),
                },
            )
            await self.notifications_service.notify(
                user_id,
                kind,
                title,
                f"Your session with {counterpart} starts at {_when(booking.scheduled_at)} UTC.",
                link=build_link(path),
                booking_id=booking.id,
            )
        await self.booking_repository.update_booking(booking, **{marker: utc_now()})
        return True

    async def send_session_reminders_24h(self) -> ScanResult:
        now = utc_now()
        rows = await self.booking_repository.list_sessions_starting_between(
            now + timedelta(hours=23),
            now + timedelta(hours=25),
            "reminder_24h_sent_at",
        )

        async def handle(booking: Booking) -> bool:
            return await self._send_session_reminder(
                booking,
                template="session_reminder_24h",
                kind=NotificationKindEnum.SESSION_REMINDER_24H,
                title="Session tomorrow",
                marker="reminder_24h_sent_at",
            )

        return await self._process("session-reminders-24h", rows, handle)

    async def send_session_reminders_15min(self) -> ScanResult:
        now = utc_now()
        rows = await self.booking_repository.list_sessions_starting_between(
            now + timedelta(minutes=10),
            now + timedelta(minutes=20),
            "reminder_15min_sent_at",
        )

        async def handle(booking: Booking) -> bool:
            return await self._send_session_reminder(
                booking,
                template="session_reminder_15min",
                kind=NotificationKindEnum.SESSION_REMINDER_15MIN,
                title="Session starting soon",
                marker="reminder_15min_sent_at",
            )

        return await self._process("session-reminders-15min", rows, handle)

    async def _send_booking_review_reminder(self, booking: Booking) -> bool:
        if await self.reviews_repository.has_review_for_booking(booking.id):
            return False

        link = build_link(f"/bookings/{booking.id}/review")
        await self.email_sender.send(
            "review_reminder",
            booking.student.email,
            {
                "recipient_name": booking.student.display_name,
                "mentor_name": booking.mentor.display_name,
                "link": link,
            },
        )
        await self.notifications_service.notify(
            booking.student_id,
            NotificationKindEnum.REVIEW_REMINDER,
            "Leave a review",
            f"How was your experience with {booking.mentor.display_name}?",
            link=link,
            booking_id=booking.id,
        )
        await self.booking_repository.update_booking(booking, review_reminder_sent_at=utc_now())
        return True

    async def send_review_reminders(self) -> ScanResult:
        """Prompt for a review about a day after a session was confirmed."""
        now = utc_now()
        rows = await self.booking_repository.list_sessions_confirmed_between(
            now - timedelta(hours=25),
            now - timedelta(hours=23),
        )
        return await self._process("review-reminders", rows, self._send_booking_review_reminder)

    async def send_access_review_reminders(self) -> ScanResult:
        """Prompt for a review about a day after an access pass was bought."""
        now = utc_now()
        rows = await self.booking_repository.list_access_created_between(
            now - timedelta(hours=25),
            now - timedelta(hours=23),
        )
        return await self._process("review-reminders-access", rows, self._send_booking_review_reminder)

    async def send_subscription_review_reminders(self) -> ScanResult:
        now = utc_now()
        rows = await self.subscriptions_repository.list_due_for_review_reminder(
            created_before=now - SUBSCRIPTION_REVIEW_AGE,
            reminded_before=now - SUBSCRIPTION_REMINDER_INTERVAL,
        )

        async def handle(subscription: UserSubscription) -> bool:
            if await self.reviews_repository.has_review_for_subscription_since(
                subscription.id,
                now - SUBSCRIPTION_REVIEW_AGE,
            ):
                return False

            link = build_link(f"/subscriptions/{subscription.id}/review")
            await self.email_sender.send(
                "review_reminder",
                subscription.student.email,
                {
                    "recipient_name": subscription.student.display_name,
                    "mentor_name": subscription.mentor.display_name,
                    "link": link,
                },
            )
            await self.notifications_service.notify(
                subscription.student_id,
                NotificationKindEnum.REVIEW_REMINDER,
                "Leave a review",
                f"How is your {subscription.plan_name} subscription with {subscription.mentor.display_name}?",
                link=link,
            )
            await self.subscriptions_repository.update_subscription(
                subscription,
                last_review_reminder_sent_at=utc_now(),
            )
            return True

        return await self._process("review-reminders-subscription", rows, handle)

    async def send_completion_reminders(self) -> ScanResult:
        """Nudge mentors whose session ended recently but is not marked complete."""
        now = utc_now()
        candidates = await self.booking_repository.list_sessions_awaiting_completion(
            now - COMPLETION_REMINDER_LOOKBACK - MAX_SESSION_DURATION,
            now,
        )
        rows = [
            booking
            for booking in candidates
            if now - COMPLETION_REMINDER_LOOKBACK
            <= ensure_utc(booking.scheduled_at) + timedelta(minutes=booking.duration_minutes or 0)
            <= now
        ]

        async def handle(booking: Booking) -> bool:
            mentor = booking.mentor
            link = build_link(f"/mentor/bookings/{booking.id}")
            await self.email_sender.send(
                "completion_reminder",
                mentor.user.email,
                {
                    "recipient_name": mentor.display_name,
                    "counterpart_name": booking.student.display_name,
                    "link": link,
                },
            )
            await self.notifications_service.notify(
                mentor.user_id,
                NotificationKindEnum.SESSION_COMPLETION_REMINDER,
                "Mark your session complete",
                f"Your session with {booking.student.display_name} has ended.",
                link=link,
                booking_id=booking.id,
            )
            await self.booking_repository.update_booking(booking, completion_reminder_sent_at=utc_now())
            return True

        return await self._process("completion-reminders", rows, handle)

    async def process_payouts(self) -> ScanResult:
        """Persist due auto-confirmations, then release held payouts."""
        auto_confirmed = await self.booking_service.auto_confirm_due_bookings()
        sweep = await self.booking_service.payout_service.process_held_payouts()
        REMINDERS_TOTAL.labels(scan="process-payouts", outcome="sent").inc(sweep.paid)
        REMINDERS_TOTAL.labels(scan="process-payouts", outcome="failed").inc(sweep.failed)
        return ScanResult(
            checked=sweep.checked,
            sent=sweep.paid,
            failed=sweep.failed,
            skipped=sweep.waiting,
            extra={"auto_confirmed": auto_confirmed},
        )

    async def cancel_unpaid_bookings(self) -> ScanResult:
        cancelled = await self.booking_service.cancel_unpaid_bookings()
        return ScanResult(checked=cancelled, extra={"cancelled": cancelled})

    def scans(self) -> dict[str, Callable[[], Awaitable[ScanResult]]]:
        return {
            "session-reminders-24h": self.send_session_reminders_24h,
            "session-reminders-15min": self.send_session_reminders_15min,
            "review-reminders": self.send_review_reminders,
            "review-reminders-access": self.send_access_review_reminders,
            "review-reminders-subscription": self.send_subscription_review_reminders,
            "completion-reminders": self.send_completion_reminders,
            "process-payouts": self.process_payouts,
            "cancel-unpaid-bookings": self.cancel_unpaid_bookings,
        }

    async def run_scan(self, name: str) -> dict[str, Any]:
        scan = self.scans().get(name)
        if scan is None:
            raise NotFoundException(f"Unknown scan: {name}")
        result = await scan()
        return result.as_dict()


SCAN_NAMES = (
    "session-reminders-24h",
    "session-reminders-15min",
    "review-reminders",
    "review-reminders-access",
    "review-reminders-subscription",
    "completion-reminders",
    "process-payouts",
    "cancel-unpaid-bookings",
)


def build_reminder_service(session: AsyncSession) -> ReminderService:
    booking_service = build_booking_service(session)
    return ReminderService(
        booking_repository=booking_service.booking_repository,
        subscriptions_repository=SubscriptionsRepository(session),
        reviews_repository=ReviewsRepository(session),
        notifications_service=booking_service.notifications_service,
        email_sender=get_email_sender(),
        booking_service=booking_service,
    )


async def get_reminder_service(session: AsyncSession = Depends(get_db_session)) -> ReminderService:
    """Dependency provider for reminder service."""
    return build_reminder_service(session)
