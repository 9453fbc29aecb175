"""Payout timing policy and held-payout release."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError

from app.core.config import get_settings
from app.core.enums import NotificationKindEnum, PayoutStatusEnum
from app.modules.booking.models import Booking
from app.modules.booking.repository import BookingRepository
from app.modules.notifications.service import NotificationsService, build_link
from app.modules.payments.provider import PaymentProvider, ProviderError
from app.shared.utils import format_cents, utc_now

logger = logging.getLogger(__name__)


def payout_idempotency_key(booking: Booking) -> str:
    if booking.dispute_payout_amount is not None:
        return f"payout:{booking.id}:dispute"
    return f"payout:{booking.id}"


def payout_amount(booking: Booking) -> int:
    if booking.dispute_payout_amount is not None:
        return booking.dispute_payout_amount
    return booking.mentor_payout or 0


@dataclass(slots=True)
class PayoutSweepResult:
    checked: int = 0
    paid: int = 0
    waiting: int = 0
    failed: int = 0


class PayoutService:
    """Decide when a mentor is paid and issue the transfer."""

    def __init__(
        self,
        booking_repository: BookingRepository,
        provider: PaymentProvider,
        notifications_service: NotificationsService,
        *,
        payout_hold_days: int | None = None,
    ) -> None:
        self.booking_repository = booking_repository
        self.provider = provider
        self.notifications_service = notifications_service
        self.payout_hold_days = (
            payout_hold_days if payout_hold_days is not None else get_settings().payout_hold_days
        )

    async def process_booking_payout(self, booking: Booking) -> Booking:
        """Run payout policy for a freshly confirmed booking."""
        now = utc_now()
        mentor = booking.mentor

        if booking.stripe_payment_intent_id is None or not booking.mentor_payout:
            logger.info("Booking %s has no captured payment; payout skipped", booking.id)
            return booking

        if not mentor.is_trusted:
            return await self.booking_repository.update_booking(
                booking,
                payout_status=PayoutStatusEnum.HELD,
                payout_hold_until=now + timedelta(days=self.payout_hold_days),
            )

        if not mentor.can_receive_payouts:
            logger.info("Mentor %s has no onboarded payout account; booking %s stays held", mentor.id, booking.id)
            return await self.booking_repository.update_booking(
                booking,
                payout_status=PayoutStatusEnum.HELD,
                payout_hold_until=now,
            )

        await self.transfer(booking, now)
        return booking

    async def transfer(self, booking: Booking, now: datetime) -> bool:
        """Issue the transfer; on failure leave the row HELD for the release sweep."""
        amount = payout_amount(booking)
        try:
            result = await self.provider.create_payout(
                booking.mentor.stripe_connect_id,
                amount,
                booking.id,
                f"Payout for booking {booking.id}",
                idempotency_key=payout_idempotency_key(booking),
            )
        except ProviderError as exc:
            logger.warning("Payout for booking %s failed: %s", booking.id, exc.message)
            await self.booking_repository.update_booking(
                booking,
                payout_status=PayoutStatusEnum.HELD,
                payout_hold_until=now,
            )
            return False

        await self.booking_repository.update_booking(
            booking,
            payout_status=PayoutStatusEnum.PAID_OUT,
            payout_id=result.id,
            payout_released_at=now,
        )
        logger.info("Paid %s to mentor %s for booking %s", format_cents(amount), booking.mentor_id, booking.id)
        await self.notifications_service.notify(
            booking.mentor.user_id,
            NotificationKindEnum.PAYOUT_SENT,
            "Payout sent",
            f"{format_cents(amount)} has been sent to your payout account.",
            link=build_link(f"/mentor/bookings/{booking.id}"),
            booking_id=booking.id,
        )
        return True

    async def _release_one(self, booking: Booking, now: datetime, result: PayoutSweepResult) -> None:
        mentor = booking.mentor
        capable = False
        if mentor.stripe_connect_id:
            capability = await self.provider.check_account_capability(mentor.stripe_connect_id)
            capable = capability.payouts_enabled

        if not capable:
            if booking.payout_status != PayoutStatusEnum.RELEASED:
                await self.booking_repository.update_booking(booking, payout_status=PayoutStatusEnum.RELEASED)
            result.waiting += 1
            return

        if await self.transfer(booking, now):
            result.paid += 1
        else:
            result.failed += 1

    async def process_held_payouts(self) -> PayoutSweepResult:
        """Release payouts whose hold elapsed; one failing row never stops the batch."""
        now = utc_now()
        result = PayoutSweepResult()
        for booking in await self.booking_repository.list_releasable_payouts(now):
            result.checked += 1
            try:
                async with self.booking_repository.session.begin_nested():
                    await self._release_one(booking, now, result)
            except ProviderError as exc:
                logger.warning("Payout release for booking %s deferred: %s", booking.id, exc.message)
                result.failed += 1
            except SQLAlchemyError:
                logger.exception("Payout release for booking %s failed", booking.id)
                result.failed += 1
        return result
