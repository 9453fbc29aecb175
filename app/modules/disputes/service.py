"""Admin resolution of fraud-reported bookings."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.core.enums import BookingStatusEnum, DisputeDecisionEnum, NotificationKindEnum, PayoutStatusEnum
from app.modules.audit.repository import AuditRepository
from app.modules.booking.models import Booking
from app.modules.booking.repository import BookingRepository
from app.modules.disputes.schemas import DisputeResolveRequest
from app.modules.identity.models import User
from app.modules.notifications.email import EmailSender, get_email_sender
from app.modules.notifications.repository import NotificationsRepository
from app.modules.notifications.service import NotificationsService, build_link
from app.modules.payments.provider import PaymentProvider, ProviderError, get_payment_provider
from app.shared.exceptions import (
    ConflictException,
    NoFraudReportException,
    NoPaymentException,
    NotFoundException,
    ProviderException,
    ValidationException,
)
from app.shared.utils import format_cents, utc_now

logger = logging.getLogger(__name__)

FINAL_DECISIONS = frozenset(
    {
        DisputeDecisionEnum.REFUND_STUDENT_FULL,
        DisputeDecisionEnum.REFUND_STUDENT_PARTIAL,
        DisputeDecisionEnum.PAYOUT_MENTOR_FULL,
        DisputeDecisionEnum.SPLIT_50_50,
    },
)


@dataclass(frozen=True, slots=True)
class Resolution:
    refund_amount: int
    payout_amount: int
    payout_status: PayoutStatusEnum
    booking_status: BookingStatusEnum


def _half(total: int) -> int:
    return (total + 1) // 2


def compute_resolution(
    decision: DisputeDecisionEnum,
    total_price: int,
    mentor_payout: int | None,
    custom_refund_amount: int | None = None,
) -> Resolution:
    """Split a captured payment between student refund and mentor payout."""
    match decision:
        case DisputeDecisionEnum.REFUND_STUDENT_FULL:
            return Resolution(total_price, 0, PayoutStatusEnum.REFUNDED, BookingStatusEnum.REFUNDED)
        case DisputeDecisionEnum.REFUND_STUDENT_PARTIAL:
            if custom_refund_amount is not None and not 1 <= custom_refund_amount <= total_price:
                raise ValidationException(f"custom_refund_amount must be between 1 and {total_price}")
            refund = custom_refund_amount if custom_refund_amount is not None else _half(total_price)
            return Resolution(refund, total_price - refund, PayoutStatusEnum.PAID_OUT, BookingStatusEnum.COMPLETED)
        case DisputeDecisionEnum.PAYOUT_MENTOR_FULL:
            payout = mentor_payout if mentor_payout is not None else total_price
            return Resolution(0, payout, PayoutStatusEnum.PAID_OUT, BookingStatusEnum.COMPLETED)
        case DisputeDecisionEnum.SPLIT_50_50:
            refund = _half(total_price)
            return Resolution(refund, total_price - refund, PayoutStatusEnum.PAID_OUT, BookingStatusEnum.COMPLETED)
        case DisputeDecisionEnum.UNDER_REVIEW | DisputeDecisionEnum.NO_ACTION:
            return Resolution(0, 0, PayoutStatusEnum.HELD, BookingStatusEnum.COMPLETED)
    raise ValidationException(f"Unknown decision: {decision}")


@dataclass(slots=True)
class DisputeOutcome:
    booking: Booking
    refund_amount: int
    payout_amount: int
    payout_succeeded: bool
    transfer_reversed: bool


class DisputeService:
    """Dispute resolution engine."""

    def __init__(
        self,
        booking_repository: BookingRepository,
        audit_repository: AuditRepository,
        notifications_service: NotificationsService,
        provider: PaymentProvider,
        email_sender: EmailSender,
    ) -> None:
        self.booking_repository = booking_repository
        self.audit_repository = audit_repository
        self.notifications_service = notifications_service
        self.provider = provider
        self.email_sender = email_sender

    async def list_disputes(self, limit: int, offset: int, unresolved_only: bool) -> tuple[list[Booking], int]:
        return await self.booking_repository.list_fraud_reported(limit, offset, unresolved_only=unresolved_only)

    async def get_dispute(self, booking_id: UUID) -> Booking:
        booking = await self.booking_repository.get_booking_by_id(booking_id)
        if booking is None or not booking.is_fraud_reported:
            raise NotFoundException("Dispute not found")
        return booking

    async def resolve(self, booking_id: UUID, payload: DisputeResolveRequest, actor: User) -> DisputeOutcome:
        """Apply admin decision: reversal, refund leg, payout leg, then one booking update."""
        booking = await self.booking_repository.get_booking_by_id(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found")
        if not booking.is_fraud_reported:
            raise NoFraudReportException("This booking has no fraud report")
        if not booking.stripe_payment_intent_id:
            raise NoPaymentException("No payment to refund")
        if booking.admin_decision in FINAL_DECISIONS:
            raise ConflictException("Dispute already resolved")

        decision = payload.decision
        resolution = compute_resolution(
            decision,
            booking.total_price,
            booking.mentor_payout,
            payload.custom_refund_amount,
        )
        already_paid = booking.payout_status == PayoutStatusEnum.PAID_OUT and bool(booking.payout_id)
        if already_paid and resolution.refund_amount > 0 and decision != DisputeDecisionEnum.REFUND_STUDENT_FULL:
            # the normal transfer already went out; only a full refund reverses it
            raise ConflictException("Mentor was already paid; only a full refund can be applied")

        now = utc_now()
        changes: dict = {
            "admin_reviewed_at": now,
            "admin_reviewed_by": actor.id,
            "admin_decision": decision,
            "admin_notes": payload.admin_notes,
            "status": resolution.booking_status,
        }

        transfer_reversed = False
        if (
            decision == DisputeDecisionEnum.REFUND_STUDENT_FULL
            and booking.payout_status == PayoutStatusEnum.PAID_OUT
            and booking.payout_id
        ):
            try:
                await self.provider.reverse_transfer(
                    booking.payout_id,
                    idempotency_key=f"reversal:{booking.payout_id}",
                )
                transfer_reversed = True
                changes["transfer_reversed_at"] = now
            except ProviderError as exc:
                logger.error("Transfer reversal for booking %s failed: %s", booking.id, exc.message)

        if resolution.refund_amount > 0:
            try:
                refund = await self.provider.issue_refund(
                    booking.stripe_payment_intent_id,
                    resolution.refund_amount,
                    "fraudulent" if decision == DisputeDecisionEnum.REFUND_STUDENT_FULL else "requested_by_customer",
                    idempotency_key=f"refund:{booking.id}:{decision.value}",
                )
            except ProviderError as exc:
                logger.error("Refund for booking %s failed: %s", booking.id, exc.message)
                raise ProviderException("Failed to process refund") from exc
            changes["stripe_refund_id"] = refund.id
            changes["refund_amount"] = resolution.refund_amount

        payout_succeeded = False
        if resolution.payout_amount > 0:
            payout_succeeded = await self._payout_leg(booking, resolution.payout_amount, changes, now)
        else:
            changes["payout_status"] = resolution.payout_status
            if decision == DisputeDecisionEnum.NO_ACTION:
                changes["payout_hold_until"] = now
            elif decision == DisputeDecisionEnum.UNDER_REVIEW:
                changes["payout_hold_until"] = None

        await self.booking_repository.update_booking(booking, **changes)
        await self.audit_repository.create_audit_log(
            actor_id=actor.id,
            action="dispute.resolved",
            entity_type="booking",
            entity_id=str(booking.id),
            payload={
                "decision": decision.value,
                "refund_amount": resolution.refund_amount,
                "payout_amount": resolution.payout_amount,
                "payout_succeeded": payout_succeeded,
                "transfer_reversed": transfer_reversed,
                "admin_notes": payload.admin_notes,
            },
        )
        logger.info(
            "Dispute on booking %s resolved as %s (refund %s, payout %s)",
            booking.id,
            decision.value,
            format_cents(resolution.refund_amount),
            format_cents(resolution.payout_amount),
        )

        await self._notify_parties(booking, decision, resolution)
        return DisputeOutcome(
            booking=booking,
            refund_amount=resolution.refund_amount,
            payout_amount=resolution.payout_amount,
            payout_succeeded=payout_succeeded,
            transfer_reversed=transfer_reversed,
        )

    async def _payout_leg(self, booking: Booking, amount: int, changes: dict, now: datetime) -> bool:
        if booking.payout_status == PayoutStatusEnum.PAID_OUT and booking.payout_id:
            logger.info("Booking %s already paid out in full; dispute payout leg skipped", booking.id)
            changes["payout_status"] = PayoutStatusEnum.PAID_OUT
            return True

        changes["dispute_payout_amount"] = amount
        connect_id = booking.mentor.stripe_connect_id
        if connect_id:
            try:
                transfer = await self.provider.create_payout(
                    connect_id,
                    amount,
                    booking.id,
                    f"Dispute resolution payout for booking {booking.id}",
                    idempotency_key=f"payout:{booking.id}:dispute",
                )
            except ProviderError as exc:
                logger.error("Dispute payout for booking %s failed: %s", booking.id, exc.message)
            else:
                changes.update(
                    payout_status=PayoutStatusEnum.PAID_OUT,
                    payout_id=transfer.id,
                    payout_released_at=now,
                )
                return True
        else:
            logger.warning("Mentor %s has no payout account; dispute payout deferred", booking.mentor_id)

        changes.update(payout_status=PayoutStatusEnum.HELD, payout_hold_until=now)
        return False

    async def _notify_parties(self, booking: Booking, decision: DisputeDecisionEnum, resolution: Resolution) -> None:
        if resolution.refund_amount > 0:
            student_message = f"Refund of {format_cents(resolution.refund_amount)} has been processed."
        elif decision == DisputeDecisionEnum.UNDER_REVIEW:
            student_message = "Your report is still under review."
        else:
            student_message = "No refund was issued for this booking."

        if resolution.payout_amount > 0:
            mentor_message = f"Payment of {format_cents(resolution.payout_amount)} has been processed."
        elif decision == DisputeDecisionEnum.UNDER_REVIEW:
            mentor_message = "The report is still under review."
        elif decision == DisputeDecisionEnum.NO_ACTION:
            mentor_message = "No action was taken; your payout follows the normal schedule."
        else:
            mentor_message = "The booking was refunded to the student."

        recipients = (
            (
                booking.student_id,
                booking.student.email,
                booking.student.display_name,
                student_message,
                f"/bookings/{booking.id}",
            ),
            (
                booking.mentor.user_id,
                booking.mentor.user.email,
                booking.mentor.display_name,
                mentor_message,
                f"/mentor/bookings/{booking.id}",
            ),
        )
        for user_id, email, name, message, path in recipients:
            link = build_link(path)
            await self.notifications_service.notify(
                user_id,
                NotificationKindEnum.DISPUTE_RESOLVED,
                "Dispute resolved",
                message,
                link=link,
                booking_id=booking.id,
            )
            await self.email_sender.send_best_effort(
                "dispute_resolved",
                email,
                {"recipient_name": name, "message": message, "link": link},
            )


async def get_dispute_service(session: AsyncSession = Depends(get_db_session)) -> DisputeService:
    """Dependency provider for dispute service."""
    return DisputeService(
        booking_repository=BookingRepository(session),
        audit_repository=AuditRepository(session),
        notifications_service=NotificationsService(NotificationsRepository(session)),
        provider=get_payment_provider(),
        email_sender=get_email_sender(),
    )
