"""Booking business logic layer."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from uuid import UUID

from fastapi import Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db_session
from app.core.enums import (
    BookingStatusEnum,
    BookingTypeEnum,
    NotificationKindEnum,
    PayoutStatusEnum,
    RoleEnum,
)
from app.modules.booking.lifecycle import is_awaiting_confirmation
from app.modules.booking.models import Booking
from app.modules.booking.pricing import calculate_payout_amounts, calculate_total_price
from app.modules.booking.repository import BookingRepository
from app.modules.booking.schemas import (
    BookingCancelRequest,
    BookingCreate,
    BookingRescheduleRequest,
    CheckoutRead,
    StudentConfirmRequest,
)
from app.modules.identity.models import User
from app.modules.identity.repository import IdentityRepository
from app.modules.mentors.repository import MentorsRepository
from app.modules.notifications.repository import NotificationsRepository
from app.modules.notifications.service import NotificationsService, build_link
from app.modules.payments.provider import PaymentProvider, ProviderError, get_payment_provider
from app.modules.payments.service import PayoutService
from app.modules.scheduling.repository import SchedulingRepository
from app.modules.scheduling.service import SchedulingService, validate_duration
from app.shared.exceptions import (
    BusinessRuleException,
    ConflictException,
    NotFoundException,
    ProviderException,
    UnauthorizedException,
    ValidationException,
)
from app.shared.utils import ensure_utc, format_cents, utc_now

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED_EVENT = "checkout.session.completed"


class BookingService:
    """Booking lifecycle: creation, payment capture, completion, confirmation and cancellation."""

    def __init__(
        self,
        booking_repository: BookingRepository,
        mentors_repository: MentorsRepository,
        identity_repository: IdentityRepository,
        scheduling_service: SchedulingService,
        notifications_service: NotificationsService,
        payout_service: PayoutService,
        provider: PaymentProvider,
    ) -> None:
        self.booking_repository = booking_repository
        self.mentors_repository = mentors_repository
        self.identity_repository = identity_repository
        self.scheduling_service = scheduling_service
        self.notifications_service = notifications_service
        self.payout_service = payout_service
        self.provider = provider
        self.settings = get_settings()

    async def _get_booking(self, booking_id: UUID) -> Booking:
        booking = await self.booking_repository.get_booking_by_id(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found")
        return booking

    @staticmethod
    def _is_student(booking: Booking, actor: User) -> bool:
        return booking.student_id == actor.id

    @staticmethod
    def _is_mentor(booking: Booking, actor: User) -> bool:
        return booking.mentor.user_id == actor.id

    def _validate_actor_access(self, booking: Booking, actor: User) -> None:
        if actor.role.name == RoleEnum.ADMIN:
            return
        if self._is_student(booking, actor) or self._is_mentor(booking, actor):
            return
        raise UnauthorizedException("You cannot access this booking")

    async def create_booking(self, payload: BookingCreate, actor: User) -> Booking:
        """Price and persist a new booking (PENDING, or CONFIRMED for a free session)."""
        if actor.role.name != RoleEnum.STUDENT:
            raise UnauthorizedException("Only students can create bookings")

        mentor = await self.mentors_repository.get_mentor(payload.mentor_id)
        if mentor is None or not mentor.is_active:
            raise NotFoundException("Mentor not found or inactive")

        scheduled_at: datetime | None = None
        duration_minutes: int | None = None
        is_free_session = False
        if payload.type == BookingTypeEnum.SESSION:
            if payload.scheduled_at is None or payload.duration_minutes is None:
                raise ValidationException("Session bookings require scheduled_at and duration_minutes")
            validate_duration(payload.duration_minutes)
            scheduled_at = ensure_utc(payload.scheduled_at)
            if scheduled_at <= utc_now():
                raise BusinessRuleException("Session must be scheduled in the future")
            duration_minutes = payload.duration_minutes
            is_free_session = payload.is_free_session

        total_price = calculate_total_price(
            mentor,
            payload.type,
            duration_minutes,
            is_free_session=is_free_session,
        )

        if scheduled_at is not None:
            await self.scheduling_service.ensure_bookable(
                mentor.id,
                scheduled_at,
                duration_minutes,
                is_free_session=is_free_session,
            )

        if is_free_session:
            booking = await self.booking_repository.create_booking(
                student_id=actor.id,
                mentor_id=mentor.id,
                type=payload.type,
                status=BookingStatusEnum.CONFIRMED,
                total_price=0,
                platform_fee=0,
                mentor_payout=0,
                scheduled_at=scheduled_at,
                duration_minutes=duration_minutes,
                notes=payload.notes,
                is_free_session=True,
            )
            await self._notify_booking_confirmed(booking)
        else:
            booking = await self.booking_repository.create_booking(
                student_id=actor.id,
                mentor_id=mentor.id,
                type=payload.type,
                status=BookingStatusEnum.PENDING,
                total_price=total_price,
                scheduled_at=scheduled_at,
                duration_minutes=duration_minutes,
                notes=payload.notes,
            )

        logger.info("Booking %s created for mentor %s (%s)", booking.id, mentor.id, format_cents(total_price))
        return booking

    async def start_checkout(self, booking_id: UUID, actor: User) -> CheckoutRead:
        """Open a provider checkout session for a pending booking."""
        booking = await self._get_booking(booking_id)
        if not self._is_student(booking, actor):
            raise UnauthorizedException("Only the student can pay for this booking")
        if booking.status != BookingStatusEnum.PENDING:
            raise ConflictException("Only PENDING bookings can be paid")

        label = "Access pass" if booking.type == BookingTypeEnum.ACCESS else f"{booking.duration_minutes}-minute session"
        try:
            checkout = await self.provider.create_checkout_session(
                booking_id=booking.id,
                amount_cents=booking.total_price,
                description=f"{label} with {booking.mentor.display_name}",
                customer_email=actor.email,
                success_url=build_link(f"/bookings/{booking.id}?checkout=success"),
                cancel_url=build_link(f"/bookings/{booking.id}?checkout=cancelled"),
            )
        except ProviderError as exc:
            raise ProviderException(exc.message) from exc

        await self.booking_repository.update_booking(booking, stripe_checkout_session_id=checkout.id)
        return CheckoutRead(session_id=checkout.id, checkout_url=checkout.url)

    async def handle_provider_webhook(self, payload: bytes, signature: str | None) -> str:
        """Verify and apply a provider webhook; returns the event type."""
        try:
            event = self.provider.parse_webhook_event(payload, signature)
        except ProviderError as exc:
            raise ValidationException(exc.message) from exc

        if event.type != CHECKOUT_COMPLETED_EVENT:
            logger.debug("Ignoring webhook event %s", event.type)
            return event.type

        data = event.data
        booking_id = (data.get("metadata") or {}).get("booking_id")
        booking = None
        if booking_id:
            try:
                parsed_id = UUID(str(booking_id))
            except ValueError:
                logger.warning("Checkout webhook carries malformed booking id %r", booking_id)
            else:
                booking = await self.booking_repository.get_booking_by_id(parsed_id)
        if booking is None and data.get("id"):
            booking = await self.booking_repository.get_booking_by_checkout_session(data["id"])
        if booking is None:
            logger.warning("Checkout webhook for unknown booking (session %s)", data.get("id"))
            return event.type

        await self.mark_payment_captured(booking, data.get("payment_intent"), data.get("id"))
        return event.type

    async def mark_payment_captured(
        self,
        booking: Booking,
        payment_intent_id: str | None,
        checkout_session_id: str | None = None,
    ) -> Booking:
        """PENDING -> CONFIRMED once payment is captured; replays are ignored."""
        if booking.stripe_paid_at is not None or booking.status != BookingStatusEnum.PENDING:
            logger.info("Payment for booking %s already processed (status %s)", booking.id, booking.status)
            return booking
        if not payment_intent_id:
            raise ValidationException("Checkout session has no payment intent")

        platform_fee, mentor_payout = calculate_payout_amounts(
            booking.total_price,
            self.settings.platform_fee_percent,
        )
        await self.booking_repository.update_booking(
            booking,
            status=BookingStatusEnum.CONFIRMED,
            stripe_payment_intent_id=payment_intent_id,
            stripe_checkout_session_id=checkout_session_id or booking.stripe_checkout_session_id,
            stripe_paid_at=utc_now(),
            platform_fee=platform_fee,
            mentor_payout=mentor_payout,
        )
        await self._notify_booking_confirmed(booking)
        return booking

    async def _notify_booking_confirmed(self, booking: Booking) -> None:
        await self.notifications_service.notify(
            booking.mentor.user_id,
            NotificationKindEnum.BOOKING_CONFIRMED,
            "New booking confirmed",
            f"{booking.student.display_name} booked a {booking.type.value.lower()} with you.",
            link=build_link(f"/mentor/bookings/{booking.id}"),
            booking_id=booking.id,
        )

    async def cancel_booking(self, booking_id: UUID, payload: BookingCancelRequest, actor: User) -> Booking:
        """Cancel a booking; captured payments are refunded by policy."""
        booking = await self._get_booking(booking_id)
        self._validate_actor_access(booking, actor)

        if booking.status not in (BookingStatusEnum.PENDING, BookingStatusEnum.CONFIRMED):
            raise ConflictException("Booking can no longer be cancelled")
        if booking.mentor_completed_at is not None:
            raise ConflictException("Completed sessions cannot be cancelled")

        now = utc_now()
        changes: dict = {
            "status": BookingStatusEnum.CANCELLED,
            "cancelled_at": now,
            "cancellation_reason": payload.reason,
            "auto_confirm_at": None,
        }

        if booking.stripe_payment_intent_id and self._is_refundable(booking, actor, now):
            try:
                refund = await self.provider.issue_refund(
                    booking.stripe_payment_intent_id,
                    booking.total_price,
                    "requested_by_customer",
                    idempotency_key=f"refund:{booking.id}:cancel",
                )
            except ProviderError as exc:
                raise ProviderException(exc.message) from exc
            changes.update(
                status=BookingStatusEnum.REFUNDED,
                payout_status=PayoutStatusEnum.REFUNDED,
                stripe_refund_id=refund.id,
                refund_amount=booking.total_price,
            )

        await self.booking_repository.update_booking(booking, **changes)

        counterpart_id = booking.mentor.user_id if self._is_student(booking, actor) else booking.student_id
        await self.notifications_service.notify(
            counterpart_id,
            NotificationKindEnum.BOOKING_CANCELLED,
            "Booking cancelled",
            payload.reason or "A booking was cancelled.",
            link=build_link(f"/bookings/{booking.id}"),
            booking_id=booking.id,
        )
        return booking

    def _is_refundable(self, booking: Booking, actor: User, now: datetime) -> bool:
        if not self._is_student(booking, actor):
            return True
        if booking.scheduled_at is None:
            return False
        hours_before = (ensure_utc(booking.scheduled_at) - now).total_seconds() / 3600
        return hours_before > self.settings.booking_refund_window_hours

    async def reschedule_booking(self, booking_id: UUID, payload: BookingRescheduleRequest, actor: User) -> Booking:
        """Move a confirmed session; either participant may do it."""
        booking = await self._get_booking(booking_id)
        if not (self._is_student(booking, actor) or self._is_mentor(booking, actor)):
            raise UnauthorizedException("Only the booking participants can reschedule it")
        if booking.type != BookingTypeEnum.SESSION:
            raise BusinessRuleException("Only session bookings can be rescheduled")
        if booking.status != BookingStatusEnum.CONFIRMED:
            raise BusinessRuleException("Only confirmed bookings can be rescheduled")
        if booking.mentor_completed_at is not None:
            raise ConflictException("Completed sessions cannot be rescheduled")

        new_scheduled_at = ensure_utc(payload.scheduled_at)
        if new_scheduled_at <= utc_now():
            raise BusinessRuleException("New date must be in the future")

        await self.scheduling_service.ensure_bookable(
            booking.mentor_id,
            new_scheduled_at,
            booking.duration_minutes,
            is_free_session=booking.is_free_session,
            exclude_booking_id=booking.id,
        )

        previous = booking.scheduled_at
        notes = booking.notes
        if payload.reason:
            notes = f"{booking.notes or ''}\n\nRescheduled: {payload.reason}".strip()
        await self.booking_repository.update_booking(
            booking,
            scheduled_at=new_scheduled_at,
            notes=notes,
            reminder_24h_sent_at=None,
            reminder_15min_sent_at=None,
        )
        logger.info("Booking %s moved from %s to %s", booking.id, previous, new_scheduled_at)

        by_mentor = self._is_mentor(booking, actor)
        counterpart_id = booking.student_id if by_mentor else booking.mentor.user_id
        initiator = booking.mentor.display_name if by_mentor else booking.student.display_name
        message = f"{initiator} moved your session to {new_scheduled_at:%B %d, %Y %H:%M} UTC."
        if payload.reason:
            message = f"{message} Reason: {payload.reason}"
        path = f"/bookings/{booking.id}" if by_mentor else f"/mentor/bookings/{booking.id}"
        await self.notifications_service.notify(
            counterpart_id,
            NotificationKindEnum.BOOKING_RESCHEDULED,
            "Session rescheduled",
            message,
            link=build_link(path),
            booking_id=booking.id,
        )
        return booking

    async def cancel_unpaid_bookings(self) -> int:
        """Cancel PENDING bookings whose payment never arrived."""
        cutoff = utc_now() - timedelta(minutes=self.settings.unpaid_booking_cancel_minutes)
        bookings = await self.booking_repository.list_unpaid_pending(cutoff)
        for booking in bookings:
            await self.booking_repository.update_booking(
                booking,
                status=BookingStatusEnum.CANCELLED,
                cancelled_at=utc_now(),
                cancellation_reason="Payment not completed",
            )
        if bookings:
            logger.info("Cancelled %s unpaid bookings", len(bookings))
        return len(bookings)

    async def mark_complete(self, booking_id: UUID, actor: User) -> Booking:
        """Mentor reports the session delivered; starts the confirmation window."""
        booking = await self._get_booking(booking_id)
        if not self._is_mentor(booking, actor):
            raise UnauthorizedException("Only the mentor can mark this booking complete")
        if booking.status != BookingStatusEnum.CONFIRMED:
            raise BusinessRuleException("Booking must be confirmed before completion")
        if booking.mentor_completed_at is not None:
            raise ConflictException("Booking already marked complete")

        now = utc_now()
        if booking.scheduled_at is not None and ensure_utc(booking.scheduled_at) > now:
            raise BusinessRuleException("Session has not started yet")

        await self.booking_repository.update_booking(
            booking,
            mentor_completed_at=now,
            auto_confirm_at=now + timedelta(hours=self.settings.auto_confirm_hours),
        )
        await self.notifications_service.notify(
            booking.student_id,
            NotificationKindEnum.CONFIRMATION_REQUIRED,
            "Please confirm your session",
            f"{booking.mentor.display_name} marked your session complete. Confirm it or report a problem "
            f"within {self.settings.auto_confirm_hours} hours.",
            link=build_link(f"/bookings/{booking.id}"),
            booking_id=booking.id,
        )
        return booking

    async def student_confirm(self, booking_id: UUID, payload: StudentConfirmRequest, actor: User) -> Booking:
        """Student confirms delivery or reports fraud."""
        booking = await self._get_booking(booking_id)
        if not self._is_student(booking, actor):
            raise UnauthorizedException("Only the student can confirm this booking")
        if booking.mentor_completed_at is None:
            raise BusinessRuleException("Mentor has not marked this session complete")
        if not is_awaiting_confirmation(booking):
            raise ConflictException("Booking was already confirmed or reported")

        if payload.action == "report_fraud":
            return await self._report_fraud(booking, payload.fraud_notes)
        return await self._apply_confirmation(booking, utc_now(), auto=False)

    async def _apply_confirmation(self, booking: Booking, now: datetime, *, auto: bool) -> Booking:
        platform_fee, mentor_payout = calculate_payout_amounts(
            booking.total_price,
            self.settings.platform_fee_percent,
        )
        await self.booking_repository.update_booking(
            booking,
            status=BookingStatusEnum.COMPLETED,
            student_confirmed_at=now,
            is_auto_confirmed=auto,
            platform_fee=platform_fee,
            mentor_payout=mentor_payout,
        )
        mentor = await self.mentors_repository.increment_verified_bookings(
            booking.mentor,
            self.settings.trust_threshold,
        )
        if mentor.is_trusted and mentor.verified_bookings_count == self.settings.trust_threshold:
            logger.info("Mentor %s upgraded to trusted", mentor.id)

        try:
            async with self.booking_repository.session.begin_nested():
                await self.payout_service.process_booking_payout(booking)
        except (ProviderError, SQLAlchemyError):
            logger.exception("Payout policy failed for booking %s", booking.id)

        await self.notifications_service.notify(
            mentor.user_id,
            NotificationKindEnum.SESSION_CONFIRMED,
            "Session confirmed",
            "The session was auto-confirmed." if auto else f"{booking.student.display_name} confirmed the session.",
            link=build_link(f"/mentor/bookings/{booking.id}"),
            booking_id=booking.id,
        )
        return booking

    async def _report_fraud(self, booking: Booking, fraud_notes: str | None) -> Booking:
        notes = (fraud_notes or "").strip()
        if not notes:
            raise ValidationException("Fraud notes are required")

        await self.booking_repository.update_booking(
            booking,
            status=BookingStatusEnum.COMPLETED,
            is_fraud_reported=True,
            fraud_reported_at=utc_now(),
            fraud_reason=notes,
            payout_status=PayoutStatusEnum.HELD,
            payout_hold_until=None,
            auto_confirm_at=None,
        )
        logger.warning("Fraud reported on booking %s", booking.id)

        await self.notifications_service.notify(
            booking.mentor.user_id,
            NotificationKindEnum.FRAUD_REPORTED,
            "Session reported",
            "The student reported a problem with this session. Payout is on hold pending admin review.",
            link=build_link(f"/mentor/bookings/{booking.id}"),
            booking_id=booking.id,
        )
        await self.notifications_service.notify_many(
            await self.identity_repository.list_admin_ids(),
            NotificationKindEnum.FRAUD_REPORTED,
            "Fraud report needs review",
            f"Booking {booking.id}: {notes}",
            link=build_link(f"/admin/disputes/{booking.id}"),
            booking_id=booking.id,
        )
        return booking

    async def auto_confirm_due_bookings(self) -> int:
        """Persist confirmation for bookings past their auto-confirm deadline."""
        now = utc_now()
        confirmed = 0
        for booking in await self.booking_repository.list_auto_confirm_due(now):
            try:
                async with self.booking_repository.session.begin_nested():
                    await self._apply_confirmation(booking, now, auto=True)
            except SQLAlchemyError:
                logger.exception("Auto-confirm failed for booking %s", booking.id)
                continue
            confirmed += 1
        if confirmed:
            logger.info("Auto-confirmed %s bookings", confirmed)
        return confirmed

    async def get_booking(self, booking_id: UUID, actor: User) -> Booking:
        booking = await self._get_booking(booking_id)
        self._validate_actor_access(booking, actor)
        return booking

    async def list_bookings(self, actor: User, limit: int, offset: int) -> tuple[list[Booking], int]:
        """List bookings of current student or mentor."""
        if actor.role.name == RoleEnum.MENTOR:
            mentor = await self.mentors_repository.get_mentor_by_user_id(actor.id)
            if mentor is None:
                return [], 0
            return await self.booking_repository.list_for_mentor(mentor.id, limit, offset)
        return await self.booking_repository.list_for_student(actor.id, limit, offset)


def build_booking_service(session: AsyncSession) -> BookingService:
    provider = get_payment_provider()
    booking_repository = BookingRepository(session)
    notifications_service = NotificationsService(NotificationsRepository(session))
    mentors_repository = MentorsRepository(session)
    return BookingService(
        booking_repository=booking_repository,
        mentors_repository=mentors_repository,
        identity_repository=IdentityRepository(session),
        scheduling_service=SchedulingService(SchedulingRepository(session), mentors_repository),
        notifications_service=notifications_service,
        payout_service=PayoutService(booking_repository, provider, notifications_service),
        provider=provider,
    )


async def get_booking_service(session: AsyncSession = Depends(get_db_session)) -> BookingService:
    """Dependency provider for booking service."""
    return build_booking_service(session)
