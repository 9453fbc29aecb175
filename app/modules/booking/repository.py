"""Booking repository layer."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.enums import (
    BookingStatusEnum,
    BookingTypeEnum,
    DisputeDecisionEnum,
    PayoutStatusEnum,
)
from app.modules.booking.models import Booking
from app.modules.mentors.models import Mentor


def _with_parties(stmt: Select[tuple[Booking]]) -> Select[tuple[Booking]]:
    return stmt.options(
        selectinload(Booking.student),
        selectinload(Booking.mentor).selectinload(Mentor.user),
    )


class BookingRepository:
    """DB operations for booking domain."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_booking(
        self,
        student_id: UUID,
        mentor_id: UUID,
        type: BookingTypeEnum,
        status: BookingStatusEnum,
        total_price: int,
        scheduled_at: datetime | None = None,
        duration_minutes: int | None = None,
        notes: str | None = None,
        is_free_session: bool = False,
        platform_fee: int | None = None,
        mentor_payout: int | None = None,
    ) -> Booking:
        booking = Booking(
            student_id=student_id,
            mentor_id=mentor_id,
            type=type,
            status=status,
            total_price=total_price,
            platform_fee=platform_fee,
            mentor_payout=mentor_payout,
            scheduled_at=scheduled_at,
            duration_minutes=duration_minutes,
            notes=notes,
            is_free_session=is_free_session,
            payout_status=PayoutStatusEnum.HELD,
        )
        self.session.add(booking)
        await self.session.flush()
        await self.session.refresh(booking, attribute_names=["student", "mentor"])
        return booking

    async def get_booking_by_id(self, booking_id: UUID) -> Booking | None:
        stmt = _with_parties(select(Booking)).where(Booking.id == booking_id)
        return await self.session.scalar(stmt)

    async def get_booking_by_checkout_session(self, checkout_session_id: str) -> Booking | None:
        stmt = _with_parties(select(Booking)).where(Booking.stripe_checkout_session_id == checkout_session_id)
        return await self.session.scalar(stmt)

    async def update_booking(self, booking: Booking, **changes) -> Booking:
        """Apply all field changes of one transition and flush them as a single UPDATE."""
        for key, value in changes.items():
            setattr(booking, key, value)
        await self.session.flush()
        return booking

    async def _paginate(
        self,
        base_stmt: Select[tuple[Booking]],
        limit: int,
        offset: int,
        order_by=None,
    ) -> tuple[list[Booking], int]:
        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        order = order_by if order_by is not None else Booking.created_at.desc()
        stmt = _with_parties(base_stmt).order_by(order).limit(limit).offset(offset)
        items = (await self.session.scalars(stmt)).all()
        return items, total

    async def list_for_student(self, student_id: UUID, limit: int, offset: int) -> tuple[list[Booking], int]:
        return await self._paginate(select(Booking).where(Booking.student_id == student_id), limit, offset)

    async def list_for_mentor(self, mentor_id: UUID, limit: int, offset: int) -> tuple[list[Booking], int]:
        return await self._paginate(select(Booking).where(Booking.mentor_id == mentor_id), limit, offset)

    async def list_fraud_reported(
        self,
        limit: int,
        offset: int,
        unresolved_only: bool = False,
    ) -> tuple[list[Booking], int]:
        base_stmt = select(Booking).where(Booking.is_fraud_reported.is_(True))
        if unresolved_only:
            base_stmt = base_stmt.where(
                or_(
                    Booking.admin_decision.is_(None),
                    Booking.admin_decision == DisputeDecisionEnum.UNDER_REVIEW,
                ),
            )
        return await self._paginate(base_stmt, limit, offset, order_by=Booking.fraud_reported_at.desc())

    async def list_unpaid_pending(self, created_before: datetime) -> list[Booking]:
        stmt = select(Booking).where(
            Booking.status == BookingStatusEnum.PENDING,
            Booking.stripe_paid_at.is_(None),
            Booking.created_at < created_before,
        )
        return list((await self.session.scalars(_with_parties(stmt))).all())

    async def list_auto_confirm_due(self, now: datetime) -> list[Booking]:
        stmt = select(Booking).where(
            Booking.status == BookingStatusEnum.CONFIRMED,
            Booking.mentor_completed_at.is_not(None),
            Booking.student_confirmed_at.is_(None),
            Booking.is_fraud_reported.is_(False),
            Booking.auto_confirm_at.is_not(None),
            Booking.auto_confirm_at < now,
        )
        return list((await self.session.scalars(_with_parties(stmt))).all())

    async def list_releasable_payouts(self, now: datetime) -> list[Booking]:
        """HELD/RELEASED payouts whose hold has elapsed and which no open dispute blocks."""
        stmt = select(Booking).where(
            Booking.status == BookingStatusEnum.COMPLETED,
            Booking.payout_status.in_((PayoutStatusEnum.HELD, PayoutStatusEnum.RELEASED)),
            Booking.payout_hold_until.is_not(None),
            Booking.payout_hold_until <= now,
            Booking.stripe_payment_intent_id.is_not(None),
            or_(
                Booking.is_fraud_reported.is_(False),
                Booking.dispute_payout_amount.is_not(None),
                Booking.admin_decision == DisputeDecisionEnum.NO_ACTION,
            ),
        )
        return list((await self.session.scalars(_with_parties(stmt))).all())

    async def list_sessions_starting_between(
        self,
        window_start: datetime,
        window_end: datetime,
        marker: str,
    ) -> list[Booking]:
        marker_column = getattr(Booking, marker)
        stmt = select(Booking).where(
            Booking.type == BookingTypeEnum.SESSION,
            Booking.status == BookingStatusEnum.CONFIRMED,
            Booking.scheduled_at >= window_start,
            Booking.scheduled_at <= window_end,
            marker_column.is_(None),
        )
        return list((await self.session.scalars(_with_parties(stmt))).all())

    async def list_sessions_confirmed_between(self, window_start: datetime, window_end: datetime) -> list[Booking]:
        stmt = select(Booking).where(
            Booking.type == BookingTypeEnum.SESSION,
            Booking.status == BookingStatusEnum.COMPLETED,
            Booking.is_fraud_reported.is_(False),
            Booking.student_confirmed_at >= window_start,
            Booking.student_confirmed_at <= window_end,
            Booking.review_reminder_sent_at.is_(None),
        )
        return list((await self.session.scalars(_with_parties(stmt))).all())

    async def list_access_created_between(self, window_start: datetime, window_end: datetime) -> list[Booking]:
        stmt = select(Booking).where(
            Booking.type == BookingTypeEnum.ACCESS,
            Booking.status == BookingStatusEnum.CONFIRMED,
            Booking.created_at >= window_start,
            Booking.created_at <= window_end,
            Booking.review_reminder_sent_at.is_(None),
        )
        return list((await self.session.scalars(_with_parties(stmt))).all())

    async def list_sessions_awaiting_completion(self, scheduled_after: datetime, now: datetime) -> list[Booking]:
        # end time is evaluated by the caller; duration varies per row
        stmt = select(Booking).where(
            Booking.type == BookingTypeEnum.SESSION,
            Booking.status == BookingStatusEnum.CONFIRMED,
            Booking.mentor_completed_at.is_(None),
            Booking.completion_reminder_sent_at.is_(None),
            Booking.scheduled_at >= scheduled_after,
            Booking.scheduled_at <= now,
        )
        return list((await self.session.scalars(_with_parties(stmt))).all())
