"""Scheduling repository layer."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import BookingStatusEnum, BookingTypeEnum
from app.modules.booking.models import Booking
from app.modules.scheduling.models import AvailableSlot, BlockedSlot


class SchedulingRepository:
    """DB access for scheduling domain."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_available_slot(
        self,
        mentor_id: UUID,
        start_at: datetime,
        end_at: datetime,
        is_free_session: bool,
    ) -> AvailableSlot:
        slot = AvailableSlot(
            mentor_id=mentor_id,
            start_at=start_at,
            end_at=end_at,
            is_free_session=is_free_session,
        )
        self.session.add(slot)
        await self.session.flush()
        return slot

    async def create_blocked_slot(
        self,
        mentor_id: UUID,
        start_at: datetime,
        end_at: datetime,
        reason: str | None,
    ) -> BlockedSlot:
        slot = BlockedSlot(mentor_id=mentor_id, start_at=start_at, end_at=end_at, reason=reason)
        self.session.add(slot)
        await self.session.flush()
        return slot

    async def get_available_slot(self, slot_id: UUID) -> AvailableSlot | None:
        stmt = select(AvailableSlot).where(AvailableSlot.id == slot_id)
        return await self.session.scalar(stmt)

    async def get_blocked_slot(self, slot_id: UUID) -> BlockedSlot | None:
        stmt = select(BlockedSlot).where(BlockedSlot.id == slot_id)
        return await self.session.scalar(stmt)

    async def delete_slot(self, slot: AvailableSlot | BlockedSlot) -> None:
        await self.session.delete(slot)
        await self.session.flush()

    async def list_available_slots(
        self,
        mentor_id: UUID,
        range_start: datetime,
        range_end: datetime,
    ) -> list[AvailableSlot]:
        stmt = (
            select(AvailableSlot)
            .where(
                AvailableSlot.mentor_id == mentor_id,
                AvailableSlot.start_at < range_end,
                AvailableSlot.end_at > range_start,
            )
            .order_by(AvailableSlot.start_at.asc())
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_blocked_slots(
        self,
        mentor_id: UUID,
        range_start: datetime,
        range_end: datetime,
    ) -> list[BlockedSlot]:
        stmt = (
            select(BlockedSlot)
            .where(
                BlockedSlot.mentor_id == mentor_id,
                BlockedSlot.start_at < range_end,
                BlockedSlot.end_at > range_start,
            )
            .order_by(BlockedSlot.start_at.asc())
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_active_sessions(
        self,
        mentor_id: UUID,
        range_start: datetime,
        range_end: datetime,
    ) -> list[Booking]:
        stmt = select(Booking).where(
            Booking.mentor_id == mentor_id,
            Booking.type == BookingTypeEnum.SESSION,
            Booking.status.in_((BookingStatusEnum.PENDING, BookingStatusEnum.CONFIRMED)),
            Booking.scheduled_at.is_not(None),
            Booking.scheduled_at < range_end,
            Booking.scheduled_at >= range_start,
        )
        return list((await self.session.scalars(stmt)).all())
