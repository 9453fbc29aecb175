"""Scheduling business logic layer."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.modules.identity.models import User
from app.modules.mentors.models import Mentor
from app.modules.mentors.repository import MentorsRepository
from app.modules.scheduling.availability import (
    MAX_DURATION_MINUTES,
    MIN_DURATION_MINUTES,
    TimeWindow,
    day_bounds,
    resolve_start_times,
)
from app.modules.scheduling.models import AvailableSlot, BlockedSlot
from app.modules.scheduling.repository import SchedulingRepository
from app.modules.scheduling.schemas import AvailableSlotCreate, AvailableTimesRead, BlockedSlotCreate
from app.shared.exceptions import BusinessRuleException, NotFoundException, ValidationException
from app.shared.utils import ensure_utc, utc_now

NO_AVAILABILITY_MESSAGE = "Mentor has no availability on this day"


def validate_duration(duration_minutes: int) -> None:
    if not MIN_DURATION_MINUTES <= duration_minutes <= MAX_DURATION_MINUTES:
        raise ValidationException(
            f"Duration must be between {MIN_DURATION_MINUTES} and {MAX_DURATION_MINUTES} minutes",
        )


class SchedulingService:
    """Scheduling domain service."""

    def __init__(self, repository: SchedulingRepository, mentors_repository: MentorsRepository) -> None:
        self.repository = repository
        self.mentors_repository = mentors_repository

    async def _get_own_mentor(self, actor: User) -> Mentor:
        mentor = await self.mentors_repository.get_mentor_by_user_id(actor.id)
        if mentor is None:
            raise NotFoundException("Mentor profile not found")
        return mentor

    @staticmethod
    def _validate_window(start_at: datetime, end_at: datetime) -> tuple[datetime, datetime]:
        start_at = ensure_utc(start_at)
        end_at = ensure_utc(end_at)
        if end_at <= start_at:
            raise BusinessRuleException("Slot end_at must be after start_at")
        return start_at, end_at

    async def create_available_slot(self, payload: AvailableSlotCreate, actor: User) -> AvailableSlot:
        mentor = await self._get_own_mentor(actor)
        start_at, end_at = self._validate_window(payload.start_at, payload.end_at)
        return await self.repository.create_available_slot(mentor.id, start_at, end_at, payload.is_free_session)

    async def create_blocked_slot(self, payload: BlockedSlotCreate, actor: User) -> BlockedSlot:
        mentor = await self._get_own_mentor(actor)
        start_at, end_at = self._validate_window(payload.start_at, payload.end_at)
        return await self.repository.create_blocked_slot(mentor.id, start_at, end_at, payload.reason)

    async def list_own_slots(
        self,
        actor: User,
        range_start: datetime,
        range_end: datetime,
    ) -> tuple[list[AvailableSlot], list[BlockedSlot]]:
        mentor = await self._get_own_mentor(actor)
        range_start, range_end = self._validate_window(range_start, range_end)
        available = await self.repository.list_available_slots(mentor.id, range_start, range_end)
        blocked = await self.repository.list_blocked_slots(mentor.id, range_start, range_end)
        return available, blocked

    async def delete_available_slot(self, slot_id: UUID, actor: User) -> None:
        mentor = await self._get_own_mentor(actor)
        slot = await self.repository.get_available_slot(slot_id)
        if slot is None or slot.mentor_id != mentor.id:
            raise NotFoundException("Slot not found")
        await self.repository.delete_slot(slot)

    async def delete_blocked_slot(self, slot_id: UUID, actor: User) -> None:
        mentor = await self._get_own_mentor(actor)
        slot = await self.repository.get_blocked_slot(slot_id)
        if slot is None or slot.mentor_id != mentor.id:
            raise NotFoundException("Slot not found")
        await self.repository.delete_slot(slot)

    async def get_available_times(
        self,
        mentor_id: UUID,
        day: date,
        duration_minutes: int,
        *,
        exclude_past: bool = True,
        exclude_booking_id: UUID | None = None,
    ) -> AvailableTimesRead:
        """Resolve bookable start times for a mentor on a UTC calendar day."""
        validate_duration(duration_minutes)
        day_start, day_end = day_bounds(day)

        available_slots = await self.repository.list_available_slots(mentor_id, day_start, day_end)
        if not available_slots:
            return AvailableTimesRead(
                date=day,
                duration_minutes=duration_minutes,
                slots=[],
                message=NO_AVAILABILITY_MESSAGE,
            )

        # a late start may run into the next day
        lookahead_end = day_end + timedelta(minutes=MAX_DURATION_MINUTES)
        blocked_slots = await self.repository.list_blocked_slots(mentor_id, day_start, lookahead_end)
        # sessions that began the previous day may still run into this one
        bookings = await self.repository.list_active_sessions(
            mentor_id,
            day_start - timedelta(minutes=MAX_DURATION_MINUTES),
            lookahead_end,
        )
        busy = [TimeWindow(ensure_utc(item.start_at), ensure_utc(item.end_at)) for item in blocked_slots]
        busy.extend(
            TimeWindow(
                ensure_utc(booking.scheduled_at),
                ensure_utc(booking.scheduled_at) + timedelta(minutes=booking.duration_minutes or 0),
            )
            for booking in bookings
            if booking.id != exclude_booking_id
        )

        windows = [TimeWindow(ensure_utc(item.start_at), ensure_utc(item.end_at)) for item in available_slots]
        free_windows = [
            TimeWindow(ensure_utc(item.start_at), ensure_utc(item.end_at))
            for item in available_slots
            if item.is_free_session
        ]
        not_before = utc_now() if exclude_past else None
        return AvailableTimesRead(
            date=day,
            duration_minutes=duration_minutes,
            slots=resolve_start_times(day, duration_minutes, windows, busy, not_before),
            free_session_slots=resolve_start_times(day, duration_minutes, free_windows, busy, not_before),
        )

    async def ensure_bookable(
        self,
        mentor_id: UUID,
        scheduled_at: datetime,
        duration_minutes: int,
        *,
        is_free_session: bool = False,
        exclude_booking_id: UUID | None = None,
    ) -> None:
        """Fail unless the start time is offered by the availability resolver."""
        scheduled_at = ensure_utc(scheduled_at)
        times = await self.get_available_times(
            mentor_id,
            scheduled_at.date(),
            duration_minutes,
            exclude_booking_id=exclude_booking_id,
        )
        offered = times.free_session_slots if is_free_session else times.slots
        if scheduled_at.second or scheduled_at.microsecond or scheduled_at.strftime("%H:%M") not in offered:
            raise BusinessRuleException("Requested time is not available")


async def get_scheduling_service(session: AsyncSession = Depends(get_db_session)) -> SchedulingService:
    """Dependency provider for scheduling service."""
    return SchedulingService(SchedulingRepository(session), MentorsRepository(session))
