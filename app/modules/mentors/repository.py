"""Mentors repository layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.enums import OfferTypeEnum
from app.modules.mentors.models import Mentor


class MentorsRepository:
    """DB operations for mentors domain."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_mentor(
        self,
        user_id: UUID,
        display_name: str,
        bio: str,
        timezone: str,
        offer_type: OfferTypeEnum,
        access_price: int | None,
        hourly_rate: int | None,
    ) -> Mentor:
        mentor = Mentor(
            user_id=user_id,
            display_name=display_name,
            bio=bio,
            timezone=timezone,
            offer_type=offer_type,
            access_price=access_price,
            hourly_rate=hourly_rate,
        )
        self.session.add(mentor)
        await self.session.flush()
        return mentor

    async def get_mentor(self, mentor_id: UUID) -> Mentor | None:
        stmt = select(Mentor).options(selectinload(Mentor.user)).where(Mentor.id == mentor_id)
        return await self.session.scalar(stmt)

    async def get_mentor_by_user_id(self, user_id: UUID) -> Mentor | None:
        stmt = select(Mentor).options(selectinload(Mentor.user)).where(Mentor.user_id == user_id)
        return await self.session.scalar(stmt)

    async def list_active_mentors(self, limit: int, offset: int) -> tuple[list[Mentor], int]:
        base_stmt: Select[tuple[Mentor]] = select(Mentor).where(Mentor.is_active.is_(True))
        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(Mentor.created_at.desc()).limit(limit).offset(offset)
        items = (await self.session.scalars(stmt)).all()
        return items, total

    async def update_mentor(self, mentor: Mentor, **changes) -> Mentor:
        for key, value in changes.items():
            setattr(mentor, key, value)
        await self.session.flush()
        return mentor

    async def increment_verified_bookings(self, mentor: Mentor, trust_threshold: int) -> Mentor:
        mentor.verified_bookings_count = (mentor.verified_bookings_count or 0) + 1
        if not mentor.is_trusted and mentor.verified_bookings_count >= trust_threshold:
            mentor.is_trusted = True
        await self.session.flush()
        return mentor
