"""Reviews repository layer."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.reviews.models import Review


class ReviewsRepository:
    """DB operations for reviews domain."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_review(
        self,
        author_id: UUID,
        mentor_id: UUID,
        rating: int,
        comment: str,
        booking_id: UUID | None = None,
        subscription_id: UUID | None = None,
    ) -> Review:
        review = Review(
            author_id=author_id,
            mentor_id=mentor_id,
            rating=rating,
            comment=comment,
            booking_id=booking_id,
            subscription_id=subscription_id,
        )
        self.session.add(review)
        await self.session.flush()
        return review

    async def has_review_for_booking(self, booking_id: UUID) -> bool:
        stmt = select(exists().where(Review.booking_id == booking_id))
        return bool(await self.session.scalar(stmt))

    async def has_review_for_subscription_since(self, subscription_id: UUID, since: datetime) -> bool:
        stmt = select(
            exists().where(Review.subscription_id == subscription_id, Review.created_at >= since),
        )
        return bool(await self.session.scalar(stmt))

    async def list_for_mentor(self, mentor_id: UUID, limit: int, offset: int) -> tuple[list[Review], int]:
        base_stmt: Select[tuple[Review]] = select(Review).where(Review.mentor_id == mentor_id)
        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(Review.created_at.desc()).limit(limit).offset(offset)
        items = (await self.session.scalars(stmt)).all()
        return items, total
