"""Reviews business logic layer."""

from __future__ import annotations

from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.core.enums import BookingStatusEnum, BookingTypeEnum, SubscriptionStatusEnum
from app.modules.booking.repository import BookingRepository
from app.modules.identity.models import User
from app.modules.reviews.models import Review
from app.modules.reviews.repository import ReviewsRepository
from app.modules.reviews.schemas import ReviewCreate
from app.modules.subscriptions.repository import SubscriptionsRepository
from app.shared.exceptions import BusinessRuleException, ConflictException, NotFoundException, UnauthorizedException


class ReviewsService:
    """Reviews domain service."""

    def __init__(
        self,
        repository: ReviewsRepository,
        booking_repository: BookingRepository,
        subscriptions_repository: SubscriptionsRepository,
    ) -> None:
        self.repository = repository
        self.booking_repository = booking_repository
        self.subscriptions_repository = subscriptions_repository

    async def create_review(self, payload: ReviewCreate, actor: User) -> Review:
        """Create review for an owned, delivered booking or an active subscription."""
        if payload.booking_id is not None:
            booking = await self.booking_repository.get_booking_by_id(payload.booking_id)
            if booking is None:
                raise NotFoundException("Booking not found")
            if booking.student_id != actor.id:
                raise UnauthorizedException("Only the student can review this booking")
            reviewable = (
                booking.type == BookingTypeEnum.ACCESS and booking.status == BookingStatusEnum.CONFIRMED
            ) or (booking.status == BookingStatusEnum.COMPLETED and not booking.is_fraud_reported)
            if not reviewable:
                raise BusinessRuleException("Booking cannot be reviewed yet")
            if await self.repository.has_review_for_booking(booking.id):
                raise ConflictException("Booking already reviewed")
            mentor_id = booking.mentor_id
        else:
            subscription = await self.subscriptions_repository.get_subscription(payload.subscription_id)
            if subscription is None:
                raise NotFoundException("Subscription not found")
            if subscription.student_id != actor.id:
                raise UnauthorizedException("Only the subscriber can review this subscription")
            if subscription.status != SubscriptionStatusEnum.ACTIVE:
                raise BusinessRuleException("Subscription is not active")
            mentor_id = subscription.mentor_id

        return await self.repository.create_review(
            author_id=actor.id,
            mentor_id=mentor_id,
            rating=payload.rating,
            comment=payload.comment,
            booking_id=payload.booking_id,
            subscription_id=payload.subscription_id,
        )

    async def list_for_mentor(self, mentor_id: UUID, limit: int, offset: int) -> tuple[list[Review], int]:
        return await self.repository.list_for_mentor(mentor_id, limit, offset)


async def get_reviews_service(session: AsyncSession = Depends(get_db_session)) -> ReviewsService:
    """Dependency provider for reviews service."""
    return ReviewsService(
        ReviewsRepository(session),
        BookingRepository(session),
        SubscriptionsRepository(session),
    )
