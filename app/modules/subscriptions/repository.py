"""Subscriptions repository layer."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.enums import SubscriptionStatusEnum
from app.modules.subscriptions.models import UserSubscription


class SubscriptionsRepository:
    """DB operations for subscriptions domain."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_subscription(self, subscription_id: UUID) -> UserSubscription | None:
        stmt = select(UserSubscription).where(UserSubscription.id == subscription_id)
        return await self.session.scalar(stmt)

    async def list_for_student(self, student_id: UUID) -> list[UserSubscription]:
        stmt = (
            select(UserSubscription)
            .where(UserSubscription.student_id == student_id)
            .order_by(UserSubscription.created_at.desc())
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_due_for_review_reminder(
        self,
        created_before: datetime,
        reminded_before: datetime,
    ) -> list[UserSubscription]:
        stmt = (
            select(UserSubscription)
            .options(selectinload(UserSubscription.student), selectinload(UserSubscription.mentor))
            .where(
                UserSubscription.status == SubscriptionStatusEnum.ACTIVE,
                UserSubscription.created_at <= created_before,
                or_(
                    UserSubscription.last_review_reminder_sent_at.is_(None),
                    UserSubscription.last_review_reminder_sent_at <= reminded_before,
                ),
            )
        )
        return list((await self.session.scalars(stmt)).all())

    async def update_subscription(self, subscription: UserSubscription, **changes) -> UserSubscription:
        for key, value in changes.items():
            setattr(subscription, key, value)
        await self.session.flush()
        return subscription
