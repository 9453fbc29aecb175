"""Notifications business logic layer."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db_session
from app.core.enums import NotificationKindEnum
from app.modules.identity.models import User
from app.modules.notifications.models import Notification
from app.modules.notifications.repository import NotificationsRepository
from app.shared.exceptions import NotFoundException, UnauthorizedException

logger = logging.getLogger(__name__)


class NotificationsService:
    """Notifications domain service."""

    def __init__(self, repository: NotificationsRepository) -> None:
        self.repository = repository

    async def notify(
        self,
        user_id: UUID,
        kind: NotificationKindEnum,
        title: str,
        message: str,
        link: str | None = None,
        booking_id: UUID | None = None,
    ) -> Notification | None:
        """Persist an in-app notification without failing the caller."""
        try:
            async with self.repository.session.begin_nested():
                return await self.repository.create_notification(
                    user_id=user_id,
                    kind=kind,
                    title=title,
                    message=message,
                    link=link,
                    booking_id=booking_id,
                )
        except SQLAlchemyError:
            logger.exception("Failed to create %s notification for user %s", kind, user_id)
            return None

    async def notify_many(
        self,
        user_ids: list[UUID],
        kind: NotificationKindEnum,
        title: str,
        message: str,
        link: str | None = None,
        booking_id: UUID | None = None,
    ) -> None:
        for user_id in user_ids:
            await self.notify(user_id, kind, title, message, link=link, booking_id=booking_id)

    async def list_my_notifications(
        self,
        actor: User,
        limit: int,
        offset: int,
        unread_only: bool = False,
    ) -> tuple[list[Notification], int]:
        """List notifications for current user."""
        return await self.repository.list_notifications_for_user(actor.id, limit, offset, unread_only)

    async def mark_read(self, notification_id: UUID, actor: User) -> Notification:
        notification = await self.repository.get_notification_by_id(notification_id)
        if notification is None:
            raise NotFoundException("Notification not found")
        if notification.user_id != actor.id:
            raise UnauthorizedException("Only recipient can update notification")
        return await self.repository.mark_read(notification)

    async def mark_all_read(self, actor: User) -> int:
        return await self.repository.mark_all_read(actor.id)


async def get_notifications_service(session: AsyncSession = Depends(get_db_session)) -> NotificationsService:
    """Dependency provider for notifications service."""
    return NotificationsService(NotificationsRepository(session))


def build_link(path: str) -> str:
    """Absolute link into the web app."""
    return f"{get_settings().public_base_url.rstrip('/')}/{path.lstrip('/')}"
