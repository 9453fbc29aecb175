"""Notifications schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from app.core.enums import NotificationKindEnum


class NotificationRead(BaseModel):
    """Notification response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    booking_id: UUID | None
    kind: NotificationKindEnum
    title: str
    message: str
    link: str | None
    is_read: bool
    created_at: datetime


class MarkAllReadResult(BaseModel):
    updated: int
